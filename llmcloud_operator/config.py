"""Operator configuration, read from the environment (and a local ``.env``)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "LLMCLOUD_"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _get_float(env: Mapping[str, str], key: str, default: float, positive: bool = False) -> float:
    raw = env.get(ENV_PREFIX + key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{key} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{key} must not be negative, got {raw!r}")
    if positive and value == 0:
        raise ValueError(f"{ENV_PREFIX}{key} must be positive, got {raw!r}")
    return value


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{ENV_PREFIX}{key} must be at least 1, got {raw!r}")
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"{ENV_PREFIX}{key} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class OperatorConfig:
    workers: int = 2
    resync_period: float = 300.0
    backoff_base: float = 1.0
    backoff_cap: float = 300.0
    status_conflict_delay: float = 10.0
    field_manager: str = "llmcloud-operator"
    namespace_prefix: str = "workspace-"
    default_disk_size: str = "10Gi"
    default_storage_class: str = "local-path"
    image_catalog: Optional[str] = None
    install_crds: bool = True
    watch_server_timeout: int = 210
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "OperatorConfig":
        """Build the config from ``env`` (defaults to ``os.environ`` after ``load_dotenv``)."""
        if env is None:
            load_dotenv()
            env = os.environ
        defaults = cls()
        return cls(
            workers=_get_int(env, "WORKERS", defaults.workers),
            resync_period=_get_float(env, "RESYNC_PERIOD", defaults.resync_period, positive=True),
            backoff_base=_get_float(env, "BACKOFF_BASE", defaults.backoff_base),
            backoff_cap=_get_float(env, "BACKOFF_CAP", defaults.backoff_cap),
            status_conflict_delay=_get_float(env, "STATUS_CONFLICT_DELAY", defaults.status_conflict_delay),
            field_manager=env.get(ENV_PREFIX + "FIELD_MANAGER", defaults.field_manager),
            namespace_prefix=env.get(ENV_PREFIX + "NAMESPACE_PREFIX", defaults.namespace_prefix),
            default_disk_size=env.get(ENV_PREFIX + "DEFAULT_DISK_SIZE", defaults.default_disk_size),
            default_storage_class=env.get(ENV_PREFIX + "DEFAULT_STORAGE_CLASS", defaults.default_storage_class),
            image_catalog=env.get(ENV_PREFIX + "IMAGE_CATALOG") or None,
            install_crds=_get_bool(env, "INSTALL_CRDS", defaults.install_crds),
            watch_server_timeout=_get_int(env, "WATCH_SERVER_TIMEOUT", defaults.watch_server_timeout),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level).upper(),
        )
