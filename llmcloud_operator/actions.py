"""
User actions expressed as edits to declared resources.

Nothing here talks to KubeVirt or a Deployment directly: an action only
changes the declared resource (spec or annotation) and the reconcilers
carry the change out. Each action re-reads the object and retries on a
version conflict.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .constants import ACCOUNT, ANNOTATION_LAST_LOGIN, ANNOTATION_REBOOT, VIRTUAL_MACHINE, ResourceKind, RunStrategy
from .errors import ConflictError
from .models import now_iso

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


def _update(
    store,
    kind: ResourceKind,
    name: str,
    namespace: Optional[str],
    mutate: Callable[[Dict[str, Any]], None],
) -> Dict[str, Any]:
    for attempt in range(1, MAX_ATTEMPTS + 1):
        obj = store.get(kind, name, namespace)
        mutate(obj)
        try:
            return store.replace(kind, obj)
        except ConflictError:
            if attempt == MAX_ATTEMPTS:
                raise
            logger.debug(f"Conflict updating {kind.kind} {name}, attempt {attempt}")
    raise AssertionError("unreachable")


def _set_annotation(key: str, value: str) -> Callable[[Dict[str, Any]], None]:
    def mutate(obj: Dict[str, Any]) -> None:
        annotations = obj["metadata"].get("annotations") or {}
        annotations[key] = value
        obj["metadata"]["annotations"] = annotations

    return mutate


def _set_run_strategy(strategy: RunStrategy) -> Callable[[Dict[str, Any]], None]:
    def mutate(obj: Dict[str, Any]) -> None:
        obj.setdefault("spec", {})["runStrategy"] = strategy.value

    return mutate


def start_vm(store, name: str, namespace: str) -> Dict[str, Any]:
    logger.info(f"Starting virtual machine {namespace}/{name}")
    return _update(store, VIRTUAL_MACHINE, name, namespace, _set_run_strategy(RunStrategy.ALWAYS))


def stop_vm(store, name: str, namespace: str) -> Dict[str, Any]:
    logger.info(f"Stopping virtual machine {namespace}/{name}")
    return _update(store, VIRTUAL_MACHINE, name, namespace, _set_run_strategy(RunStrategy.HALTED))


def reboot_vm(store, name: str, namespace: str) -> Dict[str, Any]:
    logger.info(f"Requesting reboot of virtual machine {namespace}/{name}")
    return _update(store, VIRTUAL_MACHINE, name, namespace, _set_annotation(ANNOTATION_REBOOT, "true"))


def record_login(store, account: str, when: Optional[str] = None) -> Dict[str, Any]:
    """Stamp the account with a login time; the Account reconciler moves it into status."""
    return _update(store, ACCOUNT, account, None, _set_annotation(ANNOTATION_LAST_LOGIN, when or now_iso()))
