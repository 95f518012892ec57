"""
Runs the reconciler of each declared kind on behalf of the kopf handlers.

kopf decides when a reconcile happens (resume, create, update, delete, the
resync timer and the fan-in watches on owned objects) and runs the sync
handlers in its thread pool. kopf already serializes handlers of one
object, but fan-in handlers reach a declared object from another watch
stream, so every reconcile also holds a per-object lock.

Outcomes are translated into kopf's retry vocabulary: conflicts, store
failures and requeue requests become :class:`kopf.TemporaryError` with a
capped exponential delay, invalid specs become :class:`kopf.PermanentError`.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import kopf

from .config import OperatorConfig
from .constants import ResourceKind
from .errors import ConflictError, PermanentError, StoreError
from .images import OSImageCatalog, load_catalog
from .reconcilers import (
    AccountReconciler,
    CatalogServiceReconciler,
    ModelDeploymentReconciler,
    Reconciler,
    VirtualMachineReconciler,
    WorkspaceReconciler,
)

logger = logging.getLogger(__name__)

# (plural, namespace, name)
Key = Tuple[str, Optional[str], str]


def backoff_delay(retry: int, base: float, cap: float) -> float:
    """Delay before the next attempt after ``retry`` failed ones."""
    return min(base * 2 ** retry, cap)


class Manager:
    """Owns the reconciler of every declared kind, keyed by plural."""

    def __init__(self, store, config: Optional[OperatorConfig] = None, catalog: Optional[OSImageCatalog] = None):
        self.store = store
        self.config = config or OperatorConfig()
        if catalog is None:
            catalog = load_catalog(self.config.image_catalog)
        reconcilers: List[Reconciler] = [
            WorkspaceReconciler(store, self.config),
            VirtualMachineReconciler(store, self.config, catalog=catalog),
            ModelDeploymentReconciler(store, self.config),
            CatalogServiceReconciler(store, self.config),
            AccountReconciler(store, self.config),
        ]
        self.reconcilers: Dict[str, Reconciler] = {r.kind.plural: r for r in reconcilers}
        self._locks: Dict[Key, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def reconciler(self, kind: ResourceKind) -> Reconciler:
        return self.reconcilers[kind.plural]

    def backoff(self, retry: int) -> float:
        return backoff_delay(retry, self.config.backoff_base, self.config.backoff_cap)

    def lock(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> threading.Lock:
        with self._locks_guard:
            return self._locks[(kind.plural, namespace if kind.namespaced else None, name)]

    def reconcile(self, kind: ResourceKind, name: str, namespace: Optional[str] = None, retry: int = 0) -> None:
        """Reconcile one object; raises kopf errors when kopf should try again (or give up).

        ``retry`` is kopf's count of failed attempts for the current handler
        and drives the backoff delay.
        """
        if not kind.namespaced:
            namespace = None
        reconciler = self.reconciler(kind)
        what = f"{kind.kind} {namespace + '/' if namespace else ''}{name}"
        logger.debug(f"Reconciling {what} (retry {retry})")

        with self.lock(kind, name, namespace):
            try:
                result = reconciler.reconcile(name, namespace)
                if result.requeue:
                    # The first pass wrote the object; carry on from a fresh read.
                    result = reconciler.reconcile(name, namespace)
            except ConflictError as exc:
                logger.debug(f"Conflict while reconciling {what}, retrying")
                raise kopf.TemporaryError(f"{what}: {exc}", delay=self.backoff(retry)) from exc
            except PermanentError as exc:
                logger.error(f"Giving up on {what}: {exc}")
                raise kopf.PermanentError(str(exc)) from exc
            except StoreError as exc:
                delay = self.backoff(retry)
                logger.error(f"Reconcile of {what} failed, retrying in {delay:.0f}s: {exc}")
                raise kopf.TemporaryError(f"{what}: {exc}", delay=delay) from exc

        if result.requeue_after:
            raise kopf.TemporaryError(f"{what}: requeue in {result.requeue_after:.0f}s", delay=result.requeue_after)
        if result.requeue:
            raise kopf.TemporaryError(f"{what}: requeue requested", delay=self.backoff(retry))
        logger.debug(f"Reconciled {what}")
