"""
The reconcile contract shared by every resource kind.

A reconcile is handed only an identity. It re-reads the object, then walks
the same steps every time, returning early at the first one that applies:

1. object gone                        -> nothing to do
2. being deleted, finalizer present   -> finalize, drop the finalizer
   being deleted, finalizer absent    -> nothing to do
3. finalizer absent                   -> add it and ask for a requeue
4. kind-specific sync                 -> apply desired external state
5. status projection                  -> write status if it changed

Nothing is rolled back on failure; the next attempt starts from step 1 and
relies on every step being idempotent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..config import OperatorConfig
from ..constants import Phase, ResourceKind
from ..errors import ConflictError, NotFoundError, PermanentError, StoreError
from ..models import CamelModel, set_condition

logger = logging.getLogger(__name__)

SpecT = TypeVar("SpecT", bound=BaseModel)
StatusT = TypeVar("StatusT", bound=CamelModel)

READY = "Ready"
RECONCILIATION_ERROR = "ReconciliationError"
INVALID_SPEC = "InvalidSpec"


@dataclass(frozen=True)
class Result:
    """Outcome of a successful reconcile.

    ``requeue`` asks for another pass right away, from a fresh read;
    ``requeue_after`` asks for one after a fixed delay.
    """

    requeue: bool = False
    requeue_after: Optional[float] = None


# ---------------------------------------------------------------------------
# Finalizer helpers ----------------------------------------------------------
# ---------------------------------------------------------------------------

def finalizers(obj: Dict[str, Any]) -> List[str]:
    return list(obj.get("metadata", {}).get("finalizers") or [])


def has_finalizer(obj: Dict[str, Any], finalizer: str) -> bool:
    return finalizer in finalizers(obj)


def add_finalizer(obj: Dict[str, Any], finalizer: str) -> None:
    if not has_finalizer(obj, finalizer):
        obj["metadata"]["finalizers"] = finalizers(obj) + [finalizer]


def remove_finalizer(obj: Dict[str, Any], finalizer: str) -> None:
    obj["metadata"]["finalizers"] = [f for f in finalizers(obj) if f != finalizer]


def describe(obj: Dict[str, Any]) -> str:
    meta = obj.get("metadata", {})
    return f"{meta['namespace']}/{meta['name']}" if meta.get("namespace") else meta.get("name", "?")


class Reconciler(Generic[SpecT, StatusT]):
    """Base class; subclasses set the class attributes and implement :meth:`sync`."""

    kind: ResourceKind
    finalizer: str
    spec_model: Type[SpecT]
    status_model: Type[StatusT]

    def __init__(self, store, config: Optional[OperatorConfig] = None):
        self.store = store
        self.config = config or OperatorConfig()

    # -- the contract -------------------------------------------------------

    def reconcile(self, name: str, namespace: Optional[str] = None) -> Result:
        try:
            obj = self.store.get(self.kind, name, namespace)
        except NotFoundError:
            logger.debug("%s %s is gone, nothing to reconcile", self.kind.kind, name)
            return Result()

        if obj["metadata"].get("deletionTimestamp"):
            if not has_finalizer(obj, self.finalizer):
                return Result()
            logger.info("Finalizing %s %s", self.kind.kind, describe(obj))
            self.finalize(obj)
            remove_finalizer(obj, self.finalizer)
            self.store.replace(self.kind, obj)
            logger.info("Removed finalizer from %s %s", self.kind.kind, describe(obj))
            return Result()

        if not has_finalizer(obj, self.finalizer):
            add_finalizer(obj, self.finalizer)
            self.store.replace(self.kind, obj)
            logger.info("Added finalizer to %s %s", self.kind.kind, describe(obj))
            return Result(requeue=True)

        return self.sync(obj)

    def sync(self, obj: Dict[str, Any]) -> Result:
        raise NotImplementedError

    def finalize(self, obj: Dict[str, Any]) -> None:
        """Delete external dependents; raising keeps the deletion blocked."""

    # -- spec / status helpers ----------------------------------------------

    def parse_spec(self, obj: Dict[str, Any]) -> SpecT:
        try:
            return self.spec_model.model_validate(obj.get("spec") or {})
        except ValidationError as exc:
            message = f"invalid spec: {_summarize(exc)}"
            self.record_error(obj, message, reason=INVALID_SPEC)
            raise PermanentError(f"{self.kind.kind} {describe(obj)}: {message}") from exc

    def current_status(self, obj: Dict[str, Any]) -> StatusT:
        try:
            return self.status_model.model_validate(obj.get("status") or {})
        except ValidationError:
            logger.warning("Discarding unreadable status on %s %s", self.kind.kind, describe(obj))
            return self.status_model()

    def persist_status(self, obj: Dict[str, Any], status: StatusT) -> Result:
        """Write ``status`` unless it is already stored; a conflict means "try again later"."""
        new_status = status.to_json()
        if (obj.get("status") or {}) == new_status:
            return Result()
        body = {**obj, "status": new_status}
        try:
            updated = self.store.replace_status(self.kind, body)
        except ConflictError:
            logger.debug("Status of %s %s changed underneath us, requeueing", self.kind.kind, describe(obj))
            return Result(requeue_after=self.config.status_conflict_delay)
        obj["status"] = new_status
        if updated.get("metadata", {}).get("resourceVersion"):
            obj["metadata"]["resourceVersion"] = updated["metadata"]["resourceVersion"]
        return Result()

    def record_error(self, obj: Dict[str, Any], message: str, reason: str = RECONCILIATION_ERROR) -> None:
        """Surface a failure in status (phase Error, Ready False) on a best-effort basis."""
        status = self.current_status(obj)
        if hasattr(status, "phase"):
            status.phase = Phase.ERROR.value
        if hasattr(status, "ready"):
            status.ready = False
        set_condition(status.conditions, READY, False, reason, message, obj["metadata"].get("generation"))
        try:
            self.persist_status(obj, status)
        except StoreError as exc:
            logger.error("Failed to record error status on %s %s: %s", self.kind.kind, describe(obj), exc)


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"]) or "spec"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)
