"""Error taxonomy used between the store and the reconcilers."""
from __future__ import annotations

import json
from typing import Optional

from kubernetes.client import ApiException


class StoreError(Exception):
    """A store call was rejected (external-subsystem failure)."""

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.reason = reason


class NotFoundError(StoreError):
    """The object does not exist (or is already gone)."""


class ConflictError(StoreError):
    """Write against a stale resourceVersion; re-fetch and retry."""


class AlreadyExistsError(ConflictError):
    """Create of an object that already exists."""


class PermanentError(Exception):
    """The declared Spec cannot be acted on until the user changes it."""


def _body_reason(exc: ApiException) -> Optional[str]:
    if not exc.body:
        return None
    try:
        return json.loads(exc.body).get("reason")
    except (TypeError, ValueError, AttributeError):
        return None


def from_api_exception(exc: ApiException, what: str) -> StoreError:
    """Translate a kubernetes ``ApiException`` into the store taxonomy."""
    reason = _body_reason(exc) or exc.reason
    message = f"{what}: {exc.status} {reason}"
    if exc.status in (404, 410):
        return NotFoundError(message, exc.status, reason)
    if exc.status == 409:
        if reason == "AlreadyExists":
            return AlreadyExistsError(message, exc.status, reason)
        return ConflictError(message, exc.status, reason)
    return StoreError(message, exc.status, reason)
