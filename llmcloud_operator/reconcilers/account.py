from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from ..constants import ACCOUNT, ACCOUNT_FINALIZER, ANNOTATION_LAST_LOGIN
from ..models import AccountSpec, AccountStatus, set_condition
from .base import READY, Reconciler, Result, describe

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    # Timestamps without an offset are taken as UTC
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class AccountReconciler(Reconciler[AccountSpec, AccountStatus]):
    """Accounts own no external objects; only their status is maintained."""

    kind = ACCOUNT
    finalizer = ACCOUNT_FINALIZER
    spec_model = AccountSpec
    status_model = AccountStatus

    def sync(self, obj: Dict[str, Any]) -> Result:
        spec = self.parse_spec(obj)
        status = self.current_status(obj)

        annotations = obj["metadata"].get("annotations") or {}
        login = annotations.get(ANNOTATION_LAST_LOGIN)
        login_at = parse_timestamp(login)
        if login and login_at is None:
            logger.warning(f"Ignoring malformed {ANNOTATION_LAST_LOGIN} on account {describe(obj)}: {login!r}")
        elif login_at is not None:
            recorded = parse_timestamp(status.last_login_time)
            if recorded is None or login_at > recorded:
                status.last_login_time = login

        generation = obj["metadata"].get("generation")
        if spec.disabled:
            set_condition(status.conditions, READY, False, "AccountDisabled", "Account is disabled", generation)
        else:
            set_condition(status.conditions, READY, True, "AccountActive", "Account is active", generation)
        return self.persist_status(obj, status)
