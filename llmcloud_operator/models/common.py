from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every JSON document exchanged with the cluster (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class Condition(CamelModel):
    type: str
    status: Literal["True", "False", "Unknown"]
    reason: str
    message: str = ""
    observed_generation: Optional[int] = None
    last_transition_time: Optional[str] = None


def set_condition(
    conditions: List[Condition],
    type_: str,
    status: bool,
    reason: str,
    message: str,
    observed_generation: Optional[int] = None,
) -> List[Condition]:
    """Insert or refresh the condition of ``type_``, in place.

    ``lastTransitionTime`` moves only when the status value flips, so
    re-running a reconcile that observes the same state leaves the condition
    unchanged.
    """
    value = "True" if status else "False"
    for condition in conditions:
        if condition.type != type_:
            continue
        if condition.status != value or condition.last_transition_time is None:
            condition.last_transition_time = now_iso()
        condition.status = value
        condition.reason = reason
        condition.message = message
        condition.observed_generation = observed_generation
        return conditions
    conditions.append(
        Condition(
            type=type_,
            status=value,
            reason=reason,
            message=message,
            observed_generation=observed_generation,
            last_transition_time=now_iso(),
        )
    )
    return conditions


def find_condition(conditions: List[Condition], type_: str) -> Optional[Condition]:
    return next((c for c in conditions if c.type == type_), None)


class ResourceRequirements(CamelModel):
    cpu: Optional[str] = None
    memory: Optional[str] = None
    gpu: Optional[int] = Field(default=None, ge=0)
