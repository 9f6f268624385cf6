"""ClusterOperator status conditions and their comparison."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

OPERATOR_AVAILABLE = "Available"
OPERATOR_PROGRESSING = "Progressing"
OPERATOR_FAILING = "Failing"

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"


@dataclass
class StatusCondition:
    """One condition of a ClusterOperator status."""

    type: str
    status: str = CONDITION_UNKNOWN
    message: str = ""
    reason: str = ""
    last_transition_time: datetime | None = None


def find_status_condition(conditions: Iterable[StatusCondition], condition_type: str) -> StatusCondition | None:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions if c.type == condition_type), None)


def set_status_condition(conditions: list[StatusCondition], new_condition: StatusCondition) -> None:
    """Add new_condition to conditions, or merge it into the existing one.

    The transition time of an existing condition only changes when its
    status changes; reason and message are always taken over.
    """
    existing = find_status_condition(conditions, new_condition.type)
    if existing is None:
        appended = StatusCondition(
            type=new_condition.type,
            status=new_condition.status,
            message=new_condition.message,
            reason=new_condition.reason,
            last_transition_time=new_condition.last_transition_time or datetime.now(timezone.utc),
        )
        conditions.append(appended)
        return

    if existing.status != new_condition.status:
        existing.status = new_condition.status
        existing.last_transition_time = new_condition.last_transition_time
    existing.reason = new_condition.reason
    existing.message = new_condition.message


def conditions_equal(a: StatusCondition, b: StatusCondition) -> bool:
    """True if type, status and message match."""
    return a.type == b.type and a.status == b.status and a.message == b.message


def condition_lists_equal(a: list[StatusCondition], b: list[StatusCondition]) -> bool:
    """True if both lists hold matching conditions, regardless of order."""
    if len(a) != len(b):
        return False
    for condition in a:
        other = find_status_condition(b, condition.type)
        if other is None or not conditions_equal(condition, other):
            return False
    return True