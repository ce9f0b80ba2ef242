"""Condition bookkeeping for record status."""

from __future__ import annotations

from configsync.schemas.common import Condition, ConditionStatus
from configsync.services.datetime_service import now_utc


def set_condition(
    conditions: list[Condition],
    condition_type: str,
    status: ConditionStatus,
    reason: str,
    message: str,
    observed_generation: int,
) -> Condition:
    """Upsert the condition of the given type in place and return it.

    An existing entry keeps its position; otherwise the new one is appended.
    lastTransitionTime and observedGeneration are refreshed on every call,
    even when status does not change.
    """
    condition = Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        last_transition_time=now_utc(),
        observed_generation=observed_generation,
    )
    for i, existing in enumerate(conditions):
        if existing.type == condition_type:
            conditions[i] = condition
            return condition
    conditions.append(condition)
    return condition


def find_condition(conditions: list[Condition], condition_type: str) -> Condition | None:
    """Return the condition of the given type, if present."""
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None
