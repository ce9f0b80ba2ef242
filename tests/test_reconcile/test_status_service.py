"""Tests for condition upserts."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

from configsync.schemas.common import Condition, ConditionStatus
from configsync.services.status_service import find_condition, set_condition

_EARLIER = datetime(2026, 1, 1, tzinfo=timezone.utc)
_LATER = datetime(2026, 1, 2, tzinfo=timezone.utc)


class TestSetCondition:
    def test_appends_when_missing(self) -> None:
        conditions = [Condition(type="Other")]
        set_condition(conditions, "Ready", ConditionStatus.TRUE, "SyncSuccess", "ok", 3)
        assert [c.type for c in conditions] == ["Other", "Ready"]
        assert conditions[1].observed_generation == 3

    def test_replaces_in_place(self) -> None:
        conditions = [Condition(type="Ready", status=ConditionStatus.TRUE), Condition(type="Other")]
        set_condition(conditions, "Ready", ConditionStatus.FALSE, "FetchFailed", "boom", 2)
        assert [c.type for c in conditions] == ["Ready", "Other"]
        assert conditions[0].status == ConditionStatus.FALSE
        assert conditions[0].reason == "FetchFailed"
        assert conditions[0].message == "boom"

    def test_refreshes_transition_time_even_when_unchanged(self) -> None:
        conditions: list[Condition] = []
        with patch("configsync.services.status_service.now_utc", return_value=_EARLIER):
            set_condition(conditions, "Ready", ConditionStatus.TRUE, "SyncSuccess", "ok", 1)
        with patch("configsync.services.status_service.now_utc", return_value=_LATER):
            set_condition(conditions, "Ready", ConditionStatus.TRUE, "SyncSuccess", "ok", 2)
        assert len(conditions) == 1
        assert conditions[0].last_transition_time == _LATER
        assert conditions[0].observed_generation == 2


class TestFindCondition:
    def test_found(self) -> None:
        ready = Condition(type="Ready")
        assert find_condition([Condition(type="Other"), ready], "Ready") is ready

    def test_missing(self) -> None:
        assert find_condition([], "Ready") is None
