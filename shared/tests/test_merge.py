"""Tests for usage merge rules."""

import pytest

from slowdown_shared import UsageRecord
from slowdown_shared.errors import ValidationError
from slowdown_shared.merge import add_delta, reading_deltas, resync_total


@pytest.fixture
def record() -> UsageRecord:
    return UsageRecord(
        user_id="u1",
        date_key="2024-01-15",
        total_minutes=20.0,
        app_usage={"Instagram": 15.0, "YouTube": 5.0},
    )


class TestResyncTotal:
    def test_stale_device_read_keeps_server_total(self, record: UsageRecord) -> None:
        merged = resync_total(record, 12.0, {"Instagram": 12.0})
        assert merged.total_minutes == 20.0
        assert merged.app_usage == {"Instagram": 12.0}

    def test_newer_device_read_raises_total(self, record: UsageRecord) -> None:
        merged = resync_total(record, 26.5, {"Instagram": 20.0, "YouTube": 6.5})
        assert merged.total_minutes == 26.5

    def test_idempotent(self, record: UsageRecord) -> None:
        once = resync_total(record, 33.0, {"Reddit": 33.0})
        twice = resync_total(once, 33.0, {"Reddit": 33.0})
        assert twice == once

    def test_does_not_mutate_input(self, record: UsageRecord) -> None:
        resync_total(record, 40.0, {})
        assert record.total_minutes == 20.0

    def test_negative_rejected(self, record: UsageRecord) -> None:
        with pytest.raises(ValidationError):
            resync_total(record, -1.0)


class TestAddDelta:
    def test_adds_to_total_and_app(self, record: UsageRecord) -> None:
        merged = add_delta(record, 2.5, "YouTube")
        assert merged.total_minutes == 22.5
        assert merged.app_usage["YouTube"] == 7.5
        assert merged.app_usage["Instagram"] == 15.0

    def test_new_app_key(self, record: UsageRecord) -> None:
        merged = add_delta(record, 1.0, "Threads")
        assert merged.app_usage["Threads"] == 1.0

    def test_associative_for_same_app(self, record: UsageRecord) -> None:
        stepwise = add_delta(add_delta(record, 3.0, "Reddit"), 4.0, "Reddit")
        combined = add_delta(record, 7.0, "Reddit")
        assert stepwise.total_minutes == combined.total_minutes
        assert stepwise.app_usage == combined.app_usage

    def test_without_app_label_only_total_changes(self, record: UsageRecord) -> None:
        merged = add_delta(record, 1.0)
        assert merged.total_minutes == 21.0
        assert merged.app_usage == record.app_usage

    @pytest.mark.parametrize("delta", [0.0, -1.0])
    def test_non_positive_rejected(self, record: UsageRecord, delta: float) -> None:
        with pytest.raises(ValidationError):
            add_delta(record, delta, "YouTube")


def test_reading_deltas_ignores_decreases() -> None:
    previous = {"Instagram": 10.0, "YouTube": 4.0}
    current = {"Instagram": 12.0, "YouTube": 3.0, "Reddit": 1.5}
    assert reading_deltas(previous, current) == {"Instagram": 2.0, "Reddit": 1.5}
