"""Tests for the quota engine."""

import pytest

from slowdown_shared.errors import ValidationError
from slowdown_shared.quota import (
    can_request_time,
    clamp_minutes,
    compute_quota,
    format_countdown,
    format_minutes,
)


class TestComputeQuota:
    def test_fresh_day(self) -> None:
        state = compute_quota(30, 0, 0.0, False)
        assert state.remaining_minutes == 30
        assert state.is_time_up is False
        assert state.effective_block is False

    def test_limit_reached_exactly(self) -> None:
        state = compute_quota(30, 0, 30.0, False)
        assert state.remaining_minutes == 0
        assert state.is_time_up is True
        assert state.effective_block is True

    def test_bonus_extends_allowance(self) -> None:
        state = compute_quota(30, 15, 40.0, False)
        assert state.total_allowed_minutes == 45
        assert state.remaining_minutes == 5
        assert state.is_time_up is False

    def test_remaining_never_negative(self) -> None:
        for used in (0.0, 29.9, 30.0, 31.0, 500.5):
            state = compute_quota(30, 0, used, False)
            assert state.remaining_minutes == max(0, 30 - used)
            assert state.remaining_minutes >= 0

    def test_time_up_is_monotonic_in_usage(self) -> None:
        seen_time_up = False
        for tenths in range(0, 1000):
            state = compute_quota(45, 5, tenths / 10, False)
            if seen_time_up:
                assert state.is_time_up
            seen_time_up = seen_time_up or state.is_time_up
        assert seen_time_up

    def test_fractional_usage_compared_raw(self) -> None:
        state = compute_quota(30, 0, 29.99, False)
        assert state.is_time_up is False
        assert state.remaining_minutes == pytest.approx(0.01)

    def test_zero_limit_blocks_everything(self) -> None:
        state = compute_quota(0, 0, 0.0, False)
        assert state.is_time_up is True
        assert state.effective_block is True

    def test_admin_block_overrides_quota(self) -> None:
        state = compute_quota(30, 0, 0.0, True)
        assert state.is_time_up is False
        assert state.effective_block is True

    @pytest.mark.parametrize(
        ("limit", "bonus", "used"),
        [(-1, 0, 0.0), (30, -5, 0.0), (30, 0, -0.1)],
    )
    def test_negative_inputs_rejected(self, limit: int, bonus: int, used: float) -> None:
        with pytest.raises(ValidationError):
            compute_quota(limit, bonus, used, False)

    def test_to_wire_uses_camel_case(self) -> None:
        wire = compute_quota(30, 15, 40.0, False).to_wire()
        assert wire["totalAllowedMinutes"] == 45
        assert wire["effectiveBlock"] is False


class TestCanRequestTime:
    def test_allowed_when_time_up(self) -> None:
        state = compute_quota(30, 0, 30.0, False)
        assert can_request_time(state, has_pending_request=False) is True

    def test_not_allowed_with_time_left(self) -> None:
        state = compute_quota(30, 0, 10.0, False)
        assert can_request_time(state, has_pending_request=False) is False

    def test_not_allowed_when_admin_blocked(self) -> None:
        state = compute_quota(30, 0, 30.0, True)
        assert can_request_time(state, has_pending_request=False) is False

    def test_not_allowed_with_pending_request(self) -> None:
        state = compute_quota(30, 0, 30.0, False)
        assert can_request_time(state, has_pending_request=True) is False


class TestFormatting:
    def test_clamp(self) -> None:
        assert clamp_minutes(-3.0) == 0.0
        assert clamp_minutes(None) == 0.0
        assert clamp_minutes(float("nan")) == 0.0
        assert clamp_minutes(12.5) == 12.5

    def test_format_minutes_rounds_down(self) -> None:
        assert format_minutes(0.5) == "less than 1 min"
        assert format_minutes(29.9) == "29 min"
        assert format_minutes(60.0) == "1 h"
        assert format_minutes(75.7) == "1 h 15 min"

    def test_format_countdown(self) -> None:
        assert format_countdown(0) == "00:00"
        assert format_countdown(-2) == "00:00"
        assert format_countdown(15.5) == "15:30"
        assert format_countdown(4.25) == "04:15"
