"""Quota engine: decides remaining time and block state.

Pure computation over four explicit inputs. Callers own the state; nothing
here reads clocks, caches or the network.
"""

import math
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class QuotaState:
    """Result of a quota computation for one user-day."""

    daily_limit_minutes: int
    bonus_minutes: int
    today_used_minutes: float
    is_blocked: bool
    total_allowed_minutes: int
    remaining_minutes: float
    is_time_up: bool
    effective_block: bool

    def to_wire(self) -> dict[str, Any]:
        return {
            "dailyLimitMinutes": self.daily_limit_minutes,
            "bonusMinutes": self.bonus_minutes,
            "todayUsedMinutes": self.today_used_minutes,
            "isBlocked": self.is_blocked,
            "totalAllowedMinutes": self.total_allowed_minutes,
            "remainingMinutes": self.remaining_minutes,
            "isTimeUp": self.is_time_up,
            "effectiveBlock": self.effective_block,
        }


def _require_non_negative(name: str, value: float) -> None:
    if value is None or math.isnan(value) or value < 0:
        raise ValidationError(f"{name} must be a non-negative number, got {value!r}")


def compute_quota(
    daily_limit_minutes: int,
    bonus_minutes: int,
    today_used_minutes: float,
    is_blocked: bool,
) -> QuotaState:
    """Compute remaining time and the effective block decision.

    Raises ValidationError for negative inputs. Comparisons use the raw
    fractional used-minutes value.
    """
    _require_non_negative("daily_limit_minutes", daily_limit_minutes)
    _require_non_negative("bonus_minutes", bonus_minutes)
    _require_non_negative("today_used_minutes", today_used_minutes)

    total_allowed = daily_limit_minutes + bonus_minutes
    is_time_up = today_used_minutes >= total_allowed
    return QuotaState(
        daily_limit_minutes=daily_limit_minutes,
        bonus_minutes=bonus_minutes,
        today_used_minutes=today_used_minutes,
        is_blocked=is_blocked,
        total_allowed_minutes=total_allowed,
        remaining_minutes=max(0.0, total_allowed - today_used_minutes),
        is_time_up=is_time_up,
        effective_block=is_blocked or is_time_up,
    )


def can_request_time(state: QuotaState, has_pending_request: bool) -> bool:
    """A user may ask for more time only once the quota is used up, they are
    not admin-blocked, and nothing is already waiting for review."""
    return state.is_time_up and not state.is_blocked and not has_pending_request


def clamp_minutes(value: float | None) -> float:
    """Clamp an untrusted device-reported minute value to >= 0."""
    if value is None or math.isnan(value) or value < 0:
        return 0.0
    return float(value)


def format_minutes(minutes: float) -> str:
    """Human readable duration, rounded down to whole minutes."""
    if minutes < 1:
        return "less than 1 min"
    if minutes < 60:
        return f"{math.floor(minutes)} min"

    hours = math.floor(minutes / 60)
    mins = math.floor(minutes % 60)
    if mins == 0:
        return f"{hours} h"
    return f"{hours} h {mins} min"


def format_countdown(minutes: float) -> str:
    """Live remaining-time counter as MM:SS."""
    if minutes <= 0:
        return "00:00"

    mins = math.floor(minutes)
    secs = math.floor((minutes - mins) * 60)
    return f"{mins:02d}:{secs:02d}"
