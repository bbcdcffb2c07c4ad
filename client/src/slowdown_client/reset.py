"""Daily reset of local usage at the fixed-offset day boundary."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from slowdown_shared.dates import date_key, needs_reset

from .state import ClientState

logger = logging.getLogger(__name__)


class DailyResetTracker:
    """Switches local state to a new day when the date key changes.

    Only today's used minutes and per-app map are cleared. Limit, bonus and
    block flag carry over.
    """

    def __init__(self, offset_hours: int = 7, clock: Callable[[], datetime] | None = None):
        self._offset_hours = offset_hours
        self._clock = clock or (lambda: datetime.now(UTC))

    def today(self) -> str:
        return date_key(self._clock(), self._offset_hours)

    def check(self, state: ClientState) -> bool:
        """Reset `state` if its day is over. Returns True if it was reset."""
        today = self.today()
        if not needs_reset(state.date_key, today):
            return False

        if state.date_key:
            logger.info("New day detected (%s), resetting counter", today)
        state.date_key = today
        state.today_used_minutes = 0.0
        state.app_usage = {}
        return True
