"""Usage reconciliation: device reading -> local state -> backend.

A reconciler runs in exactly one mode for its lifetime:

- RESYNC pushes the device's cumulative daily total; the backend keeps the
  high-water mark.
- DELTA pushes per-app increments between consecutive device reads; the
  backend adds them up. Increments are queued on disk while offline.

Mixing the two for the same observations double counts, so calling the
other mode's operation is an error.
"""

import logging
from enum import StrEnum

from slowdown_shared import UsageReading
from slowdown_shared.errors import TransientSyncFailure, ValidationError
from slowdown_shared.merge import reading_deltas

from .api_client import ApiClient
from .cache import LocalCache
from .reset import DailyResetTracker
from .state import ClientState
from .usage_source import UsageSource

logger = logging.getLogger(__name__)

# Float noise between a total and its per-app sum
MIN_DELTA_MINUTES = 1e-6


class ReconcileMode(StrEnum):
    RESYNC = "resync"
    DELTA = "delta"


class ReconcileOutcome(StrEnum):
    SYNCED = "synced"
    OFFLINE = "offline"
    PERMISSION_REQUIRED = "permission_required"


def unlabelled_minutes(reading: UsageReading) -> float:
    return max(0.0, reading.total_minutes - sum(reading.per_app.values()))


class UsageReconciler:
    def __init__(
        self,
        source: UsageSource,
        api: ApiClient,
        cache: LocalCache,
        state: ClientState,
        reset: DailyResetTracker,
        mode: ReconcileMode = ReconcileMode.RESYNC,
    ):
        self._source = source
        self._api = api
        self._cache = cache
        self._state = state
        self._reset = reset
        self._mode = mode

    @property
    def mode(self) -> ReconcileMode:
        return self._mode

    async def reconcile(self) -> ReconcileOutcome:
        """Read today's usage from the device and push it.

        Without the usage permission nothing is read or pushed, so missing
        permission is never mistaken for zero usage.
        """
        self._reset.check(self._state)

        if not await self._source.has_permission():
            if self._state.has_permission:
                logger.warning("Usage access not granted; skipping reconciliation")
            self._state.has_permission = False
            return ReconcileOutcome.PERMISSION_REQUIRED
        self._state.has_permission = True

        reading = await self._source.query_today()
        if self._mode == ReconcileMode.RESYNC:
            return await self.resync(reading)
        return await self.push_deltas(reading)

    def _require_mode(self, mode: ReconcileMode) -> None:
        if self._mode != mode:
            logger.error(
                "Refusing %s push on a %s reconciler: usage would be double counted",
                mode.value,
                self._mode.value,
            )
            raise ValidationError(f"Reconciler is in {self._mode.value} mode, not {mode.value}")

    async def resync(self, reading: UsageReading) -> ReconcileOutcome:
        """Apply a cumulative reading locally, then resync it to the backend."""
        self._require_mode(ReconcileMode.RESYNC)
        state = self._state
        state.resync(reading.total_minutes, reading.per_app)
        self._cache.save_state(state.to_cached())

        try:
            record = await self._api.sync_usage(state.date_key, reading.total_minutes, reading.per_app)
        except TransientSyncFailure as e:
            logger.warning("Usage sync failed, will retry: %s", e.message)
            state.is_online = False
            return ReconcileOutcome.OFFLINE

        state.is_online = True
        state.apply_record(record)
        self._cache.save_state(state.to_cached())
        logger.debug("Synced usage: device=%.1f stored=%.1f", reading.total_minutes, record.total_minutes)
        return ReconcileOutcome.SYNCED

    async def push_deltas(self, reading: UsageReading) -> ReconcileOutcome:
        """Queue the increments since the previous reading, then flush the queue."""
        self._require_mode(ReconcileMode.DELTA)
        state = self._state

        previous = self._cache.load_last_reading()
        if previous and previous.date_key == state.date_key:
            baseline = previous.reading
        else:
            baseline = UsageReading.empty()

        for app, minutes in reading_deltas(baseline.per_app, reading.per_app).items():
            state.app_usage[app] = state.app_usage.get(app, 0.0) + minutes
            state.today_used_minutes += minutes
            self._cache.add_pending_delta(state.date_key, minutes, app)

        # Usage the platform could not attribute to an app goes up unlabelled
        unlabelled = unlabelled_minutes(reading) - unlabelled_minutes(baseline)
        if unlabelled > MIN_DELTA_MINUTES:
            state.today_used_minutes += unlabelled
            self._cache.add_pending_delta(state.date_key, unlabelled)

        self._cache.save_last_reading(state.date_key, reading)
        self._cache.save_state(state.to_cached())

        return await self.flush_pending()

    async def flush_pending(self) -> ReconcileOutcome:
        """Push queued deltas in order. Unsent ones go back on the queue."""
        self._require_mode(ReconcileMode.DELTA)
        state = self._state
        pending = self._cache.get_and_clear_pending_deltas()

        for index, delta in enumerate(pending):
            try:
                record = await self._api.add_usage(delta.minutes, delta.app_name, delta.date_key)
            except TransientSyncFailure as e:
                self._cache.restore_pending_deltas(pending[index:])
                logger.warning("Usage push failed, %d deltas queued: %s", len(pending) - index, e.message)
                state.is_online = False
                return ReconcileOutcome.OFFLINE
            except Exception:
                self._cache.restore_pending_deltas(pending[index:])
                raise
            state.apply_record(record)

        if pending:
            logger.info("Pushed %d usage deltas", len(pending))
        state.is_online = True
        self._cache.save_state(state.to_cached())
        return ReconcileOutcome.SYNCED
