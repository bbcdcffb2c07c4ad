"""Foreground session: polling, refresh and time requests for one device."""

import asyncio
import logging

from slowdown_shared import QuotaState, TimeRequest
from slowdown_shared.errors import Conflict, DuplicatePendingRequest, TransientSyncFailure
from slowdown_shared.quota import format_minutes

from .api_client import ApiClient
from .cache import LocalCache
from .config import Config
from .poller import PeriodicTask, ResponseSequencer
from .reconcile import ReconcileOutcome, UsageReconciler
from .reset import DailyResetTracker
from .state import ClientState
from .usage_source import UsageSource

logger = logging.getLogger(__name__)


class SlowDownSession:
    """Ties the usage source, reconciler and backend to a visibility signal.

    Polling runs only while the app is in the foreground. Coming to the
    foreground checks the day boundary and refreshes immediately.
    """

    def __init__(
        self,
        config: Config,
        api: ApiClient,
        source: UsageSource,
        cache: LocalCache,
        reset: DailyResetTracker | None = None,
    ):
        self._api = api
        self._source = source
        self._cache = cache
        self._reset = reset or DailyResetTracker(config.timezone_offset_hours)

        cached = cache.load_state()
        self.state = ClientState.from_cached(cached) if cached else ClientState()
        if cached:
            logger.info("Loaded user state from cache")
        self._reset.check(self.state)

        self._reconciler = UsageReconciler(
            source, api, cache, self.state, self._reset, mode=config.reconcile_mode
        )
        self._user_responses = ResponseSequencer()
        self._usage_task = PeriodicTask("usage-sync", config.poll_interval_seconds, self.sync_usage)
        self._user_task = PeriodicTask("user-refresh", config.pending_refresh_seconds, self.refresh_user)
        self._foreground = False

    @property
    def foreground(self) -> bool:
        return self._foreground

    def quota(self) -> QuotaState:
        return self.state.quota()

    def can_request_time(self) -> bool:
        return self.state.can_request_time()

    async def set_foreground(self, foreground: bool) -> None:
        """Start polling when the app becomes visible, stop when it hides."""
        if foreground == self._foreground:
            return
        self._foreground = foreground
        if foreground:
            logger.info("App in foreground, starting polling")
            self._reset.check(self.state)
            self._user_task.start()
            self._usage_task.start()
        else:
            logger.info("App in background, stopping polling")
            await asyncio.gather(self._usage_task.stop(), self._user_task.stop())

    async def refresh(self) -> ReconcileOutcome:
        """Explicit refresh: user record first, then usage."""
        await self.refresh_user()
        return await self.sync_usage()

    async def sync_usage(self) -> ReconcileOutcome:
        outcome = await self._reconciler.reconcile()
        quota = self.quota()
        logger.info(
            "Usage %s: %s used, %s remaining%s",
            outcome.value,
            format_minutes(quota.today_used_minutes),
            format_minutes(quota.remaining_minutes),
            " (blocked)" if quota.effective_block else "",
        )
        return outcome

    async def refresh_user(self) -> bool:
        """Fetch limit, bonus, block flag and pending request from the backend.

        Returns False if the backend was unreachable or a newer refresh has
        already been applied.
        """
        sequence = self._user_responses.next()
        try:
            user = await self._api.get_me()
        except TransientSyncFailure as e:
            logger.warning("User refresh failed, using cached state: %s", e.message)
            self.state.is_online = False
            return False

        if not self._user_responses.accept(sequence):
            return False
        if self.state.pending_time_request_id and user.pending_time_request_id is None:
            logger.info("Time request processed, bonus now %d minutes", user.bonus_minutes)
        self.state.apply_user(user)
        self.state.is_online = True
        self._cache.save_state(self.state.to_cached())
        return True

    async def request_time(self, minutes: int, reason: str | None = None) -> TimeRequest:
        """Ask an admin for more time.

        Only allowed once time is up, while not blocked by an admin and with
        no request already waiting. Raises Conflict otherwise.
        """
        state = self.state
        if state.pending_time_request_id:
            raise DuplicatePendingRequest()
        if state.is_blocked:
            raise Conflict("Blocked by admin; time requests are disabled")
        if not state.quota().is_time_up:
            raise Conflict("Time is not up yet")

        request = await self._api.create_time_request(minutes, reason)
        self._supersede_user_refreshes()
        state.pending_time_request_id = request.id
        self._cache.save_state(self.state.to_cached())
        logger.info("Requested %d more minutes (request %s)", minutes, request.id)
        return request

    async def cancel_time_request(self) -> None:
        request_id = self.state.pending_time_request_id
        if request_id is None:
            return
        await self._api.cancel_time_request(request_id)
        self._supersede_user_refreshes()
        self.state.pending_time_request_id = None
        self._cache.save_state(self.state.to_cached())
        logger.info("Cancelled time request %s", request_id)

    def _supersede_user_refreshes(self) -> None:
        # User fetches started before a local write carry an older pointer
        self._user_responses.accept(self._user_responses.next())

    async def request_permission(self) -> None:
        await self._source.request_permission()


async def run_session(session: SlowDownSession, stop: asyncio.Event) -> None:
    """Run in the foreground until `stop` is set."""
    await session.set_foreground(True)
    try:
        await stop.wait()
    finally:
        await session.set_foreground(False)
