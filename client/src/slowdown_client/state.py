"""Explicit client state passed to the reconciler and the session."""

from dataclasses import dataclass, field

from slowdown_shared import QuotaState, UsageRecord, User, can_request_time, compute_quota
from slowdown_shared.merge import resync_total
from slowdown_shared.models import DEFAULT_DAILY_LIMIT_MINUTES

from .cache import CachedState


@dataclass
class ClientState:
    """Mutable state for one signed-in device session."""

    user_id: str | None = None
    daily_limit_minutes: int = DEFAULT_DAILY_LIMIT_MINUTES
    bonus_minutes: int = 0
    is_blocked: bool = False
    pending_time_request_id: str | None = None
    today_used_minutes: float = 0.0
    app_usage: dict[str, float] = field(default_factory=dict)
    date_key: str = ""
    is_online: bool = True
    has_permission: bool = True

    def quota(self) -> QuotaState:
        return compute_quota(
            daily_limit_minutes=self.daily_limit_minutes,
            bonus_minutes=self.bonus_minutes,
            today_used_minutes=self.today_used_minutes,
            is_blocked=self.is_blocked,
        )

    def can_request_time(self) -> bool:
        return can_request_time(self.quota(), self.pending_time_request_id is not None)

    def apply_user(self, user: User) -> None:
        self.user_id = user.id
        self.daily_limit_minutes = user.daily_limit_minutes
        self.bonus_minutes = user.bonus_minutes
        self.is_blocked = user.is_blocked
        self.pending_time_request_id = user.pending_time_request_id

    def resync(self, total_minutes: float, app_usage: dict[str, float]) -> None:
        """Merge a cumulative view of today; used minutes never go down."""
        today = UsageRecord(
            user_id=self.user_id or "",
            date_key=self.date_key,
            total_minutes=self.today_used_minutes,
            app_usage=self.app_usage,
        )
        merged = resync_total(today, total_minutes, app_usage)
        self.today_used_minutes = merged.total_minutes
        self.app_usage = merged.app_usage

    def apply_record(self, record: UsageRecord) -> bool:
        """Take the backend's view of a day. Ignored unless it is today.

        Used minutes never go down within a day.
        """
        if record.date_key != self.date_key:
            return False
        self.resync(record.total_minutes, record.app_usage)
        return True

    def to_cached(self) -> CachedState:
        return CachedState(
            user_id=self.user_id,
            daily_limit_minutes=self.daily_limit_minutes,
            bonus_minutes=self.bonus_minutes,
            is_blocked=self.is_blocked,
            pending_time_request_id=self.pending_time_request_id,
            today_used_minutes=self.today_used_minutes,
            app_usage=dict(self.app_usage),
            date_key=self.date_key,
        )

    @classmethod
    def from_cached(cls, cached: CachedState) -> "ClientState":
        return cls(
            user_id=cached.user_id,
            daily_limit_minutes=cached.daily_limit_minutes,
            bonus_minutes=cached.bonus_minutes,
            is_blocked=cached.is_blocked,
            pending_time_request_id=cached.pending_time_request_id,
            today_used_minutes=cached.today_used_minutes,
            app_usage=dict(cached.app_usage),
            date_key=cached.date_key,
            is_online=False,
        )
