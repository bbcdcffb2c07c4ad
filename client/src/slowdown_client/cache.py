"""Local cache for offline operation."""

import json
import logging
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from slowdown_shared import UsageReading

logger = logging.getLogger(__name__)


class CachedState(BaseModel):
    """Last known user and quota inputs for this device."""

    user_id: str | None = None
    daily_limit_minutes: int = 30
    bonus_minutes: int = 0
    is_blocked: bool = False
    pending_time_request_id: str | None = None
    today_used_minutes: float = 0.0
    app_usage: dict[str, float] = Field(default_factory=dict)
    date_key: str = ""
    cached_at: datetime | None = None


class CachedReading(BaseModel):
    """The previous cumulative device reading, for computing deltas."""

    date_key: str
    reading: UsageReading
    cached_at: datetime


class PendingDelta(BaseModel):
    """Usage increment that couldn't be pushed due to offline state."""

    date_key: str
    minutes: float
    app_name: str | None = None
    timestamp: datetime


class LocalCache:
    """Manages local cache for offline operation."""

    def __init__(self, cache_dir: Path):
        self._cache_dir = cache_dir
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    @property
    def _state_path(self) -> Path:
        return self._cache_dir / "user_state.json"

    @property
    def _pending_deltas_path(self) -> Path:
        return self._cache_dir / "pending_deltas.json"

    @property
    def _last_reading_path(self) -> Path:
        return self._cache_dir / "last_reading.json"

    def save_state(self, state: CachedState) -> None:
        """Cache user state locally."""
        state = state.model_copy(update={"cached_at": datetime.now()})
        self._state_path.write_text(state.model_dump_json(indent=2))

    def load_state(self) -> CachedState | None:
        """Load cached user state. Returns None if no cache exists."""
        if not self._state_path.exists():
            return None
        try:
            return CachedState.model_validate_json(self._state_path.read_text())
        except Exception:
            logger.exception("Failed to load user state cache")
            return None

    def save_last_reading(self, date_key: str, reading: UsageReading) -> None:
        cached = CachedReading(date_key=date_key, reading=reading, cached_at=datetime.now())
        self._last_reading_path.write_text(cached.model_dump_json(indent=2))

    def load_last_reading(self) -> CachedReading | None:
        if not self._last_reading_path.exists():
            return None
        try:
            return CachedReading.model_validate_json(self._last_reading_path.read_text())
        except Exception:
            logger.exception("Failed to load last reading cache")
            return None

    def add_pending_delta(self, date_key: str, minutes: float, app_name: str | None = None) -> None:
        """Queue a usage increment for the next successful push."""
        pending = self._load_pending_deltas()
        pending.append(
            PendingDelta(date_key=date_key, minutes=minutes, app_name=app_name, timestamp=datetime.now())
        )
        self._save_pending_deltas(pending)
        logger.debug("Queued %.2f minutes (%s) for %s", minutes, app_name, date_key)

    def restore_pending_deltas(self, deltas: list[PendingDelta]) -> None:
        """Put unsent deltas back at the head of the queue."""
        if not deltas:
            return
        self._save_pending_deltas(deltas + self._load_pending_deltas())
        logger.debug("Restored %d unsent deltas", len(deltas))

    def get_and_clear_pending_deltas(self) -> list[PendingDelta]:
        """Get all queued deltas, oldest first, and clear the queue."""
        pending = self._load_pending_deltas()
        if pending:
            self._save_pending_deltas([])
            logger.debug("Cleared %d deltas from pending queue", len(pending))
        return pending

    def _load_pending_deltas(self) -> list[PendingDelta]:
        if not self._pending_deltas_path.exists():
            return []
        try:
            data = json.loads(self._pending_deltas_path.read_text())
            return [PendingDelta.model_validate(item) for item in data]
        except Exception:
            logger.exception("Failed to load pending delta cache")
            return []

    def _save_pending_deltas(self, pending: list[PendingDelta]) -> None:
        data = [p.model_dump(mode="json") for p in pending]
        self._pending_deltas_path.write_text(json.dumps(data, indent=2, default=str))
