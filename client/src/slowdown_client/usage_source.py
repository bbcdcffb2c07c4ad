"""Usage Source Adapter: where per-app foreground minutes come from.

The native usage query lives outside this package. A device bridge
(Android UsageStatsManager, iOS Screen Time) writes its latest reading to a
JSON snapshot file, which `SnapshotFileUsageSource` reads:

    {"perApp": {"YouTube": 12.5}, "totalMinutes": 12.5, "windowStartMs": 1705251600000}
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from slowdown_shared import UsageReading
from slowdown_shared.dates import date_key, day_window_ms
from slowdown_shared.quota import clamp_minutes
from slowdown_shared.wire import to_camel

logger = logging.getLogger(__name__)


class UsageSource(Protocol):
    async def has_permission(self) -> bool: ...

    async def request_permission(self) -> None: ...

    async def query_today(self) -> UsageReading: ...

    async def query_window(self, start_ms: int, end_ms: int) -> UsageReading: ...


class UnavailableUsageSource:
    """Platforms without a usage bridge. Never has permission, reads as zero."""

    async def has_permission(self) -> bool:
        return False

    async def request_permission(self) -> None:
        logger.warning("Usage statistics are not available on this platform")

    async def query_today(self) -> UsageReading:
        return UsageReading.empty()

    async def query_window(self, start_ms: int, end_ms: int) -> UsageReading:
        return UsageReading.empty()


class UsageSnapshot(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    per_app: dict[str, float | None] = Field(default_factory=dict)
    total_minutes: float | None = 0.0
    window_start_ms: int | None = None


class SnapshotFileUsageSource:
    """Reads the snapshot file written by the device bridge.

    The file's presence stands for the usage-stats permission: the bridge
    only writes it once access has been granted.
    """

    def __init__(self, path: Path, offset_hours: int = 7):
        self._path = path
        self._offset_hours = offset_hours

    async def has_permission(self) -> bool:
        return self._path.exists()

    async def request_permission(self) -> None:
        logger.info("Grant usage access in the device bridge; waiting for %s", self._path)

    async def query_today(self) -> UsageReading:
        start_ms, end_ms = day_window_ms(date_key(offset_hours=self._offset_hours), self._offset_hours)
        return await self.query_window(start_ms, end_ms)

    async def query_window(self, start_ms: int, end_ms: int) -> UsageReading:
        """The snapshot's reading if it belongs to this window, else zero usage."""
        snapshot = await asyncio.to_thread(self._load)
        if snapshot is None:
            return UsageReading.empty()
        if snapshot.window_start_ms is not None and not start_ms <= snapshot.window_start_ms < end_ms:
            logger.debug("Snapshot window %d is outside the queried window", snapshot.window_start_ms)
            return UsageReading.empty()

        per_app = {app: clamp_minutes(minutes) for app, minutes in snapshot.per_app.items()}
        total = max(clamp_minutes(snapshot.total_minutes), sum(per_app.values()))
        return UsageReading(per_app=per_app, total_minutes=total)

    def _load(self) -> UsageSnapshot | None:
        if not self._path.exists():
            return None
        try:
            return UsageSnapshot.model_validate_json(self._path.read_text())
        except Exception:
            logger.exception("Failed to read usage snapshot %s", self._path)
            return None


def build_usage_source(snapshot_path: Path | None, offset_hours: int = 7) -> UsageSource:
    if snapshot_path is None:
        return UnavailableUsageSource()
    return SnapshotFileUsageSource(snapshot_path, offset_hours)
