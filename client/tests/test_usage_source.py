"""Tests for the usage source adapters."""

import asyncio
import json
from pathlib import Path

from slowdown_client.usage_source import (
    SnapshotFileUsageSource,
    UnavailableUsageSource,
    build_usage_source,
)
from slowdown_shared.dates import day_window_ms


def test_unavailable_source_reads_zero_without_permission() -> None:
    source = UnavailableUsageSource()
    assert asyncio.run(source.has_permission()) is False
    reading = asyncio.run(source.query_today())
    assert reading.total_minutes == 0
    assert reading.per_app == {}


def test_missing_snapshot_means_no_permission(tmp_path: Path) -> None:
    source = SnapshotFileUsageSource(tmp_path / "usage.json")
    assert asyncio.run(source.has_permission()) is False
    assert asyncio.run(source.query_today()).total_minutes == 0


def test_snapshot_reading(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text(json.dumps({"perApp": {"YouTube": 12.5, "TikTok": 3}, "totalMinutes": 15.5}))
    source = SnapshotFileUsageSource(path)

    assert asyncio.run(source.has_permission()) is True
    reading = asyncio.run(source.query_today())
    assert reading.per_app == {"YouTube": 12.5, "TikTok": 3}
    assert reading.total_minutes == 15.5


def test_total_covers_per_app_sum(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text(json.dumps({"perApp": {"A": 10, "B": 5}, "totalMinutes": 12}))
    reading = asyncio.run(SnapshotFileUsageSource(path).query_today())
    assert reading.total_minutes == 15


def test_snapshot_from_another_day_reads_zero(tmp_path: Path) -> None:
    start_ms, _ = day_window_ms("2024-01-14")
    path = tmp_path / "usage.json"
    path.write_text(json.dumps({"perApp": {"A": 10}, "totalMinutes": 10, "windowStartMs": start_ms}))
    source = SnapshotFileUsageSource(path)

    window = day_window_ms("2024-01-15")
    assert asyncio.run(source.query_window(*window)).total_minutes == 0
    assert asyncio.run(source.query_window(*day_window_ms("2024-01-14"))).total_minutes == 10


def test_corrupt_snapshot_reads_zero(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text("garbage")
    assert asyncio.run(SnapshotFileUsageSource(path).query_today()).total_minutes == 0


def test_build_usage_source(tmp_path: Path) -> None:
    assert isinstance(build_usage_source(None), UnavailableUsageSource)
    assert isinstance(build_usage_source(tmp_path / "usage.json"), SnapshotFileUsageSource)


def test_bad_device_numbers_clamp_to_zero(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text(json.dumps({"perApp": {"A": -4, "B": None, "C": 6}, "totalMinutes": -1}))
    reading = asyncio.run(SnapshotFileUsageSource(path).query_today())

    assert reading.per_app == {"A": 0.0, "B": 0.0, "C": 6.0}
    assert reading.total_minutes == 6
