"""Usage record merge rules.

Two distinct operations, never to be mixed for the same observations:

- `resync_total`: the device reports a cumulative total for the day. The
  stored total becomes the high-water mark of both values.
- `add_delta`: the device reports minutes measured since its last report.
  The delta is added to the stored total.
"""

from .errors import ValidationError
from .models import UsageRecord


def resync_total(
    record: UsageRecord,
    observed_total: float,
    app_usage: dict[str, float] | None = None,
) -> UsageRecord:
    """Merge a cumulative device read into a record.

    The per-app map is replaced wholesale; it is already cumulative for today.
    """
    if observed_total < 0:
        raise ValidationError("observed_total must be non-negative")
    return record.model_copy(
        update={
            "total_minutes": max(record.total_minutes, observed_total),
            "app_usage": dict(app_usage or {}),
        }
    )


def add_delta(record: UsageRecord, minutes_delta: float, app_label: str | None = None) -> UsageRecord:
    """Add a measured delta to a record, merging the per-app map key-wise."""
    if minutes_delta <= 0:
        raise ValidationError("minutes_delta must be positive")

    app_usage = dict(record.app_usage)
    if app_label:
        app_usage[app_label] = app_usage.get(app_label, 0.0) + minutes_delta
    return record.model_copy(
        update={
            "total_minutes": record.total_minutes + minutes_delta,
            "app_usage": app_usage,
        }
    )


def reading_deltas(previous: dict[str, float], current: dict[str, float]) -> dict[str, float]:
    """Per-app positive increments between two cumulative reads of the same day.

    Apps whose counter went down (the platform re-bucketed its stats) yield
    nothing rather than a negative delta.
    """
    deltas: dict[str, float] = {}
    for app, minutes in current.items():
        delta = minutes - previous.get(app, 0.0)
        if delta > 0:
            deltas[app] = delta
    return deltas
