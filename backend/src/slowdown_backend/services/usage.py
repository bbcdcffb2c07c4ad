"""Usage records: monotonic resync, delta add, history and stats.

Both write paths are atomic at the database level so concurrent syncs from
several devices for the same user-day never lose data.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy import case, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from slowdown_shared import QuotaState, UsageRecord, compute_quota
from slowdown_shared.dates import parse_date_key
from slowdown_shared.errors import ValidationError
from slowdown_shared.merge import add_delta

from ..tables import UsageRecordRow, UserRow

logger = logging.getLogger(__name__)

_table = UsageRecordRow.__table__


def _insert_for(db: Session) -> Callable:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Unsupported database dialect for usage upserts: {dialect}")


def _validate_date_key(key: str) -> None:
    try:
        parse_date_key(key)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {key!r}, expected YYYY-MM-DD") from e


def get_record(db: Session, user_id: str, date_key: str) -> UsageRecord:
    """Usage for one user-day. A day without a row reads as zero usage."""
    row = db.execute(
        select(UsageRecordRow)
        .where(UsageRecordRow.user_id == user_id, UsageRecordRow.date_key == date_key)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        return UsageRecord(user_id=user_id, date_key=date_key)
    return UsageRecord.model_validate(row)


def resync(
    db: Session,
    user_id: str,
    date_key: str,
    observed_total: float,
    app_usage: dict[str, float] | None = None,
) -> UsageRecord:
    """Insert or merge a cumulative device reading.

    The stored total becomes max(stored, observed); the per-app map is
    replaced by the device's current map.
    """
    _validate_date_key(date_key)
    if observed_total < 0:
        raise ValidationError("totalMinutes must be non-negative")
    if any(minutes < 0 for minutes in (app_usage or {}).values()):
        raise ValidationError("appUsage values must be non-negative")

    now = datetime.now(UTC)
    insert = _insert_for(db)
    stmt = insert(_table).values(
        id=str(uuid.uuid4()),
        user_id=user_id,
        date_key=date_key,
        total_minutes=observed_total,
        app_usage=dict(app_usage or {}),
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[_table.c.user_id, _table.c.date_key],
        set_={
            "total_minutes": case(
                (_table.c.total_minutes < stmt.excluded.total_minutes, stmt.excluded.total_minutes),
                else_=_table.c.total_minutes,
            ),
            "app_usage": stmt.excluded.app_usage,
            "updated_at": now,
        },
    )
    try:
        db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise

    record = get_record(db, user_id, date_key)
    logger.debug(
        "Resynced usage for %s on %s: observed=%.1f stored=%.1f",
        user_id,
        date_key,
        observed_total,
        record.total_minutes,
    )
    return record


def add(
    db: Session,
    user_id: str,
    date_key: str,
    minutes: float,
    app_label: str | None = None,
) -> UsageRecord:
    """Add a measured delta to a user-day, merging the per-app map key-wise."""
    _validate_date_key(date_key)
    if minutes is None or minutes <= 0:
        raise ValidationError("Invalid minutes value")

    now = datetime.now(UTC)
    insert = _insert_for(db)
    ensure_row = (
        insert(_table)
        .values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            date_key=date_key,
            total_minutes=0.0,
            app_usage={},
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=[_table.c.user_id, _table.c.date_key])
    )
    try:
        db.execute(ensure_row)
        row = db.execute(
            select(UsageRecordRow)
            .where(UsageRecordRow.user_id == user_id, UsageRecordRow.date_key == date_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

        merged = add_delta(UsageRecord.model_validate(row), minutes, app_label)
        row.total_minutes = merged.total_minutes
        row.app_usage = merged.app_usage
        row.updated_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.debug("Added %.2f minutes (%s) for %s on %s", minutes, app_label, user_id, date_key)
    return merged


def history(db: Session, user_id: str, today_key: str, days: int) -> list[UsageRecord]:
    """Records from the last `days` days (today included), newest first."""
    if days < 1:
        raise ValidationError("days must be at least 1")
    since = (parse_date_key(today_key) - timedelta(days=days - 1)).isoformat()
    rows = db.execute(
        select(UsageRecordRow)
        .where(
            UsageRecordRow.user_id == user_id,
            UsageRecordRow.date_key >= since,
            UsageRecordRow.date_key <= today_key,
        )
        .order_by(UsageRecordRow.date_key.desc())
    ).scalars()
    return [UsageRecord.model_validate(row) for row in rows]


@dataclass
class UsageSummary:
    records: list[UsageRecord]
    total_minutes: float = 0.0
    average_minutes: float = 0.0
    days_tracked: int = 0
    app_totals: dict[str, float] = field(default_factory=dict)
    most_used_app: str | None = None
    most_used_app_minutes: float = 0.0


def summarize(records: list[UsageRecord]) -> UsageSummary:
    """Totals and averages over tracked days, plus the most used app."""
    summary = UsageSummary(records=records, days_tracked=len(records))
    for record in records:
        summary.total_minutes += record.total_minutes
        for app, minutes in record.app_usage.items():
            summary.app_totals[app] = summary.app_totals.get(app, 0.0) + minutes

    if records:
        summary.average_minutes = round(summary.total_minutes / len(records), 1)
    for app, minutes in summary.app_totals.items():
        if minutes > summary.most_used_app_minutes:
            summary.most_used_app = app
            summary.most_used_app_minutes = minutes
    return summary


def quota_for(user: UserRow, used_minutes: float) -> QuotaState:
    return compute_quota(
        daily_limit_minutes=user.daily_limit_minutes,
        bonus_minutes=user.bonus_minutes,
        today_used_minutes=used_minutes,
        is_blocked=user.is_blocked,
    )
