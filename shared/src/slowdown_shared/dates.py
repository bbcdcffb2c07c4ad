"""Date keys in the app's fixed timezone offset (WIB, UTC+7 by default)."""

from datetime import UTC, date, datetime, timedelta, timezone

DEFAULT_OFFSET_HOURS = 7


def fixed_offset(offset_hours: int = DEFAULT_OFFSET_HOURS) -> timezone:
    return timezone(timedelta(hours=offset_hours))


def local_now(offset_hours: int = DEFAULT_OFFSET_HOURS, now: datetime | None = None) -> datetime:
    """Current time in the fixed offset. Naive `now` values are taken as UTC."""
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(fixed_offset(offset_hours))


def date_key(now: datetime | None = None, offset_hours: int = DEFAULT_OFFSET_HOURS) -> str:
    """YYYY-MM-DD of `now` in the fixed offset."""
    return local_now(offset_hours, now).strftime("%Y-%m-%d")


def parse_date_key(key: str) -> date:
    """Parse and validate a YYYY-MM-DD key. Raises ValueError if malformed."""
    return datetime.strptime(key, "%Y-%m-%d").date()


def needs_reset(last_reset_date_key: str | None, now_date_key: str) -> bool:
    """True iff the stored day differs from today (or nothing is stored)."""
    if not last_reset_date_key:
        return True
    return last_reset_date_key != now_date_key


def day_window_ms(key: str, offset_hours: int = DEFAULT_OFFSET_HOURS) -> tuple[int, int]:
    """Start/end epoch milliseconds of a day in the fixed offset."""
    start = datetime.combine(parse_date_key(key), datetime.min.time(), fixed_offset(offset_hours))
    end = start + timedelta(days=1)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)
