"""
Timezone utilities for the wager ledger.

All times are stored as naive UTC datetimes (the SQLite and PostgreSQL
columns are ``timestamp without time zone``) and converted at the edges.
"""
from datetime import datetime, timezone, date
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware or naive datetime to naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into naive UTC."""
    return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def calendar_age(birth_date: date, today: Optional[date] = None) -> int:
    """
    Age as the difference of calendar years.

    Birthdays later in the current year are not subtracted, matching how the
    compliance audit log has always recorded ages.

    Examples:
        >>> calendar_age(date(2008, 12, 31), today=date(2026, 1, 1))
        18
    """
    today = today or utc_now().date()
    return today.year - birth_date.year


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
