"""
Time helpers shared by the server and the client.

All session and reset-token arithmetic is done in aware UTC datetimes. SQLite
hands DateTime(timezone=True) columns back as naive values, so anything read
from the database goes through ensure_utc() before it is compared with now.

Callers use `clock.utcnow()` through the module (not `from ... import utcnow`)
so tests can monkeypatch a single function to move time forward.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(value: datetime | None, now: datetime | None = None) -> bool:
    """True if `value` is set and strictly before `now`."""
    if value is None:
        return False
    return ensure_utc(value) < (now or utcnow())
