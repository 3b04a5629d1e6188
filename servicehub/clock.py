"""UTC time helpers."""

from datetime import datetime, timezone

from dateutil.parser import isoparse


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_datetime(value: datetime | str | None) -> datetime | None:
    """Normalise stored timestamps (datetimes or ISO strings) to aware UTC datetimes."""
    if value is None:
        return None
    if isinstance(value, str):
        value = isoparse(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
