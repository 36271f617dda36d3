"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def seconds_from(moment: datetime, seconds: float) -> datetime:
    return moment + timedelta(seconds=seconds)


def elapsed_seconds(since: datetime, now: datetime | None = None) -> float:
    return ((now or utc_now()) - since).total_seconds()
