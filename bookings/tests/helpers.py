from datetime import datetime, timezone as dt_timezone


def at(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """UTC instant helper (the test settings run in UTC)."""
    return datetime(year, month, day, hour, minute, tzinfo=dt_timezone.utc)
