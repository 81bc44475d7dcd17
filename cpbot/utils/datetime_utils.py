from datetime import datetime, timedelta, timezone


SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """
    Get current UTC datetime as a timezone-aware datetime.

    Returns:
        datetime: Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime object to UTC timezone-aware datetime.

    Args:
        dt: Datetime object to convert

    Returns:
        datetime: UTC timezone-aware datetime
    """
    if dt.tzinfo is None:
        # Assume naive datetime is in UTC
        return dt.replace(tzinfo=timezone.utc)
    else:
        return dt.astimezone(timezone.utc)


def utc_midnight(dt: datetime) -> datetime:
    """Start of the UTC calendar day containing ``dt``."""
    return to_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)


def seconds_since_utc_midnight(dt: datetime) -> float:
    """Fractional seconds elapsed since the UTC midnight of ``dt``."""
    return (to_utc(dt) - utc_midnight(dt)) / timedelta(seconds=1)
