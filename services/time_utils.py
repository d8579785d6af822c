from datetime import datetime, timezone


def get_utc_now() -> datetime:
    """
    Get current time in UTC.
    """
    return datetime.now(timezone.utc)


def get_utc_timestamp() -> str:
    """
    Get current time in UTC formatted as ISO string.
    Format: YYYY-MM-DDTHH:MM:SS+00:00
    """
    return get_utc_now().isoformat(timespec="seconds")


def format_date(dt: datetime) -> str:
    """
    Format a datetime as UTC "YYYY.MM.DD HH:MM".

    Naive datetimes are treated as UTC.

    Args:
        dt: Datetime to format (e.g. 2024-01-15 14:30 UTC)

    Returns:
        Formatted string (e.g. "2024.01.15 14:30")
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y.%m.%d %H:%M")


def get_current_date() -> str:
    return format_date(get_utc_now())
