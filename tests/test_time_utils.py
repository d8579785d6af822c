from datetime import datetime, timedelta, timezone

from services.time_utils import format_date, get_utc_now, get_utc_timestamp


def test_format_date_utc():
    assert format_date(datetime(2024, 1, 15, 14, 30, 59, tzinfo=timezone.utc)) == "2024.01.15 14:30"


def test_format_date_converts_to_utc():
    kyiv = timezone(timedelta(hours=2))
    assert format_date(datetime(2024, 1, 15, 16, 30, tzinfo=kyiv)) == "2024.01.15 14:30"


def test_naive_datetime_is_treated_as_utc():
    assert format_date(datetime(2024, 1, 5, 9, 5)) == "2024.01.05 09:05"


def test_now_is_timezone_aware():
    assert get_utc_now().tzinfo is not None
    assert get_utc_timestamp().endswith("+00:00")
