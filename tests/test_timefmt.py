from datetime import datetime, timedelta, timezone

from chat_sync.timefmt import format_relative

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ago(seconds: float) -> str:
    return format_relative(NOW - timedelta(seconds=seconds), NOW)


def test_future_timestamp_reads_just_now():
    assert _ago(-5) == "just now"


def test_under_a_minute_reads_just_now():
    assert _ago(0) == "just now"
    assert _ago(30) == "just now"
    assert _ago(59.9) == "just now"


def test_minutes_hours_days_use_floor_division():
    assert _ago(60) == "1m ago"
    assert _ago(90) == "1m ago"
    assert _ago(3599) == "59m ago"
    assert _ago(3600) == "1h ago"
    assert _ago(3700) == "1h ago"
    assert _ago(86399) == "23h ago"
    assert _ago(86400) == "1d ago"
    assert _ago(90000) == "1d ago"
    assert _ago(10 * 86400 + 5) == "10d ago"


def test_accepts_iso_strings_and_epoch_ms():
    assert format_relative("2024-05-01T11:58:00Z", NOW) == "2m ago"
    assert format_relative("2024-05-01T11:00:00", NOW) == "1h ago"
    epoch_ms = int((NOW - timedelta(days=2)).timestamp() * 1000)
    assert format_relative(epoch_ms, NOW) == "2d ago"


def test_defaults_now_to_current_time():
    assert format_relative(datetime.now(timezone.utc)) == "just now"
