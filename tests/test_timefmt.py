"""Tests for src.core.timefmt — timezone math, formatting and /remind parsing."""

from datetime import timezone

import pytest

from conftest import ms
from src.core.timefmt import (
    DAY_MS,
    HOUR_MS,
    MINUTE_MS,
    at_local_date,
    format_clock,
    format_date_short,
    format_datetime,
    format_offset,
    format_time_ago,
    greeting,
    hour_to_24,
    next_wall_clock,
    parse_time_and_message,
    user_tz,
)
from src.data.models import TimeFormat, UserSettings

IST = UserSettings(timezone=5.5)


class TestHourTo24:
    def test_midnight_and_noon(self):
        assert hour_to_24(12, "am") == 0
        assert hour_to_24(12, "pm") == 12

    def test_regular_hours(self):
        assert hour_to_24(9, "am") == 9
        assert hour_to_24(3, "pm") == 15
        assert hour_to_24(11, "PM") == 23


class TestFormatClock:
    def test_twelve_hour(self):
        assert format_clock(15, 5) == "3:05 PM"
        assert format_clock(0, 0) == "12:00 AM"
        assert format_clock(12, 30) == "12:30 PM"

    def test_twenty_four_hour(self):
        assert format_clock(15, 5, TimeFormat.H24) == "15:05"
        assert format_clock(7, 0, TimeFormat.H24) == "07:00"


class TestFormatOffset:
    @pytest.mark.parametrize("offset,label", [
        (0, "UTC+0"),
        (5.5, "UTC+5:30"),
        (5.75, "UTC+5:45"),
        (-8, "UTC-8"),
    ])
    def test_labels(self, offset, label):
        assert format_offset(offset) == label


class TestFormatDatetime:
    def test_today_in_ist(self):
        # 2025-01-15 08:00 UTC is 13:30 in UTC+5:30
        now = ms(2025, 1, 15, 6, 0)
        assert format_datetime(ms(2025, 1, 15, 8, 0), IST, now) == "Today at 1:30 PM"

    def test_tomorrow(self):
        now = ms(2025, 1, 15, 6, 0)
        ts = ms(2025, 1, 16, 3, 30)   # 09:00 IST next day
        assert format_datetime(ts, IST, now) == "Tomorrow at 9:00 AM"

    def test_local_day_differs_from_utc_day(self):
        # 20:00 UTC on the 15th is already 01:30 on the 16th in IST
        now = ms(2025, 1, 15, 6, 0)
        assert format_datetime(ms(2025, 1, 15, 20, 0), IST, now) == "Tomorrow at 1:30 AM"

    def test_later_date_uses_weekday_and_24h(self):
        now = ms(2025, 1, 15, 6, 0)
        settings = UserSettings(time_format=TimeFormat.H24)
        assert format_datetime(ms(2025, 1, 18, 8, 0), settings, now) == "Sat, Jan 18 at 08:00"


def test_format_date_short():
    assert format_date_short("2025-01-15") == "Wed, Jan 15"


class TestFormatTimeAgo:
    def test_minutes_hours_days(self):
        now = ms(2025, 1, 15, 12, 0)
        assert format_time_ago(now - 5 * MINUTE_MS, now) == "5m ago"
        assert format_time_ago(now - 3 * HOUR_MS, now) == "3h ago"
        assert format_time_ago(now - 2 * DAY_MS, now) == "2d ago"

    def test_future_clamps_to_zero(self):
        now = ms(2025, 1, 15, 12, 0)
        assert format_time_ago(now + MINUTE_MS, now) == "0m ago"


def test_greeting_buckets():
    assert greeting(3)[0] == "Good night"
    assert greeting(8)[0] == "Good morning"
    assert greeting(13)[0] == "Good afternoon"
    assert greeting(19)[0] == "Good evening"
    assert greeting(22)[0] == "Good night"


class TestWallClock:
    def test_later_today(self):
        now = ms(2025, 1, 15, 6, 0)
        assert next_wall_clock(9, 0, timezone.utc, now) == ms(2025, 1, 15, 9, 0)

    def test_already_passed_rolls_to_tomorrow(self):
        now = ms(2025, 1, 15, 10, 0)
        assert next_wall_clock(9, 0, timezone.utc, now) == ms(2025, 1, 16, 9, 0)

    def test_exactly_now_rolls_to_tomorrow(self):
        now = ms(2025, 1, 15, 9, 0)
        assert next_wall_clock(9, 0, timezone.utc, now) == ms(2025, 1, 16, 9, 0)

    def test_user_timezone(self):
        now = ms(2025, 1, 15, 0, 0)
        # 09:00 IST == 03:30 UTC
        assert next_wall_clock(9, 0, user_tz(5.5), now) == ms(2025, 1, 15, 3, 30)

    def test_at_local_date(self):
        assert at_local_date("2025-01-20", 9, 15, user_tz(-5)) == ms(2025, 1, 20, 14, 15)


class TestParseTimeAndMessage:
    NOW = ms(2025, 1, 15, 12, 0)

    def test_minutes(self):
        assert parse_time_and_message("10m Call mom", timezone.utc, self.NOW) == (
            self.NOW + 10 * MINUTE_MS, "Call mom",
        )

    def test_compound_duration(self):
        due, msg = parse_time_and_message("1h30m Stretch", timezone.utc, self.NOW)
        assert due == self.NOW + 90 * MINUTE_MS
        assert msg == "Stretch"

    def test_days(self):
        due, _ = parse_time_and_message("1d Pay rent", timezone.utc, self.NOW)
        assert due == self.NOW + DAY_MS

    def test_clock_time_in_user_timezone(self):
        # 12:00 UTC is 17:30 IST, so 14:30 IST has passed and rolls to tomorrow
        due, msg = parse_time_and_message("14:30 Standup", user_tz(5.5), self.NOW)
        assert due == ms(2025, 1, 16, 9, 0)
        assert msg == "Standup"

    def test_invalid_inputs(self):
        assert parse_time_and_message("Call mom", timezone.utc, self.NOW) is None
        assert parse_time_and_message("25:00 Late", timezone.utc, self.NOW) is None
        assert parse_time_and_message("10m", timezone.utc, self.NOW) is None
        assert parse_time_and_message("", timezone.utc, self.NOW) is None

    def test_duration_over_a_year_is_rejected(self):
        assert parse_time_and_message("99999999d far future", timezone.utc, self.NOW) is None
        assert parse_time_and_message("366d Renew", timezone.utc, self.NOW) is None

    def test_duration_of_a_year_is_accepted(self):
        due, _ = parse_time_and_message("365d Renew", timezone.utc, self.NOW)
        assert due == self.NOW + 365 * DAY_MS
