"""Time helpers — user timezones, display formatting, time expressions.

Users pick a fixed UTC offset (fractional hours allowed, e.g. 5.5 for
India), so every wall-clock calculation goes through a fixed-offset tzinfo.
All stored timestamps are epoch milliseconds.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime, timedelta, timezone, tzinfo

from src.data.models import TimeFormat, UserSettings

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def user_tz(offset_hours: float) -> tzinfo:
    """Fixed-offset tzinfo for a UTC offset in (possibly fractional) hours."""
    return timezone(timedelta(minutes=round(offset_hours * 60)))


def to_local(ts_ms: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000, tz)


def to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def hour_to_24(hour: int, ampm: str) -> int:
    """Convert a 12-hour clock hour to 0-23 (12 AM is midnight)."""
    ampm = ampm.lower()
    if ampm == "pm" and hour != 12:
        return hour + 12
    if ampm == "am" and hour == 12:
        return 0
    return hour


def format_clock(hour: int, minute: int, time_format: TimeFormat = TimeFormat.H12) -> str:
    if time_format == TimeFormat.H24:
        return f"{hour:02d}:{minute:02d}"
    suffix = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display}:{minute:02d} {suffix}"


def format_offset(offset_hours: float) -> str:
    """Render an offset like ``UTC+5:30`` or ``UTC-8``."""
    sign = "+" if offset_hours >= 0 else "-"
    total = round(abs(offset_hours) * 60)
    hours, minutes = divmod(total, 60)
    label = f"UTC{sign}{hours}"
    if minutes:
        label += f":{minutes:02d}"
    return label


def _date_label(d: date | datetime) -> str:
    return f"{d.strftime('%a, %b')} {d.day}"


def format_date_short(iso_date: str) -> str:
    """``2025-01-15`` -> ``Wed, Jan 15``."""
    return _date_label(date.fromisoformat(iso_date))


def format_datetime(
    ts_ms: int,
    user_settings: UserSettings | None = None,
    now: int | None = None,
) -> str:
    """Human-friendly due time in the user's timezone.

    ``Today at 3:05 PM``, ``Tomorrow at 09:00`` or ``Sat, Jan 3 at 8:00 AM``.
    """
    user_settings = user_settings or UserSettings()
    tz = user_tz(user_settings.timezone)
    local = to_local(ts_ms, tz)
    today = to_local(now if now is not None else now_ms(), tz).date()
    clock = format_clock(local.hour, local.minute, user_settings.time_format)

    if local.date() == today:
        return f"Today at {clock}"
    if local.date() == today + timedelta(days=1):
        return f"Tomorrow at {clock}"
    return f"{_date_label(local)} at {clock}"


def format_time_ago(ts_ms: int, now: int | None = None) -> str:
    diff = (now if now is not None else now_ms()) - ts_ms
    mins = max(0, diff // MINUTE_MS)
    if mins < 60:
        return f"{mins}m ago"
    hours = mins // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def greeting(hour: int) -> tuple[str, str]:
    """Return (greeting, emoji) for a local hour."""
    if hour < 6:
        return "Good night", "🌙"
    if hour < 12:
        return "Good morning", "🌅"
    if hour < 17:
        return "Good afternoon", "☀️"
    if hour < 21:
        return "Good evening", "🌆"
    return "Good night", "🌙"


def next_wall_clock(hour: int, minute: int, tz: tzinfo, now: int) -> int:
    """Next instant strictly after *now* whose local time is hour:minute."""
    local_now = to_local(now, tz)
    target = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= local_now:
        target += timedelta(days=1)
    return to_ms(target)


def at_local_date(iso_date: str, hour: int, minute: int, tz: tzinfo) -> int:
    """Timestamp for hour:minute on a local calendar date."""
    d = date.fromisoformat(iso_date)
    return to_ms(datetime(d.year, d.month, d.day, hour, minute, tzinfo=tz))


# ---------------------------------------------------------------------------
# /remind argument parsing
# ---------------------------------------------------------------------------

_RELATIVE_RE = re.compile(r"^((?:\d+[hmd]\s*)+)\s+(.+)$", re.IGNORECASE | re.DOTALL)
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})\s+(.+)$", re.DOTALL)
_UNIT_MS = {"d": DAY_MS, "h": HOUR_MS, "m": MINUTE_MS}
MAX_RELATIVE_MS = 365 * DAY_MS


def parse_time_and_message(
    text: str, tz: tzinfo, now: int | None = None,
) -> tuple[int, str] | None:
    """Parse ``10m Call mom``, ``1h30m Stretch`` or ``14:30 Standup``.

    Relative amounts are added to now and may not exceed a year. A clock
    time means the next such time in the user's timezone. Returns
    (due_ms, message) or None.
    """
    now = now if now is not None else now_ms()
    text = text.strip()

    rel = _RELATIVE_RE.match(text)
    if rel:
        offset = sum(
            int(amount) * _UNIT_MS[unit.lower()]
            for amount, unit in re.findall(r"(\d+)([hmd])", rel.group(1), re.IGNORECASE)
        )
        if offset > MAX_RELATIVE_MS:
            return None
        if offset > 0:
            return now + offset, rel.group(2).strip()

    clock = _CLOCK_RE.match(text)
    if clock:
        hour, minute = int(clock.group(1)), int(clock.group(2))
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            return None
        return next_wall_clock(hour, minute, tz, now), clock.group(3).strip()

    return None
