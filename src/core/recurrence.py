"""Recurrence rules — when does a repeating reminder fire next?

Day-of-week checks run in the owner's timezone. Reminder day numbers use
0=Sunday..6=Saturday, matching what is stored in ``recurringDay``.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from datetime import timedelta, timezone, tzinfo

from src.core.timefmt import DAY_MS, to_local, to_ms
from src.data.models import Recurrence

_WEEKDAYS = {1, 2, 3, 4, 5}
_WEEKEND = {0, 6}


def day_of_week(ts_ms: int, tz: tzinfo) -> int:
    """Local day of week for a timestamp, 0=Sunday..6=Saturday."""
    return (to_local(ts_ms, tz).weekday() + 1) % 7


def _matches(ts_ms: int, kind: Recurrence, tz: tzinfo, weekday: int | None) -> bool:
    dow = day_of_week(ts_ms, tz)
    if kind == Recurrence.WEEKDAYS:
        return dow in _WEEKDAYS
    if kind == Recurrence.WEEKENDS:
        return dow in _WEEKEND
    if kind == Recurrence.WEEKLY and weekday is not None:
        return dow == weekday
    return True


def next_occurrence(ts_ms: int, kind: Recurrence, tz: tzinfo = timezone.utc) -> int:
    """Next due time after a reminder due at *ts_ms* has fired.

    daily/weekly add exactly 24h/7x24h; weekdays/weekends step one day at a
    time until the local day qualifies.
    """
    if kind == Recurrence.DAILY:
        return ts_ms + DAY_MS
    if kind == Recurrence.WEEKLY:
        return ts_ms + 7 * DAY_MS

    nxt = ts_ms + DAY_MS
    while not _matches(nxt, kind, tz, None):
        nxt += DAY_MS
    return nxt


def first_occurrence(
    hour: int,
    minute: int,
    kind: Recurrence,
    tz: tzinfo,
    now: int,
    weekday: int | None = None,
) -> int:
    """First time strictly after *now* at local hour:minute that fits *kind*."""
    local_now = to_local(now, tz)
    candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    ts = to_ms(candidate)
    while ts <= now or not _matches(ts, kind, tz, weekday):
        candidate += timedelta(days=1)
        ts = to_ms(candidate)
    return ts
