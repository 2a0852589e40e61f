"""Button payload decoding.

Inline buttons carry an opaque ``callback_data`` string. Every payload is
parsed here into a typed action before the bot dispatches on it; anything
that does not parse raises UnknownAction instead of falling through.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Union

from src.core.timefmt import DAY_MS, HOUR_MS, MINUTE_MS, hour_to_24
from src.data.models import Category, Priority, Recurrence, TimeFormat


class UnknownAction(ValueError):
    """Raised for a callback payload outside the known vocabulary."""


QUICK_PRESETS = {
    "5m": 5 * MINUTE_MS,
    "15m": 15 * MINUTE_MS,
    "30m": 30 * MINUTE_MS,
    "1h": HOUR_MS,
    "2h": 2 * HOUR_MS,
    "4h": 4 * HOUR_MS,
    "1d": DAY_MS,
}
PERIOD_HOURS = {"morning": 9, "afternoon": 14, "evening": 19}

# Payloads that only open a screen. Opening one ends any flow in progress.
SCREENS = frozenset({
    "main_menu",
    "rm_list",
    "todo_menu",
    "todo_categories",
    "rec_menu",
    "stats_menu",
    "help_menu",
    "settings_menu",
    "settings_timezone",
    "settings_timeformat",
    "settings_priority",
    "settings_quickreminder",
    "settings_cleardata",
})


@dataclass(frozen=True)
class Ignore:
    pass


@dataclass(frozen=True)
class ShowScreen:
    name: str


@dataclass(frozen=True)
class StartReminder:
    pass


@dataclass(frozen=True)
class QuickReminder:
    preset: str        # key of QUICK_PRESETS, or "default" for the user's setting


@dataclass(frozen=True)
class PeriodReminder:
    hour: int


@dataclass(frozen=True)
class OpenTimePicker:
    pass


@dataclass(frozen=True)
class OpenDatePicker:
    month_offset: int = 0


@dataclass(frozen=True)
class PickDate:
    iso_date: str


@dataclass(frozen=True)
class PickHour:
    hour: int          # 0-23


@dataclass(frozen=True)
class PickMinute:
    minute: int


@dataclass(frozen=True)
class CustomMinute:
    pass


@dataclass(frozen=True)
class BackToMinutes:
    pass


@dataclass(frozen=True)
class PickPriority:
    priority: Priority


@dataclass(frozen=True)
class DeleteReminder:
    reminder_id: int


@dataclass(frozen=True)
class Snooze:
    reminder_id: int
    minutes: int


@dataclass(frozen=True)
class Dismiss:
    reminder_id: int


@dataclass(frozen=True)
class StartRecurring:
    recurrence: Recurrence
    weekday: int | None = None
    hour: int | None = None


@dataclass(frozen=True)
class StartTodo:
    pass


@dataclass(frozen=True)
class TodoView:
    task_id: int


@dataclass(frozen=True)
class TodoCategory:
    category: Category


@dataclass(frozen=True)
class TodoPriority:
    priority: Priority


@dataclass(frozen=True)
class TodoToggle:
    task_id: int


@dataclass(frozen=True)
class TodoDelete:
    task_id: int


@dataclass(frozen=True)
class TodoClearCompleted:
    pass


@dataclass(frozen=True)
class SetTimezone:
    offset: float


@dataclass(frozen=True)
class SetTimeFormat:
    time_format: TimeFormat


@dataclass(frozen=True)
class SetDefaultPriority:
    priority: Priority


@dataclass(frozen=True)
class ToggleSound:
    pass


@dataclass(frozen=True)
class SetQuickReminder:
    minutes: int


@dataclass(frozen=True)
class ClearAllData:
    pass


Action = Union[
    Ignore, ShowScreen, StartReminder, QuickReminder, PeriodReminder,
    OpenTimePicker, OpenDatePicker, PickDate, PickHour, PickMinute,
    CustomMinute, BackToMinutes, PickPriority, DeleteReminder, Snooze,
    Dismiss, StartRecurring, StartTodo, TodoView, TodoCategory, TodoPriority,
    TodoToggle, TodoDelete, TodoClearCompleted, SetTimezone, SetTimeFormat,
    SetDefaultPriority, ToggleSound, SetQuickReminder, ClearAllData,
]

_FIXED: dict[str, Action] = {
    "ignore": Ignore(),
    "rm_start": StartReminder(),
    "rm_picktime": OpenTimePicker(),
    "rm_picktime_back": BackToMinutes(),
    "rm_pickdate": OpenDatePicker(),
    "rm_min_custom": CustomMinute(),
    "todo_add": StartTodo(),
    "todo_clear": TodoClearCompleted(),
    "rec_daily_custom": StartRecurring(Recurrence.DAILY),
    "rec_weekdays": StartRecurring(Recurrence.WEEKDAYS),
    "rec_weekends": StartRecurring(Recurrence.WEEKENDS),
    "settings_sound_toggle": ToggleSound(),
    "settings_cleardata_confirm": ClearAllData(),
}


def _hour(m: re.Match) -> PickHour:
    hour = int(m[1])
    if not 1 <= hour <= 12:
        raise ValueError(f"hour out of range: {hour}")
    return PickHour(hour_to_24(hour, m[2]))


def _minute(m: re.Match) -> PickMinute:
    minute = int(m[1])
    if not 0 <= minute <= 59:
        raise ValueError(f"minute out of range: {minute}")
    return PickMinute(minute)


def _daily(m: re.Match) -> StartRecurring:
    hour = int(m[1])
    if not 0 <= hour <= 23:
        raise ValueError(f"hour out of range: {hour}")
    return StartRecurring(Recurrence.DAILY, hour=hour)


def _date(m: re.Match) -> PickDate:
    date.fromisoformat(m[1])
    return PickDate(m[1])


def _timezone(m: re.Match) -> SetTimezone:
    offset = float(m[1])
    if not -12 <= offset <= 14:
        raise ValueError(f"offset out of range: {offset}")
    return SetTimezone(offset)


def _quick_minutes(m: re.Match) -> SetQuickReminder:
    minutes = int(m[1])
    if not 1 <= minutes <= 24 * 60:
        raise ValueError(f"duration out of range: {minutes}")
    return SetQuickReminder(minutes)


def _snooze(m: re.Match) -> Snooze:
    minutes = int(m[2])
    if minutes < 1:
        raise ValueError("snooze must be at least a minute")
    return Snooze(int(m[1]), minutes)


def _quick(m: re.Match) -> QuickReminder:
    if m[1] != "default" and m[1] not in QUICK_PRESETS:
        raise ValueError(f"unknown preset: {m[1]}")
    return QuickReminder(m[1])


_PATTERNS: list[tuple[re.Pattern, Callable[[re.Match], Action]]] = [
    (re.compile(r"rm_quick_(\w+)"), _quick),
    (re.compile(r"rm_period_(\w+)"), lambda m: PeriodReminder(PERIOD_HOURS[m[1]])),
    (re.compile(r"rm_hour_(\d{1,2})_(am|pm)"), _hour),
    (re.compile(r"rm_min_(\d{1,2})"), _minute),
    (re.compile(r"rm_month_(-?\d{1,3})"), lambda m: OpenDatePicker(int(m[1]))),
    (re.compile(r"rm_date_(\d{4}-\d{2}-\d{2})"), _date),
    (re.compile(r"rm_priority_(\w+)"), lambda m: PickPriority(Priority(m[1]))),
    (re.compile(r"rm_del_(\d+)"), lambda m: DeleteReminder(int(m[1]))),
    (re.compile(r"snooze_(\d+)_(\d{1,4})"), _snooze),
    (re.compile(r"dismiss_(\d+)"), lambda m: Dismiss(int(m[1]))),
    (re.compile(r"rec_daily_(\d{1,2})"), _daily),
    (re.compile(r"rec_weekly_([0-6])"), lambda m: StartRecurring(Recurrence.WEEKLY, weekday=int(m[1]))),
    (re.compile(r"todo_view_(\d+)"), lambda m: TodoView(int(m[1]))),
    (re.compile(r"todo_cat_(\w+)"), lambda m: TodoCategory(Category(m[1]))),
    (re.compile(r"todo_pri_(\w+)"), lambda m: TodoPriority(Priority(m[1]))),
    (re.compile(r"todo_done_(\d+)"), lambda m: TodoToggle(int(m[1]))),
    (re.compile(r"todo_del_(\d+)"), lambda m: TodoDelete(int(m[1]))),
    (re.compile(r"set_tz_(-?\d+(?:\.\d+)?)"), _timezone),
    (re.compile(r"set_tf_(12h|24h)"), lambda m: SetTimeFormat(TimeFormat(m[1]))),
    (re.compile(r"set_defpri_(\w+)"), lambda m: SetDefaultPriority(Priority(m[1]))),
    (re.compile(r"set_qr_(\d{1,4})"), _quick_minutes),
]


def parse_action(payload: str | None) -> Action:
    """Decode a callback payload into a typed action.

    Raises UnknownAction for anything outside the vocabulary, including
    known prefixes carrying out-of-range values.
    """
    if not payload:
        raise UnknownAction("empty payload")
    if payload in SCREENS:
        return ShowScreen(payload)
    if payload in _FIXED:
        return _FIXED[payload]
    for pattern, build in _PATTERNS:
        m = pattern.fullmatch(payload)
        if m is None:
            continue
        try:
            return build(m)
        except (KeyError, ValueError) as exc:
            raise UnknownAction(f"bad payload {payload!r}: {exc}") from exc
    raise UnknownAction(f"unrecognized payload {payload!r}")
