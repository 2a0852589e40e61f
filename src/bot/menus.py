"""
Reminder Bot — Screens.

Every screen is rendered as ``(html_text, InlineKeyboardMarkup)`` from the
current data; nothing here mutates state or talks to Telegram. User text is
always HTML-escaped before it is embedded.
"""

from __future__ import annotations

import calendar
from datetime import date
from html import escape
from typing import TYPE_CHECKING

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from src.core.scheduler import PRIORITY_EMOJI, RECURRING_EMOJI, RECURRING_LABEL
from src.core.timefmt import (
    format_clock,
    format_date_short,
    format_datetime,
    format_offset,
    greeting,
    now_ms,
    to_local,
    user_tz,
)
from src.core.wizard import (
    FlowState,
    RecurringFlow,
    RecurringStep,
    ReminderFlow,
    ReminderStep,
    TodoFlow,
    TodoStep,
)
from src.data.models import Category, Priority, TimeFormat

if TYPE_CHECKING:
    from src.data.db import DataStore
    from src.data.models import Reminder, Task, UserSettings
    from src.ports.notification_port import ButtonRows

Screen = tuple[str, InlineKeyboardMarkup]

RULE = "━━━━━━━━━━━━━━━━━"

CATEGORY_EMOJI = {
    "work": "💼",
    "personal": "👤",
    "health": "💪",
    "shopping": "🛒",
    "finance": "💰",
    "learning": "📚",
    "social": "👥",
    "other": "📌",
}

TIMEZONES = [
    ("🇺🇸 US Pacific (LA)", -8),
    ("🇺🇸 US Mountain", -7),
    ("🇺🇸 US Central", -6),
    ("🇺🇸 US Eastern (NY)", -5),
    ("🇬🇧 UK (London)", 0),
    ("🇪🇺 Europe Central", 1),
    ("🇪🇺 Europe Eastern", 2),
    ("🇦🇪 Dubai (GST)", 4),
    ("🇮🇳 India (IST)", 5.5),
    ("🇳🇵 Nepal (NPT)", 5.75),
    ("🇧🇩 Bangladesh (BST)", 6),
    ("🇹🇭 Thailand (ICT)", 7),
    ("🇸🇬 Singapore", 8),
    ("🇯🇵 Japan/Korea", 9),
    ("🇦🇺 Australia East", 10),
    ("🇳🇿 New Zealand", 12),
]

QUICK_REMINDER_CHOICES = (5, 10, 15, 20, 30, 60)

_PRIORITY_LABEL = {
    "low": "Low - No rush",
    "medium": "Medium - Important",
    "high": "High - Must do!",
    "urgent": "Urgent - Critical!",
}
_WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def keyboard(rows: ButtonRows) -> InlineKeyboardMarkup:
    """Build an inline keyboard from ``[[(label, payload), ...], ...]``."""
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in rows]
    )


def _divider(label: str = "━━━━━━━━━━━━━━━") -> list[tuple[str, str]]:
    return [(label, "ignore")]


def _clip(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _title(emoji: str, title: str) -> str:
    return f"{emoji} <b>{title}</b>\n{RULE}\n"


def _mark(selected: bool) -> str:
    return "✓ " if selected else ""


def timezone_name(offset: float) -> str:
    return next((name for name, off in TIMEZONES if off == offset), format_offset(offset))


# ---------------------------------------------------------------------------
# Main menu
# ---------------------------------------------------------------------------


def main_menu(store: DataStore, chat_id: int, first_name: str = "Friend") -> Screen:
    stats = store.user_stats(chat_id)
    todos = store.todos_for(chat_id)
    pending = sum(1 for t in todos if not t.done)
    active = len(store.reminders_for(chat_id, include_fired=False))

    text = (
        _title("🎯", "REMINDER BOT")
        + f"👋 <b>Hi, {escape(first_name)}!</b>\n\n"
        "📊 <b>Your Dashboard</b>\n"
        f"├ 🔔 Active Reminders: <b>{active}</b>\n"
        f"├ 📋 Pending Tasks: <b>{pending}</b>\n"
        f"├ ✅ Completed: <b>{len(todos) - pending}</b>\n"
        f"└ 🔥 Streak: <b>{stats.streak} days</b>\n\n"
        "<i>What would you like to do?</i>"
    )
    return text, keyboard([
        [("⏰ Set Reminder", "rm_start"), ("📋 Tasks", "todo_menu")],
        [("🔄 Recurring", "rec_menu"), ("📜 My Reminders", "rm_list")],
        [("📊 Statistics", "stats_menu"), ("⚙️ Settings", "settings_menu")],
        [("❓ Help & Tips", "help_menu")],
    ])


# ---------------------------------------------------------------------------
# One-time reminder flow
# ---------------------------------------------------------------------------


def when_menu(user_settings: UserSettings) -> Screen:
    text = (
        _title("⏰", "CREATE REMINDER")
        + "\n<b>Step 1/4:</b> When do you need this reminder?\n\n"
        "Choose a quick option or set custom time:"
    )
    return text, keyboard([
        _divider("━━━ ⚡ QUICK OPTIONS ━━━"),
        [("🕐 5 min", "rm_quick_5m"), ("🕐 15 min", "rm_quick_15m"), ("🕐 30 min", "rm_quick_30m")],
        [("🕐 1 hour", "rm_quick_1h"), ("🕑 2 hours", "rm_quick_2h"), ("🕓 4 hours", "rm_quick_4h")],
        [(f"⚡ In {user_settings.quick_reminder_mins} min", "rm_quick_default"),
         ("📅 Tomorrow at This Time", "rm_quick_1d")],
        _divider("━━━ 🌤 TIME OF DAY ━━━"),
        [("🌅 Morning", "rm_period_morning"), ("☀️ Afternoon", "rm_period_afternoon"),
         ("🌆 Evening", "rm_period_evening")],
        _divider("━━━ 🎯 PRECISE TIME ━━━"),
        [("🕐 Pick Exact Time", "rm_picktime"), ("📅 Pick Date & Time", "rm_pickdate")],
        [("❌ Cancel", "main_menu")],
    ])


def hour_picker(selected_date: str | None = None, back: str = "rm_start") -> Screen:
    date_str = format_date_short(selected_date) if selected_date else "Today"
    text = (
        _title("🕐", "SELECT TIME")
        + f"\n📅 Date: <b>{date_str}</b>\n\n<b>Step 2/4:</b> Select the hour:"
    )

    def hours(*pairs: tuple[int, str]) -> list[tuple[str, str]]:
        return [(f"{h} {ap.upper()}", f"rm_hour_{h}_{ap}") for h, ap in pairs]

    return text, keyboard([
        _divider("━━━ 🌅 MORNING ━━━"),
        hours((6, "am"), (7, "am"), (8, "am"), (9, "am")),
        hours((10, "am"), (11, "am"), (12, "pm")),
        _divider("━━━ ☀️ AFTERNOON ━━━"),
        hours((1, "pm"), (2, "pm"), (3, "pm"), (4, "pm")),
        hours((5, "pm"), (6, "pm"), (7, "pm")),
        _divider("━━━ 🌙 EVENING/NIGHT ━━━"),
        hours((8, "pm"), (9, "pm"), (10, "pm"), (11, "pm")),
        hours((12, "am"), (1, "am"), (2, "am"), (3, "am"), (4, "am"), (5, "am")),
        [("« Back", back), ("❌ Cancel", "main_menu")],
    ])


def _hour_label(hour: int) -> str:
    return f"{hour % 12 or 12}:__ {'PM' if hour >= 12 else 'AM'}"


def minute_picker(hour: int) -> Screen:
    text = (
        _title("🕐", "SELECT MINUTES")
        + f"\n🕐 Selected: <b>{_hour_label(hour)}</b>\n\n<b>Step 3/4:</b> Select the minutes:"
    )
    rows = [
        [(f":{m:02d}", f"rm_min_{m}") for m in range(start, start + 20, 5)]
        for start in (0, 20, 40)
    ]
    rows.append([("⌨️ Type exact minute (0-59)", "rm_min_custom")])
    rows.append([("« Back", "rm_picktime"), ("❌ Cancel", "main_menu")])
    return text, keyboard(rows)


def custom_minute_prompt(hour: int) -> Screen:
    text = (
        _title("⌨️", "ENTER MINUTE")
        + f"\n🕐 Selected: <b>{_hour_label(hour)}</b>\n\n"
        "<b>Type the minute (0-59):</b>\n\n<i>Examples: 0, 7, 13, 42, 59</i>"
    )
    return text, keyboard([
        [("« Back to presets", "rm_picktime_back")],
        [("❌ Cancel", "main_menu")],
    ])


def date_picker(user_settings: UserSettings, month_offset: int = 0, now: int | None = None) -> Screen:
    """Month calendar in the user's timezone. Past days are inert."""
    today = to_local(now if now is not None else now_ms(), user_tz(user_settings.timezone)).date()
    month_index = today.year * 12 + today.month - 1 + month_offset
    year, month = divmod(month_index, 12)
    month += 1
    first = date(year, month, 1)

    text = _title("📅", "SELECT DATE") + f"\n<b>{first.strftime('%B %Y')}</b>"

    rows: ButtonRows = [[(d, "ignore") for d in ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")]]
    for week in calendar.Calendar(firstweekday=0).monthdatescalendar(year, month):
        row = []
        for day in week:
            if day.month != month:
                row.append((" ", "ignore"))
            elif day < today:
                row.append(("·", "ignore"))
            elif day == today:
                row.append((f"[{day.day}]", f"rm_date_{day.isoformat()}"))
            else:
                row.append((str(day.day), f"rm_date_{day.isoformat()}"))
        rows.append(row)

    tomorrow = date.fromordinal(today.toordinal() + 1)
    rows.append([("« Prev Month", f"rm_month_{month_offset - 1}"),
                 ("Next Month »", f"rm_month_{month_offset + 1}")])
    rows.append([("📅 Today", f"rm_date_{today.isoformat()}"),
                 ("📅 Tomorrow", f"rm_date_{tomorrow.isoformat()}")])
    rows.append([("« Back", "rm_start"), ("❌ Cancel", "main_menu")])
    return text, keyboard(rows)


def priority_picker(flow: ReminderFlow, user_settings: UserSettings, now: int | None = None) -> Screen:
    text = (
        _title("🎯", "SET PRIORITY")
        + f"\n⏰ Time: <b>{format_datetime(flow.time, user_settings, now)}</b>\n\n"
        "<b>Step 4/4:</b> Select priority level:"
    )
    rows = [
        [(f"{PRIORITY_EMOJI[p.value]} {_PRIORITY_LABEL[p.value]}", f"rm_priority_{p.value}")]
        for p in Priority
    ]
    default = user_settings.default_priority.value
    rows.append([(f"⏭️ Skip ({default})", f"rm_priority_{default}")])
    rows.append([("« Back", "rm_picktime")])
    return text, keyboard(rows)


def reminder_text_prompt(flow: ReminderFlow, user_settings: UserSettings, now: int | None = None) -> Screen:
    priority = flow.priority.value if flow.priority else user_settings.default_priority.value
    text = (
        _title("✏️", "ENTER REMINDER TEXT")
        + f"\n⏰ Time: <b>{format_datetime(flow.time, user_settings, now)}</b>\n"
        f"{PRIORITY_EMOJI[priority]} Priority: <b>{priority}</b>\n\n"
        "<b>Now type your reminder message:</b>\n\n"
        '<i>Example: "Call mom", "Meeting with John", "Take medicine"</i>'
    )
    return text, keyboard([[("❌ Cancel", "main_menu")]])


def reminder_set(reminder: Reminder, user_settings: UserSettings, now: int | None = None) -> Screen:
    priority = reminder.priority.value
    text = (
        _title("✅", "REMINDER SET")
        + f"\n📌 <b>{escape(reminder.text)}</b>\n"
        f"⏰ {format_datetime(reminder.time, user_settings, now)}\n"
        f"{PRIORITY_EMOJI[priority]} Priority: {priority}"
    )
    return text, keyboard([[("📜 View All", "rm_list")]])


def reminders_list(store: DataStore, chat_id: int, now: int | None = None) -> Screen:
    user_settings = store.user_settings(chat_id)
    active = store.reminders_for(chat_id, include_fired=False)
    one_time = [r for r in active if not r.recurring]
    recurring = [r for r in active if r.recurring]

    text = _title("📜", "MY REMINDERS")
    if not active:
        text += "\n<i>No active reminders.</i>\n"
    if one_time:
        text += f"\n⏰ <b>One-time</b> ({len(one_time)})\n"
        for r in one_time[:5]:
            snoozed = f" 😴x{r.snoozed}" if r.snoozed else ""
            text += f"{PRIORITY_EMOJI.get(r.priority.value, '🔔')} {escape(r.text)}{snoozed}\n"
            text += f"   └ {format_datetime(r.time, user_settings, now)}\n"
        if len(one_time) > 5:
            text += f"   <i>...+{len(one_time) - 5} more</i>\n"
    if recurring:
        text += f"\n🔄 <b>Recurring</b> ({len(recurring)})\n"
        for r in recurring[:5]:
            kind = r.recurring.value
            text += f"{RECURRING_EMOJI.get(kind, '🔄')} {escape(r.text)}\n"
            text += (
                f"   └ <i>{RECURRING_LABEL.get(kind, kind)}</i>"
                f" • Next: {format_datetime(r.time, user_settings, now)}\n"
            )
        if len(recurring) > 5:
            text += f"   <i>...+{len(recurring) - 5} more</i>\n"

    rows: ButtonRows = []
    if one_time:
        rows.append(_divider("━━━ ⏰ One-time ━━━"))
        rows += [[(f"🗑️ {r.text[:28]}", f"rm_del_{r.id}")] for r in one_time[:3]]
    if recurring:
        rows.append(_divider("━━━ 🔄 Recurring ━━━"))
        rows += [
            [(f"{RECURRING_EMOJI.get(r.recurring.value, '🔄')} 🗑️ {r.text[:25]}", f"rm_del_{r.id}")]
            for r in recurring[:3]
        ]
    rows.append(_divider())
    rows.append([("➕ One-time", "rm_start"), ("🔄 Recurring", "rec_menu")])
    rows.append([("« Main Menu", "main_menu")])
    return text, keyboard(rows)


# ---------------------------------------------------------------------------
# Recurring reminders
# ---------------------------------------------------------------------------


def recurring_menu() -> Screen:
    text = (
        _title("🔄", "RECURRING REMINDERS")
        + "\nReminders that repeat automatically!\n\n"
        "📅 <b>Daily</b> - Every single day\n"
        "💼 <b>Weekdays</b> - Mon to Fri only\n"
        "🎉 <b>Weekends</b> - Sat &amp; Sun only\n"
        "📆 <b>Weekly</b> - Same day each week"
    )
    return text, keyboard([
        _divider("━━━ 📅 DAILY ━━━"),
        [("🌅 Morning 8AM", "rec_daily_8"), ("🌙 Evening 8PM", "rec_daily_20")],
        [("🕐 Custom Time...", "rec_daily_custom")],
        _divider("━━━ 💼 WEEKDAYS (Mon-Fri) ━━━"),
        [("💼 Every Weekday", "rec_weekdays")],
        _divider("━━━ 🎉 WEEKENDS (Sat-Sun) ━━━"),
        [("🎉 Every Weekend", "rec_weekends")],
        _divider("━━━ 📆 WEEKLY ━━━"),
        [("Mon", "rec_weekly_1"), ("Tue", "rec_weekly_2"), ("Wed", "rec_weekly_3"), ("Thu", "rec_weekly_4")],
        [("Fri", "rec_weekly_5"), ("Sat", "rec_weekly_6"), ("Sun", "rec_weekly_0")],
        [("« Back", "rm_list")],
    ])


def _recurrence_label(kind: str, weekday: int | None) -> str:
    if kind == "weekly" and weekday is not None:
        return f"📆 Every {_WEEKDAY_NAMES[weekday]}"
    return {
        "daily": "📅 Every day",
        "weekdays": "💼 Every weekday (Mon-Fri)",
        "weekends": "🎉 Every weekend (Sat-Sun)",
    }.get(kind, "🔄 Recurring")


def recurring_text_prompt(flow: RecurringFlow, user_settings: UserSettings) -> Screen:
    clock = format_clock(
        flow.hour if flow.hour is not None else 9, flow.minute or 0, user_settings.time_format,
    )
    text = (
        _title("✏️", "ENTER REMINDER TEXT")
        + f"\n🔄 Type: <b>{_recurrence_label(flow.recurrence.value, flow.weekday)}</b>\n"
        f"⏰ Time: <b>{clock}</b>\n\n"
        "<b>Now type your reminder message:</b>\n\n"
        '<i>Example: "Morning standup", "Weekly review", "Take vitamins"</i>'
    )
    return text, keyboard([[("❌ Cancel", "rec_menu")]])


def recurring_set(reminder: Reminder, user_settings: UserSettings, now: int | None = None) -> Screen:
    clock = format_clock(
        reminder.recurring_hour or 0, reminder.recurring_minute or 0, user_settings.time_format,
    )
    text = (
        _title("✅", "RECURRING REMINDER SET!")
        + f"\n{RECURRING_EMOJI.get(reminder.recurring.value, '🔄')} <b>{escape(reminder.text)}</b>\n"
        f"⏰ {_recurrence_label(reminder.recurring.value, reminder.recurring_day)} at {clock}\n\n"
        f"<i>First reminder: {format_datetime(reminder.time, user_settings, now)}</i>"
    )
    return text, keyboard([
        [("📜 View Reminders", "rm_list")],
        [("« Main Menu", "main_menu")],
    ])


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def todo_menu(store: DataStore, chat_id: int) -> Screen:
    todos = store.todos_for(chat_id)
    pending = [t for t in todos if not t.done]
    completed = [t for t in todos if t.done]

    text = _title("📋", "MY TASKS") + "\n"
    if not todos:
        text += "<i>No tasks yet! Add your first task.</i>\n"
    if pending:
        text += f"<b>📌 Pending ({len(pending)})</b>\n"
        for i, t in enumerate(pending[:8], 1):
            text += (
                f"{PRIORITY_EMOJI.get(t.priority.value, '⬜')} {i}. {escape(t.text)} "
                f"{CATEGORY_EMOJI.get(t.category.value, '')}\n"
            )
        if len(pending) > 8:
            text += f"<i>   ...and {len(pending) - 8} more</i>\n"
        text += "\n"
    if completed:
        text += f"<b>✅ Completed ({len(completed)})</b>\n"
        for t in completed[:3]:
            text += f"<s>{escape(t.text)}</s>\n"
        if len(completed) > 3:
            text += f"<i>   ...and {len(completed) - 3} more</i>\n"

    rows: ButtonRows = [
        [("✅", f"todo_done_{t.id}"), (_clip(t.text, 25), f"todo_view_{t.id}"), ("🗑️", f"todo_del_{t.id}")]
        for t in pending[:5]
    ]
    rows.append(_divider())
    rows.append([("➕ Add Task", "todo_add"), ("📂 Categories", "todo_categories")])
    if completed:
        rows.append([("🗑️ Clear Completed", "todo_clear")])
    rows.append([("« Main Menu", "main_menu")])
    return text, keyboard(rows)


def todo_categories(store: DataStore, chat_id: int) -> Screen:
    pending = [t for t in store.todos_for(chat_id) if not t.done]
    text = _title("📂", "TASKS BY CATEGORY") + "\n"
    for category in Category:
        tasks = [t for t in pending if t.category == category]
        if not tasks:
            continue
        text += f"{CATEGORY_EMOJI[category.value]} <b>{category.value.capitalize()}</b> ({len(tasks)})\n"
        for t in tasks[:3]:
            text += f"   {PRIORITY_EMOJI[t.priority.value]} {escape(t.text)}\n"
        if len(tasks) > 3:
            text += f"   <i>...and {len(tasks) - 3} more</i>\n"
        text += "\n"
    if not pending:
        text += "<i>No tasks yet!</i>"
    return text, keyboard([
        [("➕ Add Task", "todo_add")],
        [("📋 List View", "todo_menu")],
        [("« Main Menu", "main_menu")],
    ])


def task_detail(task: Task, user_settings: UserSettings) -> Screen:
    created = to_local(task.created_at, user_tz(user_settings.timezone))
    created_str = (
        f"{created.strftime('%a, %b')} {created.day}, "
        f"{format_clock(created.hour, created.minute, user_settings.time_format)}"
    )
    text = (
        _title("📝", "TASK DETAILS")
        + f"\n{'✅' if task.done else '⬜'} <b>{escape(task.text)}</b>\n\n"
        f"{CATEGORY_EMOJI[task.category.value]} Category: <b>{task.category.value}</b>\n"
        f"{PRIORITY_EMOJI[task.priority.value]} Priority: <b>{task.priority.value}</b>\n"
        f"📅 Created: <b>{created_str}</b>\n"
        f"📊 Status: <b>{'Completed' if task.done else 'Pending'}</b>"
    )
    return text, keyboard([
        [("↩️ Mark Incomplete" if task.done else "✅ Mark Complete", f"todo_done_{task.id}")],
        [("🗑️ Delete", f"todo_del_{task.id}")],
        [("« Back to Tasks", "todo_menu")],
    ])


def todo_category_prompt() -> Screen:
    text = _title("➕", "ADD NEW TASK") + "\n<b>Step 1/3:</b> Select a category:"
    cats = [(f"{CATEGORY_EMOJI[c.value]} {c.value.capitalize()}", f"todo_cat_{c.value}") for c in Category]
    rows = [cats[i:i + 2] for i in range(0, len(cats), 2)]
    rows.append([("⏭️ Skip Category", "todo_cat_other")])
    rows.append([("« Back", "todo_menu")])
    return text, keyboard(rows)


def todo_priority_prompt(flow: TodoFlow) -> Screen:
    category = flow.category.value if flow.category else "other"
    text = (
        _title("➕", "ADD NEW TASK")
        + f"\n{CATEGORY_EMOJI[category]} Category: <b>{category}</b>\n\n"
        "<b>Step 2/3:</b> Select priority:"
    )
    return text, keyboard([
        [("🟢 Low", "todo_pri_low"), ("🟡 Medium", "todo_pri_medium")],
        [("🔴 High", "todo_pri_high"), ("🚨 Urgent", "todo_pri_urgent")],
        [("« Back", "todo_add")],
    ])


def todo_text_prompt(flow: TodoFlow) -> Screen:
    category = flow.category.value if flow.category else "other"
    priority = flow.priority.value if flow.priority else "medium"
    text = (
        _title("➕", "ADD NEW TASK")
        + f"\n{CATEGORY_EMOJI[category]} Category: <b>{category}</b>\n"
        f"{PRIORITY_EMOJI[priority]} Priority: <b>{priority}</b>\n\n"
        "<b>Step 3/3:</b> Type your task:\n\n"
        '<i>Example: "Buy groceries", "Finish report"</i>'
    )
    return text, keyboard([[("❌ Cancel", "todo_menu")]])


def task_added(task: Task) -> Screen:
    text = (
        _title("✅", "TASK ADDED!")
        + f"\n{CATEGORY_EMOJI[task.category.value]} {PRIORITY_EMOJI[task.priority.value]} "
        f"<b>{escape(task.text)}</b>"
    )
    return text, keyboard([
        [("📋 View Tasks", "todo_menu"), ("➕ Add More", "todo_add")],
        [("« Main Menu", "main_menu")],
    ])


# ---------------------------------------------------------------------------
# Stats & help
# ---------------------------------------------------------------------------


def stats_menu(store: DataStore, chat_id: int) -> Screen:
    stats = store.user_stats(chat_id)
    todos = store.todos_for(chat_id)
    completed = sum(1 for t in todos if t.done)
    pending = len(todos) - completed
    rate = round(completed / len(todos) * 100) if todos else 0
    filled = round(rate / 10)
    bar = "█" * filled + "░" * (10 - filled)

    def badge(earned: bool, emoji: str) -> str:
        return emoji if earned else "🔒"

    text = (
        _title("📊", "YOUR STATISTICS")
        + f"\n🔥 <b>Streak:</b> {stats.streak} days\n"
        f"✅ <b>Total Completed:</b> {stats.completed}\n"
        f"⏰ <b>Reminders Created:</b> {stats.total_reminders}\n\n"
        "<b>Current Progress</b>\n"
        f"[{bar}] {rate}%\n"
        f"├ ✅ Completed: {completed}\n"
        f"└ ⏳ Pending: {pending}\n\n"
        f"<b>Active Reminders:</b> {len(store.reminders_for(chat_id, include_fired=False))}\n\n"
        "<b>Achievements:</b>\n"
        f"{badge(stats.completed >= 10, '🏆')} Task Master (10 tasks)\n"
        f"{badge(stats.completed >= 50, '⭐')} Productivity Pro (50 tasks)\n"
        f"{badge(stats.streak >= 7, '🔥')} Week Warrior (7 day streak)\n"
        f"{badge(stats.completed >= 100, '👑')} Centurion (100 tasks)"
    )
    return text, keyboard([
        [("🔄 Refresh", "stats_menu")],
        [("« Main Menu", "main_menu")],
    ])


def help_menu() -> Screen:
    text = (
        _title("❓", "HELP &amp; TIPS")
        + "\n<b>⏰ Setting Reminders</b>\n"
        '1. Tap "Set Reminder"\n'
        "2. Choose when (quick or exact time)\n"
        "3. Set priority\n"
        "4. Type your message\n\n"
        "<b>📋 Managing Tasks</b>\n"
        "• Tap ✅ to complete\n"
        "• Tap 🗑️ to delete\n"
        "• Use categories to organize\n\n"
        "<b>🔄 Recurring Reminders</b>\n"
        "• Daily, weekday, weekend and weekly options\n"
        "• Perfect for routines\n\n"
        "<b>⌨️ Quick Commands</b>\n"
        "<code>/remind 10m Call mom</code>\n"
        "<code>/remind 1h30m Stretch</code>\n"
        "<code>/remind 09:00 Standup</code>\n"
        "<code>/add Buy groceries</code>\n"
        "<code>/list</code> · <code>/time</code>"
    )
    return text, keyboard([[("« Main Menu", "main_menu")]])


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _time_format_label(fmt: TimeFormat) -> str:
    return "12-hour (AM/PM)" if fmt == TimeFormat.H12 else "24-hour"


def settings_menu(user_settings: UserSettings) -> Screen:
    tz_name = timezone_name(user_settings.timezone)
    fmt = _time_format_label(user_settings.time_format)
    priority = user_settings.default_priority.value
    sound = "🔔 On" if user_settings.sound_enabled else "🔕 Off"

    text = (
        _title("⚙️", "SETTINGS")
        + f"\n🌍 <b>Timezone:</b> {tz_name}\n"
        f"🕐 <b>Time Format:</b> {fmt}\n"
        f"{PRIORITY_EMOJI[priority]} <b>Default Priority:</b> {priority}\n"
        f"{sound} <b>Sound:</b> {'Enabled' if user_settings.sound_enabled else 'Disabled'}\n"
        f"⚡ <b>Quick Remind:</b> {user_settings.quick_reminder_mins} min\n\n"
        "<i>Tap an option to change it:</i>"
    )
    return text, keyboard([
        [(f"🌍 Timezone: {format_offset(user_settings.timezone)}", "settings_timezone")],
        [(f"🕐 Time: {fmt}", "settings_timeformat")],
        [(f"{PRIORITY_EMOJI[priority]} Priority: {priority}", "settings_priority")],
        [(sound, "settings_sound_toggle")],
        [(f"⚡ Quick Remind: {user_settings.quick_reminder_mins}m", "settings_quickreminder")],
        _divider(),
        [("🗑️ Clear All My Data", "settings_cleardata")],
        [("« Main Menu", "main_menu")],
    ])


def timezone_menu(user_settings: UserSettings) -> Screen:
    text = (
        _title("🌍", "SELECT TIMEZONE")
        + f"\nCurrent: <b>{format_offset(user_settings.timezone)}</b>\n\n"
        "<i>Select your timezone:</i>"
    )
    buttons = [
        (f"{_mark(user_settings.timezone == off)}{name.split(' ')[0]} {format_offset(off)}", f"set_tz_{off}")
        for name, off in TIMEZONES
    ]
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append([("« Back to Settings", "settings_menu")])
    return text, keyboard(rows)


def time_format_menu(user_settings: UserSettings, now: int | None = None) -> Screen:
    local = to_local(now if now is not None else now_ms(), user_tz(user_settings.timezone))
    current = "12-hour" if user_settings.time_format == TimeFormat.H12 else "24-hour"
    text = (
        _title("🕐", "TIME FORMAT")
        + f"\nCurrent: <b>{current}</b>\n\n"
        f"<b>12-hour:</b> {format_clock(local.hour, local.minute, TimeFormat.H12)}\n"
        f"<b>24-hour:</b> {format_clock(local.hour, local.minute, TimeFormat.H24)}\n\n"
        "<i>Select your preferred format:</i>"
    )
    return text, keyboard([
        [(f"{_mark(user_settings.time_format == TimeFormat.H12)}🕐 12-hour (3:30 PM)", "set_tf_12h")],
        [(f"{_mark(user_settings.time_format == TimeFormat.H24)}🕑 24-hour (15:30)", "set_tf_24h")],
        [("« Back to Settings", "settings_menu")],
    ])


def default_priority_menu(user_settings: UserSettings) -> Screen:
    current = user_settings.default_priority
    text = (
        _title("🎯", "DEFAULT PRIORITY")
        + f"\nCurrent: <b>{PRIORITY_EMOJI[current.value]} {current.value}</b>\n\n"
        "<i>New reminders will use this priority by default:</i>"
    )
    rows = [
        [(f"{_mark(current == p)}{PRIORITY_EMOJI[p.value]} {p.value.capitalize()}", f"set_defpri_{p.value}")]
        for p in Priority
    ]
    rows.append([("« Back to Settings", "settings_menu")])
    return text, keyboard(rows)


def quick_reminder_menu(user_settings: UserSettings) -> Screen:
    current = user_settings.quick_reminder_mins
    text = (
        _title("⚡", "QUICK REMINDER DURATION")
        + f"\nCurrent: <b>{current} minutes</b>\n\n"
        "<i>Default time for quick reminders:</i>"
    )
    buttons = [
        (f"{_mark(current == m)}{'1h' if m == 60 else f'{m}m'}", f"set_qr_{m}")
        for m in QUICK_REMINDER_CHOICES
    ]
    return text, keyboard([
        buttons[:3],
        buttons[3:],
        [("« Back to Settings", "settings_menu")],
    ])


def clear_data_confirm(store: DataStore, chat_id: int) -> Screen:
    stats = store.user_stats(chat_id)
    text = (
        _title("⚠️", "CLEAR ALL DATA?")
        + "\n<b>This will permanently delete:</b>\n"
        f"• 📋 {len(store.todos_for(chat_id))} tasks\n"
        f"• 🔔 {len(store.reminders_for(chat_id))} reminders\n"
        f"• 📊 {stats.completed} completed stats\n"
        "• ⚙️ All your settings\n\n"
        "<b>This action cannot be undone!</b>"
    )
    return text, keyboard([
        [("🗑️ Yes, Delete Everything", "settings_cleardata_confirm")],
        [("« No, Go Back", "settings_menu")],
    ])


def data_cleared() -> Screen:
    text = _title("✅", "DATA CLEARED") + "\nAll your data has been deleted.\n\n<i>Start fresh with /start</i>"
    return text, keyboard([[("🏠 Main Menu", "main_menu")]])


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


def current_time(user_settings: UserSettings, now: int | None = None) -> Screen:
    local = to_local(now if now is not None else now_ms(), user_tz(user_settings.timezone))
    hello, emoji = greeting(local.hour)
    fmt = user_settings.time_format
    other = TimeFormat.H24 if fmt == TimeFormat.H12 else TimeFormat.H12
    text = (
        f"{emoji} <b>{hello}!</b>\n{RULE}\n\n"
        f"🕐 <b>{format_clock(local.hour, local.minute, fmt)}</b>\n"
        f"🕑 <code>{format_clock(local.hour, local.minute, other)}</code>\n\n"
        f"📅 {local.strftime('%A, %B')} {local.day}, {local.year}\n"
        f"🌍 {format_offset(user_settings.timezone)}"
    )
    return text, keyboard([
        [("⏰ Set Reminder", "rm_start")],
        [("⚙️ Change Timezone", "settings_timezone")],
    ])


def excuse_reply(excuse: str) -> Screen:
    text = (
        "🤷 <b>I don't understand that!</b>\n\n"
        f'<i>"{escape(excuse)}"</i>\n\n'
        "💡 Use /start to see what I can do!"
    )
    return text, keyboard([[("🏠 Open Menu", "main_menu")]])


def snoozed(reminder: Reminder, user_settings: UserSettings, now: int | None = None) -> Screen:
    text = (
        "😴 <b>Snoozed!</b>\n\n"
        f"📝 {escape(reminder.text)}\n"
        f"⏰ Next: {format_datetime(reminder.time, user_settings, now)}\n"
        f"🔕 Snoozed {reminder.snoozed}x"
    )
    return text, InlineKeyboardMarkup([])


def reminder_not_found() -> Screen:
    return "❌ Reminder not found", InlineKeyboardMarkup([])


def remind_usage() -> Screen:
    text = (
        "❌ <b>Invalid time format</b>\n\n"
        "Usage:\n"
        "<code>/remind 10m Call mom</code>\n"
        "<code>/remind 2h30m Stretch</code>\n"
        "<code>/remind 1d Pay rent</code>\n"
        "<code>/remind 14:30 Standup</code>"
    )
    return text, keyboard([[("⏰ Use the menu instead", "rm_start")]])


def add_usage() -> Screen:
    text = "❌ <b>Nothing to add</b>\n\nUsage: <code>/add Buy groceries</code>"
    return text, keyboard([[("➕ Add Task", "todo_add")]])


def invalid_minute() -> str:
    return "❌ Please enter a valid minute (0-59)"


# ---------------------------------------------------------------------------
# Wizard steps
# ---------------------------------------------------------------------------


def flow_screen(flow: FlowState, user_settings: UserSettings, now: int | None = None) -> Screen:
    """The screen that asks for whatever *flow*'s current step needs."""
    if isinstance(flow, TodoFlow):
        if flow.step == TodoStep.CATEGORY:
            return todo_category_prompt()
        if flow.step == TodoStep.PRIORITY:
            return todo_priority_prompt(flow)
        return todo_text_prompt(flow)

    hour = flow.hour if flow.hour is not None else 9
    if isinstance(flow, RecurringFlow):
        if flow.step == RecurringStep.PICK_HOUR:
            return hour_picker(back="rec_menu")
        if flow.step == RecurringStep.PICK_MINUTE:
            return minute_picker(hour)
        if flow.step == RecurringStep.INPUT_MINUTE:
            return custom_minute_prompt(hour)
        return recurring_text_prompt(flow, user_settings)

    step = flow.step
    if step == ReminderStep.WHEN:
        return when_menu(user_settings)
    if step == ReminderStep.PICK_DATE:
        return date_picker(user_settings, flow.month_offset, now)
    if step == ReminderStep.PICK_HOUR:
        return hour_picker(flow.selected_date)
    if step == ReminderStep.PICK_MINUTE:
        return minute_picker(hour)
    if step == ReminderStep.INPUT_MINUTE:
        return custom_minute_prompt(hour)
    if step == ReminderStep.PICK_PRIORITY:
        return priority_picker(flow, user_settings, now)
    return reminder_text_prompt(flow, user_settings, now)
