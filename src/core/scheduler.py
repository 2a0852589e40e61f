"""
Reminder Bot — Background Jobs.

Reminder check: every minute, scan all reminders, fire the due ones and move
recurring ones to their next occurrence. One-time reminders are parked with
``fired=True`` until the user snoozes or dismisses them, so a parked
reminder is never delivered twice.

Stale-state reaper: every 30 minutes, drop wizard flows the user abandoned.

This module is provider-agnostic: it depends on the NotificationPort
protocol, not on Telegram.
"""

from __future__ import annotations

import logging
from html import escape
from typing import TYPE_CHECKING, Callable

from src.core.recurrence import next_occurrence
from src.core.timefmt import format_time_ago, now_ms, user_tz

if TYPE_CHECKING:
    from datetime import tzinfo

    from src.core.wizard import FlowRegistry
    from src.data.db import DataStore
    from src.data.models import Reminder
    from src.ports.notification_port import ButtonRows, NotificationPort

logger = logging.getLogger(__name__)

PRIORITY_EMOJI = {"low": "🟢", "medium": "🟡", "high": "🔴", "urgent": "🚨"}
RECURRING_EMOJI = {"daily": "📅", "weekly": "📆", "weekdays": "💼", "weekends": "🎉"}
RECURRING_LABEL = {
    "daily": "Every day",
    "weekly": "Every week",
    "weekdays": "Mon-Fri",
    "weekends": "Sat-Sun",
}
SNOOZE_MINUTES = (5, 15, 30, 60)


# ---------------------------------------------------------------------------
# Reminder check
# ---------------------------------------------------------------------------


def collect_due_reminders(
    reminders: list[Reminder],
    now: int,
    tz_for: Callable[[int], tzinfo],
) -> list[Reminder]:
    """Advance every due reminder in place and return snapshots to deliver.

    Snapshots are taken before the state changes, so a recurring
    notification still shows the occurrence that just came due.
    """
    due: list[Reminder] = []
    for reminder in reminders:
        if reminder.fired or reminder.time > now:
            continue
        due.append(reminder.model_copy())
        if reminder.recurring:
            reminder.time = next_occurrence(
                reminder.time, reminder.recurring, tz_for(reminder.chat_id),
            )
        else:
            reminder.fired = True
    return due


async def run_reminder_check(
    store: DataStore,
    notifier: NotificationPort,
    now: int | None = None,
) -> int:
    """One scheduler tick. Returns how many reminders fired.

    State is advanced and flushed (once) before delivery; a failed send is
    logged and does not undo the state change.
    """
    now = now if now is not None else now_ms()

    def tz_for(chat_id: int) -> tzinfo:
        return user_tz(store.user_settings(chat_id).timezone)

    due = await store.advance_reminders(
        lambda reminders: collect_due_reminders(reminders, now, tz_for)
    )

    for reminder in due:
        silent = not store.user_settings(reminder.chat_id).sound_enabled
        try:
            await notifier.send_message(
                reminder.chat_id,
                format_due_message(reminder, now),
                buttons=due_buttons(reminder.id),
                silent=silent,
            )
            logger.info("Reminder #%d fired for chat %d", reminder.id, reminder.chat_id)
        except Exception as exc:
            logger.error(
                "Failed to deliver reminder #%d to %d: %s",
                reminder.id, reminder.chat_id, exc,
            )
    return len(due)


def format_due_message(reminder: Reminder, now: int | None = None) -> str:
    """HTML body of a due-reminder notification."""
    priority = PRIORITY_EMOJI.get(reminder.priority.value, "🔔")
    if reminder.recurring:
        kind = reminder.recurring.value
        header = "🔄 RECURRING REMINDER!"
        extra = f"\n{RECURRING_EMOJI.get(kind, '🔄')} <i>{RECURRING_LABEL.get(kind, 'Recurring')}</i>"
    else:
        header = "⏰ REMINDER!"
        extra = ""
    if reminder.snoozed:
        extra += f"\n😴 <i>Snoozed {reminder.snoozed} time(s)</i>"

    return (
        f"{priority} <b>{header}</b>\n━━━━━━━━━━━━━━━━━\n\n"
        f"📝 <b>{escape(reminder.text)}</b>{extra}\n\n"
        f"<i>Set {format_time_ago(reminder.created_at, now)}</i>"
    )


def due_buttons(reminder_id: int) -> ButtonRows:
    snooze_row = [
        (f"😴 {m}m" if m < 60 else "😴 1h", f"snooze_{reminder_id}_{m}")
        for m in SNOOZE_MINUTES
    ]
    return [snooze_row, [("✅ Done!", f"dismiss_{reminder_id}")]]


# ---------------------------------------------------------------------------
# Stale-state reaper
# ---------------------------------------------------------------------------


def reap_stale_flows(flows: FlowRegistry, max_age_ms: int, now: int | None = None) -> int:
    """Drop abandoned wizard flows. Committed data is never touched."""
    removed = flows.reap(now if now is not None else now_ms(), max_age_ms)
    if removed:
        logger.info("Reaped %d stale interaction state(s)", removed)
    return removed
