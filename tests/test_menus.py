"""Tests for src.bot.menus — screen rendering."""

import pytest

from conftest import ms
from src.bot import menus
from src.core.wizard import RecurringFlow, RecurringStep, ReminderFlow, ReminderStep
from src.data.models import Priority, Recurrence, Reminder, Task, UserSettings

CHAT = 42


def _payloads(markup):
    return [button.callback_data for row in markup.inline_keyboard for button in row]


@pytest.mark.asyncio
async def test_main_menu_dashboard(data_store):
    await data_store.add_task(CHAT, Task(id=1, text="a", created_at=0))
    await data_store.add_task(CHAT, Task(id=2, text="b", done=True, created_at=0))
    text, markup = menus.main_menu(data_store, CHAT, "<Amit>")
    assert "&lt;Amit&gt;" in text
    assert "Pending Tasks: <b>1</b>" in text
    assert "Completed: <b>1</b>" in text
    assert "rm_start" in _payloads(markup)


def test_date_picker_past_days_are_inert():
    now = ms(2025, 1, 15, 12, 0)
    _, markup = menus.date_picker(UserSettings(), 0, now)
    payloads = _payloads(markup)
    assert "rm_date_2025-01-14" not in payloads
    assert "rm_date_2025-01-15" in payloads
    assert "rm_date_2025-01-31" in payloads
    assert "rm_date_2025-01-16" in payloads
    assert "rm_month_1" in payloads


def test_date_picker_next_month_crosses_year():
    now = ms(2025, 12, 20, 12, 0)
    text, markup = menus.date_picker(UserSettings(), 1, now)
    assert "January 2026" in text
    assert "rm_date_2026-01-01" in _payloads(markup)


def test_priority_skip_uses_default():
    flow = ReminderFlow(step=ReminderStep.PICK_PRIORITY, created_at=0, time=ms(2025, 1, 15, 13, 0))
    _, markup = menus.priority_picker(flow, UserSettings(default_priority=Priority.HIGH), 0)
    assert _payloads(markup)[-2] == "rm_priority_high"


def test_recurring_hour_picker_goes_back_to_recurring_menu():
    flow = RecurringFlow(step=RecurringStep.PICK_HOUR, created_at=0, recurrence=Recurrence.DAILY)
    _, markup = menus.flow_screen(flow, UserSettings())
    assert "rec_menu" in _payloads(markup)


def test_reminder_list_hides_fired(data_store):
    data_store.data.reminders.extend([
        Reminder(id=1, chat_id=CHAT, text="pending", time=ms(2025, 1, 16, 9, 0), created_at=0),
        Reminder(id=2, chat_id=CHAT, text="parked", time=0, fired=True, created_at=0),
    ])
    text, markup = menus.reminders_list(data_store, CHAT, ms(2025, 1, 15, 9, 0))
    assert "pending" in text
    assert "parked" not in text
    assert "rm_del_1" in _payloads(markup)


def test_reminder_text_is_escaped():
    reminder = Reminder(id=1, chat_id=CHAT, text="<script>", time=0, created_at=0)
    text, _ = menus.reminder_set(reminder, UserSettings(), 0)
    assert "&lt;script&gt;" in text
    assert "<script>" not in text


def test_timezone_name():
    assert menus.timezone_name(5.5) == "🇮🇳 India (IST)"
    assert menus.timezone_name(3) == "UTC+3"
