"""Tests for src.core.wizard — per-user flow transitions."""

from datetime import timezone

import pytest

from conftest import ms
from src.core.timefmt import MINUTE_MS, user_tz
from src.core.wizard import (
    STALE_AFTER_MS,
    FlowRegistry,
    RecurringFlow,
    RecurringStep,
    ReminderFlow,
    ReminderStep,
    TextOutcome,
    TodoFlow,
    TodoStep,
    Wizard,
)
from src.data.models import Category, Priority, Recurrence, Reminder, Task, UserSettings

CHAT = 42
UTC = timezone.utc
NOW = ms(2025, 1, 15, 12, 0)   # Wednesday


@pytest.fixture
def wizard():
    return Wizard(FlowRegistry(), clock=lambda: NOW)


@pytest.fixture
def user_settings():
    return UserSettings()


# ---------------------------------------------------------------------------
# One-time reminder
# ---------------------------------------------------------------------------


class TestReminderFlow:
    def test_full_flow_commits_reminder(self, wizard, user_settings):
        wizard.start_reminder(CHAT, message_id=100)
        wizard.open_time_picker(CHAT)
        wizard.pick_hour(CHAT, 15)
        flow = wizard.pick_minute(CHAT, 30, UTC)
        assert flow.step == ReminderStep.PICK_PRIORITY
        assert flow.time == ms(2025, 1, 15, 15, 30)

        flow = wizard.pick_priority(CHAT, Priority.HIGH)
        assert flow.step == ReminderStep.INPUT_TEXT
        assert flow.message_id == 100

        result = wizard.submit_text(CHAT, "  Call mom  ", user_settings)
        assert result.outcome == TextOutcome.COMMITTED
        reminder = result.entity
        assert isinstance(reminder, Reminder)
        assert reminder.text == "Call mom"
        assert reminder.time == ms(2025, 1, 15, 15, 30)
        assert reminder.priority == Priority.HIGH
        assert reminder.recurring is None
        assert reminder.id == NOW
        assert CHAT not in wizard.flows

    def test_passed_hour_rolls_to_tomorrow(self, wizard):
        wizard.open_time_picker(CHAT)
        wizard.pick_hour(CHAT, 9)
        flow = wizard.pick_minute(CHAT, 0, UTC)
        assert flow.time == ms(2025, 1, 16, 9, 0)

    def test_quick_reminder_skips_to_priority(self, wizard):
        flow = wizard.quick_reminder(CHAT, 15 * MINUTE_MS)
        assert flow.step == ReminderStep.PICK_PRIORITY
        assert flow.time == NOW + 15 * MINUTE_MS

    def test_period_reminder_uses_next_wall_clock(self, wizard):
        flow = wizard.period_reminder(CHAT, 19, UTC)
        assert flow.time == ms(2025, 1, 15, 19, 0)
        flow = wizard.period_reminder(CHAT, 9, UTC)
        assert flow.time == ms(2025, 1, 16, 9, 0)

    def test_date_picker_path(self, wizard):
        wizard.start_reminder(CHAT)
        wizard.open_date_picker(CHAT, month_offset=1)
        assert wizard.flows.get(CHAT).month_offset == 1
        flow = wizard.pick_date(CHAT, "2025-02-03")
        assert flow.step == ReminderStep.PICK_HOUR
        wizard.pick_hour(CHAT, 8)
        flow = wizard.pick_minute(CHAT, 15, UTC)
        assert flow.time == ms(2025, 2, 3, 8, 15)

    def test_selected_date_uses_user_timezone(self, wizard):
        wizard.open_date_picker(CHAT)
        wizard.pick_date(CHAT, "2025-01-20")
        wizard.pick_hour(CHAT, 9)
        flow = wizard.pick_minute(CHAT, 0, user_tz(-5))
        assert flow.time == ms(2025, 1, 20, 14, 0)

    def test_custom_minute_text(self, wizard, user_settings):
        wizard.open_time_picker(CHAT)
        wizard.pick_hour(CHAT, 15)
        flow = wizard.open_custom_minute(CHAT, message_id=7)
        assert flow.step == ReminderStep.INPUT_MINUTE

        result = wizard.submit_text(CHAT, "07", user_settings)
        assert result.outcome == TextOutcome.ADVANCED
        assert result.flow.step == ReminderStep.PICK_PRIORITY
        assert result.flow.time == ms(2025, 1, 15, 15, 7)

    @pytest.mark.parametrize("text", ["60", "-1", "abc", "", "5.5"])
    def test_invalid_custom_minute_keeps_state(self, wizard, user_settings, text):
        wizard.open_time_picker(CHAT)
        wizard.pick_hour(CHAT, 15)
        wizard.open_custom_minute(CHAT)
        result = wizard.submit_text(CHAT, text, user_settings)
        assert result.outcome == TextOutcome.INVALID_MINUTE
        assert wizard.flows.get(CHAT).step == ReminderStep.INPUT_MINUTE

    def test_back_to_minutes(self, wizard):
        wizard.open_time_picker(CHAT)
        wizard.pick_hour(CHAT, 15)
        wizard.open_custom_minute(CHAT)
        flow = wizard.back_to_minutes(CHAT)
        assert flow.step == ReminderStep.PICK_MINUTE
        assert flow.hour == 15

    def test_chosen_priority_wins_over_default(self, wizard):
        wizard.quick_reminder(CHAT, 5 * MINUTE_MS)
        wizard.pick_priority(CHAT, Priority.LOW)
        result = wizard.submit_text(CHAT, "Stretch", UserSettings(default_priority=Priority.URGENT))
        assert result.entity.priority == Priority.LOW


# ---------------------------------------------------------------------------
# Out-of-step events
# ---------------------------------------------------------------------------


class TestOutOfStep:
    def test_text_without_flow(self, wizard, user_settings):
        result = wizard.submit_text(CHAT, "hello", user_settings)
        assert result.outcome == TextOutcome.NO_FLOW
        assert result.entity is None

    def test_text_while_waiting_for_button_is_ignored(self, wizard, user_settings):
        wizard.start_reminder(CHAT)
        result = wizard.submit_text(CHAT, "Call mom", user_settings)
        assert result.outcome == TextOutcome.IGNORED
        assert wizard.flows.get(CHAT).step == ReminderStep.WHEN

    def test_blank_text_does_not_commit(self, wizard, user_settings):
        wizard.quick_reminder(CHAT, MINUTE_MS)
        wizard.pick_priority(CHAT, Priority.LOW)
        result = wizard.submit_text(CHAT, "   ", user_settings)
        assert result.outcome == TextOutcome.IGNORED
        assert CHAT in wizard.flows

    def test_mismatched_transitions_return_none(self, wizard):
        assert wizard.pick_hour(CHAT, 9) is None
        assert wizard.pick_priority(CHAT, Priority.LOW) is None
        wizard.start_todo(CHAT)
        assert wizard.pick_minute(CHAT, 0, UTC) is None
        assert wizard.pick_date(CHAT, "2025-01-20") is None
        assert wizard.back_to_minutes(CHAT) is None
        assert wizard.flows.get(CHAT).step == TodoStep.CATEGORY

    def test_cancel_clears(self, wizard):
        wizard.start_reminder(CHAT)
        wizard.cancel(CHAT)
        assert wizard.flows.get(CHAT) is None

    def test_new_flow_replaces_old_one(self, wizard):
        wizard.start_todo(CHAT)
        wizard.start_reminder(CHAT)
        assert isinstance(wizard.flows.get(CHAT), ReminderFlow)
        assert len(wizard.flows) == 1

    def test_flows_are_per_user(self, wizard, user_settings):
        wizard.start_todo(CHAT)
        wizard.pick_category(CHAT, Category.WORK)
        wizard.pick_task_priority(CHAT, Priority.HIGH)
        assert wizard.submit_text(7, "not mine", user_settings).outcome == TextOutcome.NO_FLOW
        assert wizard.flows.get(CHAT).step == TodoStep.INPUT_TEXT


# ---------------------------------------------------------------------------
# Recurring reminder
# ---------------------------------------------------------------------------


class TestRecurringFlow:
    def test_daily_with_picked_time(self, wizard, user_settings):
        wizard.start_recurring(CHAT, Recurrence.DAILY)
        wizard.pick_hour(CHAT, 9)
        flow = wizard.pick_minute(CHAT, 30, UTC)
        assert isinstance(flow, RecurringFlow)
        assert flow.step == RecurringStep.INPUT_TEXT

        result = wizard.submit_text(CHAT, "Standup", user_settings)
        reminder = result.entity
        assert reminder.recurring == Recurrence.DAILY
        assert reminder.recurring_hour == 9
        assert reminder.recurring_minute == 30
        assert reminder.recurring_day is None
        assert reminder.time == ms(2025, 1, 16, 9, 30)
        assert reminder.priority == user_settings.default_priority

    def test_preset_hour_skips_to_text(self, wizard, user_settings):
        flow = wizard.start_recurring(CHAT, Recurrence.WEEKLY, weekday=1, hour=9)
        assert flow.step == RecurringStep.INPUT_TEXT
        reminder = wizard.submit_text(CHAT, "Team sync", user_settings).entity
        assert reminder.recurring_day == 1
        assert reminder.time == ms(2025, 1, 20, 9, 0)

    def test_weekdays_and_weekends(self, wizard, user_settings):
        wizard.start_recurring(CHAT, Recurrence.WEEKENDS, hour=10)
        reminder = wizard.submit_text(CHAT, "Long run", user_settings).entity
        assert reminder.time == ms(2025, 1, 18, 10, 0)
        assert reminder.recurring_day is None

    def test_custom_minute_in_recurring(self, wizard, user_settings):
        wizard.start_recurring(CHAT, Recurrence.DAILY)
        wizard.pick_hour(CHAT, 18)
        wizard.open_custom_minute(CHAT)
        result = wizard.submit_text(CHAT, "45", user_settings)
        assert result.outcome == TextOutcome.ADVANCED
        assert result.flow.minute == 45
        reminder = wizard.submit_text(CHAT, "Walk", user_settings).entity
        assert reminder.time == ms(2025, 1, 15, 18, 45)

    def test_time_picker_back_keeps_recurring_flow(self, wizard):
        wizard.start_recurring(CHAT, Recurrence.WEEKDAYS)
        wizard.pick_hour(CHAT, 7)
        flow = wizard.open_time_picker(CHAT)
        assert isinstance(flow, RecurringFlow)
        assert flow.step == RecurringStep.PICK_HOUR


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def test_todo_flow(wizard, user_settings):
    wizard.start_todo(CHAT)
    flow = wizard.pick_category(CHAT, Category.SHOPPING)
    assert isinstance(flow, TodoFlow)
    assert flow.step == TodoStep.PRIORITY
    wizard.pick_task_priority(CHAT, Priority.LOW)

    result = wizard.submit_text(CHAT, "Milk", user_settings)
    task = result.entity
    assert isinstance(task, Task)
    assert task.text == "Milk"
    assert task.category == Category.SHOPPING
    assert task.priority == Priority.LOW
    assert task.done is False
    assert CHAT not in wizard.flows


def test_id_factory_is_used():
    ids = iter([111, 222])
    wizard = Wizard(FlowRegistry(), clock=lambda: NOW, id_factory=lambda now: next(ids))
    wizard.start_recurring(CHAT, Recurrence.DAILY, hour=9)
    assert wizard.submit_text(CHAT, "A", UserSettings()).entity.id == 111


# ---------------------------------------------------------------------------
# Reaper
# ---------------------------------------------------------------------------


class TestReap:
    def test_drops_only_stale_flows(self):
        flows = FlowRegistry()
        flows.put(1, TodoFlow(step=TodoStep.CATEGORY, created_at=NOW - STALE_AFTER_MS - 1))
        flows.put(2, TodoFlow(step=TodoStep.CATEGORY, created_at=NOW - STALE_AFTER_MS))
        flows.put(3, TodoFlow(step=TodoStep.CATEGORY, created_at=NOW))

        assert flows.reap(NOW) == 1
        assert 1 not in flows
        assert 2 in flows
        assert 3 in flows

    def test_thirty_one_minutes_old_is_gone(self):
        flows = FlowRegistry()
        flows.put(CHAT, ReminderFlow(step=ReminderStep.WHEN, created_at=NOW - 31 * MINUTE_MS))
        flows.reap(NOW)
        assert flows.get(CHAT) is None

    def test_transitions_keep_creation_time(self):
        clock = iter([NOW, NOW + 10 * MINUTE_MS])
        wizard = Wizard(FlowRegistry(), clock=lambda: next(clock))
        wizard.start_todo(CHAT)
        flow = wizard.pick_category(CHAT, Category.WORK)
        assert flow.created_at == NOW
