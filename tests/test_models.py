"""Tests for src.data.models — aggregate (de)serialization."""

from src.data.models import (
    Aggregate,
    Category,
    Priority,
    Recurrence,
    Reminder,
    Task,
    TimeFormat,
    UserSettings,
    UserStats,
)


def test_reminder_defaults():
    r = Reminder(id=1, chat_id=42, text="Call mom", time=1000, created_at=500)
    assert r.priority == Priority.MEDIUM
    assert r.recurring is None
    assert r.fired is False
    assert r.snoozed == 0


def test_settings_defaults():
    s = UserSettings()
    assert s.timezone == 0
    assert s.time_format == TimeFormat.H12
    assert s.default_priority == Priority.MEDIUM
    assert s.sound_enabled is True
    assert s.quick_reminder_mins == 15


def test_stats_defaults():
    s = UserStats()
    assert s.completed == 0
    assert s.streak == 0
    assert s.last_active is None
    assert s.total_reminders == 0


def test_empty_aggregate_has_all_submaps():
    dumped = Aggregate().to_json()
    assert dumped == {"reminders": [], "todos": {}, "stats": {}, "settings": {}}


def test_dump_uses_camel_case_and_string_keys():
    agg = Aggregate(
        reminders=[Reminder(
            id=1, chat_id=42, text="Standup", time=1000, created_at=500,
            recurring=Recurrence.WEEKLY, recurring_day=1, recurring_hour=9, recurring_minute=0,
        )],
        todos={42: [Task(id=2, text="Milk", category=Category.SHOPPING, created_at=600)]},
        settings={42: UserSettings(timezone=5.5, quick_reminder_mins=30)},
    )
    dumped = agg.to_json()

    reminder = dumped["reminders"][0]
    assert reminder["chatId"] == 42
    assert reminder["recurringDay"] == 1
    assert reminder["createdAt"] == 500
    assert reminder["recurring"] == "weekly"

    assert list(dumped["todos"].keys()) == ["42"]
    assert dumped["todos"]["42"][0]["category"] == "shopping"
    assert dumped["settings"]["42"]["quickReminderMins"] == 30
    assert dumped["settings"]["42"]["timeFormat"] == "12h"


def test_loads_blob_written_by_the_js_bot():
    blob = {
        "reminders": [{
            "id": 1700000000000, "chatId": 42, "text": "Call mom",
            "time": 1700000600000, "priority": "high", "recurring": None,
            "createdAt": 1700000000000,
        }],
        "todos": {"42": [{
            "id": 1700000000001, "text": "Milk", "done": False,
            "category": "shopping", "priority": "medium", "createdAt": 1700000000001,
        }]},
        "stats": {"42": {"completed": 3, "streak": 2, "lastActive": 1700000000000, "totalReminders": 5}},
        "settings": {"42": {
            "timezone": 5.5, "timeFormat": "24h", "defaultPriority": "low",
            "soundEnabled": False, "quickReminderMins": 10,
        }},
    }
    agg = Aggregate.model_validate(blob)

    assert agg.reminders[0].chat_id == 42
    assert agg.reminders[0].priority == Priority.HIGH
    assert agg.reminders[0].fired is False
    assert agg.todos[42][0].category == Category.SHOPPING
    assert agg.stats[42].total_reminders == 5
    assert agg.settings[42].time_format == TimeFormat.H24
    assert agg.settings[42].sound_enabled is False


def test_round_trip_preserves_state():
    agg = Aggregate(
        todos={7: [Task(id=1, text="A", done=True, created_at=1)]},
        stats={7: UserStats(completed=1, streak=1, last_active=1)},
    )
    again = Aggregate.model_validate(agg.to_json())
    assert again == agg
