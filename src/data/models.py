"""
Reminder Bot — Data Models.

Everything the bot remembers lives in one aggregate that is serialized as a
single JSON blob. Field names on the wire are camelCase so existing blobs
keep loading; Python code uses snake_case.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Recurrence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"


class Category(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    HEALTH = "health"
    SHOPPING = "shopping"
    FINANCE = "finance"
    LEARNING = "learning"
    SOCIAL = "social"
    OTHER = "other"


class TimeFormat(str, Enum):
    H12 = "12h"
    H24 = "24h"


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class Reminder(_Record):
    """A one-time or recurring reminder owned by a chat.

    ``time`` and ``created_at`` are epoch milliseconds. One-time reminders
    stay in the list with ``fired=True`` after delivery until the user
    snoozes or dismisses them; recurring ones never fire-and-park, their
    ``time`` just moves to the next occurrence.
    """

    id: int
    chat_id: int
    text: str
    time: int
    priority: Priority = Priority.MEDIUM
    recurring: Recurrence | None = None
    recurring_day: int | None = None        # 0=Sun..6=Sat, weekly only
    recurring_hour: int | None = None
    recurring_minute: int | None = None
    fired: bool = False
    snoozed: int = 0
    created_at: int


class Task(_Record):
    """A to-do list entry."""

    id: int
    text: str
    done: bool = False
    category: Category = Category.OTHER
    priority: Priority = Priority.MEDIUM
    created_at: int


class UserStats(_Record):
    completed: int = 0
    streak: int = 0
    last_active: int | None = None
    total_reminders: int = 0


class UserSettings(_Record):
    timezone: float = 0            # UTC offset in hours, fractional allowed
    time_format: TimeFormat = TimeFormat.H12
    default_priority: Priority = Priority.MEDIUM
    sound_enabled: bool = True
    quick_reminder_mins: int = 15


class Aggregate(_Record):
    """The whole persisted state: one blob in, one blob out."""

    reminders: list[Reminder] = Field(default_factory=list)
    todos: dict[int, list[Task]] = Field(default_factory=dict)
    stats: dict[int, UserStats] = Field(default_factory=dict)
    settings: dict[int, UserSettings] = Field(default_factory=dict)

    def to_json(self) -> dict:
        """Serialize for the key-value store (camelCase, string map keys)."""
        return self.model_dump(mode="json", by_alias=True)
