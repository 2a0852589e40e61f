"""
Reminder Bot — Interaction State Machine.

Walks a user through the multi-step menus that collect what is needed to
build a reminder, a recurring reminder or a task. Each user has at most one
flow in progress. Flow records are immutable: every transition stores a new
record, carrying forward the scratch fields of earlier steps explicitly.

A transition fed an action that does not fit the current step returns None
and leaves the state untouched; the caller simply ignores the event. The
only free-text steps are ``input_minute`` and ``input_text``.

This module never talks to Telegram or the store: committing a flow returns
the built entity and the caller persists it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import tzinfo
from enum import Enum
from typing import Callable, Union

from src.core.recurrence import first_occurrence
from src.core.timefmt import MINUTE_MS, at_local_date, next_wall_clock, now_ms, user_tz
from src.data.models import Category, Priority, Recurrence, Reminder, Task, UserSettings

logger = logging.getLogger(__name__)

STALE_AFTER_MS = 30 * MINUTE_MS


# ---------------------------------------------------------------------------
# Flow states (tagged union)
# ---------------------------------------------------------------------------


class ReminderStep(str, Enum):
    WHEN = "when"
    PICK_DATE = "pick_date"
    PICK_HOUR = "pick_hour"
    PICK_MINUTE = "pick_minute"
    INPUT_MINUTE = "input_minute"
    PICK_PRIORITY = "pick_priority"
    INPUT_TEXT = "input_text"


class RecurringStep(str, Enum):
    PICK_HOUR = "pick_hour"
    PICK_MINUTE = "pick_minute"
    INPUT_MINUTE = "input_minute"
    INPUT_TEXT = "input_text"


class TodoStep(str, Enum):
    CATEGORY = "category"
    PRIORITY = "priority"
    INPUT_TEXT = "input_text"


@dataclass(frozen=True)
class ReminderFlow:
    """One-time reminder: when -> hour -> minute -> priority -> text."""

    step: ReminderStep
    created_at: int
    selected_date: str | None = None   # YYYY-MM-DD, user's local calendar
    month_offset: int = 0
    hour: int | None = None            # 0-23
    time: int | None = None            # due time, epoch ms
    priority: Priority | None = None
    message_id: int | None = None


@dataclass(frozen=True)
class RecurringFlow:
    """Recurring reminder: rule chosen up front -> hour -> minute -> text."""

    step: RecurringStep
    created_at: int
    recurrence: Recurrence
    weekday: int | None = None         # 0=Sun..6=Sat, weekly only
    hour: int | None = None
    minute: int | None = None
    message_id: int | None = None


@dataclass(frozen=True)
class TodoFlow:
    """Task: category -> priority -> text."""

    step: TodoStep
    created_at: int
    category: Category | None = None
    priority: Priority | None = None
    message_id: int | None = None


FlowState = Union[ReminderFlow, RecurringFlow, TodoFlow]

_TEXT_STEPS = {"input_text", "input_minute"}


def accepts_text(flow: FlowState) -> bool:
    return flow.step.value in _TEXT_STEPS


class FlowRegistry:
    """Per-user flow records, kept in memory only."""

    def __init__(self) -> None:
        self._flows: dict[int, FlowState] = {}

    def get(self, chat_id: int) -> FlowState | None:
        return self._flows.get(chat_id)

    def put(self, chat_id: int, flow: FlowState) -> FlowState:
        self._flows[chat_id] = flow
        return flow

    def clear(self, chat_id: int) -> None:
        self._flows.pop(chat_id, None)

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._flows

    def __len__(self) -> int:
        return len(self._flows)

    def reap(self, now: int, max_age_ms: int = STALE_AFTER_MS) -> int:
        """Drop flows started more than *max_age_ms* ago; returns the count."""
        stale = [cid for cid, f in self._flows.items() if now - f.created_at > max_age_ms]
        for cid in stale:
            del self._flows[cid]
        return len(stale)


# ---------------------------------------------------------------------------
# Free-text results
# ---------------------------------------------------------------------------


class TextOutcome(Enum):
    NO_FLOW = "no_flow"                # chit-chat, nothing in progress
    IGNORED = "ignored"                # flow waits for a button, not text
    INVALID_MINUTE = "invalid_minute"
    ADVANCED = "advanced"              # custom minute accepted
    COMMITTED = "committed"


@dataclass
class TextResult:
    outcome: TextOutcome
    flow: FlowState | None = None
    entity: Reminder | Task | None = None


# ---------------------------------------------------------------------------
# Wizard
# ---------------------------------------------------------------------------


class Wizard:
    """Transitions for all three flows."""

    def __init__(
        self,
        flows: FlowRegistry,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[int], int] | None = None,
    ) -> None:
        self.flows = flows
        self._clock = clock
        self._new_id = id_factory or (lambda now: now)

    # -- helpers ------------------------------------------------------------

    def _current(self, chat_id: int, kinds: tuple[type, ...], *steps: Enum):
        flow = self.flows.get(chat_id)
        if not isinstance(flow, kinds) or flow.step not in steps:
            return None
        return flow

    def cancel(self, chat_id: int) -> None:
        self.flows.clear(chat_id)

    # -- one-time reminder ----------------------------------------------------

    def start_reminder(self, chat_id: int, message_id: int | None = None) -> ReminderFlow:
        return self.flows.put(chat_id, ReminderFlow(
            step=ReminderStep.WHEN, created_at=self._clock(), message_id=message_id,
        ))

    def quick_reminder(
        self, chat_id: int, offset_ms: int, message_id: int | None = None,
    ) -> ReminderFlow:
        """Preset duration: skip straight to the priority step."""
        now = self._clock()
        return self.flows.put(chat_id, ReminderFlow(
            step=ReminderStep.PICK_PRIORITY, created_at=now,
            time=now + offset_ms, message_id=message_id,
        ))

    def period_reminder(
        self, chat_id: int, hour: int, tz: tzinfo, message_id: int | None = None,
    ) -> ReminderFlow:
        """Time-of-day bucket: next local hour:00, then the priority step."""
        now = self._clock()
        return self.flows.put(chat_id, ReminderFlow(
            step=ReminderStep.PICK_PRIORITY, created_at=now,
            time=next_wall_clock(hour, 0, tz, now), message_id=message_id,
        ))

    def open_date_picker(self, chat_id: int, month_offset: int = 0) -> ReminderFlow:
        flow = self.flows.get(chat_id)
        if isinstance(flow, ReminderFlow):
            return self.flows.put(chat_id, replace(
                flow, step=ReminderStep.PICK_DATE, month_offset=month_offset,
            ))
        return self.flows.put(chat_id, ReminderFlow(
            step=ReminderStep.PICK_DATE, created_at=self._clock(), month_offset=month_offset,
        ))

    def pick_date(self, chat_id: int, iso_date: str) -> ReminderFlow | None:
        flow = self._current(chat_id, (ReminderFlow,), ReminderStep.PICK_DATE)
        if flow is None:
            return None
        return self.flows.put(chat_id, replace(
            flow, step=ReminderStep.PICK_HOUR, selected_date=iso_date,
        ))

    def open_time_picker(self, chat_id: int) -> ReminderFlow | RecurringFlow:
        """Enter (or go back to) the hour picker, keeping the current flow."""
        flow = self.flows.get(chat_id)
        if isinstance(flow, ReminderFlow):
            return self.flows.put(chat_id, replace(flow, step=ReminderStep.PICK_HOUR))
        if isinstance(flow, RecurringFlow):
            return self.flows.put(chat_id, replace(flow, step=RecurringStep.PICK_HOUR))
        return self.flows.put(chat_id, ReminderFlow(
            step=ReminderStep.PICK_HOUR, created_at=self._clock(),
        ))

    def pick_hour(self, chat_id: int, hour: int) -> ReminderFlow | RecurringFlow | None:
        flow = self._current(
            chat_id, (ReminderFlow, RecurringFlow),
            ReminderStep.PICK_HOUR, RecurringStep.PICK_HOUR,
        )
        if flow is None:
            return None
        step = ReminderStep.PICK_MINUTE if isinstance(flow, ReminderFlow) else RecurringStep.PICK_MINUTE
        return self.flows.put(chat_id, replace(flow, step=step, hour=hour))

    def open_custom_minute(
        self, chat_id: int, message_id: int | None = None,
    ) -> ReminderFlow | RecurringFlow | None:
        flow = self._current(
            chat_id, (ReminderFlow, RecurringFlow),
            ReminderStep.PICK_MINUTE, RecurringStep.PICK_MINUTE,
        )
        if flow is None:
            return None
        step = ReminderStep.INPUT_MINUTE if isinstance(flow, ReminderFlow) else RecurringStep.INPUT_MINUTE
        return self.flows.put(chat_id, replace(
            flow, step=step, message_id=message_id or flow.message_id,
        ))

    def back_to_minutes(self, chat_id: int) -> ReminderFlow | RecurringFlow | None:
        flow = self._current(
            chat_id, (ReminderFlow, RecurringFlow),
            ReminderStep.INPUT_MINUTE, RecurringStep.INPUT_MINUTE,
        )
        if flow is None:
            return None
        step = ReminderStep.PICK_MINUTE if isinstance(flow, ReminderFlow) else RecurringStep.PICK_MINUTE
        return self.flows.put(chat_id, replace(flow, step=step, hour=flow.hour if flow.hour is not None else 9))

    def pick_minute(
        self, chat_id: int, minute: int, tz: tzinfo,
    ) -> ReminderFlow | RecurringFlow | None:
        flow = self._current(
            chat_id, (ReminderFlow, RecurringFlow),
            ReminderStep.PICK_MINUTE, RecurringStep.PICK_MINUTE,
        )
        if flow is None:
            return None
        return self.flows.put(chat_id, self._apply_minute(flow, minute, tz))

    def _apply_minute(
        self, flow: ReminderFlow | RecurringFlow, minute: int, tz: tzinfo,
    ) -> ReminderFlow | RecurringFlow:
        if isinstance(flow, RecurringFlow):
            return replace(flow, step=RecurringStep.INPUT_TEXT, minute=minute)
        hour = flow.hour if flow.hour is not None else 9
        if flow.selected_date:
            due = at_local_date(flow.selected_date, hour, minute, tz)
        else:
            due = next_wall_clock(hour, minute, tz, self._clock())
        return replace(flow, step=ReminderStep.PICK_PRIORITY, time=due)

    def pick_priority(
        self, chat_id: int, priority: Priority, message_id: int | None = None,
    ) -> ReminderFlow | None:
        flow = self._current(chat_id, (ReminderFlow,), ReminderStep.PICK_PRIORITY)
        if flow is None or flow.time is None:
            return None
        return self.flows.put(chat_id, replace(
            flow, step=ReminderStep.INPUT_TEXT, priority=priority,
            message_id=message_id or flow.message_id,
        ))

    # -- recurring reminder ---------------------------------------------------

    def start_recurring(
        self,
        chat_id: int,
        recurrence: Recurrence,
        message_id: int | None = None,
        weekday: int | None = None,
        hour: int | None = None,
    ) -> RecurringFlow:
        """Start a recurring flow; a preset hour skips straight to the text."""
        if hour is not None:
            flow = RecurringFlow(
                step=RecurringStep.INPUT_TEXT, created_at=self._clock(),
                recurrence=recurrence, weekday=weekday, hour=hour, minute=0,
                message_id=message_id,
            )
        else:
            flow = RecurringFlow(
                step=RecurringStep.PICK_HOUR, created_at=self._clock(),
                recurrence=recurrence, weekday=weekday, message_id=message_id,
            )
        return self.flows.put(chat_id, flow)

    # -- tasks ----------------------------------------------------------------

    def start_todo(self, chat_id: int, message_id: int | None = None) -> TodoFlow:
        return self.flows.put(chat_id, TodoFlow(
            step=TodoStep.CATEGORY, created_at=self._clock(), message_id=message_id,
        ))

    def pick_category(self, chat_id: int, category: Category) -> TodoFlow | None:
        flow = self._current(chat_id, (TodoFlow,), TodoStep.CATEGORY)
        if flow is None:
            return None
        return self.flows.put(chat_id, replace(flow, step=TodoStep.PRIORITY, category=category))

    def pick_task_priority(
        self, chat_id: int, priority: Priority, message_id: int | None = None,
    ) -> TodoFlow | None:
        flow = self._current(chat_id, (TodoFlow,), TodoStep.PRIORITY)
        if flow is None:
            return None
        return self.flows.put(chat_id, replace(
            flow, step=TodoStep.INPUT_TEXT, priority=priority,
            message_id=message_id or flow.message_id,
        ))

    # -- free text --------------------------------------------------------------

    def submit_text(
        self, chat_id: int, text: str, user_settings: UserSettings,
    ) -> TextResult:
        """Feed a free-text message into the user's flow."""
        flow = self.flows.get(chat_id)
        if flow is None:
            return TextResult(TextOutcome.NO_FLOW)
        if not accepts_text(flow):
            logger.debug("Ignoring text from chat %d in step %s", chat_id, flow.step.value)
            return TextResult(TextOutcome.IGNORED, flow)

        tz = user_tz(user_settings.timezone)

        if flow.step.value == "input_minute":
            minute = _parse_minute(text)
            if minute is None:
                return TextResult(TextOutcome.INVALID_MINUTE, flow)
            return TextResult(
                TextOutcome.ADVANCED,
                self.flows.put(chat_id, self._apply_minute(flow, minute, tz)),
            )

        text = text.strip()
        if not text:
            return TextResult(TextOutcome.IGNORED, flow)

        entity = self._build(chat_id, flow, text, user_settings, tz)
        self.flows.clear(chat_id)
        return TextResult(TextOutcome.COMMITTED, flow, entity)

    def _build(
        self,
        chat_id: int,
        flow: FlowState,
        text: str,
        user_settings: UserSettings,
        tz: tzinfo,
    ) -> Reminder | Task:
        now = self._clock()
        new_id = self._new_id(now)

        if isinstance(flow, TodoFlow):
            return Task(
                id=new_id, text=text,
                category=flow.category or Category.OTHER,
                priority=flow.priority or Priority.MEDIUM,
                created_at=now,
            )

        if isinstance(flow, RecurringFlow):
            hour = flow.hour if flow.hour is not None else 9
            minute = flow.minute or 0
            weekday = flow.weekday if flow.recurrence == Recurrence.WEEKLY else None
            return Reminder(
                id=new_id, chat_id=chat_id, text=text,
                time=first_occurrence(hour, minute, flow.recurrence, tz, now, weekday),
                priority=user_settings.default_priority,
                recurring=flow.recurrence, recurring_day=weekday,
                recurring_hour=hour, recurring_minute=minute,
                created_at=now,
            )

        return Reminder(
            id=new_id, chat_id=chat_id, text=text, time=flow.time,
            priority=flow.priority or user_settings.default_priority,
            created_at=now,
        )


def _parse_minute(text: str) -> int | None:
    try:
        minute = int(text.strip())
    except ValueError:
        return None
    if not 0 <= minute <= 59:
        return None
    return minute
