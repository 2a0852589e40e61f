"""
Reminder Bot — Data Store.

The whole state (reminders, per-user todos, stats and settings) lives in one
in-memory aggregate that is loaded once at startup and flushed in full to the
key-value store after every mutation. There are no partial writes.

Every mutation runs inside ``transaction()``, which holds a single
asyncio.Lock across the change and the flush, so a scheduler tick and a
user action can never interleave half-finished edits.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Callable

from pydantic import ValidationError

from src.core.timefmt import MINUTE_MS, now_ms, to_local, user_tz
from src.data.models import Aggregate, Reminder, Task, UserSettings, UserStats
from src.ports.store_port import StoreError

if TYPE_CHECKING:
    from src.ports.store_port import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_DATA_KEY = "reminder_bot_data"


class DataStore:
    """Single owner of the persisted aggregate."""

    def __init__(self, client: KeyValueStore, key: str = DEFAULT_DATA_KEY) -> None:
        self._client = client
        self._key = key
        self._data = Aggregate()
        self._lock = asyncio.Lock()
        self._last_id = 0

    @property
    def data(self) -> Aggregate:
        return self._data

    # -- persistence --------------------------------------------------------

    async def load(self) -> None:
        """Load the aggregate; any failure leaves an empty one in place."""
        try:
            stored = await self._client.get(self._key)
        except StoreError as exc:
            logger.error("Failed to load data, starting fresh: %s", exc)
            stored = None

        if not stored:
            logger.info("No stored data found, starting fresh")
            self._data = Aggregate()
        else:
            try:
                self._data = Aggregate.model_validate(stored)
            except ValidationError as exc:
                logger.error("Stored data is malformed, starting fresh: %s", exc)
                self._data = Aggregate()

        ids = [r.id for r in self._data.reminders]
        ids += [t.id for tasks in self._data.todos.values() for t in tasks]
        self._last_id = max(ids, default=0)
        logger.info("Loaded %d reminders", len(self._data.reminders))

    async def save(self) -> None:
        """Flush the full aggregate. Failures are logged, never raised."""
        try:
            await self._client.set(self._key, self._data.to_json())
        except StoreError as exc:
            logger.error("Failed to save data: %s", exc)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Aggregate]:
        """Exclusive section around a mutation and its flush."""
        async with self._lock:
            yield self._data
            await self.save()

    def next_id(self, now: int | None = None) -> int:
        """Creation timestamp as id, bumped past the last id handed out."""
        candidate = now if now is not None else now_ms()
        self._last_id = max(candidate, self._last_id + 1)
        return self._last_id

    # -- lazily created per-user records --------------------------------------

    def user_stats(self, chat_id: int) -> UserStats:
        return self._data.stats.setdefault(chat_id, UserStats())

    def user_settings(self, chat_id: int) -> UserSettings:
        return self._data.settings.setdefault(chat_id, UserSettings())

    # -- reminders ----------------------------------------------------------

    def reminders_for(self, chat_id: int, include_fired: bool = True) -> list[Reminder]:
        """A chat's reminders, soonest first."""
        found = [
            r for r in self._data.reminders
            if r.chat_id == chat_id and (include_fired or not r.fired)
        ]
        return sorted(found, key=lambda r: r.time)

    def get_reminder(self, reminder_id: int) -> Reminder | None:
        return next((r for r in self._data.reminders if r.id == reminder_id), None)

    async def add_reminder(self, reminder: Reminder) -> Reminder:
        async with self.transaction() as data:
            data.reminders.append(reminder)
            self.user_stats(reminder.chat_id).total_reminders += 1
        logger.info("Reminder #%d added for chat %d", reminder.id, reminder.chat_id)
        return reminder

    async def advance_reminders(
        self, advance: Callable[[list[Reminder]], list[Reminder]],
    ) -> list[Reminder]:
        """Run *advance* over all reminders under the lock.

        *advance* mutates the list in place and returns the reminders it
        touched; the aggregate is flushed once, and only if that is non-empty.
        """
        async with self._lock:
            touched = advance(self._data.reminders)
            if touched:
                await self.save()
        return touched

    async def delete_reminder(self, chat_id: int, reminder_id: int) -> bool:
        """Remove a reminder (delete from list, or dismiss after firing)."""
        async with self.transaction() as data:
            before = len(data.reminders)
            data.reminders = [
                r for r in data.reminders
                if not (r.id == reminder_id and r.chat_id == chat_id)
            ]
            removed = len(data.reminders) < before
        if removed:
            logger.info("Reminder #%d removed", reminder_id)
        return removed

    async def snooze_reminder(
        self, chat_id: int, reminder_id: int, minutes: int, now: int | None = None,
    ) -> Reminder | None:
        """Push a reminder *minutes* into the future and re-arm it."""
        existing = self.get_reminder(reminder_id)
        if existing is None or existing.chat_id != chat_id:
            return None
        now = now if now is not None else now_ms()
        async with self.transaction():
            reminder = self.get_reminder(reminder_id)
            if reminder is None:
                return None  # deleted while waiting for the lock
            reminder.time = now + minutes * MINUTE_MS
            reminder.snoozed += 1
            reminder.fired = False
        logger.info("Reminder #%d snoozed %d min", reminder_id, minutes)
        return reminder

    # -- tasks ----------------------------------------------------------------

    def todos_for(self, chat_id: int) -> list[Task]:
        return self._data.todos.get(chat_id, [])

    def get_task(self, chat_id: int, task_id: int) -> Task | None:
        return next((t for t in self.todos_for(chat_id) if t.id == task_id), None)

    async def add_task(self, chat_id: int, task: Task) -> Task:
        async with self.transaction() as data:
            data.todos.setdefault(chat_id, []).append(task)
        logger.info("Task #%d added for chat %d", task.id, chat_id)
        return task

    async def toggle_task(
        self, chat_id: int, task_id: int, now: int | None = None,
    ) -> Task | None:
        """Flip a task's done flag; completing one updates the user's stats."""
        if self.get_task(chat_id, task_id) is None:
            return None
        now = now if now is not None else now_ms()
        async with self.transaction():
            task = self.get_task(chat_id, task_id)
            if task is None:
                return None
            task.done = not task.done
            if task.done:
                self._record_completion(chat_id, now)
        return task

    def _record_completion(self, chat_id: int, now: int) -> None:
        stats = self.user_stats(chat_id)
        tz = user_tz(self.user_settings(chat_id).timezone)
        today = to_local(now, tz).date()
        if stats.last_active is None:
            stats.streak = 1
        else:
            gap = (today - to_local(stats.last_active, tz).date()).days
            if gap == 1:
                stats.streak += 1
            elif gap > 1 or stats.streak == 0:
                stats.streak = 1
        stats.completed += 1
        stats.last_active = now

    async def delete_task(self, chat_id: int, task_id: int) -> bool:
        if self.get_task(chat_id, task_id) is None:
            return False
        async with self.transaction() as data:
            data.todos[chat_id] = [t for t in data.todos.get(chat_id, []) if t.id != task_id]
        return True

    async def clear_completed(self, chat_id: int) -> int:
        """Drop the chat's completed tasks; returns how many were removed."""
        tasks = self.todos_for(chat_id)
        done = sum(1 for t in tasks if t.done)
        if not done:
            return 0
        async with self.transaction() as data:
            data.todos[chat_id] = [t for t in data.todos.get(chat_id, []) if not t.done]
        return done

    # -- settings -------------------------------------------------------------

    async def update_settings(self, chat_id: int, **changes) -> UserSettings:
        """Apply field changes (snake_case names) to the user's settings."""
        async with self.transaction():
            current = self.user_settings(chat_id)
            updated = current.model_copy(update=changes)
            self._data.settings[chat_id] = UserSettings.model_validate(
                updated.model_dump()
            )
        return self._data.settings[chat_id]

    async def clear_user_data(self, chat_id: int) -> None:
        """Forget everything about one user in a single exclusive section."""
        async with self.transaction() as data:
            data.reminders = [r for r in data.reminders if r.chat_id != chat_id]
            data.todos.pop(chat_id, None)
            data.stats.pop(chat_id, None)
            data.settings.pop(chat_id, None)
        logger.info("All data cleared for chat %d", chat_id)
