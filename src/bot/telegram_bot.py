"""
Reminder Bot — Telegram Bot.

Telegram is the only user interface. Commands, inline-button callbacks and
free text all land here; each handler decodes the event, asks the wizard or
the data store to change state, then renders the resulting screen.

Callback payloads are decoded into typed actions first (see actions.py);
an unknown payload is logged and answered without touching any state.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.bot import menus
from src.bot.actions import (
    QUICK_PRESETS,
    BackToMinutes,
    ClearAllData,
    CustomMinute,
    DeleteReminder,
    Dismiss,
    Ignore,
    OpenDatePicker,
    OpenTimePicker,
    PeriodReminder,
    PickDate,
    PickHour,
    PickMinute,
    PickPriority,
    QuickReminder,
    SetDefaultPriority,
    SetQuickReminder,
    SetTimeFormat,
    SetTimezone,
    ShowScreen,
    Snooze,
    StartRecurring,
    StartReminder,
    StartTodo,
    TodoCategory,
    TodoClearCompleted,
    TodoDelete,
    TodoPriority,
    TodoToggle,
    TodoView,
    ToggleSound,
    UnknownAction,
    parse_action,
)
from src.config import settings
from src.core.scheduler import reap_stale_flows, run_reminder_check
from src.core.timefmt import MINUTE_MS, now_ms, parse_time_and_message, user_tz
from src.core.wizard import FlowRegistry, TextOutcome, Wizard
from src.data.models import Category, Reminder, Task

if TYPE_CHECKING:
    from telegram import Bot, CallbackQuery

    from src.bot.actions import Action
    from src.bot.menus import Screen
    from src.data.db import DataStore
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

ERROR_MESSAGE_TTL_SECONDS = 3


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores updates from users outside the allow-list.

    An empty ALLOWED_USER_IDS means the bot is open to everyone.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        allowed = settings.ALLOWED_USER_IDS
        if allowed:
            user = update.effective_user
            if user is None or user.id not in allowed:
                uid = user.id if user else "unknown"
                logger.warning("Unauthorized access attempt from user_id=%s", uid)
                return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Transport helpers
# ---------------------------------------------------------------------------


def _store(context: ContextTypes.DEFAULT_TYPE) -> DataStore:
    return context.bot_data["store"]


def _wizard(context: ContextTypes.DEFAULT_TYPE) -> Wizard:
    return context.bot_data["wizard"]


async def send_screen(bot: Bot, chat_id: int, screen: Screen) -> Any:
    text, markup = screen
    return await bot.send_message(
        chat_id, text, parse_mode=ParseMode.HTML, reply_markup=markup,
    )


async def safe_edit(bot: Bot, chat_id: int, message_id: int, screen: Screen) -> None:
    """Edit a message in place; "message is not modified" is a silent no-op."""
    text, markup = screen
    try:
        await bot.edit_message_text(
            text,
            chat_id=chat_id,
            message_id=message_id,
            parse_mode=ParseMode.HTML,
            reply_markup=markup,
        )
    except BadRequest as exc:
        if "message is not modified" in str(exc).lower():
            return
        logger.warning("Edit of message %d in chat %d failed: %s", message_id, chat_id, exc)
    except TelegramError as exc:
        logger.warning("Edit of message %d in chat %d failed: %s", message_id, chat_id, exc)


async def safe_delete(bot: Bot, chat_id: int, message_id: int | None) -> None:
    if message_id is None:
        return
    try:
        await bot.delete_message(chat_id, message_id)
    except TelegramError as exc:
        logger.debug("Delete of message %d in chat %d failed: %s", message_id, chat_id, exc)


async def _answer(query: CallbackQuery, text: str | None = None) -> None:
    try:
        await query.answer(text)
    except TelegramError as exc:
        logger.debug("Callback answer failed: %s", exc)


async def _delete_message_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    chat_id, message_id = context.job.data
    await safe_delete(context.bot, chat_id, message_id)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — dashboard and main menu."""
    chat_id = update.effective_chat.id
    _wizard(context).cancel(chat_id)
    first_name = update.effective_user.first_name if update.effective_user else "Friend"
    await send_screen(context.bot, chat_id, menus.main_menu(_store(context), chat_id, first_name))


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — usage and tips."""
    await send_screen(context.bot, update.effective_chat.id, menus.help_menu())


@authorized_only
async def cmd_remind(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind <10m|1h30m|1d|HH:MM> <text> (alias /reminder)."""
    chat_id = update.effective_chat.id
    store = _store(context)
    user_settings = store.user_settings(chat_id)
    now = now_ms()

    parsed = parse_time_and_message(" ".join(context.args or []), user_tz(user_settings.timezone), now)
    if parsed is None or parsed[0] <= now or not parsed[1]:
        await send_screen(context.bot, chat_id, menus.remind_usage())
        return

    due, text = parsed
    reminder = await store.add_reminder(Reminder(
        id=store.next_id(now), chat_id=chat_id, text=text, time=due,
        priority=user_settings.default_priority, created_at=now,
    ))
    await send_screen(context.bot, chat_id, menus.reminder_set(reminder, user_settings, now))


@authorized_only
async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add <text> — quick task, category "other"."""
    chat_id = update.effective_chat.id
    store = _store(context)
    text = " ".join(context.args or []).strip()
    if not text:
        await send_screen(context.bot, chat_id, menus.add_usage())
        return

    now = now_ms()
    task = await store.add_task(chat_id, Task(
        id=store.next_id(now), text=text, category=Category.OTHER,
        priority=store.user_settings(chat_id).default_priority, created_at=now,
    ))
    await send_screen(context.bot, chat_id, menus.task_added(task))


@authorized_only
async def cmd_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list — the task list."""
    chat_id = update.effective_chat.id
    await send_screen(context.bot, chat_id, menus.todo_menu(_store(context), chat_id))


@authorized_only
async def cmd_time(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /time — current time in the user's timezone."""
    chat_id = update.effective_chat.id
    user_settings = _store(context).user_settings(chat_id)
    await send_screen(context.bot, chat_id, menus.current_time(user_settings))


# ---------------------------------------------------------------------------
# Callback queries
# ---------------------------------------------------------------------------


@authorized_only
async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Decode the button payload and dispatch on the typed action."""
    query = update.callback_query
    try:
        action = parse_action(query.data)
    except UnknownAction as exc:
        logger.debug("Ignoring callback: %s", exc)
        await _answer(query)
        return

    if isinstance(action, Ignore):
        await _answer(query)
        return

    toast = await dispatch_action(action, query, context)
    await _answer(query, toast)


async def dispatch_action(
    action: Action, query: CallbackQuery, context: ContextTypes.DEFAULT_TYPE,
) -> str | None:
    """Apply *action* and re-render. Returns an optional toast text."""
    if isinstance(action, ShowScreen):
        chat_id = query.message.chat.id
        _wizard(context).cancel(chat_id)
        await safe_edit(
            context.bot, chat_id, query.message.message_id,
            _render_screen(action.name, context, chat_id, query.from_user.first_name),
        )
        return None
    if isinstance(action, (DeleteReminder, Snooze, Dismiss)):
        return await _reminder_action(action, query, context)
    if isinstance(action, (TodoView, TodoToggle, TodoDelete, TodoClearCompleted)):
        return await _task_action(action, query, context)
    if isinstance(action, (SetTimezone, SetTimeFormat, SetDefaultPriority,
                           ToggleSound, SetQuickReminder, ClearAllData)):
        return await _settings_action(action, query, context)
    await _wizard_action(action, query, context)
    return None


def _render_screen(
    name: str, context: ContextTypes.DEFAULT_TYPE, chat_id: int, first_name: str,
) -> Screen:
    store = _store(context)
    user_settings = store.user_settings(chat_id)
    if name == "main_menu":
        return menus.main_menu(store, chat_id, first_name)
    if name == "rm_list":
        return menus.reminders_list(store, chat_id)
    if name == "todo_menu":
        return menus.todo_menu(store, chat_id)
    if name == "todo_categories":
        return menus.todo_categories(store, chat_id)
    if name == "rec_menu":
        return menus.recurring_menu()
    if name == "stats_menu":
        return menus.stats_menu(store, chat_id)
    if name == "help_menu":
        return menus.help_menu()
    if name == "settings_timezone":
        return menus.timezone_menu(user_settings)
    if name == "settings_timeformat":
        return menus.time_format_menu(user_settings)
    if name == "settings_priority":
        return menus.default_priority_menu(user_settings)
    if name == "settings_quickreminder":
        return menus.quick_reminder_menu(user_settings)
    if name == "settings_cleardata":
        return menus.clear_data_confirm(store, chat_id)
    return menus.settings_menu(user_settings)


async def _wizard_action(
    action: Action, query: CallbackQuery, context: ContextTypes.DEFAULT_TYPE,
) -> None:
    """Feed a wizard step; inconsistent steps are ignored."""
    chat_id = query.message.chat.id
    message_id = query.message.message_id
    wizard = _wizard(context)
    user_settings = _store(context).user_settings(chat_id)
    tz = user_tz(user_settings.timezone)

    if isinstance(action, StartReminder):
        flow = wizard.start_reminder(chat_id, message_id)
    elif isinstance(action, QuickReminder):
        if action.preset == "default":
            offset = user_settings.quick_reminder_mins * MINUTE_MS
        else:
            offset = QUICK_PRESETS[action.preset]
        flow = wizard.quick_reminder(chat_id, offset, message_id)
    elif isinstance(action, PeriodReminder):
        flow = wizard.period_reminder(chat_id, action.hour, tz, message_id)
    elif isinstance(action, OpenTimePicker):
        flow = wizard.open_time_picker(chat_id)
    elif isinstance(action, OpenDatePicker):
        flow = wizard.open_date_picker(chat_id, action.month_offset)
    elif isinstance(action, PickDate):
        flow = wizard.pick_date(chat_id, action.iso_date)
    elif isinstance(action, PickHour):
        flow = wizard.pick_hour(chat_id, action.hour)
    elif isinstance(action, PickMinute):
        flow = wizard.pick_minute(chat_id, action.minute, tz)
    elif isinstance(action, CustomMinute):
        flow = wizard.open_custom_minute(chat_id, message_id)
    elif isinstance(action, BackToMinutes):
        flow = wizard.back_to_minutes(chat_id)
    elif isinstance(action, PickPriority):
        flow = wizard.pick_priority(chat_id, action.priority, message_id)
    elif isinstance(action, StartRecurring):
        flow = wizard.start_recurring(
            chat_id, action.recurrence, message_id, action.weekday, action.hour,
        )
    elif isinstance(action, StartTodo):
        flow = wizard.start_todo(chat_id, message_id)
    elif isinstance(action, TodoCategory):
        flow = wizard.pick_category(chat_id, action.category)
    elif isinstance(action, TodoPriority):
        flow = wizard.pick_task_priority(chat_id, action.priority, message_id)
    else:
        logger.debug("Unhandled action %r", action)
        return

    if flow is None:
        logger.debug("Ignoring %s for chat %d: not valid in the current step",
                     type(action).__name__, chat_id)
        return
    await safe_edit(context.bot, chat_id, message_id, menus.flow_screen(flow, user_settings))


async def _reminder_action(
    action: DeleteReminder | Snooze | Dismiss,
    query: CallbackQuery,
    context: ContextTypes.DEFAULT_TYPE,
) -> str | None:
    chat_id = query.message.chat.id
    message_id = query.message.message_id
    store = _store(context)

    if isinstance(action, DeleteReminder):
        await store.delete_reminder(chat_id, action.reminder_id)
        await safe_edit(context.bot, chat_id, message_id, menus.reminders_list(store, chat_id))
        return "🗑️ Reminder deleted"

    if isinstance(action, Snooze):
        reminder = await store.snooze_reminder(chat_id, action.reminder_id, action.minutes)
        if reminder is None:
            await safe_edit(context.bot, chat_id, message_id, menus.reminder_not_found())
            return None
        await safe_edit(
            context.bot, chat_id, message_id,
            menus.snoozed(reminder, store.user_settings(chat_id)),
        )
        return f"😴 Snoozed for {action.minutes} mins"

    await store.delete_reminder(chat_id, action.reminder_id)
    await safe_delete(context.bot, chat_id, message_id)
    return "✅ Done! Reminder dismissed."


async def _task_action(
    action: TodoView | TodoToggle | TodoDelete | TodoClearCompleted,
    query: CallbackQuery,
    context: ContextTypes.DEFAULT_TYPE,
) -> str | None:
    chat_id = query.message.chat.id
    message_id = query.message.message_id
    store = _store(context)
    toast = None

    if isinstance(action, TodoView):
        task = store.get_task(chat_id, action.task_id)
        if task is not None:
            await safe_edit(
                context.bot, chat_id, message_id,
                menus.task_detail(task, store.user_settings(chat_id)),
            )
            return None
    elif isinstance(action, TodoToggle):
        task = await store.toggle_task(chat_id, action.task_id)
        if task is not None:
            toast = "Completed! 🎉" if task.done else "Marked incomplete"
    elif isinstance(action, TodoDelete):
        if await store.delete_task(chat_id, action.task_id):
            toast = "🗑️ Task deleted"
    else:
        cleared = await store.clear_completed(chat_id)
        toast = f"🗑️ Cleared {cleared} completed task(s)" if cleared else None

    await safe_edit(context.bot, chat_id, message_id, menus.todo_menu(store, chat_id))
    return toast


async def _settings_action(
    action: Action, query: CallbackQuery, context: ContextTypes.DEFAULT_TYPE,
) -> str | None:
    chat_id = query.message.chat.id
    message_id = query.message.message_id
    store = _store(context)

    if isinstance(action, ClearAllData):
        await store.clear_user_data(chat_id)
        _wizard(context).cancel(chat_id)
        await safe_edit(context.bot, chat_id, message_id, menus.data_cleared())
        return "🗑️ All data cleared"

    if isinstance(action, SetTimezone):
        changes = {"timezone": action.offset}
    elif isinstance(action, SetTimeFormat):
        changes = {"time_format": action.time_format}
    elif isinstance(action, SetDefaultPriority):
        changes = {"default_priority": action.priority}
    elif isinstance(action, ToggleSound):
        changes = {"sound_enabled": not store.user_settings(chat_id).sound_enabled}
    else:
        changes = {"quick_reminder_mins": action.minutes}

    updated = await store.update_settings(chat_id, **changes)
    await safe_edit(context.bot, chat_id, message_id, menus.settings_menu(updated))
    return "✅ Saved"


# ---------------------------------------------------------------------------
# Free text
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Plain text: feed the user's flow, or answer with an excuse."""
    from src.integrations.excuses import fetch_excuse

    message = update.message
    if message is None or not message.text:
        return  # edited messages never feed a flow
    chat_id = update.effective_chat.id
    store = _store(context)
    user_settings = store.user_settings(chat_id)

    result = _wizard(context).submit_text(chat_id, message.text, user_settings)

    if result.outcome == TextOutcome.NO_FLOW:
        excuse = await fetch_excuse()
        await send_screen(context.bot, chat_id, menus.excuse_reply(excuse))
        return

    if result.outcome == TextOutcome.IGNORED:
        return

    if result.outcome == TextOutcome.INVALID_MINUTE:
        await safe_delete(context.bot, chat_id, message.message_id)
        try:
            error = await context.bot.send_message(chat_id, menus.invalid_minute())
        except TelegramError as exc:
            logger.warning("Could not send minute error to %d: %s", chat_id, exc)
            return
        context.job_queue.run_once(
            _delete_message_job,
            ERROR_MESSAGE_TTL_SECONDS,
            data=(chat_id, error.message_id),
            name=f"drop_error_{chat_id}_{error.message_id}",
        )
        return

    if result.outcome == TextOutcome.ADVANCED:
        await safe_delete(context.bot, chat_id, message.message_id)
        screen = menus.flow_screen(result.flow, user_settings)
        if result.flow.message_id is not None:
            await safe_edit(context.bot, chat_id, result.flow.message_id, screen)
        else:
            await send_screen(context.bot, chat_id, screen)
        return

    # Committed
    entity = result.entity
    if isinstance(entity, Task):
        await store.add_task(chat_id, entity)
        screen = menus.task_added(entity)
    elif entity.recurring:
        await store.add_reminder(entity)
        screen = menus.recurring_set(entity, user_settings)
    else:
        await store.add_reminder(entity)
        screen = menus.reminder_set(entity, user_settings)

    await safe_delete(context.bot, chat_id, result.flow.message_id)
    await send_screen(context.bot, chat_id, screen)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


async def _post_init(app: Application) -> None:
    """Load persisted data and start the health check before polling."""
    from src.integrations.health import HealthServer

    await app.bot_data["store"].load()

    health = HealthServer(settings.PORT)
    try:
        await health.start()
    except OSError as exc:
        logger.error("Health check server could not bind port %d: %s", settings.PORT, exc)
        return
    app.bot_data["health"] = health


async def _post_shutdown(app: Application) -> None:
    health = app.bot_data.get("health")
    if health is not None:
        await health.stop()


def build_app(
    store: DataStore | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Data store. Defaults to one backed by Upstash Redis.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    # Wire default adapters if not provided
    if store is None:
        from src.adapters.upstash_store import UpstashStore
        from src.data.db import DataStore

        store = DataStore(
            UpstashStore(settings.UPSTASH_REDIS_REST_URL, settings.UPSTASH_REDIS_REST_TOKEN),
            settings.DATA_KEY,
        )

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    flows = FlowRegistry()
    app.bot_data["store"] = store
    app.bot_data["notifier"] = notifier
    app.bot_data["flows"] = flows
    app.bot_data["wizard"] = Wizard(flows, id_factory=store.next_id)

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler(["remind", "reminder"], cmd_remind))
    app.add_handler(CommandHandler("add", cmd_add))
    app.add_handler(CommandHandler("list", cmd_list))
    app.add_handler(CommandHandler("time", cmd_time))

    # Inline buttons
    app.add_handler(CallbackQueryHandler(handle_callback))

    # Text messages (new, non-command)
    app.add_handler(MessageHandler(
        filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND, handle_text,
    ))

    _setup_jobs(app, store, notifier, flows)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_jobs(
    app: Application,
    store: DataStore,
    notifier: NotificationPort,
    flows: FlowRegistry,
) -> None:
    """Register the reminder check and the stale-state reaper."""
    stale_after_ms = settings.STALE_STATE_MINUTES * MINUTE_MS

    async def _reminder_job(context: ContextTypes.DEFAULT_TYPE) -> None:
        await run_reminder_check(store, notifier)

    async def _reaper_job(context: ContextTypes.DEFAULT_TYPE) -> None:
        reap_stale_flows(flows, stale_after_ms)

    app.job_queue.run_repeating(
        _reminder_job,
        interval=settings.REMINDER_CHECK_SECONDS,
        first=5,
        name="reminder_check",
    )
    app.job_queue.run_repeating(
        _reaper_job,
        interval=settings.STALE_STATE_MINUTES * 60,
        first=settings.STALE_STATE_MINUTES * 60,
        name="stale_state_reaper",
    )

    logger.info(
        "Reminder check every %ds, stale-state reaper every %d min",
        settings.REMINDER_CHECK_SECONDS,
        settings.STALE_STATE_MINUTES,
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Reminder Bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
