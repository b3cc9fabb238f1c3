"""Main entry point for the QuickDesk bot."""

import logging
import sys

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from quickdesk.bot.callbacks import callback_router
from quickdesk.bot.formatters import format_suggestion
from quickdesk.bot.handlers import (
    export_command,
    greetings_command,
    handle_plain_text,
    help_command,
    import_document,
    remind_command,
    reminders_command,
    templates_command,
)
from quickdesk.bot.keyboards import suggestion_keyboard
from quickdesk.bot.notifier import TelegramNotifier
from quickdesk.config import Config
from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.migrations import run_migrations
from quickdesk.state import AppState, build_state
from quickdesk.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


async def heartbeat_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the heartbeat."""
    state: AppState = context.bot_data["state"]
    await state.heartbeat()


async def suggestion_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback that offers frequently typed texts as templates."""
    state: AppState = context.bot_data["state"]

    try:
        suggestions = await state.suggestions.analyze_usage_and_suggest()
    except Exception as e:
        logger.error(f"Usage analysis failed: {e}")
        return

    for suggestion in suggestions:
        await context.bot.send_message(
            chat_id=Config.TELEGRAM_CHAT_ID,
            text=format_suggestion(suggestion),
            parse_mode="HTML",
            reply_markup=suggestion_keyboard(suggestion.hash),
        )


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    kv = KeyValueStore(Config.DATABASE_PATH)
    await kv.connect()

    notifier = TelegramNotifier(application.bot, int(Config.TELEGRAM_CHAT_ID), kv)
    state = build_state(kv, notifier)
    application.bot_data["state"] = state

    # Migrate stored data up front so handlers always see current shapes
    await state.templates.load()
    await state.notes.get_notes()
    await state.greetings.get_greetings_and_closings()
    await state.load_theme()

    # Fire alarms that came due while we were down, before anything prunes them
    await state.scheduler.startup_recovery(state.reminders, state.notifier)

    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            heartbeat_job,
            interval=Config.HEARTBEAT_INTERVAL,
            first=Config.HEARTBEAT_INTERVAL,
            name="heartbeat",
        )
        job_queue.run_repeating(
            suggestion_job,
            interval=Config.SUGGESTION_INTERVAL,
            first=60,
            name="suggestions",
        )
        logger.info(f"Heartbeat job scheduled (interval: {Config.HEARTBEAT_INTERVAL}s)")

    logger.info("QuickDesk initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    state: AppState | None = application.bot_data.get("state")
    if state:
        await state.kv.close()

    logger.info("QuickDesk shut down")


def main() -> None:
    """Start the bot."""
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Only the configured chat may use the bot
    owner = filters.Chat(chat_id=int(Config.TELEGRAM_CHAT_ID))

    # Commands
    application.add_handler(CommandHandler(["start", "help"], help_command, filters=owner))
    application.add_handler(CommandHandler("reminders", reminders_command, filters=owner))
    application.add_handler(CommandHandler("remind", remind_command, filters=owner))
    application.add_handler(CommandHandler("templates", templates_command, filters=owner))
    application.add_handler(CommandHandler("greetings", greetings_command, filters=owner))
    application.add_handler(CommandHandler("export", export_command, filters=owner))

    # Backup import
    application.add_handler(
        MessageHandler(owner & filters.Document.FileExtension("json"), import_document)
    )

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    # Plain text feeds usage tracking (must be last)
    application.add_handler(
        MessageHandler(owner & filters.TEXT & ~filters.COMMAND, handle_plain_text)
    )

    application.add_error_handler(error_handler)

    logger.info("Starting QuickDesk bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
