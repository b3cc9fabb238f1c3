"""Command handlers."""

import json
import logging
from io import BytesIO

from telegram import InputFile, Update
from telegram.ext import ContextTypes

from quickdesk.bot.formatters import (
    format_greetings,
    format_help_message,
    format_import_summary,
    format_reminder,
    format_reminder_groups,
    format_template_summary,
)
from quickdesk.bot.keyboards import reminder_actions_keyboard
from quickdesk.state import AppState
from quickdesk.storage.errors import (
    CorruptDataError,
    QuotaExceededError,
    SchedulerUnavailableError,
    ValidationError,
)
from quickdesk.storage.reminder_store import group_reminders
from quickdesk.storage.template_store import parse_import, tasks_from_plan
from quickdesk.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

# Telegram bots may only download files up to 20 MB
MAX_IMPORT_BYTES = 5 * 1024 * 1024


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help and /start."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def reminders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders - pending, scheduled and completed reminders."""
    if not update.message:
        return

    state: AppState = context.bot_data["state"]
    reminders = await state.reminders.get_reminders()
    groups = group_reminders(reminders.values())

    await update.message.reply_html(format_reminder_groups(groups))

    # Pending ones get their own message with actions
    for reminder in groups.pending:
        await update.message.reply_html(
            format_reminder(reminder), reply_markup=reminder_actions_keyboard(reminder)
        )


async def remind_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind <ISO date-time> <title>."""
    if not update.message:
        return

    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            "Usage: <code>/remind 2024-03-01T09:00 Send the monthly report</code>\n"
            "Times without an offset are read as UTC."
        )
        return

    state: AppState = context.bot_data["state"]
    date_time = context.args[0]
    title = " ".join(context.args[1:])

    try:
        reminder_id = await state.reminders.save_reminder(title=title, date_time=date_time)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return
    except SchedulerUnavailableError:
        await update.message.reply_text(
            "❌ The reminder could not be scheduled. Nothing was saved, please try again."
        )
        return
    except QuotaExceededError as e:
        logger.warning(f"Reminder not saved: {e}")
        await update.message.reply_text("❌ Storage is full. Delete some reminders first.")
        return

    reminder = await state.reminders.get_reminder(reminder_id)
    if reminder is None:
        return

    await update.message.reply_html(
        f"✓ <b>Reminder created!</b>\n\n{format_reminder(reminder, utc_now())}"
    )


async def templates_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /templates - categories and their message counts."""
    if not update.message:
        return

    state: AppState = context.bot_data["state"]
    document = await state.templates.load()

    await update.message.reply_html(format_template_summary(document))


async def greetings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /greetings - greeting and closing snippets."""
    if not update.message:
        return

    state: AppState = context.bot_data["state"]
    data = await state.greetings.get_greetings_and_closings()

    await update.message.reply_html(format_greetings(data))


async def export_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export - send the template backup as a JSON file."""
    if not update.message:
        return

    state: AppState = context.bot_data["state"]
    exported = await state.templates.export_document()

    payload = json.dumps(exported, ensure_ascii=False, indent=2).encode("utf-8")
    filename = f"quickdesk-backup-{utc_now().strftime('%Y-%m-%d')}.json"

    await update.message.reply_document(
        document=InputFile(BytesIO(payload), filename=filename),
        caption=f"{len(exported['messages'])} messages in {len(exported['categories'])} categories",
    )


async def import_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Import a JSON backup sent as a document.

    Groups that match an existing category by name merge into it; the rest
    become new categories.
    """
    if not update.message or not update.message.document:
        return

    document = update.message.document
    if document.file_size and document.file_size > MAX_IMPORT_BYTES:
        await update.message.reply_text("❌ That file is too large to import.")
        return

    state: AppState = context.bot_data["state"]

    telegram_file = await document.get_file()
    content = await telegram_file.download_as_bytearray()

    try:
        imported = parse_import(bytes(content))
    except CorruptDataError as e:
        await update.message.reply_text(f"❌ Could not import: {e}")
        return

    plan = await state.templates.plan_import(imported)
    count = await state.templates.import_messages(tasks_from_plan(plan))

    await update.message.reply_text(format_import_summary(count, await state.templates.load()))


async def handle_plain_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Count texts the user sends so repeated ones can become templates."""
    if not update.message or not update.message.text:
        return

    state: AppState = context.bot_data["state"]
    await state.suggestions.track_usage(update.message.text)
