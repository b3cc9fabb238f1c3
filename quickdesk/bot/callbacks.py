"""Callback query handlers for inline buttons."""

import logging
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from quickdesk.state import AppState
from quickdesk.storage.errors import NotFoundError, SchedulerUnavailableError, ValidationError
from quickdesk.storage.reminder_store import snooze_until
from quickdesk.utils.constants import SNOOZE_PRESETS
from quickdesk.utils.time_utils import format_duration, utc_now

logger = logging.getLogger(__name__)

SUGGESTION_TITLE_LENGTH = 40


async def handle_done_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: str
) -> None:
    """Handle 'Done' button press."""
    if not update.callback_query:
        return

    query = update.callback_query
    state: AppState = context.bot_data["state"]

    try:
        reminder = await state.reminders.complete_reminder(reminder_id)
    except NotFoundError:
        await query.answer("Reminder not found.")
        return

    await state.notifier.forget(reminder_id)

    if reminder.state == "active":
        # Recurring: rolled forward to the next occurrence
        next_str = reminder.date_time.strftime("%b %d, %Y %H:%M UTC")
        if query.message:
            await query.message.edit_text(
                f"✓ <b>Completed:</b> <s>{escape(reminder.title)}</s>\n\n"
                f"🔁 Next occurrence: {next_str}",
                parse_mode="HTML",
            )
        await query.answer(f"✓ Done! Next: {reminder.date_time.strftime('%b %d')}")
    else:
        if query.message:
            await query.message.edit_text(
                f"✓ <b>Completed:</b> <s>{escape(reminder.title)}</s>",
                parse_mode="HTML",
            )
        await query.answer(f"✓ Marked {reminder.title} as done!")


async def handle_snooze_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: str, preset_key: str
) -> None:
    """Handle a snooze preset button."""
    if not update.callback_query:
        return

    query = update.callback_query
    state: AppState = context.bot_data["state"]

    preset = next((p for p in SNOOZE_PRESETS if p.key == preset_key), None)
    if preset is None:
        await query.answer("Unknown snooze option.")
        return

    now = utc_now()
    try:
        reminder = await state.reminders.snooze_reminder(reminder_id, snooze_until(preset, now), now)
    except NotFoundError:
        await query.answer("Reminder not found.")
        return
    except SchedulerUnavailableError:
        await query.answer("Could not snooze, please try again.", show_alert=True)
        return

    await state.notifier.forget(reminder_id)

    if query.message:
        await query.message.edit_text(
            f"⏸ <b>Snoozed:</b> {escape(reminder.title)}\n\n"
            f"Will remind you again {reminder.date_time.strftime('%b %d at %H:%M UTC')}.",
            parse_mode="HTML",
        )

    if preset.minutes is not None:
        await query.answer(f"⏸ Snoozed for {format_duration(preset.minutes)}")
    else:
        await query.answer(f"⏸ Snoozed: {preset.label}")


async def handle_dismiss_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: str
) -> None:
    """Close the notification without touching the reminder (it stays pending)."""
    if not update.callback_query:
        return

    state: AppState = context.bot_data["state"]
    await state.scheduler.dismiss(state.notifier, reminder_id)
    await update.callback_query.answer("Dismissed. It stays in /reminders until you complete it.")


async def handle_delete_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: str
) -> None:
    if not update.callback_query:
        return

    query = update.callback_query
    state: AppState = context.bot_data["state"]

    await state.reminders.delete_reminder(reminder_id)
    await state.notifier.forget(reminder_id)

    if query.message:
        await query.message.delete()
    await query.answer("🗑 Deleted")


async def handle_suggestion_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, accept: bool, text_hash: int
) -> None:
    """Save a suggestion as a template (first category) or drop it."""
    if not update.callback_query:
        return

    query = update.callback_query
    state: AppState = context.bot_data["state"]

    if not accept:
        await state.suggestions.dismiss_suggestion(text_hash)
        if query.message:
            await query.message.delete()
        await query.answer("Suggestion dismissed")
        return

    suggestions = await state.suggestions.get_suggestions()
    suggestion = next((s for s in suggestions if s.hash == text_hash), None)
    if suggestion is None:
        await query.answer("Suggestion no longer available.")
        return

    document = await state.templates.load()
    category = document.categories[0]
    title = suggestion.content.strip().splitlines()[0][:SUGGESTION_TITLE_LENGTH]

    try:
        await state.suggestions.accept_suggestion(text_hash, title, category.id)
    except ValidationError as e:
        await query.answer(str(e), show_alert=True)
        return

    if query.message:
        await query.message.edit_text(
            f"✓ Saved as template <b>{escape(title)}</b> in {escape(category.name)}.",
            parse_mode="HTML",
        )
    await query.answer("✓ Template saved")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers."""
    if not update.callback_query:
        return

    query = update.callback_query
    data = query.data

    if not data:
        return

    # Parse callback data; reminder ids never contain ":"
    parts = data.split(":")

    if parts[0] == "done" and len(parts) == 2:
        await handle_done_callback(update, context, parts[1])

    elif parts[0] == "snooze" and len(parts) == 3:
        await handle_snooze_callback(update, context, parts[1], parts[2])

    elif parts[0] == "dismiss" and len(parts) == 2:
        await handle_dismiss_callback(update, context, parts[1])

    elif parts[0] == "delete" and len(parts) == 2:
        await handle_delete_callback(update, context, parts[1])

    elif parts[0] in ("accept", "reject") and len(parts) == 2:
        await handle_suggestion_callback(update, context, parts[0] == "accept", int(parts[1]))

    else:
        await query.answer("Unknown action")
