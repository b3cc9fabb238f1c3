"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from quickdesk.db.models import Reminder
from quickdesk.utils.constants import SNOOZE_PRESETS


def notification_keyboard(reminder: Reminder) -> InlineKeyboardMarkup:
    """Keyboard for a fired reminder: Open link, Done, Snooze presets, Dismiss."""
    rows = []

    if reminder.has_link:
        rows.append([InlineKeyboardButton("🔗 Open link", url=reminder.url)])

    rows.append(
        [
            InlineKeyboardButton("✓ Done", callback_data=f"done:{reminder.id}"),
            InlineKeyboardButton("✗ Dismiss", callback_data=f"dismiss:{reminder.id}"),
        ]
    )
    rows.append(
        [
            InlineKeyboardButton(
                f"⏸ {preset.label}", callback_data=f"snooze:{reminder.id}:{preset.key}"
            )
            for preset in SNOOZE_PRESETS
        ]
    )
    return InlineKeyboardMarkup(rows)


def reminder_actions_keyboard(reminder: Reminder) -> InlineKeyboardMarkup:
    """Keyboard for a reminder in the list: Done, Delete."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Done", callback_data=f"done:{reminder.id}"),
                InlineKeyboardButton("🗑 Delete", callback_data=f"delete:{reminder.id}"),
            ]
        ]
    )


def suggestion_keyboard(text_hash: int) -> InlineKeyboardMarkup:
    """Keyboard for a template suggestion: Save, Dismiss."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Save as template", callback_data=f"accept:{text_hash}"),
                InlineKeyboardButton("✗ Dismiss", callback_data=f"reject:{text_hash}"),
            ]
        ]
    )
