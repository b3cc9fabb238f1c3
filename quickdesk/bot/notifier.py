"""Telegram delivery of reminder notifications."""

import json
import logging

from telegram import Bot
from telegram.error import TelegramError

from quickdesk.bot.formatters import format_notification
from quickdesk.bot.keyboards import notification_keyboard
from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import Reminder

logger = logging.getLogger(__name__)

# reminder id -> Telegram message id of its open notification (local partition)
NOTIFICATIONS_KEY = "openNotifications"


class TelegramNotifier:
    """Sends one message per fired reminder and can take it back."""

    def __init__(self, bot: Bot, chat_id: int | str, kv: KeyValueStore):
        self.bot = bot
        self.chat_id = chat_id
        self.kv = kv

    async def notify(self, reminder: Reminder) -> None:
        """Send the notification. TelegramError propagates to the heartbeat."""
        sent = await self.bot.send_message(
            chat_id=self.chat_id,
            text=format_notification(reminder),
            parse_mode="HTML",
            reply_markup=notification_keyboard(reminder),
        )

        open_messages = await self._open_messages()
        open_messages[reminder.id] = sent.message_id
        await self.kv.set(NOTIFICATIONS_KEY, open_messages, "local")

    async def clear(self, reminder_id: str) -> None:
        """Delete the notification message, if one is still open."""
        open_messages = await self._open_messages()
        message_id = open_messages.pop(reminder_id, None)
        if message_id is None:
            return

        await self.kv.set(NOTIFICATIONS_KEY, open_messages, "local")
        try:
            await self.bot.delete_message(chat_id=self.chat_id, message_id=message_id)
        except TelegramError as e:
            logger.warning(f"Could not delete notification for {reminder_id}: {e}")

    async def forget(self, reminder_id: str) -> None:
        """Drop the bookkeeping for a notification the user already acted on."""
        open_messages = await self._open_messages()
        if open_messages.pop(reminder_id, None) is not None:
            await self.kv.set(NOTIFICATIONS_KEY, open_messages, "local")

    async def _open_messages(self) -> dict[str, int]:
        try:
            value = await self.kv.get(NOTIFICATIONS_KEY, "local")
        except json.JSONDecodeError as e:
            logger.error(f"Open notification list is not valid JSON, resetting: {e}")
            return {}
        return value if isinstance(value, dict) else {}
