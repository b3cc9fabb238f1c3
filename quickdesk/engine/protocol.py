"""Request/response protocol between the stores and the background scheduler.

Messages are plain dicts so the scheduler can live in another execution
context:

    {"action": "SET_ALARM", "reminderId": str, "alarmTime": epoch ms}
    {"action": "CLEAR_ALARM", "reminderId": str}

and every reply is ``{"success": bool, "error": str | None}``.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from quickdesk.storage.errors import SchedulerUnavailableError
from quickdesk.utils.time_utils import to_ms

logger = logging.getLogger(__name__)

SET_ALARM = "SET_ALARM"
CLEAR_ALARM = "CLEAR_ALARM"

Transport = Callable[[dict[str, Any]], Awaitable[dict[str, Any] | None]]


def ok() -> dict[str, Any]:
    return {"success": True}


def failure(error: str) -> dict[str, Any]:
    return {"success": False, "error": error}


class SchedulerClient:
    """Foreground side of the protocol."""

    def __init__(self, transport: Transport):
        self.transport = transport

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        """Send a message and wait for a successful reply.

        Raises:
            SchedulerUnavailableError: when the scheduler cannot be reached,
                does not answer, or answers with ``success: False``.
        """
        action = message.get("action")
        try:
            response = await self.transport(message)
        except Exception as e:
            logger.error(f"Scheduler request {action} failed: {e}")
            raise SchedulerUnavailableError(f"Background operation failed: {e}") from e

        if not response or not response.get("success"):
            error = (response or {}).get("error") or "Scheduler did not respond successfully."
            logger.error(f"Scheduler request {action} failed: {error}")
            raise SchedulerUnavailableError(f"Background operation failed: {error}")

        return response

    async def schedule_at(self, reminder_id: str, when: datetime) -> None:
        await self.send({"action": SET_ALARM, "reminderId": reminder_id, "alarmTime": to_ms(when)})

    async def cancel(self, reminder_id: str) -> None:
        await self.send({"action": CLEAR_ALARM, "reminderId": reminder_id})

    async def cancel_quietly(self, reminder_id: str) -> bool:
        """Best-effort cancel; failures are logged, never raised."""
        try:
            await self.cancel(reminder_id)
            return True
        except SchedulerUnavailableError as e:
            logger.warning(f"Could not clear alarm {reminder_id} (scheduler may be inactive): {e}")
            return False
