"""Background scheduler - durable alarms, the heartbeat that fires them, notifications.

The scheduler owns the ``alarms`` table and is the only component that
registers or cancels alarms and raises notifications. It holds no state in
memory: anything that must survive a restart is in the database, so the
process can be suspended or restarted at any point.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

import aiosqlite

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import Reminder
from quickdesk.engine.protocol import CLEAR_ALARM, SET_ALARM, failure, ok
from quickdesk.storage.reminder_store import ReminderStore
from quickdesk.utils.time_utils import from_ms, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Host notification facility."""

    async def notify(self, reminder: Reminder) -> None: ...

    async def clear(self, reminder_id: str) -> None: ...

    async def forget(self, reminder_id: str) -> None: ...


class AlarmTable:
    """Persisted "next fire time" per reminder."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def set(self, reminder_id: str, fire_at: datetime) -> None:
        await self.kv.db.execute(
            """
            INSERT INTO alarms (reminder_id, fire_at) VALUES (?, ?)
            ON CONFLICT (reminder_id) DO UPDATE SET fire_at = excluded.fire_at
            """,
            (reminder_id, to_iso(fire_at)),
        )
        await self.kv.db.commit()

    async def clear(self, reminder_id: str) -> bool:
        cursor = await self.kv.db.execute(
            "DELETE FROM alarms WHERE reminder_id = ?", (reminder_id,)
        )
        await self.kv.db.commit()
        return cursor.rowcount > 0

    async def get(self, reminder_id: str) -> datetime | None:
        async with self.kv.db.execute(
            "SELECT fire_at FROM alarms WHERE reminder_id = ?", (reminder_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return parse_iso(row["fire_at"]) if row else None

    async def due(self, now: datetime) -> list[str]:
        """Reminder ids whose alarm time is at or before ``now``."""
        async with self.kv.db.execute(
            "SELECT reminder_id FROM alarms WHERE fire_at <= ? ORDER BY fire_at",
            (to_iso(now),),
        ) as cursor:
            rows = await cursor.fetchall()
            return [row["reminder_id"] for row in rows]

    async def count(self) -> int:
        async with self.kv.db.execute("SELECT COUNT(*) AS n FROM alarms") as cursor:
            row = await cursor.fetchone()
            return row["n"]


class Scheduler:
    """Scheduler side of the SET_ALARM / CLEAR_ALARM protocol."""

    def __init__(self, kv: KeyValueStore):
        self.alarms = AlarmTable(kv)

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any]:
        """Answer one protocol request. Never raises."""
        action = message.get("action")
        reminder_id = message.get("reminderId")

        try:
            if action == SET_ALARM:
                alarm_time = message.get("alarmTime")
                if not reminder_id or not alarm_time:
                    return failure("Missing parameters for SET_ALARM.")
                await self.alarms.set(reminder_id, from_ms(alarm_time))
                logger.debug(f"Alarm set for {reminder_id} at {alarm_time}")
                return ok()

            elif action == CLEAR_ALARM:
                if not reminder_id:
                    return failure("Missing parameter for CLEAR_ALARM.")
                await self.alarms.clear(reminder_id)
                return ok()

            return failure("Unknown action")

        except (aiosqlite.Error, ValueError, TypeError, OverflowError) as e:
            logger.error(f"Error processing scheduler message {action}: {e}")
            return failure(str(e))

    async def heartbeat(
        self, store: ReminderStore, notifier: Notifier, now: datetime | None = None
    ) -> list[Reminder]:
        """Fire everything that is due.

        1. Collects reminders with a due alarm, plus active reminders that are
           due but have no alarm (sweep for alarms lost across restarts)
        2. Clears the alarm and asks the store to mark the reminder fired
        3. Sends a notification for each reminder the store actually flipped

        A reminder the store refuses to flip (already fired, acknowledged,
        deleted, or moved later) is skipped, so nothing is notified twice.
        """
        if now is None:
            now = utc_now()

        fired: list[Reminder] = []

        try:
            due_ids = await self.alarms.due(now)
            for reminder in await store.list_due(now):
                if reminder.id not in due_ids:
                    logger.warning(f"Reminder {reminder.id} is due without an alarm, firing from sweep")
                    due_ids.append(reminder.id)

            if not due_ids:
                return fired

            logger.info(f"Heartbeat: {len(due_ids)} reminders due")

            for reminder_id in due_ids:
                try:
                    await self.alarms.clear(reminder_id)
                    reminder = await store.mark_fired(reminder_id, now)
                    if reminder is None:
                        continue

                    fired.append(reminder)
                    await notifier.notify(reminder)
                    logger.info(f"Fired reminder {reminder_id}")

                except Exception as e:
                    logger.error(f"Error firing reminder {reminder_id}: {e}")
                    continue

        except Exception as e:
            logger.error(f"Heartbeat error: {e}")

        return fired

    async def startup_recovery(
        self, store: ReminderStore, notifier: Notifier, now: datetime | None = None
    ) -> list[Reminder]:
        """Catch up after a restart.

        Alarms that came due while the process was down are fired right away,
        before any read can treat them as missed.
        """
        pending = await self.alarms.count()
        logger.info(f"Startup recovery: {pending} alarms on record")

        fired = await self.heartbeat(store, notifier, now)
        if fired:
            logger.info(f"Startup recovery fired {len(fired)} overdue reminders")
        return fired

    async def dismiss(self, notifier: Notifier, reminder_id: str) -> None:
        """Clear a notification and its alarm; the reminder stays fired."""
        try:
            await self.alarms.clear(reminder_id)
            await notifier.clear(reminder_id)
        except Exception as e:
            logger.error(f"Error clearing notification/alarm {reminder_id}: {e}")
