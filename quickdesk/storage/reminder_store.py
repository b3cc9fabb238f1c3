"""Reminder store - lifecycle, retention and recurrence of reminders.

Lifecycle (derived from ``isFired``/``firedAt``):

    active ──alarm──> fired ──complete──> acknowledged ──retention──> deleted
      ^                 │
      └──snooze/recur───┘

Only this store mutates reminders. The background scheduler asks it to flip
active -> fired through ``mark_fired`` and nothing else.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable

import aiosqlite

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import Reminder
from quickdesk.engine.protocol import SchedulerClient
from quickdesk.engine.recurrence import next_occurrence_after
from quickdesk.storage.errors import (
    MissingDateTimeError,
    NotFoundError,
    PastDateTimeError,
    SchedulerUnavailableError,
    ValidationError,
)
from quickdesk.storage.settings_store import SettingsStore
from quickdesk.utils.constants import (
    DEFAULT_PRIORITY,
    MIN_LEAD_TIME_MS,
    MISSED_ALARM_GRACE_MS,
    PRIORITIES,
    RECURRENCES,
    REMINDERS_STORAGE_KEY,
    SNOOZE_PRESETS,
    TOMORROW_HOUR,
    SnoozePreset,
)
from quickdesk.utils.time_utils import ensure_utc, parse_iso, to_ms, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReminderGroups:
    """Reminders split by state, each list in display order."""

    pending: list[Reminder] = field(default_factory=list)
    active: list[Reminder] = field(default_factory=list)
    acknowledged: list[Reminder] = field(default_factory=list)


class ReminderStore:
    """Reminder map (keyed by id) in the synced partition."""

    def __init__(self, kv: KeyValueStore, scheduler: SchedulerClient, settings: SettingsStore):
        self.kv = kv
        self.scheduler = scheduler
        self.settings = settings

    # Reads

    async def get_reminders(self, now: datetime | None = None) -> dict[str, Reminder]:
        """All reminders, after dropping expired ones."""
        await self.cleanup_expired(now)
        return _decode(await self._load())

    async def get_reminder(self, reminder_id: str) -> Reminder | None:
        entry = (await self._load()).get(reminder_id)
        return _decode_one(reminder_id, entry) if entry else None

    async def list_due(self, now: datetime | None = None) -> list[Reminder]:
        """Active reminders whose time has come."""
        if now is None:
            now = utc_now()
        reminders = _decode(await self._load()).values()
        return [r for r in reminders if r.state == "active" and r.date_time <= now]

    async def pending_count(self) -> int:
        """Fired reminders still waiting for the user."""
        reminders = _decode(await self._load()).values()
        return sum(1 for r in reminders if r.state == "fired")

    # Lifecycle

    async def save_reminder(
        self,
        *,
        title: str,
        date_time: datetime | str | None,
        reminder_id: str | None = None,
        description: str = "",
        url: str = "",
        recurrence: str = "none",
        priority: str = DEFAULT_PRIORITY,
        created_at: int | None = None,
        snooze_count: int = 0,
        snoozed: bool = False,
        now: datetime | None = None,
    ) -> str:
        """Create or update a reminder and arm its alarm.

        Saving always re-arms: ``isFired`` and ``firedAt`` are reset. A
        ``snoozed`` save increments ``snooze_count``.

        Raises:
            MissingDateTimeError: no date/time given.
            PastDateTimeError: date/time is not at least one second ahead.
            ValidationError: unknown recurrence/priority or unparseable date.
            SchedulerUnavailableError: the alarm could not be set; the stored
                entry has been rolled back.
        """
        if now is None:
            now = utc_now()

        if date_time is None or date_time == "":
            raise MissingDateTimeError("The reminder date and time are required.")

        if isinstance(date_time, str):
            try:
                date_time = parse_iso(date_time)
            except ValueError as e:
                raise ValidationError(f"Invalid reminder date/time: {date_time}") from e
        date_time = ensure_utc(date_time)

        if to_ms(date_time) <= to_ms(now) + MIN_LEAD_TIME_MS:
            raise PastDateTimeError("The reminder date and time must be in the future.")
        if recurrence not in RECURRENCES:
            raise ValidationError(f"Unknown recurrence: {recurrence}")
        if priority not in PRIORITIES:
            raise ValidationError(f"Unknown priority: {priority}")

        reminder = Reminder(
            id=reminder_id or f"reminder-{uuid.uuid4()}",
            title=title,
            date_time=date_time,
            created_at=created_at or to_ms(now),
            description=description or "",
            url=url or "",
            recurrence=recurrence,  # type: ignore
            priority=priority,  # type: ignore
            is_fired=False,
            fired_at=None,
            snooze_count=snooze_count + (1 if snoozed else 0),
        )

        reminders = await self._load()
        previous = reminders.get(reminder.id)
        reminders[reminder.id] = reminder.to_dict()
        await self._write(reminders)

        try:
            await self.scheduler.schedule_at(reminder.id, reminder.date_time)
        except SchedulerUnavailableError:
            logger.error(f"Could not schedule alarm for {reminder.id}, rolling back")
            await self._rollback(reminder.id, previous)
            raise

        logger.info(
            f"{'Updated' if previous else 'Created'} reminder {reminder.id} "
            f"for {reminder.date_time.isoformat()}"
        )
        return reminder.id

    async def snooze_reminder(
        self, reminder_id: str, until: datetime, now: datetime | None = None
    ) -> Reminder:
        """Push a reminder to ``until`` and re-arm it (fired -> active)."""
        reminder = await self.get_reminder(reminder_id)
        if reminder is None:
            raise NotFoundError(f"Reminder {reminder_id} not found")

        await self.save_reminder(
            reminder_id=reminder.id,
            title=reminder.title,
            date_time=until,
            description=reminder.description,
            url=reminder.url,
            recurrence=reminder.recurrence,
            priority=reminder.priority,
            created_at=reminder.created_at,
            snooze_count=reminder.snooze_count,
            snoozed=True,
            now=now,
        )

        reminder.date_time = ensure_utc(until)
        reminder.is_fired = False
        reminder.fired_at = None
        reminder.snooze_count += 1
        return reminder

    async def complete_reminder(self, reminder_id: str, now: datetime | None = None) -> Reminder:
        """User acknowledgement.

        Recurring reminders go straight back to active at their next
        occurrence after ``now``; others become acknowledged with
        ``fired_at = now`` and are kept for the retention window.
        """
        if now is None:
            now = utc_now()

        reminders = await self._load()
        entry = reminders.get(reminder_id)
        if entry is None:
            raise NotFoundError(f"Reminder {reminder_id} not found")

        reminder = Reminder.from_dict(entry)
        if reminder.state == "acknowledged":
            return reminder

        next_time = next_occurrence_after(reminder.date_time, reminder.recurrence, now)
        reminder.is_fired = False

        if next_time is not None:
            reminder.date_time = next_time
            reminder.fired_at = None
        else:
            reminder.fired_at = to_ms(now)

        reminders[reminder_id] = reminder.to_dict()
        await self._write(reminders)

        if next_time is not None:
            try:
                await self.scheduler.schedule_at(reminder_id, next_time)
            except SchedulerUnavailableError as e:
                # The heartbeat sweep still fires active reminders without an alarm.
                logger.warning(f"Next occurrence of {reminder_id} not scheduled: {e}")
            logger.info(f"Reminder {reminder_id} recurs at {next_time.isoformat()}")
        else:
            await self.scheduler.cancel_quietly(reminder_id)
            logger.info(f"Reminder {reminder_id} acknowledged")

        return reminder

    async def mark_fired(self, reminder_id: str, now: datetime | None = None) -> Reminder | None:
        """Flip an active, due reminder to fired.

        Returns None (and writes nothing) when the reminder is gone, already
        fired or acknowledged, or not due yet, so an alarm can never fire the
        same occurrence twice.
        """
        if now is None:
            now = utc_now()

        reminders = await self._load()
        entry = reminders.get(reminder_id)
        if entry is None:
            logger.warning(f"Reminder not found when its alarm fired: {reminder_id}")
            return None

        reminder = Reminder.from_dict(entry)
        if reminder.state != "active":
            logger.info(f"Reminder {reminder_id} is {reminder.state}, not firing")
            return None
        if reminder.date_time > now:
            logger.info(f"Reminder {reminder_id} is not due until {reminder.date_time.isoformat()}")
            return None

        reminder.is_fired = True
        reminder.fired_at = to_ms(now)
        reminders[reminder_id] = reminder.to_dict()
        await self._write(reminders)
        return reminder

    async def delete_reminder(self, reminder_id: str) -> None:
        """Cancel the alarm (best effort) and remove the reminder."""
        await self.scheduler.cancel_quietly(reminder_id)

        reminders = await self._load()
        if reminders.pop(reminder_id, None) is not None:
            await self._write(reminders)
            logger.info(f"Deleted reminder {reminder_id}")

    async def delete_reminders(self, reminder_ids: Iterable[str]) -> int:
        """Bulk delete; returns how many were removed."""
        reminders = await self._load()
        removed = 0

        for reminder_id in reminder_ids:
            if reminders.pop(reminder_id, None) is not None:
                removed += 1
                await self.scheduler.cancel_quietly(reminder_id)

        if removed:
            await self._write(reminders)
        return removed

    async def cleanup_expired(self, now: datetime | None = None) -> list[str]:
        """Delete reminders past retention and active ones whose alarm was missed.

        Failures are logged and swallowed so reads keep working.
        """
        if now is None:
            now = utc_now()
        now_ms = to_ms(now)

        try:
            retention_ms = await self.settings.retention_ms()
            reminders = await self._load()
            expired = []

            for reminder_id, entry in reminders.items():
                reminder = _decode_one(reminder_id, entry)
                if reminder is None:
                    continue
                if reminder.fired_at is not None:
                    if now_ms - reminder.fired_at > retention_ms:
                        expired.append(reminder_id)
                elif to_ms(reminder.date_time) < now_ms - MISSED_ALARM_GRACE_MS:
                    logger.warning(f"Dropping reminder {reminder_id}: alarm was missed")
                    expired.append(reminder_id)

            if not expired:
                return []

            for reminder_id in expired:
                del reminders[reminder_id]
                await self.scheduler.cancel_quietly(reminder_id)

            await self._write(reminders)
            logger.info(f"Cleaned up {len(expired)} expired reminders")
            return expired

        except (aiosqlite.Error, json.JSONDecodeError) as e:
            logger.error(f"Error cleaning up old reminders: {e}")
            return []

    # Storage helpers

    async def _load(self) -> dict[str, Any]:
        try:
            raw = await self.kv.get(REMINDERS_STORAGE_KEY, "synced")
        except json.JSONDecodeError as e:
            logger.error(f"Stored reminders are not valid JSON: {e}")
            return {}
        return raw if isinstance(raw, dict) else {}

    async def _write(self, reminders: dict[str, Any]) -> None:
        await self.kv.set(REMINDERS_STORAGE_KEY, reminders, "synced")

    async def _rollback(self, reminder_id: str, previous: dict[str, Any] | None) -> None:
        try:
            reminders = await self._load()
            if previous is None:
                reminders.pop(reminder_id, None)
            else:
                reminders[reminder_id] = previous
            await self._write(reminders)
        except aiosqlite.Error as e:
            logger.error(f"Rollback of reminder {reminder_id} failed: {e}")


def group_reminders(reminders: Iterable[Reminder]) -> ReminderGroups:
    """Pending (oldest fired first), active (soonest first), acknowledged (newest first)."""
    groups = ReminderGroups()
    for reminder in reminders:
        getattr(groups, "pending" if reminder.state == "fired" else reminder.state).append(reminder)

    groups.pending.sort(key=lambda r: r.fired_at or 0)
    groups.active.sort(key=lambda r: r.date_time)
    groups.acknowledged.sort(key=lambda r: r.fired_at or 0, reverse=True)
    return groups


def snooze_options(now: datetime | None = None) -> list[tuple[SnoozePreset, datetime]]:
    """The snooze presets resolved to concrete times."""
    if now is None:
        now = utc_now()

    return [(preset, snooze_until(preset, now)) for preset in SNOOZE_PRESETS]


def snooze_until(preset: SnoozePreset, now: datetime) -> datetime:
    if preset.minutes is not None:
        return now + timedelta(minutes=preset.minutes)
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=TOMORROW_HOUR, minute=0, second=0, microsecond=0)


def _decode(raw: dict[str, Any]) -> dict[str, Reminder]:
    decoded = {}
    for reminder_id, entry in raw.items():
        reminder = _decode_one(reminder_id, entry)
        if reminder is not None:
            decoded[reminder_id] = reminder
    return decoded


def _decode_one(reminder_id: str, entry: Any) -> Reminder | None:
    try:
        return Reminder.from_dict(entry)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Skipping malformed reminder {reminder_id}: {e}")
        return None
