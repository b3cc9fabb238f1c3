"""Tests for the reminder store lifecycle."""

import asyncio
from datetime import datetime, timedelta

import pytest

from quickdesk.engine.protocol import CLEAR_ALARM, SET_ALARM, SchedulerClient
from quickdesk.storage.errors import (
    MissingDateTimeError,
    NotFoundError,
    PastDateTimeError,
    SchedulerUnavailableError,
    ValidationError,
)
from quickdesk.storage.reminder_store import (
    ReminderStore,
    group_reminders,
    snooze_options,
    snooze_until,
)
from quickdesk.storage.settings_store import SettingsStore
from quickdesk.utils.constants import REMINDERS_STORAGE_KEY, SNOOZE_PRESETS
from quickdesk.utils.time_utils import UTC, to_ms


def utc(*args):
    return datetime(*args, tzinfo=UTC)


def make_store(kv, transport):
    return ReminderStore(kv, SchedulerClient(transport), SettingsStore(kv))


def test_save_future_reminder(open_kv, transport):
    """A valid save stores an active reminder and arms its alarm."""

    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            now = utc(2024, 1, 30, 12, 0)

            reminder_id = await store.save_reminder(
                title="Call client", date_time="2024-01-31T10:00", now=now
            )

            reminder = await store.get_reminder(reminder_id)
            assert reminder_id.startswith("reminder-")
            assert reminder.is_fired is False
            assert reminder.fired_at is None
            assert reminder.date_time == utc(2024, 1, 31, 10, 0)
            assert reminder.created_at == to_ms(now)
            assert transport.messages == [
                {"action": SET_ALARM, "reminderId": reminder_id, "alarmTime": to_ms(reminder.date_time)}
            ]

    asyncio.run(scenario())


def test_past_or_missing_date_writes_nothing(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            now = utc(2024, 1, 30, 12, 0)

            with pytest.raises(PastDateTimeError):
                await store.save_reminder(title="Late", date_time=utc(2024, 1, 30, 11, 0), now=now)

            # Must be more than one second ahead
            with pytest.raises(PastDateTimeError):
                await store.save_reminder(
                    title="Too soon", date_time=now + timedelta(milliseconds=1000), now=now
                )

            with pytest.raises(MissingDateTimeError):
                await store.save_reminder(title="No date", date_time=None, now=now)
            with pytest.raises(MissingDateTimeError):
                await store.save_reminder(title="No date", date_time="", now=now)

            with pytest.raises(ValidationError):
                await store.save_reminder(title="Bad", date_time="someday", now=now)
            with pytest.raises(ValidationError):
                await store.save_reminder(
                    title="Bad", date_time="2024-02-01T10:00", recurrence="yearly", now=now
                )

            assert await kv.get(REMINDERS_STORAGE_KEY) is None
            assert transport.messages == []

    asyncio.run(scenario())


def test_scheduler_failure_rolls_back_new_reminder(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            transport.fail = True

            with pytest.raises(SchedulerUnavailableError):
                await store.save_reminder(
                    title="Lost", date_time="2024-01-31T10:00", now=utc(2024, 1, 30)
                )

            assert await kv.get(REMINDERS_STORAGE_KEY) == {}

    asyncio.run(scenario())


def test_scheduler_failure_restores_edited_reminder(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            now = utc(2024, 1, 30)
            reminder_id = await store.save_reminder(
                title="Original", date_time="2024-01-31T10:00", now=now
            )

            transport.fail = True
            with pytest.raises(SchedulerUnavailableError):
                await store.save_reminder(
                    reminder_id=reminder_id, title="Edited", date_time="2024-02-05T10:00", now=now
                )

            reminder = await store.get_reminder(reminder_id)
            assert reminder.title == "Original"
            assert reminder.date_time == utc(2024, 1, 31, 10, 0)

    asyncio.run(scenario())


def test_edit_rearms_fired_reminder(open_kv, transport):
    """Any manual save resets the fired flags."""

    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Ping", date_time="2024-01-31T10:00", now=utc(2024, 1, 30)
            )
            await store.mark_fired(reminder_id, utc(2024, 1, 31, 10, 0))

            await store.save_reminder(
                reminder_id=reminder_id, title="Ping", date_time="2024-02-01T10:00",
                now=utc(2024, 1, 31, 10, 1),
            )

            reminder = await store.get_reminder(reminder_id)
            assert reminder.state == "active"
            assert reminder.fired_at is None

    asyncio.run(scenario())


def test_mark_fired_only_once(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Ping", date_time="2024-01-31T10:00", now=utc(2024, 1, 30)
            )

            assert await store.mark_fired(reminder_id, utc(2024, 1, 31, 9, 59)) is None

            fire_time = utc(2024, 1, 31, 10, 0, 30)
            fired = await store.mark_fired(reminder_id, fire_time)
            assert fired.state == "fired"
            assert fired.fired_at == to_ms(fire_time)

            assert await store.mark_fired(reminder_id, utc(2024, 1, 31, 10, 1)) is None
            assert await store.mark_fired("reminder-missing", fire_time) is None
            assert await store.pending_count() == 1

    asyncio.run(scenario())


def test_complete_daily_reminder_rolls_forward(open_kv, transport):
    """Completing a daily reminder at 2024-01-31T10:00 yields 2024-02-01T10:00."""

    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Standup", date_time="2024-01-31T10:00", recurrence="daily",
                now=utc(2024, 1, 30),
            )
            await store.mark_fired(reminder_id, utc(2024, 1, 31, 10, 0))

            completed = await store.complete_reminder(reminder_id, utc(2024, 1, 31, 10, 5))

            assert completed.id == reminder_id
            assert completed.state == "active"
            assert completed.date_time == utc(2024, 2, 1, 10, 0)
            assert transport.messages[-1] == {
                "action": SET_ALARM,
                "reminderId": reminder_id,
                "alarmTime": to_ms(utc(2024, 2, 1, 10, 0)),
            }

            stored = await store.get_reminder(reminder_id)
            assert stored.date_time == utc(2024, 2, 1, 10, 0)

    asyncio.run(scenario())


def test_complete_late_recurring_skips_past_occurrences(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Standup", date_time="2024-01-31T10:00", recurrence="daily",
                now=utc(2024, 1, 30),
            )
            await store.mark_fired(reminder_id, utc(2024, 1, 31, 10, 0))

            completed = await store.complete_reminder(reminder_id, utc(2024, 2, 3, 12, 0))

            assert completed.date_time == utc(2024, 2, 4, 10, 0)

    asyncio.run(scenario())


def test_complete_one_off_reminder_is_acknowledged(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Pay invoice", date_time="2024-01-31T10:00", now=utc(2024, 1, 30)
            )
            await store.mark_fired(reminder_id, utc(2024, 1, 31, 10, 0))

            done_at = utc(2024, 1, 31, 10, 15)
            completed = await store.complete_reminder(reminder_id, done_at)

            assert completed.state == "acknowledged"
            assert completed.is_fired is False
            assert completed.fired_at == to_ms(done_at)
            assert transport.actions()[-1] == (CLEAR_ALARM, reminder_id)

            # Completing again is a no-op
            again = await store.complete_reminder(reminder_id, utc(2024, 1, 31, 11, 0))
            assert again.fired_at == to_ms(done_at)

            with pytest.raises(NotFoundError):
                await store.complete_reminder("reminder-missing", done_at)

    asyncio.run(scenario())


def test_recurring_complete_survives_scheduler_outage(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Weekly", date_time="2024-01-31T10:00", recurrence="weekly",
                now=utc(2024, 1, 30),
            )
            await store.mark_fired(reminder_id, utc(2024, 1, 31, 10, 0))
            transport.fail = True

            completed = await store.complete_reminder(reminder_id, utc(2024, 1, 31, 10, 5))

            assert completed.date_time == utc(2024, 2, 7, 10, 0)
            assert (await store.get_reminder(reminder_id)).state == "active"

    asyncio.run(scenario())


def test_snooze_increments_count(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Snoozy", date_time="2024-01-31T10:00", now=utc(2024, 1, 30)
            )
            now = utc(2024, 1, 31, 10, 0)
            await store.mark_fired(reminder_id, now)

            snoozed = await store.snooze_reminder(reminder_id, now + timedelta(minutes=15), now)
            assert snoozed.state == "active"
            assert snoozed.snooze_count == 1

            await store.mark_fired(reminder_id, now + timedelta(minutes=15))
            await store.snooze_reminder(reminder_id, now + timedelta(hours=2), now + timedelta(minutes=16))

            stored = await store.get_reminder(reminder_id)
            assert stored.snooze_count == 2
            assert stored.date_time == now + timedelta(hours=2)

            with pytest.raises(NotFoundError):
                await store.snooze_reminder("reminder-missing", now + timedelta(hours=1), now)

    asyncio.run(scenario())


def test_retention_cleanup(open_kv, transport):
    """Acknowledged past retention goes; within retention stays."""

    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            now = utc(2024, 3, 20, 12, 0)
            created = utc(2024, 3, 1)

            old_id = await store.save_reminder(title="Old", date_time="2024-03-02T10:00", now=created)
            recent_id = await store.save_reminder(title="Recent", date_time="2024-03-02T11:00", now=created)

            reminders = await store._load()
            reminders[old_id]["firedAt"] = to_ms(now - timedelta(days=8))
            reminders[recent_id]["firedAt"] = to_ms(now - timedelta(days=6))
            await store._write(reminders)

            removed = await store.cleanup_expired(now)

            assert removed == [old_id]
            remaining = await store.get_reminders(now)
            assert list(remaining) == [recent_id]

    asyncio.run(scenario())


def test_retention_follows_settings(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            await store.settings.save_settings({"reminderRetentionDays": 2})
            now = utc(2024, 3, 20, 12, 0)

            reminder_id = await store.save_reminder(
                title="Done", date_time="2024-03-02T10:00", now=utc(2024, 3, 1)
            )
            reminders = await store._load()
            reminders[reminder_id]["firedAt"] = to_ms(now - timedelta(days=3))
            await store._write(reminders)

            assert await store.cleanup_expired(now) == [reminder_id]

    asyncio.run(scenario())


def test_missed_alarm_is_dropped(open_kv, transport):
    """An active reminder more than five minutes overdue is removed on read."""

    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            created = utc(2024, 1, 30)
            missed = await store.save_reminder(title="Missed", date_time="2024-01-31T10:00", now=created)
            grace = await store.save_reminder(title="Grace", date_time="2024-01-31T10:04", now=created)

            reminders = await store.get_reminders(utc(2024, 1, 31, 10, 6))

            assert missed not in reminders
            assert grace in reminders
            assert (CLEAR_ALARM, missed) in transport.actions()

    asyncio.run(scenario())


def test_cleanup_tolerates_scheduler_outage(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Missed", date_time="2024-01-31T10:00", now=utc(2024, 1, 30)
            )
            transport.fail = True

            assert await store.cleanup_expired(utc(2024, 2, 1)) == [reminder_id]
            assert await store.get_reminder(reminder_id) is None

    asyncio.run(scenario())


def test_delete_reminders(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            created = utc(2024, 1, 30)
            ids = [
                await store.save_reminder(title=f"R{i}", date_time=f"2024-02-0{i + 1}T10:00", now=created)
                for i in range(3)
            ]

            transport.fail = True
            await store.delete_reminder(ids[0])
            assert await store.get_reminder(ids[0]) is None

            transport.fail = False
            assert await store.delete_reminders([ids[1], ids[2], "reminder-missing"]) == 2
            assert await store._load() == {}

    asyncio.run(scenario())


def test_malformed_entries_are_skipped(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            reminder_id = await store.save_reminder(
                title="Good", date_time="2024-02-01T10:00", now=utc(2024, 1, 30)
            )
            reminders = await store._load()
            reminders["broken"] = {"id": "broken", "dateTime": "whenever"}
            reminders["bad-fired"] = {
                "id": "bad-fired",
                "dateTime": "2024-02-01T09:00:00.000Z",
                "isFired": True,
                "firedAt": "yesterday",
            }
            await store._write(reminders)

            assert list(await store.get_reminders(utc(2024, 1, 31))) == [reminder_id]
            assert await store.cleanup_expired(utc(2024, 1, 31)) == []

    asyncio.run(scenario())


def test_group_reminders_order(open_kv, transport):
    async def scenario():
        async with open_kv() as kv:
            store = make_store(kv, transport)
            created = utc(2024, 1, 1)
            late = await store.save_reminder(title="Late", date_time="2024-01-10T10:00", now=created)
            soon = await store.save_reminder(title="Soon", date_time="2024-01-05T10:00", now=created)
            fired_a = await store.save_reminder(title="A", date_time="2024-01-02T10:00", now=created)
            fired_b = await store.save_reminder(title="B", date_time="2024-01-02T11:00", now=created)

            await store.mark_fired(fired_b, utc(2024, 1, 2, 11, 0))
            await store.mark_fired(fired_a, utc(2024, 1, 2, 12, 0))
            await store.complete_reminder(fired_a, utc(2024, 1, 2, 13, 0))

            groups = group_reminders((await store.get_reminders(utc(2024, 1, 2, 13, 1))).values())

            assert [r.id for r in groups.pending] == [fired_b]
            assert [r.id for r in groups.active] == [soon, late]
            assert [r.id for r in groups.acknowledged] == [fired_a]

    asyncio.run(scenario())


def test_snooze_presets():
    now = utc(2024, 1, 31, 22, 30)
    options = dict((preset.key, when) for preset, when in snooze_options(now))

    assert options["15m"] == utc(2024, 1, 31, 22, 45)
    assert options["1h"] == utc(2024, 1, 31, 23, 30)
    assert options["tomorrow"] == utc(2024, 2, 1, 9, 0)
    assert snooze_until(SNOOZE_PRESETS[0], now) == options["15m"]
