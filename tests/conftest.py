"""Shared fixtures: a migrated SQLite file, a fake scheduler link, a recording notifier."""

from contextlib import asynccontextmanager

import pytest

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.migrations import run_migrations


class FakeTransport:
    """Stands in for the scheduler; records every request."""

    def __init__(self):
        self.messages = []
        self.fail = False

    async def __call__(self, message):
        self.messages.append(message)
        if self.fail:
            return {"success": False, "error": "scheduler offline"}
        return {"success": True}

    def actions(self):
        return [(m["action"], m.get("reminderId")) for m in self.messages]


class RecordingNotifier:
    """Notifier that remembers what it was asked to show and clear."""

    def __init__(self):
        self.notified = []
        self.cleared = []
        self.forgotten = []
        self.fail = False

    async def notify(self, reminder):
        if self.fail:
            raise RuntimeError("notification service down")
        self.notified.append(reminder)

    async def clear(self, reminder_id):
        self.cleared.append(reminder_id)

    async def forget(self, reminder_id):
        self.forgotten.append(reminder_id)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "quickdesk.db"


@pytest.fixture
def open_kv(db_path):
    """Async context manager yielding a connected store on a fresh schema."""

    @asynccontextmanager
    async def _open():
        await run_migrations(db_path)
        kv = KeyValueStore(db_path)
        await kv.connect()
        try:
            yield kv
        finally:
            await kv.close()

    return _open


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier():
    return RecordingNotifier()
