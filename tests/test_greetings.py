"""Tests for the greetings and closings store."""

import asyncio

import pytest

from quickdesk.storage.errors import NotFoundError, ShortcutConflictError, ValidationError
from quickdesk.storage.greetings_store import GreetingsStore
from quickdesk.utils.constants import GREETINGS_CLOSINGS_KEY, STARTER_CLOSINGS, STARTER_GREETINGS


def test_first_read_seeds_and_persists(open_kv):
    async def scenario():
        async with open_kv() as kv:
            store = GreetingsStore(kv)
            data = await store.get_greetings_and_closings()

            assert [s.title for s in data.greetings] == [t for t, _ in STARTER_GREETINGS]
            assert [s.title for s in data.closings] == [t for t, _ in STARTER_CLOSINGS]
            assert data.default_greeting_id is None
            assert data.default_closing_id is None

            # Ids stay stable across reads
            again = await store.get_greetings_and_closings()
            assert [s.id for s in again.greetings] == [s.id for s in data.greetings]

            stored = await kv.get(GREETINGS_CLOSINGS_KEY, "synced")
            assert stored["defaultGreetingId"] is None
            assert len(stored["closings"]) == len(STARTER_CLOSINGS)

    asyncio.run(scenario())


def test_old_data_without_default_ids(open_kv):
    async def scenario():
        async with open_kv() as kv:
            await kv.set(
                GREETINGS_CLOSINGS_KEY,
                {"greetings": [{"id": "grt-1", "title": "Hi", "content": "Hello!"}], "closings": []},
                "synced",
            )

            data = await GreetingsStore(kv).get_greetings_and_closings()

            assert data.greetings[0].shortcut == ""
            assert data.closings == []
            assert data.default_greeting_id is None
            assert data.default_closing_id is None

    asyncio.run(scenario())


def test_missing_list_reseeds(open_kv):
    async def scenario():
        async with open_kv() as kv:
            await kv.set(GREETINGS_CLOSINGS_KEY, {"greetings": []}, "synced")

            data = await GreetingsStore(kv).get_greetings_and_closings()

            assert len(data.greetings) == len(STARTER_GREETINGS)
            assert len(data.closings) == len(STARTER_CLOSINGS)

    asyncio.run(scenario())


def test_unreadable_data_gives_empty_lists(open_kv):
    async def scenario():
        async with open_kv() as kv:
            await kv.db.execute(
                "INSERT INTO kv_store (partition, key, value) VALUES ('synced', ?, ?)",
                (GREETINGS_CLOSINGS_KEY, "{broken"),
            )
            await kv.db.commit()

            data = await GreetingsStore(kv).get_greetings_and_closings()

            assert data.greetings == []
            assert data.closings == []

    asyncio.run(scenario())


def test_snippet_lifecycle_and_defaults(open_kv):
    async def scenario():
        async with open_kv() as kv:
            store = GreetingsStore(kv)
            greeting = await store.add_snippet("greetings", "Morning", "Good morning!", "Alt+G")
            closing = (await store.get_greetings_and_closings()).closings[0]

            assert greeting.id.startswith("grt-")
            assert greeting.shortcut == "alt+g"

            await store.set_default("greetings", greeting.id)
            await store.set_default("closings", closing.id)
            default_greeting, default_closing = await store.get_defaults()
            assert default_greeting.content == "Good morning!"
            assert default_closing.id == closing.id

            await store.update_snippet("greetings", greeting.id, content="Good morning, all!")
            default_greeting, _ = await store.get_defaults()
            assert default_greeting.content == "Good morning, all!"

            # Removing the default clears it
            await store.remove_snippet("greetings", greeting.id)
            data = await store.get_greetings_and_closings()
            assert data.default_greeting_id is None
            assert greeting.id not in [s.id for s in data.greetings]
            assert data.default_closing_id == closing.id

            await store.set_default("closings", None)
            assert await store.get_defaults() == (None, None)

    asyncio.run(scenario())


def test_snippet_errors(open_kv):
    async def scenario():
        async with open_kv() as kv:
            store = GreetingsStore(kv)

            with pytest.raises(ValidationError):
                await store.add_snippet("greetings", "  ", "text")
            with pytest.raises(ValidationError):
                await store.add_snippet("signatures", "Sig", "text")
            with pytest.raises(ShortcutConflictError):
                await store.add_snippet("closings", "Bye", "text", "q")
            with pytest.raises(NotFoundError):
                await store.set_default("greetings", "grt-missing")
            with pytest.raises(NotFoundError):
                await store.remove_snippet("closings", "grt-missing")

    asyncio.run(scenario())
