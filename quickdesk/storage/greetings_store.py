"""Greetings and closings - snippets placed before and after a reply."""

import json
import logging
from typing import Literal

import aiosqlite

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import GreetingsAndClosings, Snippet, new_id
from quickdesk.storage.errors import NotFoundError, ShortcutConflictError, ValidationError
from quickdesk.utils.constants import (
    GREETINGS_CLOSINGS_KEY,
    SNIPPET_KINDS,
    STARTER_CLOSINGS,
    STARTER_GREETINGS,
)
from quickdesk.utils.shortcuts import normalize_shortcut

logger = logging.getLogger(__name__)

SnippetKind = Literal["greetings", "closings"]

_ID_PREFIX = {"greetings": "grt", "closings": "cls"}


def starter_snippets() -> GreetingsAndClosings:
    """Fresh starter lists; no default is chosen until the user picks one."""
    return GreetingsAndClosings(
        greetings=[Snippet(id=new_id("grt"), title=t, content=c) for t, c in STARTER_GREETINGS],
        closings=[Snippet(id=new_id("cls"), title=t, content=c) for t, c in STARTER_CLOSINGS],
    )


class GreetingsStore:
    """Greetings and closings document in the synced partition."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def get_greetings_and_closings(self) -> GreetingsAndClosings:
        """Saved snippets, seeding the starter lists when either list is missing.

        A failed read returns empty lists and leaves storage untouched.
        """
        try:
            raw = await self.kv.get(GREETINGS_CLOSINGS_KEY, "synced")
        except (aiosqlite.Error, json.JSONDecodeError) as e:
            logger.error(f"Error loading greetings and closings: {e}")
            return GreetingsAndClosings()

        if (
            not isinstance(raw, dict)
            or not isinstance(raw.get("greetings"), list)
            or not isinstance(raw.get("closings"), list)
        ):
            data = starter_snippets()
            await self.save(data)
            logger.info("Seeded starter greetings and closings")
            return data

        try:
            return GreetingsAndClosings.from_dict(raw)
        except (KeyError, TypeError, AttributeError) as e:
            logger.error(f"Stored greetings and closings are malformed: {e}")
            return GreetingsAndClosings()

    async def save(self, data: GreetingsAndClosings) -> None:
        await self.kv.set(GREETINGS_CLOSINGS_KEY, data.to_dict(), "synced")

    async def add_snippet(
        self, kind: SnippetKind, title: str, content: str, shortcut: str = ""
    ) -> Snippet:
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty.")

        data = await self.get_greetings_and_closings()
        snippet = Snippet(
            id=new_id(_ID_PREFIX[_check_kind(kind)]),
            title=title.strip(),
            content=content,
            shortcut=_normalize(shortcut),
        )
        _items(data, kind).append(snippet)
        await self.save(data)
        return snippet

    async def update_snippet(
        self,
        kind: SnippetKind,
        snippet_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        shortcut: str | None = None,
    ) -> Snippet:
        data = await self.get_greetings_and_closings()
        snippet = _find(data, kind, snippet_id)

        if title is not None:
            snippet.title = title.strip() or snippet.title
        if content is not None:
            snippet.content = content
        if shortcut is not None:
            snippet.shortcut = _normalize(shortcut)

        await self.save(data)
        return snippet

    async def remove_snippet(self, kind: SnippetKind, snippet_id: str) -> None:
        """Delete a snippet; it stops being the default if it was one."""
        data = await self.get_greetings_and_closings()
        _find(data, kind, snippet_id)

        if kind == "greetings":
            data.greetings = [s for s in data.greetings if s.id != snippet_id]
            if data.default_greeting_id == snippet_id:
                data.default_greeting_id = None
        else:
            data.closings = [s for s in data.closings if s.id != snippet_id]
            if data.default_closing_id == snippet_id:
                data.default_closing_id = None

        await self.save(data)

    async def set_default(self, kind: SnippetKind, snippet_id: str | None) -> None:
        """Choose the default snippet of a list, or clear it with None."""
        data = await self.get_greetings_and_closings()
        if snippet_id is not None:
            _find(data, kind, snippet_id)

        if kind == "greetings":
            data.default_greeting_id = snippet_id
        else:
            data.default_closing_id = snippet_id

        await self.save(data)

    async def get_defaults(self) -> tuple[Snippet | None, Snippet | None]:
        """The default greeting and closing; a dangling id counts as none."""
        data = await self.get_greetings_and_closings()
        greeting = next((s for s in data.greetings if s.id == data.default_greeting_id), None)
        closing = next((s for s in data.closings if s.id == data.default_closing_id), None)
        return greeting, closing


def _check_kind(kind: str) -> str:
    if kind not in SNIPPET_KINDS:
        raise ValidationError(f"Unknown snippet list: {kind}")
    return kind


def _items(data: GreetingsAndClosings, kind: str) -> list[Snippet]:
    return data.greetings if _check_kind(kind) == "greetings" else data.closings


def _find(data: GreetingsAndClosings, kind: str, snippet_id: str) -> Snippet:
    for snippet in _items(data, kind):
        if snippet.id == snippet_id:
            return snippet
    raise NotFoundError(f"{kind[:-1].capitalize()} {snippet_id} not found")


def _normalize(shortcut: str) -> str:
    try:
        return normalize_shortcut(shortcut)
    except ValueError as e:
        raise ShortcutConflictError(str(e)) from e
