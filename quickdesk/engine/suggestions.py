"""Template suggestions from repeatedly typed text."""

import json
import logging

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import Message, Suggestion
from quickdesk.storage.template_store import TemplateStore
from quickdesk.utils.constants import (
    MIN_SUGGESTION_LENGTH,
    SUGGESTED_TEMPLATES_KEY,
    SUGGESTION_THRESHOLD,
    USAGE_TRACKING_KEY,
)

logger = logging.getLogger(__name__)


def simple_hash(text: str) -> int:
    """Signed 32-bit rolling hash over UTF-16 code units (``h * 31 + c``)."""
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code) & 0xFFFFFFFF
    return h - (1 << 32) if h & 0x80000000 else h


class SuggestionEngine:
    """Counts sent texts (local partition) and queues suggestions (synced)."""

    def __init__(self, kv: KeyValueStore, templates: TemplateStore):
        self.kv = kv
        self.templates = templates

    async def track_usage(self, text: str) -> int:
        """Count one use of ``text``; returns the new count."""
        text = text.strip()
        if not text:
            return 0

        usage = await self._usage()
        key = str(simple_hash(text))
        usage["hashes"][key] = usage["hashes"].get(key, 0) + 1
        usage["content"][key] = text
        await self.kv.set(USAGE_TRACKING_KEY, usage, "local")
        return usage["hashes"][key]

    async def get_suggestions(self) -> list[Suggestion]:
        try:
            raw = await self.kv.get(SUGGESTED_TEMPLATES_KEY, "synced") or []
        except json.JSONDecodeError as e:
            logger.error(f"Error loading suggestions: {e}")
            return []
        return [Suggestion(hash=s["hash"], content=s["content"], count=s["count"]) for s in raw]

    async def analyze_usage_and_suggest(self) -> list[Suggestion]:
        """Queue texts used often enough that are not templates yet.

        Returns only the suggestions added by this run.
        """
        usage = await self._usage()
        document = await self.templates.load()
        existing = await self.get_suggestions()

        template_hashes = {simple_hash(m.message) for m in document.messages}
        pending_hashes = {s.hash for s in existing}

        new_suggestions = []
        for key, count in usage["hashes"].items():
            content = usage["content"].get(key)
            text_hash = int(key)
            if (
                content
                and count >= SUGGESTION_THRESHOLD
                and len(content) >= MIN_SUGGESTION_LENGTH
                and text_hash not in template_hashes
                and text_hash not in pending_hashes
            ):
                new_suggestions.append(Suggestion(hash=text_hash, content=content, count=count))
                logger.info(f'New suggestion (used {count} times): "{content[:50]}..."')

        if new_suggestions:
            await self._save_suggestions(existing + new_suggestions)
            logger.info(f"{len(new_suggestions)} new suggestion(s) saved")
        else:
            logger.info("No new template suggestions found")

        return new_suggestions

    async def dismiss_suggestion(self, text_hash: int) -> None:
        suggestions = await self.get_suggestions()
        await self._save_suggestions([s for s in suggestions if s.hash != text_hash])

    async def accept_suggestion(self, text_hash: int, title: str, category_id: str) -> Message | None:
        """Turn a queued suggestion into a template message."""
        suggestions = await self.get_suggestions()
        suggestion = next((s for s in suggestions if s.hash == text_hash), None)
        if suggestion is None:
            return None

        message = await self.templates.add_message(title, suggestion.content, category_id)
        await self.dismiss_suggestion(text_hash)
        return message

    async def _usage(self) -> dict:
        try:
            usage = await self.kv.get(USAGE_TRACKING_KEY, "local")
        except json.JSONDecodeError as e:
            logger.error(f"Usage tracking data is not valid JSON, starting over: {e}")
            usage = None
        if not isinstance(usage, dict):
            usage = {}
        usage.setdefault("hashes", {})
        usage.setdefault("content", {})
        return usage

    async def _save_suggestions(self, suggestions: list[Suggestion]) -> None:
        await self.kv.set(
            SUGGESTED_TEMPLATES_KEY,
            [{"hash": s.hash, "content": s.content, "count": s.count} for s in suggestions],
            "synced",
        )
