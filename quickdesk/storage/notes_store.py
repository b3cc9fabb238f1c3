"""Notes - titled blocks of free text, one of them active."""

import json
import logging

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import NoteBlock, Notes, new_id
from quickdesk.storage.errors import NotFoundError, ValidationError
from quickdesk.utils.constants import (
    DEFAULT_NOTE_TITLE,
    MIGRATED_NOTE_TITLE,
    NOTES_STORAGE_KEY,
    NOTES_VERSION,
)

logger = logging.getLogger(__name__)


def initial_notes() -> Notes:
    block = NoteBlock(id=new_id("note"), title=DEFAULT_NOTE_TITLE)
    return Notes(version=NOTES_VERSION, active_block_id=block.id, blocks=[block])


class NotesStore:
    """Notes document in the synced partition."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def get_notes(self) -> Notes:
        """Saved notes; a legacy plain-text value becomes the first block."""
        try:
            raw = await self.kv.get(NOTES_STORAGE_KEY, "synced")
        except json.JSONDecodeError as e:
            logger.error(f"Error loading notes: {e}")
            return initial_notes()

        if not raw:
            notes = initial_notes()
            await self.save_notes(notes)
            return notes

        if isinstance(raw, str):
            notes = initial_notes()
            notes.blocks[0].content = raw
            notes.blocks[0].title = MIGRATED_NOTE_TITLE
            await self.save_notes(notes)
            logger.info("Migrated plain-text notes to blocks")
            return notes

        if not isinstance(raw, dict) or not isinstance(raw.get("blocks"), list):
            logger.warning("Stored notes have an unexpected shape, starting fresh")
            return initial_notes()

        try:
            notes = Notes.from_dict(raw)
        except (KeyError, TypeError) as e:
            logger.warning(f"Stored notes are malformed, starting fresh: {e}")
            return initial_notes()

        return notes if notes.blocks else initial_notes()

    async def save_notes(self, notes: Notes) -> None:
        await self.kv.set(NOTES_STORAGE_KEY, notes.to_dict(), "synced")

    async def add_block(self, title: str, content: str = "", associated_url: str | None = None) -> NoteBlock:
        """Append a block and make it the active one."""
        if not title or not title.strip():
            raise ValidationError("Note title cannot be empty.")

        notes = await self.get_notes()
        block = NoteBlock(
            id=new_id("note"), title=title.strip(), content=content, associated_url=associated_url
        )
        notes.blocks.append(block)
        notes.active_block_id = block.id
        await self.save_notes(notes)
        return block

    async def update_block(
        self, block_id: str, *, title: str | None = None, content: str | None = None
    ) -> NoteBlock:
        notes = await self.get_notes()
        block = _find(notes, block_id)
        if title is not None:
            block.title = title.strip() or block.title
        if content is not None:
            block.content = content
        await self.save_notes(notes)
        return block

    async def set_active(self, block_id: str) -> None:
        notes = await self.get_notes()
        _find(notes, block_id)
        notes.active_block_id = block_id
        await self.save_notes(notes)

    async def remove_block(self, block_id: str) -> None:
        """Delete a block; removing the last one leaves a fresh empty block."""
        notes = await self.get_notes()
        _find(notes, block_id)

        notes.blocks = [b for b in notes.blocks if b.id != block_id]
        if not notes.blocks:
            notes = initial_notes()
        elif notes.active_block_id == block_id:
            notes.active_block_id = notes.blocks[0].id

        await self.save_notes(notes)


def _find(notes: Notes, block_id: str) -> NoteBlock:
    for block in notes.blocks:
        if block.id == block_id:
            return block
    raise NotFoundError(f"Note block {block_id} not found")
