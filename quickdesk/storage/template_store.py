"""Template store - categories and messages with dense per-category ordering."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

import aiosqlite

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import Category, Document, Message, new_id
from quickdesk.storage.errors import (
    CorruptDataError,
    DuplicateNameError,
    LastCategoryError,
    NotFoundError,
    ShortcutConflictError,
    ValidationError,
)
from quickdesk.storage.migration import default_document, migrate_document
from quickdesk.storage.ordering import (
    DropPosition,
    apply_order,
    compute_new_order,
    insert_at,
    next_order,
    renumber,
)
from quickdesk.utils.constants import DATA_VERSION, IMPORTED_MESSAGE_TITLE, STORAGE_KEY
from quickdesk.utils.shortcuts import is_protected, normalize_shortcut

logger = logging.getLogger(__name__)

CREATE_NEW = "--create-new--"


@dataclass
class ImportTask:
    """One imported message and where it should go.

    ``destination`` is an existing category id or CREATE_NEW, in which case
    ``new_category_name`` names the category to create (or reuse).
    """

    message_data: dict[str, Any]
    destination: str
    new_category_name: str = ""


@dataclass
class ImportGroup:
    """Imported messages that shared a category in the backup file."""

    category_name: str
    messages: list[dict[str, Any]] = field(default_factory=list)
    destination: str = CREATE_NEW


class TemplateStore:
    """CRUD over the single template document.

    Every mutation reloads the latest stored document right before applying
    its change and writes the whole document back (last writer wins).
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    # Document lifecycle

    async def load(self, now_ms: int | None = None) -> Document:
        """Read, migrate and return the document. Never raises on bad data."""
        try:
            raw = await self.kv.get(STORAGE_KEY, "local")
            if raw is None:
                raw = await self._move_from_synced()
        except json.JSONDecodeError as e:
            logger.error(f"Stored template document is not valid JSON: {e}")
            raw = None

        result = migrate_document(raw, now_ms)

        if result.needs_save:
            try:
                await self.kv.set(STORAGE_KEY, result.document, "local")
            except aiosqlite.Error as e:
                logger.error(f"Could not persist migrated template document: {e}")

        return Document.from_dict(result.document)

    async def save(self, document: Document) -> None:
        """Write the whole document, stamping the current version."""
        document.version = DATA_VERSION
        await self.kv.set(STORAGE_KEY, document.to_dict(), "local")

    async def reset(self) -> Document:
        """Overwrite the stored document with seeded defaults."""
        document = Document.from_dict(default_document())
        await self.save(document)
        logger.info("Template document reset to defaults")
        return document

    async def _move_from_synced(self) -> Any:
        # Older installations kept the document in the synced partition.
        raw = await self.kv.get(STORAGE_KEY, "synced")
        if raw is None:
            return None

        logger.info("Moving template document from synced to local storage")
        await self.kv.set(STORAGE_KEY, raw, "local")
        await self.kv.remove(STORAGE_KEY, "synced")
        return raw

    # Category operations

    async def add_category(self, name: str, shortcut: str = "") -> Category | None:
        """Create a category.

        Returns None for an empty name or a case-insensitive duplicate. The
        shortcut is normalized but its uniqueness is left to the caller.

        Raises:
            ShortcutConflictError: if the shortcut is not a valid combination.
        """
        if not name or not name.strip():
            return None

        try:
            shortcut = normalize_shortcut(shortcut)
        except ValueError as e:
            raise ShortcutConflictError(str(e)) from e

        document = await self.load()
        if document.find_category_by_name(name):
            logger.info(f"Category '{name.strip()}' already exists")
            return None

        category = Category(id=new_id("cat"), name=name.strip(), shortcut=shortcut)
        document.categories.append(category)
        await self.save(document)
        return category

    async def rename_category(self, category_id: str, name: str) -> Category:
        """Rename a category, refusing case-insensitive duplicates."""
        if not name or not name.strip():
            raise ValidationError("Category name cannot be empty.")

        document = await self.load()
        category = self._require_category(document, category_id)

        existing = document.find_category_by_name(name)
        if existing and existing.id != category_id:
            raise DuplicateNameError(f'Category "{name.strip()}" already exists.')

        category.name = name.strip()
        await self.save(document)
        return category

    async def update_category_shortcut(self, category_id: str, shortcut: str) -> None:
        """Bind (or clear, with "") a category's shortcut."""
        try:
            shortcut = normalize_shortcut(shortcut)
        except ValueError as e:
            raise ShortcutConflictError(str(e)) from e

        document = await self.load()
        category = self._require_category(document, category_id)
        _check_shortcut(shortcut, category_id, document.categories)

        category.shortcut = shortcut
        await self.save(document)

    async def save_category_changes(self, rows: Iterable[dict[str, Any]]) -> list[Category]:
        """Apply an edited category list (names, shortcuts, order) at once.

        ``rows`` is a sequence of ``{"id", "name", "shortcut"}`` in the new
        display order. Categories not listed keep their values and follow the
        listed ones. Nothing is written when any row is invalid.
        """
        document = await self.load()
        by_id = {c.id: c for c in document.categories}

        updated: list[Category] = []
        seen_names: set[str] = set()
        for row in rows:
            category_id = row["id"]
            if category_id not in by_id:
                raise NotFoundError(f"Category {category_id} not found")

            name = (row.get("name") or "").strip()
            if not name:
                raise ValidationError("Category name cannot be empty.")
            if name.lower() in seen_names:
                raise DuplicateNameError(f'Duplicate category name: "{name}"')
            seen_names.add(name.lower())

            try:
                shortcut = normalize_shortcut(row.get("shortcut", ""))
            except ValueError as e:
                raise ShortcutConflictError(str(e)) from e

            updated.append(Category(id=category_id, name=name, shortcut=shortcut))

        listed = {c.id for c in updated}
        rest = [c for c in document.categories if c.id not in listed]
        for category in rest:
            if category.name.lower() in seen_names:
                raise DuplicateNameError(f'Duplicate category name: "{category.name}"')

        categories = updated + rest
        for category in categories:
            _check_shortcut(category.shortcut, category.id, categories)

        document.categories = categories
        await self.save(document)
        return categories

    async def delete_category(self, category_id: str) -> None:
        """Delete a category, moving its messages to the first remaining one.

        Moved messages keep their relative order and are appended after the
        destination's existing messages.
        """
        document = await self.load()
        self._require_category(document, category_id)

        remaining = [c for c in document.categories if c.id != category_id]
        if not remaining:
            raise LastCategoryError("The last category cannot be deleted.")

        destination = remaining[0]
        destination_messages = document.messages_in(destination.id)
        start = next_order(destination_messages)

        for offset, message in enumerate(document.messages_in(category_id)):
            message.category_id = destination.id
            message.order = start + offset

        renumber(document.messages_in(destination.id))
        document.categories = remaining
        await self.save(document)
        logger.info(f"Deleted category {category_id}, messages moved to {destination.id}")

    # Message operations

    async def messages_in_category(self, category_id: str) -> list[Message]:
        document = await self.load()
        return document.messages_in(category_id)

    async def add_message(self, title: str, message: str, category_id: str) -> Message:
        """Append a new message to a category."""
        if not title or not title.strip() or not message or not message.strip():
            raise ValidationError("Title and content are required.")

        document = await self.load()
        self._require_category(document, category_id)

        created = Message(
            id=new_id("msg"),
            title=title.strip(),
            message=message,
            category_id=category_id,
            order=next_order(document.messages_in(category_id)),
        )
        document.messages.append(created)
        await self.save(document)
        return created

    async def update_message(
        self,
        message_id: str,
        *,
        title: str | None = None,
        message: str | None = None,
        category_id: str | None = None,
    ) -> Message:
        """Patch a message; a category change appends it to the new category."""
        document = await self.load()
        target = self._require_message(document, message_id)

        if title is not None:
            if not title.strip():
                raise ValidationError("Title cannot be empty.")
            target.title = title.strip()
        if message is not None:
            target.message = message

        if category_id is not None and category_id != target.category_id:
            self._require_category(document, category_id)
            source_id = target.category_id
            target.order = next_order(document.messages_in(category_id))
            target.category_id = category_id
            renumber(document.messages_in(source_id))

        await self.save(document)
        return target

    async def remove_message(self, message_id: str) -> None:
        """Delete a message and close the gap in its category."""
        document = await self.load()
        target = document.get_message(message_id)
        if target is None:
            return

        document.messages = [m for m in document.messages if m.id != message_id]
        renumber(document.messages_in(target.category_id))
        await self.save(document)

    async def reorder(self, message_id: str, target_category_id: str, target_index: int) -> None:
        """Move a message to ``target_index`` of a category's list."""
        document = await self.load()
        target = self._require_message(document, message_id)
        self._require_category(document, target_category_id)

        destination_ids = [m.id for m in document.messages_in(target_category_id)]
        ordered_ids = insert_at(message_id, destination_ids, target_index)
        self._apply_move(document, target, target_category_id, ordered_ids)
        await self.save(document)

    async def move_message(
        self,
        message_id: str,
        target_category_id: str,
        target_id: str | None = None,
        position: DropPosition = "append",
    ) -> None:
        """Drop a message before/after another one, or at a category's end."""
        document = await self.load()
        target = self._require_message(document, message_id)
        self._require_category(document, target_category_id)

        destination_ids = [m.id for m in document.messages_in(target_category_id)]
        ordered_ids = compute_new_order(message_id, destination_ids, target_id, position)
        self._apply_move(document, target, target_category_id, ordered_ids)
        await self.save(document)

    def _apply_move(
        self,
        document: Document,
        message: Message,
        target_category_id: str,
        ordered_ids: list[str],
    ) -> None:
        source_id = message.category_id
        message.category_id = target_category_id
        apply_order(document.messages_in(target_category_id), ordered_ids)

        if source_id != target_category_id:
            renumber(document.messages_in(source_id))

    # Import / export

    async def export_document(self, message_ids: Iterable[str] | None = None) -> dict[str, Any]:
        """Portable backup of the selected messages (all when None).

        Only categories that hold at least one exported message are included.
        """
        document = await self.load()
        wanted = set(message_ids) if message_ids is not None else None

        messages = [
            m
            for category in document.categories
            for m in document.messages_in(category.id)
            if wanted is None or m.id in wanted
        ]
        used = {m.category_id for m in messages}

        return {
            "version": DATA_VERSION,
            "categories": [c.to_dict() for c in document.categories if c.id in used],
            "messages": [m.to_dict() for m in messages],
        }

    async def plan_import(self, imported: dict[str, Any]) -> list[ImportGroup]:
        """Group a parsed backup by category and suggest destinations.

        A group whose name matches an existing category (case-insensitively)
        defaults to merging into it; otherwise a new category is proposed.
        """
        document = await self.load()
        names = {c["id"]: c.get("name") or "" for c in imported["categories"]}

        groups: dict[str, ImportGroup] = {}
        for msg in imported["messages"]:
            name = names.get(msg.get("categoryId"), "") or IMPORTED_MESSAGE_TITLE
            group = groups.get(name)
            if group is None:
                existing = document.find_category_by_name(name)
                group = ImportGroup(
                    category_name=name,
                    destination=existing.id if existing else CREATE_NEW,
                )
                groups[name] = group
            group.messages.append(msg)

        return list(groups.values())

    async def import_messages(self, tasks: Iterable[ImportTask]) -> int:
        """Merge imported messages; returns how many were added.

        Imported ids are never reused, so nothing is overwritten.
        """
        document = await self.load()
        next_orders: dict[str, int] = {}
        imported_count = 0

        for task in tasks:
            if task.destination == CREATE_NEW:
                category = _add_category_in_memory(document, task.new_category_name)
            else:
                category = document.get_category(task.destination)

            if category is None:
                logger.warning(f"Skipping imported message with no destination: {task.destination}")
                continue

            if category.id not in next_orders:
                next_orders[category.id] = next_order(document.messages_in(category.id))

            document.messages.append(
                Message(
                    id=new_id("msg"),
                    title=task.message_data.get("title") or IMPORTED_MESSAGE_TITLE,
                    message=task.message_data.get("message") or "",
                    category_id=category.id,
                    order=next_orders[category.id],
                )
            )
            next_orders[category.id] += 1
            imported_count += 1

        if imported_count:
            await self.save(document)
            logger.info(f"Imported {imported_count} messages")

        return imported_count

    # Helpers

    def _require_category(self, document: Document, category_id: str) -> Category:
        category = document.get_category(category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    def _require_message(self, document: Document, message_id: str) -> Message:
        message = document.get_message(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return message


def parse_import(text: str | bytes) -> dict[str, Any]:
    """Validate a backup file and return its ``{categories, messages}``.

    Raises:
        CorruptDataError: if the text is not JSON or lacks the expected lists.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptDataError(f"Backup file is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CorruptDataError("Backup file must contain an object.")

    categories = data.get("categories")
    messages = data.get("messages")
    if not isinstance(categories, list) or not isinstance(messages, list):
        raise CorruptDataError("Backup file must contain 'categories' and 'messages' lists.")

    return {
        "version": data.get("version"),
        "categories": [
            {**c, "name": c.get("name") if isinstance(c.get("name"), str) else ""}
            for c in categories
            if isinstance(c, dict) and isinstance(c.get("id"), str) and c["id"]
        ],
        "messages": [_imported_message(m) for m in messages if isinstance(m, dict)],
    }


def _imported_message(msg: dict[str, Any]) -> dict[str, Any]:
    category_id = msg.get("categoryId")
    if category_id is not None and not isinstance(category_id, str):
        return {**msg, "categoryId": None}
    return msg


def tasks_from_plan(groups: Iterable[ImportGroup]) -> list[ImportTask]:
    """Expand an import plan into one task per message, keeping group choices."""
    return [
        ImportTask(
            message_data=msg,
            destination=group.destination,
            new_category_name=group.category_name if group.destination == CREATE_NEW else "",
        )
        for group in groups
        for msg in group.messages
    ]


def _check_shortcut(shortcut: str, owner_id: str, categories: Iterable[Category]) -> None:
    if not shortcut:
        return
    if is_protected(shortcut):
        raise ShortcutConflictError(f'Shortcut "{shortcut}" is reserved by the system.')
    for category in categories:
        if category.id != owner_id and _stored_shortcut(category) == shortcut:
            raise ShortcutConflictError(
                f'Shortcut "{shortcut}" is already used by "{category.name}".'
            )


def _stored_shortcut(category: Category) -> str:
    # Older documents may hold shortcuts saved before normalization
    try:
        return normalize_shortcut(category.shortcut)
    except ValueError:
        return category.shortcut


def _add_category_in_memory(document: Document, name: str) -> Category | None:
    if not name or not name.strip():
        return None

    existing = document.find_category_by_name(name)
    if existing:
        return existing

    category = Category(id=new_id("cat"), name=name.strip())
    document.categories.append(category)
    return category
