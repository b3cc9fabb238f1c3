"""Data models.

Field names are snake_case in Python; ``to_dict``/``from_dict`` keep the
camelCase keys of the stored JSON format.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from quickdesk.utils.constants import DATA_VERSION, DEFAULT_PRIORITY
from quickdesk.utils.time_utils import parse_iso, to_iso

Recurrence = Literal["none", "daily", "weekly", "monthly"]
Priority = Literal["low", "medium", "high"]
ReminderState = Literal["active", "fired", "acknowledged"]


def new_id(prefix: str) -> str:
    """Fresh entity id, e.g. ``msg-1717171717171-3f9a1c2b``."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass
class Category:
    """A folder-like group of message templates."""

    id: str
    name: str
    shortcut: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Category":
        return cls(id=data["id"], name=data["name"], shortcut=data.get("shortcut") or "")

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "shortcut": self.shortcut}


@dataclass
class Message:
    """A reusable rich-text template."""

    id: str
    title: str
    message: str
    category_id: str
    order: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            message=data.get("message", ""),
            category_id=data["categoryId"],
            order=int(data.get("order", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "categoryId": self.category_id,
            "order": self.order,
        }


@dataclass
class Document:
    """Root of the template store."""

    categories: list[Category] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    version: int = DATA_VERSION

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            version=data.get("version", DATA_VERSION),
            categories=[Category.from_dict(c) for c in data.get("categories", [])],
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "categories": [c.to_dict() for c in self.categories],
            "messages": [m.to_dict() for m in self.messages],
        }

    def get_category(self, category_id: str) -> Category | None:
        return next((c for c in self.categories if c.id == category_id), None)

    def find_category_by_name(self, name: str) -> Category | None:
        wanted = name.strip().lower()
        return next((c for c in self.categories if c.name.lower() == wanted), None)

    def get_message(self, message_id: str) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)

    def messages_in(self, category_id: str) -> list[Message]:
        """Messages of a category sorted by order."""
        return sorted(
            (m for m in self.messages if m.category_id == category_id),
            key=lambda m: m.order,
        )


@dataclass
class Reminder:
    """A scheduled alert.

    State is derived from ``is_fired``/``fired_at``:
    active (False, None), fired (True, *), acknowledged (False, set).
    """

    id: str
    title: str
    date_time: datetime  # UTC
    created_at: int  # epoch ms
    description: str = ""
    url: str = ""
    recurrence: Recurrence = "none"
    priority: Priority = DEFAULT_PRIORITY  # type: ignore
    is_fired: bool = False
    fired_at: int | None = None  # epoch ms
    snooze_count: int = 0

    @property
    def state(self) -> ReminderState:
        if self.is_fired:
            return "fired"
        if self.fired_at is not None:
            return "acknowledged"
        return "active"

    @property
    def has_link(self) -> bool:
        return self.url.startswith("http")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reminder":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            date_time=parse_iso(data["dateTime"]),
            created_at=int(data.get("createdAt") or 0),
            description=data.get("description") or "",
            url=data.get("url") or "",
            recurrence=data.get("recurrence") or "none",
            priority=data.get("priority") or DEFAULT_PRIORITY,
            is_fired=bool(data.get("isFired", False)),
            fired_at=int(data["firedAt"]) if data.get("firedAt") is not None else None,
            snooze_count=int(data.get("snoozeCount") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dateTime": to_iso(self.date_time),
            "url": self.url,
            "recurrence": self.recurrence,
            "priority": self.priority,
            "createdAt": self.created_at,
            "isFired": self.is_fired,
            "firedAt": self.fired_at,
            "snoozeCount": self.snooze_count,
        }


@dataclass
class NoteBlock:
    """One titled block of free-form notes."""

    id: str
    title: str
    content: str = ""
    associated_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteBlock":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            associated_url=data.get("associatedUrl"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "associatedUrl": self.associated_url,
        }


@dataclass
class Notes:
    """The notes document."""

    active_block_id: str
    blocks: list[NoteBlock]
    version: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Notes":
        blocks = [NoteBlock.from_dict(b) for b in data["blocks"]]
        return cls(
            version=data.get("version", 2),
            active_block_id=data.get("activeBlockId") or (blocks[0].id if blocks else ""),
            blocks=blocks,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "activeBlockId": self.active_block_id,
            "blocks": [b.to_dict() for b in self.blocks],
        }


@dataclass
class Snippet:
    """A greeting or closing inserted around a reply."""

    id: str
    title: str
    content: str = ""
    shortcut: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snippet":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            content=data.get("content") or "",
            shortcut=data.get("shortcut") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "content": self.content, "shortcut": self.shortcut}


@dataclass
class GreetingsAndClosings:
    """Greeting and closing snippets, each list with an optional default."""

    greetings: list[Snippet] = field(default_factory=list)
    closings: list[Snippet] = field(default_factory=list)
    default_greeting_id: str | None = None
    default_closing_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GreetingsAndClosings":
        # Older data has no default ids
        return cls(
            greetings=[Snippet.from_dict(s) for s in data["greetings"]],
            closings=[Snippet.from_dict(s) for s in data["closings"]],
            default_greeting_id=data.get("defaultGreetingId"),
            default_closing_id=data.get("defaultClosingId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "greetings": [s.to_dict() for s in self.greetings],
            "closings": [s.to_dict() for s in self.closings],
            "defaultGreetingId": self.default_greeting_id,
            "defaultClosingId": self.default_closing_id,
        }


@dataclass
class Suggestion:
    """Text typed often enough to be offered as a new template."""

    hash: int
    content: str
    count: int
