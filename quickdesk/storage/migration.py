"""Template document migration engine.

Upgrades whatever is stored under the template key to the current schema:

    v1  bare list of messages, or an object without usable categories
    v2  categories + messages, no ``order``
    v3  messages carry a dense per-category ``order``

Every step is checked by version number and safe to run on its own output.
"""

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any

from quickdesk.utils.constants import (
    DATA_VERSION,
    DEFAULT_CATEGORIES,
    MIGRATED_CATEGORY_NAME,
    UNNAMED_CATEGORY,
    UNTITLED_MESSAGE,
)

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    """Outcome of a migration run."""

    document: dict[str, Any]
    needs_save: bool
    reseeded: bool = False


def default_document(now_ms: int | None = None) -> dict[str, Any]:
    """Seeded document for a fresh (or unrecoverable) installation."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    return {
        "version": DATA_VERSION,
        "categories": [
            {"id": f"cat-{now_ms}-{index}", "name": name, "shortcut": shortcut}
            for index, (name, shortcut) in enumerate(DEFAULT_CATEGORIES)
        ],
        "messages": [],
    }


def migrate_document(raw: Any, now_ms: int | None = None) -> MigrationResult:
    """Bring a stored value up to the current schema.

    Never raises: unrecoverable input produces a freshly seeded document with
    ``reseeded=True``. ``needs_save`` is set only when the version changed, so
    steady-state reads do not write.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    if _is_empty(raw):
        return _reseed(now_ms, "no stored document")

    if not isinstance(raw, (dict, list)):
        return _reseed(now_ms, f"unexpected stored type {type(raw).__name__}")

    try:
        data = copy.deepcopy(raw)
        input_version = 0 if isinstance(raw, list) else _version_of(raw)

        if isinstance(data, list) or input_version < 2:
            logger.info("Migrating template document to v2")
            data = _upgrade_to_v2(data, now_ms)

        if data["version"] < 3:
            logger.info("Migrating template document to v3 (ordering)")
            categories = data.get("categories")
            if not isinstance(categories, list) or not categories:
                return _reseed(now_ms, "no categories to order messages into")
            data = _upgrade_to_v3(data)

        if data["version"] > DATA_VERSION:
            logger.warning(
                f"Template document has future version {data['version']}, "
                f"reading it as v{DATA_VERSION}"
            )
            data["version"] = DATA_VERSION

        if not _is_valid(data):
            return _reseed(now_ms, "document failed structural validation")

        repaired = _repair_ordering(data)

    except (KeyError, TypeError, ValueError, AttributeError) as e:
        return _reseed(now_ms, f"migration error: {e}")

    return MigrationResult(
        document=data, needs_save=repaired or data["version"] != input_version
    )


def _upgrade_to_v2(data: Any, now_ms: int) -> dict[str, Any]:
    fallback_id = f"cat-{now_ms}"
    categories = [{"id": fallback_id, "name": MIGRATED_CATEGORY_NAME, "shortcut": ""}]

    if isinstance(data, list):
        raw_messages = data
    else:
        raw_categories = data.get("categories")
        if isinstance(raw_categories, list) and raw_categories:
            categories = [
                {
                    "id": cat.get("id") or f"cat-{now_ms}-{index}",
                    "name": cat.get("name") or UNNAMED_CATEGORY,
                    "shortcut": cat.get("shortcut") or "",
                }
                for index, cat in enumerate(raw_categories)
                if isinstance(cat, dict)
            ] or categories
        raw_messages = data.get("messages") if isinstance(data.get("messages"), list) else []

    known_ids = {cat["id"] for cat in categories}
    first_id = categories[0]["id"]

    messages = []
    for index, msg in enumerate(raw_messages):
        if not isinstance(msg, dict):
            continue
        category_id = msg.get("categoryId")
        messages.append(
            {
                "id": msg.get("id") or f"msg-{now_ms + index}",
                "title": msg.get("title") or UNTITLED_MESSAGE,
                "message": msg.get("message") or "",
                "categoryId": category_id if category_id in known_ids else first_id,
            }
        )

    return {"version": 2, "categories": categories, "messages": messages}


def _upgrade_to_v3(data: dict[str, Any]) -> dict[str, Any]:
    categories = data["categories"]
    first_id = categories[0]["id"]

    # Groups follow category order; dicts keep insertion order.
    groups: dict[str, list[dict[str, Any]]] = {cat["id"]: [] for cat in categories}

    for msg in data.get("messages") or []:
        if not isinstance(msg, dict):
            continue
        if msg.get("categoryId") not in groups:
            msg["categoryId"] = first_id
        groups[msg["categoryId"]].append(msg)

    ordered = []
    for group in groups.values():
        for index, msg in enumerate(group):
            msg["order"] = index
            ordered.append(msg)

    data["messages"] = ordered
    data["version"] = 3
    return data


def _repair_ordering(data: dict[str, Any]) -> bool:
    """Re-point orphans and close order gaps left by racing writers.

    Relative order inside each category is kept. Returns True when anything
    changed.
    """
    categories = data["categories"]
    first_id = categories[0]["id"]
    groups: dict[str, list[tuple[int, dict[str, Any]]]] = {c["id"]: [] for c in categories}
    changed = False

    for position, msg in enumerate(data["messages"]):
        if msg["categoryId"] not in groups:
            msg["categoryId"] = first_id
            msg["order"] = len(data["messages"]) + position
            changed = True
        order = msg.get("order")
        if not isinstance(order, int) or isinstance(order, bool):
            order = len(data["messages"]) + position
            changed = True
        groups[msg["categoryId"]].append((order, msg))

    for group in groups.values():
        group.sort(key=lambda item: item[0])
        for index, (_, msg) in enumerate(group):
            if msg.get("order") != index:
                msg["order"] = index
                changed = True

    if changed:
        logger.warning("Repaired message ordering in template document")
    return changed


def _is_valid(data: dict[str, Any]) -> bool:
    categories = data.get("categories")
    messages = data.get("messages")
    if not isinstance(categories, list) or not isinstance(messages, list):
        return False
    if not categories:
        return False
    if not all(isinstance(c, dict) and c.get("id") and "name" in c for c in categories):
        return False
    return all(isinstance(m, dict) and m.get("id") and m.get("categoryId") for m in messages)


def _version_of(raw: dict[str, Any]) -> int:
    version = raw.get("version")
    return version if isinstance(version, int) else 0


def _is_empty(raw: Any) -> bool:
    return raw is None or (isinstance(raw, (dict, list, str)) and len(raw) == 0)


def _reseed(now_ms: int, reason: str) -> MigrationResult:
    logger.warning(f"Reseeding template document with defaults: {reason}")
    return MigrationResult(document=default_document(now_ms), needs_save=True, reseeded=True)
