"""Dense ordering helpers for messages inside a category.

Everything here is pure: drop gestures are reduced to ids and a position so
the reordering rules can be exercised without any UI.
"""

from typing import Iterable, Literal, Sequence

from quickdesk.db.models import Message

DropPosition = Literal["before", "after", "append"]


def drop_position(cursor_y: float, top: float, bottom: float) -> DropPosition:
    """Where a drop lands relative to the item under the cursor.

    The bottom half of the target means "after", the top half "before".
    """
    height = bottom - top
    if height <= 0:
        return "after"
    return "after" if (cursor_y - top) / height > 0.5 else "before"


def compute_new_order(
    dragged_id: str,
    destination_ids: Sequence[str],
    target_id: str | None,
    position: DropPosition,
) -> list[str]:
    """Resulting id order of the destination list after a drop.

    The dragged id is first removed from the destination (it may already be
    there when reordering inside one category), then inserted before/after
    ``target_id``. A missing target, a target equal to the dragged item, or
    ``position="append"`` puts it at the end.
    """
    ordered = [i for i in destination_ids if i != dragged_id]

    if position == "append" or target_id is None or target_id not in ordered:
        ordered.append(dragged_id)
        return ordered

    index = ordered.index(target_id)
    if position == "after":
        index += 1
    ordered.insert(index, dragged_id)
    return ordered


def insert_at(dragged_id: str, destination_ids: Sequence[str], index: int) -> list[str]:
    """Like compute_new_order but with an explicit target index (clamped)."""
    ordered = [i for i in destination_ids if i != dragged_id]
    index = max(0, min(index, len(ordered)))
    ordered.insert(index, dragged_id)
    return ordered


def renumber(messages: Iterable[Message]) -> None:
    """Assign ``order`` 0..N-1 following the current relative order."""
    for index, message in enumerate(sorted(messages, key=lambda m: m.order)):
        message.order = index


def apply_order(messages: Sequence[Message], ordered_ids: Sequence[str]) -> None:
    """Set ``order`` of each message to its index in ``ordered_ids``."""
    position = {message_id: index for index, message_id in enumerate(ordered_ids)}
    for message in messages:
        if message.id in position:
            message.order = position[message.id]


def next_order(messages: Iterable[Message]) -> int:
    """Order value for a message appended to a category."""
    return max((m.order for m in messages), default=-1) + 1


def is_dense(orders: Iterable[int]) -> bool:
    """True when the orders are exactly 0..N-1."""
    values = sorted(orders)
    return values == list(range(len(values)))
