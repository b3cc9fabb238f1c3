"""Key-value store adapter - the host's two storage partitions."""

import json
import logging
from pathlib import Path
from typing import Any, Literal

import aiosqlite

from quickdesk.storage.errors import QuotaExceededError
from quickdesk.utils.constants import SYNC_QUOTA_BYTES, SYNC_QUOTA_BYTES_PER_ITEM

logger = logging.getLogger(__name__)

Partition = Literal["synced", "local"]


class KeyValueStore:
    """Document-granular JSON storage.

    ``synced`` is small and quota-limited, ``local`` is larger and unbounded.
    Values are read and written whole; concurrent writers resolve as
    last-writer-wins.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to key-value store at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Key-value store connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    async def get(self, key: str, partition: Partition = "synced") -> Any:
        """Return the decoded value for key, or None when absent.

        Raises json.JSONDecodeError when the stored text is not valid JSON.
        """
        async with self.db.execute(
            "SELECT value FROM kv_store WHERE partition = ? AND key = ?",
            (partition, key),
        ) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
            return json.loads(row["value"])

    async def set(self, key: str, value: Any, partition: Partition = "synced") -> None:
        """Write the whole value for key."""
        encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"))

        if partition == "synced":
            await self._check_sync_quota(key, encoded)

        await self.db.execute(
            """
            INSERT INTO kv_store (partition, key, value, updated_at)
            VALUES (?, ?, ?, datetime('now'))
            ON CONFLICT (partition, key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (partition, key, encoded),
        )
        await self.db.commit()

    async def remove(self, key: str, partition: Partition = "synced") -> None:
        """Delete key from a partition (no-op when absent)."""
        await self.db.execute(
            "DELETE FROM kv_store WHERE partition = ? AND key = ?", (partition, key)
        )
        await self.db.commit()

    async def keys(self, partition: Partition = "synced") -> list[str]:
        """List the keys stored in a partition."""
        async with self.db.execute(
            "SELECT key FROM kv_store WHERE partition = ? ORDER BY key", (partition,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [row["key"] for row in rows]

    async def bytes_in_use(self, partition: Partition = "synced") -> int:
        """Total size of a partition, counted as key + encoded value."""
        async with self.db.execute(
            "SELECT key, value FROM kv_store WHERE partition = ?", (partition,)
        ) as cursor:
            rows = await cursor.fetchall()
            return sum(_item_size(row["key"], row["value"]) for row in rows)

    async def _check_sync_quota(self, key: str, encoded: str) -> None:
        size = _item_size(key, encoded)
        if size > SYNC_QUOTA_BYTES_PER_ITEM:
            raise QuotaExceededError(
                f"Item '{key}' is {size} bytes, synced limit is "
                f"{SYNC_QUOTA_BYTES_PER_ITEM} bytes per item"
            )

        async with self.db.execute(
            "SELECT key, value FROM kv_store WHERE partition = 'synced' AND key != ?",
            (key,),
        ) as cursor:
            rows = await cursor.fetchall()
            others = sum(_item_size(row["key"], row["value"]) for row in rows)

        if others + size > SYNC_QUOTA_BYTES:
            raise QuotaExceededError(
                f"Synced partition would hold {others + size} bytes, "
                f"limit is {SYNC_QUOTA_BYTES} bytes"
            )


def _item_size(key: str, encoded: str) -> int:
    return len(key.encode("utf-8")) + len(encoded.encode("utf-8"))
