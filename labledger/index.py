"""Index manager: the single blob enumerating every live experiment id.

The index is a UTF-8 JSON array stored under ``INDEX_KEY``; each record
lives under ``RECORD_PREFIX + id``. Ids are only ever appended.

``append_id`` is a read-modify-write with no isolation. The store has no
compare-and-swap, so two clients appending at the same time can each
write back a list missing the other's id, silently dropping it. The
dropped record becomes an orphan: still stored, absent from the index.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from labledger.protocols import BlobStorePort

logger = structlog.get_logger()

INDEX_KEY = "experiment_keys"
RECORD_PREFIX = "experiment_"


def record_key(record_id: str) -> str:
    """Derive the store key of a record. Rejects ids that would alias the index key."""
    if not record_id:
        raise ValueError("record id must not be empty")
    key = f"{RECORD_PREFIX}{record_id}"
    if key == INDEX_KEY:
        raise ValueError(f"record id {record_id!r} collides with the index key")
    return key


def _parse_index(blob: bytes) -> list[str]:
    if not blob:
        return []
    try:
        data = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Index blob is malformed, treating as empty", error=str(exc))
        return []
    if not isinstance(data, list):
        logger.warning("Index blob is not a list, treating as empty", kind=type(data).__name__)
        return []

    ids = [item for item in data if isinstance(item, str)]
    if len(ids) != len(data):
        logger.warning("Dropped non-string index entries", dropped=len(data) - len(ids))
    return ids


class IndexManager:
    """Loads and appends to the experiment index."""

    def __init__(self, store: BlobStorePort) -> None:
        self._store = store

    async def load_index(self) -> list[str]:
        """Return the ordered ids. Absent or malformed index reads as empty."""
        blob = await self._store.get_data(INDEX_KEY)
        return _parse_index(blob)

    async def append_id(self, record_id: str, *, sender: str) -> list[str]:
        """Append *record_id* and write the index back. No-op when already present."""
        ids = await self.load_index()
        if record_id in ids:
            logger.info("Id already indexed, skipping write", record_id=record_id)
            return ids

        ids.append(record_id)
        blob = json.dumps(ids, separators=(",", ":")).encode("utf-8")
        await self._store.set_data(INDEX_KEY, blob, sender=sender)
        logger.info("Index updated", record_id=record_id, size=len(ids))
        return ids
