"""Refresh pipeline: rebuild the full experiment view from the store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from labledger import codec
from labledger.exceptions import DecodeError, TransportError
from labledger.index import IndexManager, record_key
from labledger.metrics import refresh_skipped_total

if TYPE_CHECKING:
    from labledger.models.experiment import ExperimentRecord
    from labledger.protocols import BlobStorePort

logger = structlog.get_logger()


class RefreshPipeline:
    """Reads the index, then every record it names, one at a time.

    A record that is missing, undecodable or unreadable is skipped and
    logged; the rest of the view is still returned. Only a failure to
    read the index itself propagates.
    """

    def __init__(self, store: BlobStorePort, index: IndexManager | None = None) -> None:
        self._store = store
        self._index = index or IndexManager(store)

    async def refresh(self) -> list[ExperimentRecord]:
        ids = await self._index.load_index()
        seen: set[str] = set()
        records: list[ExperimentRecord] = []

        for record_id in ids:
            if record_id in seen:
                refresh_skipped_total.labels(reason="duplicate").inc()
                continue
            seen.add(record_id)

            record = await self._load_one(record_id)
            if record is not None:
                records.append(record)

        # sorted() is stable, so equal timestamps keep index order
        records = sorted(records, key=lambda r: r.timestamp, reverse=True)
        logger.info("Refresh complete", indexed=len(ids), loaded=len(records))
        return records

    async def _load_one(self, record_id: str) -> ExperimentRecord | None:
        try:
            key = record_key(record_id)
        except ValueError as exc:
            refresh_skipped_total.labels(reason="invalid_key").inc()
            logger.warning("Skipping index entry with invalid id", record_id=record_id, error=str(exc))
            return None

        try:
            blob = await self._store.get_data(key)
        except TransportError as exc:
            refresh_skipped_total.labels(reason="transport").inc()
            logger.warning("Skipping unreadable record", record_id=record_id, error=str(exc))
            return None

        if not blob:
            refresh_skipped_total.labels(reason="missing").inc()
            logger.warning("Indexed record is missing from the store", record_id=record_id)
            return None

        try:
            return codec.decode(blob, record_id)
        except DecodeError as exc:
            refresh_skipped_total.labels(reason="decode").inc()
            logger.warning("Skipping undecodable record", record_id=record_id, error=str(exc))
            return None
