"""Persistence of the offline queue.

The whole queue is stored as one JSON array under a single storage key.
Readers always get a complete snapshot and writers always replace it,
so there are no partial updates to reconcile.

Corrupt or missing data never raises: it degrades to an empty queue and
is logged. Write failures are logged and reported through an optional
callback, but not retried; the next successful mutation persists the
latest state again.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from versesync.client.queue.types import InvalidPayloadError, QueueItem, payload_for
from versesync.client.storage import KeyValueStorage, StorageError
from versesync.core.config import DEFAULT_QUEUE_KEY
from versesync.core.types import ActionType, ConflictStrategy, ItemStatus

logger = logging.getLogger(__name__)


class QueueItemRecord(BaseModel):
    """Persisted layout of a queue item."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    type: ActionType
    payload: dict[str, Any]
    timestamp: str
    retry_count: int = Field(default=0, ge=0, alias="retryCount")
    status: ItemStatus = ItemStatus.PENDING
    conflict_resolution: ConflictStrategy = Field(
        default=ConflictStrategy.LOCAL_WINS, alias="conflictResolution"
    )


# === Converters ===


def item_to_record(item: QueueItem) -> QueueItemRecord:
    """Convert a QueueItem to its persisted record."""
    return QueueItemRecord(
        id=item.id,
        type=item.type,
        payload=item.payload_dict(),
        timestamp=item.timestamp,
        retry_count=item.retry_count,
        status=item.status,
        conflict_resolution=item.conflict_resolution,
    )


def record_to_item(record: QueueItemRecord) -> QueueItem:
    """Convert a persisted record to a QueueItem.

    Raises:
        InvalidPayloadError: If the payload lacks its identifying field.
    """
    return QueueItem(
        id=record.id,
        type=record.type,
        payload=payload_for(record.type, record.payload),
        timestamp=record.timestamp,
        retry_count=record.retry_count,
        status=record.status,
        conflict_resolution=record.conflict_resolution,
    )


class QueueStore:
    """Loads and saves the queue under one storage key.

    Attributes:
        key: Storage key owned by this store.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = DEFAULT_QUEUE_KEY,
        on_save_error: Callable[[Exception], None] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            storage: Durable key-value backend.
            key: Key holding the serialized queue.
            on_save_error: Optional callback invoked when a write fails,
                so the host can warn that queued work may not survive a
                restart.
        """
        self._storage = storage
        self.key = key
        self._on_save_error = on_save_error

    def load(self) -> list[QueueItem]:
        """Load the persisted queue.

        Returns:
            Items in queue order; empty if the key is absent or unreadable.
        """
        try:
            raw = self._storage.read(self.key)
        except StorageError as e:
            logger.error("Cannot read queue from storage, treating as empty: %s", e)
            return []

        if raw is None:
            return []

        try:
            entries = json.loads(raw)
        except (ValueError, RecursionError) as e:
            logger.error("Queue data under %r is not valid JSON, treating as empty: %s", self.key, e)
            return []

        if not isinstance(entries, list):
            logger.error(
                "Queue data under %r is a %s, not a list, treating as empty",
                self.key,
                type(entries).__name__,
            )
            return []

        items: list[QueueItem] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            try:
                item = record_to_item(QueueItemRecord.model_validate(entry))
            except (ValidationError, InvalidPayloadError) as e:
                logger.error("Dropping malformed queue entry #%d: %s", index, e)
                continue
            if item.id in seen:
                logger.error("Dropping duplicate queue entry #%d (id=%s)", index, item.id)
                continue
            seen.add(item.id)
            items.append(item)

        return items

    def save(self, items: list[QueueItem]) -> bool:
        """Serialize and write the whole queue.

        Args:
            items: Complete queue in order.

        Returns:
            True if the write succeeded, False otherwise.
        """
        records = [item_to_record(item).model_dump(mode="json", by_alias=True) for item in items]
        data = json.dumps(records, ensure_ascii=False).encode("utf-8")

        try:
            self._storage.write(self.key, data)
        except StorageError as e:
            logger.warning(
                "Failed to persist queue (%d items); pending work may not survive a restart: %s",
                len(items),
                e,
            )
            if self._on_save_error:
                self._on_save_error(e)
            return False

        logger.debug("Persisted queue (%d items)", len(items))
        return True
