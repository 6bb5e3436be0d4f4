"""Offline queue manager.

This module provides:
- QueueManager: enqueue/remove/status API over a persisted queue

The manager never keeps the queue in memory between calls. Every
operation loads the latest snapshot from its QueueStore, mutates it and
writes the whole sequence back. A re-entrant lock makes each
load-mutate-save cycle a critical section, so concurrent callers in one
process cannot lose each other's updates.

Deduplication rules (see domain/decisions.py):
- add_favorite and remove_favorite on the same verse annihilate
- consecutive update_reflection on the same reflection coalesce
- only pending items take part

Usage:
    store = QueueStore(SQLiteStorage(db_path))
    manager = QueueManager(store)
    manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "John-3-16"})
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from versesync.client.queue.domain.decisions import DedupAction, DedupMatrix
from versesync.client.queue.store import QueueStore
from versesync.client.queue.types import (
    QueueItem,
    format_timestamp,
    payload_for,
    utc_now,
)
from versesync.core.types import ITEM_STRATEGIES, ActionType, ConflictStrategy, ItemStatus

logger = logging.getLogger(__name__)

# Statuses that still represent outstanding work
OUTSTANDING_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.FAILED})


def _item_strategy(value: ConflictStrategy | str) -> ConflictStrategy:
    strategy = ConflictStrategy(value)
    if strategy not in ITEM_STRATEGIES:
        raise ValueError(f"Queue items cannot use the {strategy.value} strategy")
    return strategy


class QueueManager:
    """Enqueue, resolve and inspect pending offline actions.

    Construct one per process/session and pass it to whatever needs it.
    """

    def __init__(
        self,
        store: QueueStore,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        dedup: DedupMatrix | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Queue persistence.
            clock: Source of the current time (defaults to UTC now).
            id_factory: Generator of unique item ids (defaults to UUID4).
            dedup: Dedup decision matrix (defaults to the standard rules).
        """
        self._store = store
        self._lock = threading.RLock()
        self._clock = clock or utc_now
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._dedup = dedup or DedupMatrix()

    @property
    def store(self) -> QueueStore:
        return self._store

    # === Mutations ===

    def enqueue(
        self,
        action_type: ActionType | str,
        payload: Mapping[str, Any] | BaseModel,
        conflict_resolution: ConflictStrategy | str = ConflictStrategy.LOCAL_WINS,
    ) -> QueueItem:
        """Record an action for later replay.

        If a pending item for the same record makes the new action redundant
        or contradictory, the queue is collapsed instead of growing:
        opposite favorite actions cancel each other (the pending item is
        removed and returned), and a reflection update overwrites a pending
        update of the same reflection (the updated item is returned).

        Args:
            action_type: The action kind
            payload: Action data; must carry the target's identifier
            conflict_resolution: Strategy for server-side conflicts

        Returns:
            The new item, the cancelled item, or the coalesced item

        Raises:
            ValueError: If the action type or strategy is unknown
            InvalidPayloadError: If the payload lacks its identifier
        """
        action_type = ActionType(action_type)
        strategy = _item_strategy(conflict_resolution)
        typed_payload = payload_for(action_type, payload)

        with self._lock:
            queue = self._store.load()
            match = self._dedup.find(queue, action_type, typed_payload)

            if match.decision == DedupAction.CANCEL and match.index is not None:
                cancelled = queue.pop(match.index)
                self._store.save(queue)
                logger.info(
                    "%s cancelled pending %s for %s",
                    action_type.value,
                    cancelled.type.value,
                    cancelled.identity,
                )
                return cancelled

            if match.decision == DedupAction.COALESCE and match.index is not None:
                existing = queue[match.index]
                existing.payload = typed_payload
                existing.timestamp = format_timestamp(self._clock())
                self._store.save(queue)
                logger.info(
                    "Coalesced %s for %s into item %s",
                    action_type.value,
                    existing.identity,
                    existing.id,
                )
                return existing

            item = QueueItem.create(
                action_type,
                typed_payload,
                strategy,
                now=self._clock(),
                item_id=self._id_factory(),
            )
            queue.append(item)
            self._store.save(queue)
            logger.debug("Queued %r (queue size: %d)", item, len(queue))
            return item

    def remove(self, item_id: str) -> bool:
        """Remove an item, typically after a successful replay.

        Returns:
            True if an item was removed, False if the id was not queued
        """
        with self._lock:
            queue = self._store.load()
            remaining = [item for item in queue if item.id != item_id]
            removed = len(remaining) != len(queue)
            if removed:
                self._store.save(remaining)
                logger.debug("Removed item %s (queue size: %d)", item_id, len(remaining))
            return removed

    def update_status(
        self,
        item_id: str,
        status: ItemStatus | str,
        increment_retry: bool = False,
    ) -> bool:
        """Set an item's status, optionally counting a failed attempt.

        A missing id is a no-op: the item may already have been removed.

        Returns:
            True if the item was found and updated
        """
        status = ItemStatus(status)
        with self._lock:
            queue = self._store.load()
            item = next((i for i in queue if i.id == item_id), None)
            if item is None:
                logger.debug("Status update for unknown item %s ignored", item_id)
                return False

            item.status = status
            if increment_retry:
                item.retry_count += 1
            self._store.save(queue)
            logger.debug("Item %s -> %s (retries: %d)", item_id, status.value, item.retry_count)
            return True

    def rewrite_payload(
        self,
        item_id: str,
        payload: Mapping[str, Any] | BaseModel,
        status: ItemStatus | str | None = None,
        increment_retry: bool = False,
    ) -> QueueItem | None:
        """Replace an item's payload in place.

        The item keeps its id, position, timestamp and strategy. Used by the
        replay driver to store the outcome of a conflict resolution.

        Args:
            item_id: Item to rewrite
            payload: New payload for the item's action kind
            status: New status, or None to keep the current one
            increment_retry: Count the attempt toward the retry ceiling

        Returns:
            The updated item, or None if the id was not queued

        Raises:
            InvalidPayloadError: If the payload lacks its identifier
        """
        with self._lock:
            queue = self._store.load()
            item = next((i for i in queue if i.id == item_id), None)
            if item is None:
                logger.debug("Payload rewrite for unknown item %s ignored", item_id)
                return None

            item.payload = payload_for(item.type, payload)
            if status is not None:
                item.status = ItemStatus(status)
            if increment_retry:
                item.retry_count += 1
            self._store.save(queue)
            logger.debug("Rewrote payload of item %s (retries: %d)", item_id, item.retry_count)
            return item

    def clear(self) -> int:
        """Discard every queued item. Unsent actions are permanently lost.

        Returns:
            Number of items discarded
        """
        with self._lock:
            count = len(self._store.load())
            self._store.save([])
        logger.warning("Cleared %d items from the offline queue", count)
        return count

    def clear_exhausted(self, max_retries: int) -> int:
        """Remove failed items that reached the retry ceiling.

        Args:
            max_retries: Retry ceiling; failed items with at least this many
                retries are removed, everything else is kept.

        Returns:
            Number of items removed
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")

        with self._lock:
            queue = self._store.load()
            remaining = [
                item
                for item in queue
                if not (item.status == ItemStatus.FAILED and item.retry_count >= max_retries)
            ]
            removed = len(queue) - len(remaining)
            if removed:
                self._store.save(remaining)
                logger.info("Purged %d exhausted items (max_retries=%d)", removed, max_retries)
            return removed

    def retry_failed(self) -> int:
        """Move every failed item back to pending. Retry counts are kept.

        Returns:
            Number of items reset
        """
        with self._lock:
            queue = self._store.load()
            reset = 0
            for item in queue:
                if item.status == ItemStatus.FAILED:
                    item.status = ItemStatus.PENDING
                    reset += 1
            if reset:
                self._store.save(queue)
                logger.info("Reset %d failed items to pending", reset)
            return reset

    # === Queries ===

    def items(self) -> list[QueueItem]:
        """Snapshot of the queue in order."""
        with self._lock:
            return self._store.load()

    def get(self, item_id: str) -> QueueItem | None:
        """Look up an item by id."""
        return next((item for item in self.items() if item.id == item_id), None)

    def outstanding(self) -> list[QueueItem]:
        """Pending and failed items, oldest first (the replay order)."""
        return [item for item in self.items() if item.status in OUTSTANDING_STATUSES]

    def pending_count(self) -> int:
        """Number of items still awaiting a successful replay.

        Failed items count; items currently processing do not.
        """
        return len(self.outstanding())

    def items_by_type(self, action_type: ActionType | str) -> list[QueueItem]:
        """All items of one action kind, in queue order, any status."""
        action_type = ActionType(action_type)
        return [item for item in self.items() if item.type == action_type]

    def contains(self, action_type: ActionType | str, identifier: str) -> bool:
        """Check whether an action on a record is queued.

        Used for optimistic display, e.g. "is this verse favorited,
        counting actions not yet synced".

        Args:
            action_type: The action kind
            identifier: Verse id for favorites, reflection id for reflections
        """
        return any(item.identity == identifier for item in self.items_by_type(action_type))

    def stats(self) -> dict[str, int]:
        """Get queue statistics.

        Returns:
            Dictionary with the total, per-status and per-type counts
        """
        queue = self.items()
        by_status = Counter(item.status for item in queue)
        by_type = Counter(item.type for item in queue)

        stats: dict[str, int] = {
            "total": len(queue),
            "outstanding": sum(by_status[s] for s in OUTSTANDING_STATUSES),
        }
        for status in ItemStatus:
            stats[status.value] = by_status[status]
        for action_type in ActionType:
            stats[action_type.value] = by_type[action_type]
        return stats

    def __len__(self) -> int:
        """Get number of queued items, any status."""
        return len(self.items())
