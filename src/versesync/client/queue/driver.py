"""Replay driver for the offline queue.

This module provides:
- ReplayDriver: Walks outstanding items and reports outcomes to the manager
- ReplayResult: Counters for one replay pass

The driver performs no network I/O itself. The host supplies a replay
callable that sends one item to the backend and returns True on success.
The callable may raise RemoteConflict with the server's version of the
record; the driver then resolves the conflict with the item's strategy
and either drops the local item (the server version wins) or stores the
resolved record in the same item. A conflict that is not dropped counts
as a failed attempt, so repeated conflicts stop at the retry ceiling.

Usage:
    driver = ReplayDriver(manager, replay=send_to_backend, max_retries=3)
    if network_is_up():
        result = driver.process()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from versesync.client.queue.domain.conflicts import resolve
from versesync.client.queue.manager import QueueManager
from versesync.client.queue.types import QueueItem, RemoteConflict
from versesync.core.config import DEFAULT_MAX_RETRIES
from versesync.core.types import ItemStatus

logger = logging.getLogger(__name__)

# Sends one item to the backend, returns True on success
ReplayCallable = Callable[[QueueItem], bool]


@dataclass
class ReplayResult:
    """Outcome of one replay pass."""

    succeeded: int = 0
    failed: int = 0
    skipped: int = 0  # Exhausted items left for purge
    conflicts: int = 0
    stopped: bool = False  # Interrupted by should_continue

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed + self.conflicts


class ReplayDriver:
    """Replays outstanding queue items oldest first."""

    def __init__(
        self,
        manager: QueueManager,
        replay: ReplayCallable,
        max_retries: int = DEFAULT_MAX_RETRIES,
        should_continue: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            manager: Queue to replay.
            replay: Host callable performing the backend call for one item.
            max_retries: Items with at least this many retries are skipped.
            should_continue: Optional connectivity check made before each
                item; the pass stops when it returns False.
        """
        self._manager = manager
        self._replay = replay
        self._max_retries = max_retries
        self._should_continue = should_continue
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def process(self) -> ReplayResult:
        """Replay every outstanding item once.

        A call made while another pass is running returns an empty result.

        Returns:
            Counters for this pass
        """
        if not self._running.acquire(blocking=False):
            logger.debug("Replay already in progress, skipping")
            return ReplayResult()
        try:
            return self._process()
        finally:
            self._running.release()

    def retry_failed(self) -> ReplayResult:
        """Reset failed items to pending, then run a replay pass."""
        self._manager.retry_failed()
        return self.process()

    def _process(self) -> ReplayResult:
        result = ReplayResult()
        items = self._manager.outstanding()
        if not items:
            return result

        logger.info("Replaying %d outstanding items", len(items))

        for item in items:
            if self._should_continue is not None and not self._should_continue():
                logger.warning("Replay interrupted, connection lost")
                result.stopped = True
                break

            if item.retry_count >= self._max_retries:
                result.skipped += 1
                continue

            self._replay_one(item, result)

        logger.info(
            "Replay finished: %d succeeded, %d failed, %d conflicts, %d skipped",
            result.succeeded,
            result.failed,
            result.conflicts,
            result.skipped,
        )
        return result

    def _replay_one(self, item: QueueItem, result: ReplayResult) -> None:
        self._manager.update_status(item.id, ItemStatus.PROCESSING)

        try:
            succeeded = bool(self._replay(item))
        except RemoteConflict as conflict:
            self._apply_resolution(item, conflict.remote)
            result.conflicts += 1
            return
        except Exception as e:
            # Any backend error is a failed attempt; timing is the host's call
            logger.warning("Replay of %r failed: %s", item, e)
            succeeded = False

        if succeeded:
            self._manager.remove(item.id)
            result.succeeded += 1
        else:
            self._manager.update_status(item.id, ItemStatus.FAILED, increment_retry=True)
            result.failed += 1

    def _apply_resolution(self, item: QueueItem, remote: Any) -> None:
        resolved = resolve(item.payload_dict(), remote, item.conflict_resolution)

        if resolved is remote or resolved == remote:
            self._manager.remove(item.id)
            logger.info(
                "Server version of %s kept (%s), dropped local item %s",
                item.identity,
                item.conflict_resolution.value,
                item.id,
            )
            return

        # The conflict counts as a failed attempt so the retry ceiling bounds it
        self._manager.rewrite_payload(
            item.id, resolved, status=ItemStatus.FAILED, increment_retry=True
        )
        logger.info(
            "Conflict on %s resolved with %s, item %s kept for the next pass",
            item.identity,
            item.conflict_resolution.value,
            item.id,
        )
