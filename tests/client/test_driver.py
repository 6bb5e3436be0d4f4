"""Tests for the replay driver."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from versesync.client.queue import (
    QueueItem,
    QueueManager,
    RemoteConflict,
    ReplayDriver,
)
from versesync.core.types import ActionType, ConflictStrategy, ItemStatus


class TestReplayDriver:
    """Tests for ReplayDriver.process."""

    def test_success_removes_items(self, manager: QueueManager) -> None:
        """Replayed items leave the queue."""
        manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        manager.enqueue(ActionType.ADD_REFLECTION, {"id": "r1"})
        replay = MagicMock(return_value=True)

        result = ReplayDriver(manager, replay).process()

        assert result.succeeded == 2
        assert result.failed == 0
        assert manager.items() == []
        assert replay.call_count == 2

    def test_replays_oldest_first(self, manager: QueueManager) -> None:
        """Items are replayed in queue order."""
        for verse in ("a", "b", "c"):
            manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": verse})
        seen: list[str] = []

        def replay(item: QueueItem) -> bool:
            seen.append(item.identity)
            return True

        ReplayDriver(manager, replay).process()

        assert seen == ["a", "b", "c"]

    def test_item_marked_processing_during_replay(self, manager: QueueManager) -> None:
        """The item is in processing status while the host replays it."""
        manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        statuses: list[ItemStatus] = []

        def replay(item: QueueItem) -> bool:
            statuses.append(manager.get(item.id).status)
            return True

        ReplayDriver(manager, replay).process()

        assert statuses == [ItemStatus.PROCESSING]

    @pytest.mark.parametrize("outcome", [False, ConnectionError("offline")])
    def test_failure_counts_retry(self, manager: QueueManager, outcome: object) -> None:
        """A False result or an exception marks the item failed with a retry."""
        item = manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        replay = MagicMock(side_effect=[outcome])

        result = ReplayDriver(manager, replay).process()

        stored = manager.get(item.id)
        assert result.failed == 1
        assert stored.status == ItemStatus.FAILED
        assert stored.retry_count == 1
        assert manager.pending_count() == 1

    def test_exhausted_items_skipped(self, manager: QueueManager) -> None:
        """Items at the retry ceiling are not replayed."""
        item = manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        for _ in range(3):
            manager.update_status(item.id, ItemStatus.FAILED, increment_retry=True)
        replay = MagicMock(return_value=True)

        result = ReplayDriver(manager, replay, max_retries=3).process()

        assert result.skipped == 1
        replay.assert_not_called()
        assert manager.get(item.id).status == ItemStatus.FAILED

    def test_processing_items_not_replayed(self, manager: QueueManager) -> None:
        """Items already processing are left to their in-flight replay."""
        item = manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        manager.update_status(item.id, ItemStatus.PROCESSING)
        replay = MagicMock(return_value=True)

        ReplayDriver(manager, replay).process()

        replay.assert_not_called()

    def test_stops_when_connection_lost(self, manager: QueueManager) -> None:
        """should_continue returning False stops the pass."""
        for verse in ("a", "b", "c"):
            manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": verse})
        checks = iter([True, False])

        result = ReplayDriver(
            manager, MagicMock(return_value=True), should_continue=lambda: next(checks)
        ).process()

        assert result.succeeded == 1
        assert result.stopped is True
        assert [i.identity for i in manager.items()] == ["b", "c"]

    def test_empty_queue(self, manager: QueueManager) -> None:
        """Nothing outstanding means nothing attempted."""
        result = ReplayDriver(manager, MagicMock()).process()
        assert result.attempted == 0

    def test_concurrent_pass_skipped(self, manager: QueueManager) -> None:
        """A second pass while one is running returns immediately."""
        manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        inner_results = []
        entered = threading.Event()

        driver: ReplayDriver

        def replay(item: QueueItem) -> bool:
            entered.set()
            inner_results.append(driver.process())
            return True

        driver = ReplayDriver(manager, replay)
        outer = driver.process()

        assert entered.is_set()
        assert outer.succeeded == 1
        assert inner_results[0].attempted == 0
        assert not driver.is_running

    def test_retry_failed_replays_again(self, manager: QueueManager) -> None:
        """retry_failed resets failed items and replays them."""
        item = manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "a"})
        driver = ReplayDriver(manager, MagicMock(side_effect=[False, True]))

        driver.process()
        assert manager.get(item.id).status == ItemStatus.FAILED

        result = driver.retry_failed()
        assert result.succeeded == 1
        assert manager.items() == []


class TestReplayConflicts:
    """Conflicts reported by the host are resolved with the item's strategy."""

    def test_remote_wins_drops_local(self, manager: QueueManager) -> None:
        """When the server version wins, the local item is discarded."""
        manager.enqueue(
            ActionType.UPDATE_REFLECTION,
            {"id": "r1", "content": "mine"},
            ConflictStrategy.REMOTE_WINS,
        )
        remote = {"id": "r1", "content": "theirs"}

        result = ReplayDriver(manager, MagicMock(side_effect=RemoteConflict(remote))).process()

        assert result.conflicts == 1
        assert manager.items() == []

    def test_local_wins_keeps_item_in_place(self, manager: QueueManager) -> None:
        """When local wins, the same item stays queued and counts a retry."""
        original = manager.enqueue(
            ActionType.UPDATE_REFLECTION, {"id": "r1", "content": "mine"}
        )

        ReplayDriver(
            manager, MagicMock(side_effect=RemoteConflict({"id": "r1", "content": "theirs"}))
        ).process()

        [kept] = manager.items()
        assert kept.id == original.id
        assert kept.status == ItemStatus.FAILED
        assert kept.retry_count == 1
        assert kept.payload_dict() == {"id": "r1", "content": "mine"}

    def test_merge_rewrites_payload(self, manager: QueueManager) -> None:
        """A merge strategy stores the merged record in the same item."""
        original = manager.enqueue(
            ActionType.UPDATE_REFLECTION,
            {"id": "r1", "content": "mine"},
            ConflictStrategy.MERGE,
        )
        remote = {"id": "r1", "content": "theirs", "mood": "joy"}

        ReplayDriver(manager, MagicMock(side_effect=RemoteConflict(remote))).process()

        [kept] = manager.items()
        assert kept.id == original.id
        assert kept.payload_dict() == {"id": "r1", "content": "mine", "mood": "joy"}
        assert kept.conflict_resolution == ConflictStrategy.MERGE

    def test_resolved_item_not_replayed_in_same_pass(self, manager: QueueManager) -> None:
        """A resolved item waits for the next pass."""
        manager.enqueue(ActionType.UPDATE_REFLECTION, {"id": "r1", "content": "mine"})
        replay = MagicMock(side_effect=RemoteConflict({"id": "r1"}))

        ReplayDriver(manager, replay).process()

        assert replay.call_count == 1
        assert manager.pending_count() == 1

    def test_repeated_conflicts_stop_at_retry_ceiling(self, manager: QueueManager) -> None:
        """A conflict that never clears is replayed max_retries times, then purged."""
        item = manager.enqueue(ActionType.UPDATE_REFLECTION, {"id": "r1", "content": "mine"})
        replay = MagicMock(side_effect=RemoteConflict({"id": "r1", "content": "theirs"}))
        driver = ReplayDriver(manager, replay, max_retries=3)

        for _ in range(10):
            driver.process()

        assert replay.call_count == 3
        [kept] = manager.items()
        assert kept.id == item.id
        assert kept.retry_count == 3
        assert manager.clear_exhausted(3) == 1
        assert manager.items() == []

    def test_conflict_keeps_queue_order(self, manager: QueueManager) -> None:
        """A resolved item keeps its place ahead of later actions on the record."""
        manager.enqueue(ActionType.ADD_REFLECTION, {"id": "r1", "content": "first"})
        manager.enqueue(ActionType.UPDATE_REFLECTION, {"id": "r1", "content": "second"})

        def replay(item: QueueItem) -> bool:
            if item.type == ActionType.ADD_REFLECTION:
                raise RemoteConflict({"id": "r1", "mood": "calm"})
            return False

        ReplayDriver(manager, replay).process()

        assert [i.type for i in manager.items()] == [
            ActionType.ADD_REFLECTION,
            ActionType.UPDATE_REFLECTION,
        ]

    def test_resolution_does_not_cancel_later_actions(self, manager: QueueManager) -> None:
        """Storing a resolved favorite leaves a later pending removal alone."""
        add = manager.enqueue(ActionType.ADD_FAVORITE, {"verse_id": "v"})
        manager.update_status(add.id, ItemStatus.FAILED, increment_retry=True)
        removal = manager.enqueue(ActionType.REMOVE_FAVORITE, {"verse_id": "v"})

        def replay(item: QueueItem) -> bool:
            if item.type == ActionType.ADD_FAVORITE:
                raise RemoteConflict({"verse_id": "v", "note": "server"})
            return False

        ReplayDriver(manager, replay).process()

        assert [i.id for i in manager.items()] == [add.id, removal.id]
