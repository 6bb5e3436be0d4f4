"""Shared fixtures for offline queue tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from versesync.client.queue import QueueManager, QueueStore
from versesync.client.storage import MemoryStorage


class StepClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        moment = self.current
        self.current += timedelta(seconds=1)
        return moment


@pytest.fixture
def storage() -> MemoryStorage:
    """In-memory key-value storage."""
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> QueueStore:
    """Queue store over in-memory storage."""
    return QueueStore(storage)


@pytest.fixture
def clock() -> StepClock:
    """Deterministic clock."""
    return StepClock()


@pytest.fixture
def manager(store: QueueStore, clock: Callable[[], datetime]) -> QueueManager:
    """Queue manager with a deterministic clock."""
    return QueueManager(store, clock=clock)
