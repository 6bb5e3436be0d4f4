"""Offline mutation queue.

Architecture:
    QueueManager → QueueStore → KeyValueStorage
    ReplayDriver → QueueManager (+ conflict resolver)

Components:
- **QueueStore**: Loads/saves the whole queue under one storage key
- **QueueManager**: Enqueue with dedup/cancellation, status bookkeeping
- **ReplayDriver**: Replays outstanding items through a host callable
- **domain**: Pure dedup rules and conflict resolution

All public symbols are re-exported here.
"""

from versesync.client.queue.domain import (
    DedupAction,
    DedupMatrix,
    deep_merge,
    record_timestamp,
    resolve,
)
from versesync.client.queue.driver import ReplayCallable, ReplayDriver, ReplayResult
from versesync.client.queue.manager import OUTSTANDING_STATUSES, QueueManager
from versesync.client.queue.store import QueueItemRecord, QueueStore
from versesync.client.queue.types import (
    FavoritePayload,
    InvalidPayloadError,
    Payload,
    QueueError,
    QueueItem,
    ReflectionPayload,
    RemoteConflict,
    format_timestamp,
    payload_for,
)

__all__ = [
    # Domain
    "DedupAction",
    "DedupMatrix",
    "deep_merge",
    "record_timestamp",
    "resolve",
    # Driver
    "ReplayCallable",
    "ReplayDriver",
    "ReplayResult",
    # Manager
    "OUTSTANDING_STATUSES",
    "QueueManager",
    # Store
    "QueueItemRecord",
    "QueueStore",
    # Types
    "FavoritePayload",
    "InvalidPayloadError",
    "Payload",
    "QueueError",
    "QueueItem",
    "ReflectionPayload",
    "RemoteConflict",
    "format_timestamp",
    "payload_for",
]
