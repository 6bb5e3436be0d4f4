"""Core module - Shared types and configuration."""

from versesync.core.config import DEFAULT_MAX_RETRIES, DEFAULT_QUEUE_KEY, QueueConfig
from versesync.core.types import ITEM_STRATEGIES, ActionType, ConflictStrategy, ItemStatus

__all__ = [
    # Config
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_QUEUE_KEY",
    "QueueConfig",
    # Types
    "ITEM_STRATEGIES",
    "ActionType",
    "ConflictStrategy",
    "ItemStatus",
]
