"""Shared types for versesync.

This module defines the closed sets of values used across the queue,
the conflict resolver and the CLI.
"""

from __future__ import annotations

from enum import Enum


class ActionType(str, Enum):
    """Kind of state-changing user action recorded in the queue."""

    ADD_FAVORITE = "add_favorite"
    REMOVE_FAVORITE = "remove_favorite"
    ADD_REFLECTION = "add_reflection"
    UPDATE_REFLECTION = "update_reflection"
    DELETE_REFLECTION = "delete_reflection"

    @property
    def is_favorite(self) -> bool:
        """True for actions targeting a favorited verse."""
        return self in (ActionType.ADD_FAVORITE, ActionType.REMOVE_FAVORITE)

    @property
    def is_reflection(self) -> bool:
        """True for actions targeting a reflection."""
        return not self.is_favorite


class ItemStatus(str, Enum):
    """Replay status of a queue item.

    There is no succeeded state: a replayed item is removed from the queue.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"


class ConflictStrategy(str, Enum):
    """Policy for reconciling a local record with a divergent remote one."""

    LOCAL_WINS = "local_wins"
    REMOTE_WINS = "remote_wins"
    MERGE = "merge"
    NEWEST_WINS = "newest_wins"


# Strategies a queue item may carry (newest_wins is resolver-only)
ITEM_STRATEGIES = frozenset(
    {ConflictStrategy.LOCAL_WINS, ConflictStrategy.REMOTE_WINS, ConflictStrategy.MERGE}
)
