"""Domain modules for queue business rules.

This package centralizes the pure rules of the offline queue:
- decisions: Dedup/cancellation matrix for actions on the same record
- conflicts: Conflict resolution strategies and deep merge

Architecture:
    domain/ contains pure business logic without storage dependencies.
    Persistence and locking stay in the queue manager and store.
"""

from versesync.client.queue.domain.conflicts import (
    EPOCH,
    TIMESTAMP_FIELDS,
    deep_merge,
    record_timestamp,
    resolve,
)
from versesync.client.queue.domain.decisions import (
    DEDUP_RULES,
    DedupAction,
    DedupDecision,
    DedupMatrix,
    DedupRule,
    same_record,
)

__all__ = [
    # conflicts
    "EPOCH",
    "TIMESTAMP_FIELDS",
    "deep_merge",
    "record_timestamp",
    "resolve",
    # decisions
    "DEDUP_RULES",
    "DedupAction",
    "DedupDecision",
    "DedupMatrix",
    "DedupRule",
    "same_record",
]
