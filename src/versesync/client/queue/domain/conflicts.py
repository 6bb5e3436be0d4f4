"""Conflict resolution between a local and a remote record.

Strategies:
- local_wins: keep the local record
- remote_wins: keep the server record
- merge: deep-merge, server record as base and local record as overlay
- newest_wins: keep whichever record carries the most recent timestamp
  (default when no strategy is given; ties favor local)

These are pure functions. Detecting that a record diverged on the server
requires a round trip, so it is the replay driver's job; this module only
decides the winner once both versions are known.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from versesync.core.types import ConflictStrategy

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Checked in order; the first non-empty one is used
TIMESTAMP_FIELDS = ("updated_at", "timestamp", "created_at")


def resolve(
    local: Any,
    remote: Any,
    strategy: ConflictStrategy | str | None = None,
) -> Any:
    """Decide which version of a record to keep.

    Args:
        local: Version produced on this device
        remote: Version held by the server
        strategy: Resolution strategy (defaults to newest_wins)

    Returns:
        The record to keep. local_wins, remote_wins and newest_wins return
        one of the inputs unchanged; merge returns a new mapping.

    Raises:
        ValueError: If the strategy is unknown
    """
    strategy = ConflictStrategy(strategy) if strategy is not None else ConflictStrategy.NEWEST_WINS

    if strategy == ConflictStrategy.LOCAL_WINS:
        return local
    if strategy == ConflictStrategy.REMOTE_WINS:
        return remote
    if strategy == ConflictStrategy.MERGE:
        return deep_merge(remote, local)

    return local if record_timestamp(local) >= record_timestamp(remote) else remote


def deep_merge(base: Any, overlay: Any) -> Any:
    """Recursively merge overlay onto base.

    For every overlay field: when both sides hold a mapping, merge them
    field by field; otherwise the overlay value replaces the base value.
    Lists are atomic. Base fields absent from the overlay are kept.
    Neither input is mutated.

    Example:
        >>> deep_merge({"a": 2, "b": {"c": 2, "d": 3}}, {"a": 1, "b": {"c": 1}})
        {'a': 1, 'b': {'c': 1, 'd': 3}}
    """
    if not (_is_mapping(base) and _is_mapping(overlay)):
        return dict(base) if _is_mapping(base) else base

    merged = dict(base)
    for key, value in overlay.items():
        if _is_mapping(value) and key in merged and _is_mapping(merged[key]):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def record_timestamp(record: Any) -> datetime:
    """Extract the freshness timestamp of a record.

    Uses updated_at, then timestamp, then created_at. ISO-8601 strings
    (including date-only and ``Z`` suffixed), datetimes and epoch
    milliseconds are accepted. Missing or unparsable values count as the
    epoch start.
    """
    if not _is_mapping(record):
        return EPOCH

    value = next((record.get(name) for name in TIMESTAMP_FIELDS if record.get(name)), None)
    return _parse_timestamp(value)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, bool):
        return EPOCH
    elif isinstance(value, int | float):
        try:
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip())
        except ValueError:
            return EPOCH
    else:
        return EPOCH

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)
