"""Shared types for the offline queue.

This module provides:
- QueueError, InvalidPayloadError, RemoteConflict: Exception classes
- FavoritePayload, ReflectionPayload: Typed payload variants
- payload_for: Build the payload variant for an action type
- QueueItem: One pending local mutation
- format_timestamp: ISO-8601 timestamps in the persisted layout
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from versesync.core.types import ActionType, ConflictStrategy, ItemStatus


class QueueError(Exception):
    """Base exception for queue errors."""


class InvalidPayloadError(QueueError, ValueError):
    """Payload is missing the field that identifies its target record."""


class RemoteConflict(QueueError):
    """Raised by a replay callable when the server holds a divergent record.

    Attributes:
        remote: The server-side version of the record.
    """

    def __init__(self, remote: Mapping[str, Any], message: str = "") -> None:
        self.remote = remote
        super().__init__(message or "Server holds a divergent version of the record")


# =============================================================================
# Payloads
# =============================================================================


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict of the fields that were supplied."""
        supplied = self.model_fields_set | set(self.model_extra or {})
        return {k: v for k, v in self.model_dump(mode="json").items() if k in supplied}


class FavoritePayload(_Payload):
    """Payload of add_favorite / remove_favorite.

    The target verse is ``verse_id``. Payloads that only carry ``id`` have
    ``verse_id`` filled from it, so every favorite payload has an identity.
    Other fields (verse text, reference, emotion...) are kept as-is.
    """

    verse_id: str | int
    id: str | int | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_verse_id(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("verse_id") is None and data.get("id") is not None:
            return {**data, "verse_id": data["id"]}
        return data

    @property
    def identity(self) -> str:
        return str(self.verse_id)


class ReflectionPayload(_Payload):
    """Payload of add_reflection / update_reflection / delete_reflection."""

    id: str | int
    content: Any = None

    @property
    def identity(self) -> str:
        return str(self.id)


Payload = FavoritePayload | ReflectionPayload

PAYLOAD_TYPES: dict[ActionType, type[FavoritePayload] | type[ReflectionPayload]] = {
    ActionType.ADD_FAVORITE: FavoritePayload,
    ActionType.REMOVE_FAVORITE: FavoritePayload,
    ActionType.ADD_REFLECTION: ReflectionPayload,
    ActionType.UPDATE_REFLECTION: ReflectionPayload,
    ActionType.DELETE_REFLECTION: ReflectionPayload,
}


def payload_for(action_type: ActionType, data: Mapping[str, Any] | BaseModel) -> Payload:
    """Build the payload variant for an action type.

    Args:
        action_type: The queued action.
        data: Raw payload mapping, or an already-built payload model.

    Returns:
        FavoritePayload or ReflectionPayload.

    Raises:
        InvalidPayloadError: If the identifying field is missing or malformed.
    """
    model = PAYLOAD_TYPES[action_type]
    if isinstance(data, model):
        return data
    if isinstance(data, _Payload):
        data = data.to_dict()
    elif isinstance(data, BaseModel):
        data = data.model_dump()
    if not isinstance(data, Mapping):
        raise InvalidPayloadError(
            f"{action_type.value} payload must be a mapping, got {type(data).__name__}"
        )
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        raise InvalidPayloadError(f"Invalid {action_type.value} payload: {e}") from e


# =============================================================================
# Queue items
# =============================================================================


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision.

    Example: ``2024-06-01T12:30:00.000Z``
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


@dataclass
class QueueItem:
    """One pending local mutation awaiting replay.

    Attributes:
        id: Unique identifier, the sole handle for removal and status updates.
        type: The action kind.
        payload: Typed payload for the action kind.
        timestamp: Creation time (refreshed when the payload is coalesced).
        retry_count: Failed replay attempts reported by the driver.
        status: pending, processing or failed.
        conflict_resolution: Strategy applied if the server record diverged.
    """

    id: str
    type: ActionType
    payload: Payload
    timestamp: str
    retry_count: int = 0
    status: ItemStatus = ItemStatus.PENDING
    conflict_resolution: ConflictStrategy = ConflictStrategy.LOCAL_WINS

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        payload: Payload,
        conflict_resolution: ConflictStrategy = ConflictStrategy.LOCAL_WINS,
        *,
        now: datetime | None = None,
        item_id: str | None = None,
    ) -> QueueItem:
        """Create a new pending item with a fresh id and timestamp.

        Args:
            action_type: The action kind
            payload: Payload variant matching the action kind
            conflict_resolution: Strategy chosen at enqueue time
            now: Creation time (defaults to the current UTC time)
            item_id: Identifier (defaults to a random UUID)

        Returns:
            A new QueueItem instance
        """
        return cls(
            id=item_id or str(uuid.uuid4()),
            type=action_type,
            payload=payload,
            timestamp=format_timestamp(now or utc_now()),
            retry_count=0,
            status=ItemStatus.PENDING,
            conflict_resolution=conflict_resolution,
        )

    @property
    def identity(self) -> str:
        """Identifier of the record this item targets."""
        return self.payload.identity

    def payload_dict(self) -> dict[str, Any]:
        """The payload as a plain dict."""
        return self.payload.to_dict()

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"QueueItem({self.type.value}, "
            f"target={self.identity!r}, "
            f"status={self.status.value}, "
            f"retries={self.retry_count})"
        )
