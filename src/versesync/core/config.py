"""Configuration classes for versesync.

This module defines the queue configuration shared by the CLI and by
host applications embedding the queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_QUEUE_KEY = "syncQueue"
DEFAULT_MAX_RETRIES = 3


@dataclass
class QueueConfig:
    """Configuration for a persisted offline queue.

    Attributes:
        database_path: SQLite file holding the key-value store.
        queue_key: Storage key under which the queue is persisted.
        max_retries: Retry ceiling used by purge and the replay driver.
    """

    database_path: Path
    queue_key: str = DEFAULT_QUEUE_KEY
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        """Normalize the database path and validate the retry ceiling."""
        self.database_path = Path(self.database_path).expanduser()
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if not self.queue_key:
            raise ValueError("queue_key must not be empty")

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_database: Path) -> QueueConfig:
        """Build a config from the JSON config file contents.

        Args:
            data: Parsed config file (unknown keys are ignored).
            default_database: Database path used when none is configured.

        Returns:
            QueueConfig instance.
        """
        return cls(
            database_path=Path(data.get("database") or default_database),
            queue_key=str(data.get("queue_key") or DEFAULT_QUEUE_KEY),
            max_retries=int(data.get("max_retries", DEFAULT_MAX_RETRIES)),
        )
