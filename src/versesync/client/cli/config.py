"""Configuration utilities for versesync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from versesync.core.config import QueueConfig


def get_config_dir() -> Path:
    """Get the configuration directory for versesync.

    Returns:
        Path to ~/.versesync or equivalent.
    """
    return Path.home() / ".versesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def get_queue_config() -> QueueConfig:
    """Get the queue configuration.

    Returns:
        QueueConfig from the config file, with the database defaulting
        to queue.db in the config directory.
    """
    return QueueConfig.from_dict(load_config(), default_database=get_config_dir() / "queue.db")
