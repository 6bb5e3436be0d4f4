"""Queue commands for versesync CLI.

Commands:
- status: Show pending work
- list: List queued items
- enqueue: Record an action manually
- retry: Reset failed items to pending
- purge: Remove failed items that reached the retry ceiling
- clear: Discard the whole queue
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager

import click

from versesync.client.cli.config import get_queue_config
from versesync.client.queue import InvalidPayloadError, QueueManager, QueueStore
from versesync.client.storage import SQLiteStorage, StorageError
from versesync.core.types import ITEM_STRATEGIES, ActionType, ItemStatus

ACTION_CHOICES = [t.value for t in ActionType]
STRATEGY_CHOICES = sorted(s.value for s in ITEM_STRATEGIES)


def _warn_save_failed(error: Exception) -> None:
    click.echo(f"Warning: queue could not be saved: {error}", err=True)


@contextmanager
def open_queue() -> Iterator[QueueManager]:
    """Open the configured queue database for the duration of a command."""
    config = get_queue_config()
    try:
        storage = SQLiteStorage(config.database_path)
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    try:
        store = QueueStore(storage, key=config.queue_key, on_save_error=_warn_save_failed)
        yield QueueManager(store)
    finally:
        storage.close()


@click.command()
def status() -> None:
    """Show how much work is waiting to be synced."""
    with open_queue() as manager:
        stats = manager.stats()

    click.echo(f"Pending: {stats['outstanding']}")
    if not stats["total"]:
        click.echo("Queue is empty.")
        return

    click.echo(", ".join(f"{s.value}: {stats[s.value]}" for s in ItemStatus))
    for action_type in ActionType:
        if stats[action_type.value]:
            click.echo(f"  {action_type.value}: {stats[action_type.value]}")


@click.command(name="list")
@click.option(
    "--type",
    "action_type",
    type=click.Choice(ACTION_CHOICES),
    default=None,
    help="Only show items of this action type.",
)
def list_items(action_type: str | None) -> None:
    """List queued items, oldest first."""
    with open_queue() as manager:
        items = manager.items_by_type(action_type) if action_type else manager.items()

    if not items:
        click.echo("No queued items.")
        return

    for item in items:
        click.echo(
            f"{item.id}  {item.type.value:<17}  {item.identity}  "
            f"{item.status.value}  retries={item.retry_count}  {item.timestamp}"
        )


@click.command()
@click.argument("action_type", type=click.Choice(ACTION_CHOICES))
@click.argument("payload")
@click.option(
    "--strategy",
    type=click.Choice(STRATEGY_CHOICES),
    default="local_wins",
    show_default=True,
    help="Conflict resolution strategy for this action.",
)
def enqueue(action_type: str, payload: str, strategy: str) -> None:
    """Record ACTION_TYPE with a JSON PAYLOAD for later sync.

    Example: versesync enqueue add_favorite '{"verse_id": "John-3-16"}'
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Payload is not valid JSON: {e}") from e

    with open_queue() as manager:
        before = {item.id for item in manager.items()}
        try:
            item = manager.enqueue(action_type, data, strategy)
        except InvalidPayloadError as e:
            raise click.ClickException(str(e)) from e

        if item.id not in before:
            click.echo(f"Queued {item.type.value} for {item.identity} ({item.id})")
        elif manager.get(item.id) is None:
            click.echo(f"Cancelled pending {item.type.value} for {item.identity}")
        else:
            click.echo(f"Updated pending {item.type.value} for {item.identity} ({item.id})")


@click.command()
def retry() -> None:
    """Reset failed items to pending so they are replayed again."""
    with open_queue() as manager:
        count = manager.retry_failed()
    click.echo(f"Reset {count} failed item(s) to pending.")


@click.command()
@click.option(
    "--max-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retry ceiling (defaults to the configured max_retries).",
)
def purge(max_retries: int | None) -> None:
    """Remove failed items that reached the retry ceiling."""
    ceiling = max_retries if max_retries is not None else get_queue_config().max_retries
    with open_queue() as manager:
        count = manager.clear_exhausted(ceiling)
    click.echo(f"Purged {count} exhausted item(s).")


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def clear(yes: bool) -> None:
    """Discard every queued item. Unsynced actions are lost."""
    if not yes:
        click.confirm("Discard all pending actions? This cannot be undone", abort=True)
    with open_queue() as manager:
        count = manager.clear()
    click.echo(f"Discarded {count} item(s).")
