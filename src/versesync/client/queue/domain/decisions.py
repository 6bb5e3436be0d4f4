"""Decision matrix for actions queued against the same record.

When a new action is enqueued while a pending action for the same record
is already queued, this module decides what happens to the pair.

Matrix:
| New Action        | Pending Action    | Decision                        |
|-------------------|-------------------|---------------------------------|
| add_favorite      | remove_favorite   | Cancel both                     |
| remove_favorite   | add_favorite      | Cancel both                     |
| update_reflection | update_reflection | Coalesce into the pending item  |
| *                 | *                 | Insert new item                 |

Only items still in pending status take part; processing and failed items
are never cancelled or rewritten by a later action.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from versesync.core.types import ActionType, ItemStatus

if TYPE_CHECKING:
    from versesync.client.queue.types import Payload, QueueItem


class DedupAction(Enum):
    """What to do with a new action given a pending one on the same record."""

    INSERT = auto()  # Append the new item
    CANCEL = auto()  # Drop the pending item, do not add the new one
    COALESCE = auto()  # Overwrite the pending item's payload


@dataclass(frozen=True)
class DedupRule:
    """A rule in the decision matrix."""

    new_action: ActionType
    pending_action: ActionType
    decision: DedupAction
    reason: str


# Declarative dedup rules
DEDUP_RULES: list[DedupRule] = [
    DedupRule(
        new_action=ActionType.ADD_FAVORITE,
        pending_action=ActionType.REMOVE_FAVORITE,
        decision=DedupAction.CANCEL,
        reason="Re-favoriting an unfavorited verse leaves nothing to sync",
    ),
    DedupRule(
        new_action=ActionType.REMOVE_FAVORITE,
        pending_action=ActionType.ADD_FAVORITE,
        decision=DedupAction.CANCEL,
        reason="Unfavoriting a not-yet-synced favorite leaves nothing to sync",
    ),
    DedupRule(
        new_action=ActionType.UPDATE_REFLECTION,
        pending_action=ActionType.UPDATE_REFLECTION,
        decision=DedupAction.COALESCE,
        reason="Only the latest edit of a reflection needs replaying",
    ),
]


@dataclass(frozen=True)
class DedupDecision:
    """Outcome of evaluating a new action against the queue."""

    decision: DedupAction
    index: int | None = None  # Position of the matched pending item
    reason: str = ""


class DedupMatrix:
    """Evaluates dedup rules for a new action."""

    def __init__(self, rules: list[DedupRule] | None = None) -> None:
        self._rules = DEDUP_RULES if rules is None else rules

    def evaluate(self, new_action: ActionType, pending_action: ActionType) -> tuple[DedupAction, str]:
        """Evaluate rules for one pair of actions.

        Returns:
            (decision, reason) tuple
        """
        for rule in self._rules:
            if rule.new_action == new_action and rule.pending_action == pending_action:
                return rule.decision, rule.reason

        return DedupAction.INSERT, "No matching rule, inserting"

    def find(
        self,
        queue: list[QueueItem],
        new_action: ActionType,
        payload: Payload,
    ) -> DedupDecision:
        """Find the first pending item the new action cancels or coalesces with.

        Args:
            queue: Current queue in order
            new_action: Action being enqueued
            payload: Its payload

        Returns:
            The decision and the index of the matched item, if any
        """
        for index, item in enumerate(queue):
            if item.status != ItemStatus.PENDING:
                continue
            if not same_record(item.type, item.identity, new_action, payload.identity):
                continue
            decision, reason = self.evaluate(new_action, item.type)
            if decision != DedupAction.INSERT:
                return DedupDecision(decision=decision, index=index, reason=reason)

        return DedupDecision(decision=DedupAction.INSERT)


def same_record(
    action_a: ActionType,
    identity_a: str,
    action_b: ActionType,
    identity_b: str,
) -> bool:
    """True if two actions target the same logical record.

    Favorites are keyed by verse id and reflections by reflection id; the
    two namespaces never match each other.
    """
    return action_a.is_favorite == action_b.is_favorite and identity_a == identity_b
