"""Tagged-union states for a single reorder operation.

``Idle -> GestureInProgress -> MoveResolved -> OptimisticallyApplied ->
Committing -> Committed | RolledBack -> Idle``

Each state is a frozen dataclass; the session holds exactly one of them, so
combinations such as "saving and loading" cannot be represented.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ordersync.logic.errors import ConcurrentModificationAmbiguity
from ordersync.models.ordered_item import MoveIntent, OrderedItem


class TxnStatus(str, Enum):
    PENDING = "pending"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingTransaction:
    """Snapshot pair for one optimistic move; the rollback source of truth."""

    move: MoveIntent
    previous_list: list[OrderedItem]
    new_list: list[OrderedItem]
    status: TxnStatus = TxnStatus.PENDING
    # Latest remote push observed while this transaction was unsettled
    remote_snapshot: list[OrderedItem] | None = None
    confirmed_by_remote: bool = False


@dataclass(frozen=True)
class Idle:
    name: str = field(default="Idle", init=False)


@dataclass(frozen=True)
class GestureInProgress:
    item_id: str
    name: str = field(default="GestureInProgress", init=False)


@dataclass(frozen=True)
class MoveResolved:
    move: MoveIntent
    name: str = field(default="MoveResolved", init=False)


@dataclass(frozen=True)
class OptimisticallyApplied:
    txn: PendingTransaction
    name: str = field(default="OptimisticallyApplied", init=False)


@dataclass(frozen=True)
class Committing:
    txn: PendingTransaction
    name: str = field(default="Committing", init=False)


@dataclass(frozen=True)
class Committed:
    txn: PendingTransaction
    # Set when a remote push diverged from the committed order; the push won
    ambiguity: Optional[ConcurrentModificationAmbiguity] = None
    name: str = field(default="Committed", init=False)


@dataclass(frozen=True)
class RolledBack:
    txn: PendingTransaction
    error: Exception
    ambiguity: Optional[ConcurrentModificationAmbiguity] = None
    name: str = field(default="RolledBack", init=False)


ReorderState = Union[
    Idle,
    GestureInProgress,
    MoveResolved,
    OptimisticallyApplied,
    Committing,
    Committed,
    RolledBack,
]

ReorderOutcome = Union[Committed, RolledBack]


__all__ = [
    "TxnStatus",
    "PendingTransaction",
    "Idle",
    "GestureInProgress",
    "MoveResolved",
    "OptimisticallyApplied",
    "Committing",
    "Committed",
    "RolledBack",
    "ReorderState",
    "ReorderOutcome",
]
