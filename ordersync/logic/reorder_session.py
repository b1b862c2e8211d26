"""State container for one ordered list held by a client.

``OrderedCollectionSync`` owns the displayed list and drives the reorder
state machine: a drag gesture resolves to a move, the reducer's output is
shown immediately, the committer writes it, and the reconciler settles the
outcome. At most one transaction is unsettled at a time; further moves are
rejected or queued according to ``busy_policy``.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional
import logging
import threading

import anyio
import anyio.to_thread

from ordersync.config import AppConfig
from ordersync.logic.committer import PersistenceCommitter
from ordersync.logic.document_store import DocumentStore, Unsubscribe
from ordersync.logic.drag_controller import DragController
from ordersync.logic.errors import CommitInFlightError, InvalidMoveError, PersistenceError
from ordersync.logic.notifications import DEFAULT_REORDER_ERROR, Notifier
from ordersync.logic.order_model import ordered_ids, sort_items
from ordersync.logic.reconciler import Reconciler, Resolution
from ordersync.logic.reducer import reduce_move
from ordersync.models.ordered_item import MoveIntent, OrderedItem
from ordersync.models.reorder_state import (
    Committed,
    Committing,
    GestureInProgress,
    Idle,
    MoveResolved,
    OptimisticallyApplied,
    PendingTransaction,
    ReorderOutcome,
    ReorderState,
    RolledBack,
    TxnStatus,
)

logger = logging.getLogger(__name__)

BUSY_POLICIES = ("reject", "queue")


class OrderedCollectionSync:
    def __init__(
        self,
        store: DocumentStore,
        collection_path: str,
        *,
        notifier: Notifier | None = None,
        busy_policy: str = "reject",
        write_scope: str = "changed",
        refetch_on_ambiguous: bool = True,
        error_message: str = DEFAULT_REORDER_ERROR,
    ) -> None:
        if busy_policy not in BUSY_POLICIES:
            raise ValueError(f"busy_policy must be one of {BUSY_POLICIES}")
        self.store = store
        self.collection_path = collection_path
        self.busy_policy = busy_policy
        self.notifier = notifier or Notifier()
        self.committer = PersistenceCommitter(store, write_scope=write_scope)
        self.reconciler = Reconciler(
            self.committer,
            self.notifier,
            error_message=error_message,
            refetch_on_ambiguous=refetch_on_ambiguous,
        )
        self.drag = DragController(
            on_move=self.on_move,
            ids=lambda: ordered_ids(self._items),
            on_gesture_start=self._on_gesture_start,
            on_gesture_cancel=self._on_gesture_cancel,
        )
        self._lock = threading.RLock()
        self._items: List[OrderedItem] = []
        self._state: ReorderState = Idle()
        self._queue: Deque[MoveIntent] = deque()
        self._unsubscribe: Optional[Unsubscribe] = None
        self.transitions: List[str] = [self._state.name]
        self.outcomes: List[ReorderOutcome] = []

    @classmethod
    def from_config(
        cls,
        store: DocumentStore,
        collection_path: str,
        config: AppConfig,
        notifier: Notifier | None = None,
    ) -> "OrderedCollectionSync":
        return cls(
            store,
            collection_path,
            notifier=notifier or Notifier(max_visible=config.notifications.max_visible),
            busy_policy=config.reorder.busy_policy,
            write_scope=config.reorder.write_scope,
            refetch_on_ambiguous=config.reorder.refetch_on_ambiguous,
            error_message=config.reorder.error_message,
        )

    # Read side

    @property
    def items(self) -> List[OrderedItem]:
        with self._lock:
            return list(self._items)

    @property
    def state(self) -> ReorderState:
        return self._state

    @property
    def pending(self) -> Optional[PendingTransaction]:
        state = self._state
        if isinstance(state, (OptimisticallyApplied, Committing)):
            return state.txn
        return None

    @property
    def is_pending(self) -> bool:
        """True while the displayed order is provisional."""
        return self.pending is not None

    @property
    def last_outcome(self) -> Optional[ReorderOutcome]:
        return self.outcomes[-1] if self.outcomes else None

    @property
    def queued_moves(self) -> List[MoveIntent]:
        return list(self._queue)

    # Loading and live updates

    def load(self) -> List[OrderedItem]:
        items = sort_items(self.store.fetch_all(self.collection_path))
        with self._lock:
            self._items = items
        logger.info("session.load collection=%s count=%s", self.collection_path, len(items))
        return list(items)

    async def aload(self) -> List[OrderedItem]:
        items = sort_items(await anyio.to_thread.run_sync(self.store.fetch_all, self.collection_path))
        with self._lock:
            self._items = items
        return list(items)

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.collection_path, self.on_remote_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_remote_change(self, items: List[OrderedItem]) -> None:
        """Live-update push from the store, including echoes of our own writes."""
        with self._lock:
            txn = self.pending
            if txn is None:
                self._items = sort_items(items)
                return
            # Provisional list stays on screen until the transaction settles
            self.reconciler.observe_remote(txn, items)

    # Gesture and move handling

    def _transition(self, state: ReorderState) -> None:
        self._state = state
        self.transitions.append(state.name)

    def _on_gesture_start(self, item_id: str) -> None:
        with self._lock:
            if isinstance(self._state, Idle):
                self._transition(GestureInProgress(item_id))

    def _on_gesture_cancel(self) -> None:
        with self._lock:
            if isinstance(self._state, GestureInProgress):
                self._transition(Idle())

    def on_move(self, move: MoveIntent) -> Optional[PendingTransaction]:
        """Drag controller callback; invalid moves are dropped without effect."""
        try:
            return self.stage(move)
        except InvalidMoveError as exc:
            logger.warning("session.move_invalid collection=%s detail=%s", self.collection_path, exc)
            return None

    def stage(self, move: MoveIntent) -> Optional[PendingTransaction]:
        """Resolve ``move`` and apply it optimistically.

        Returns the pending transaction, or None for a no-op or queued move.
        Raises ``InvalidMoveError`` for unknown ids and ``CommitInFlightError``
        when another transaction is unsettled under the reject policy.
        """
        with self._lock:
            if self.pending is not None:
                if self.busy_policy == "queue":
                    self._queue.append(move)
                    logger.info("session.move_queued collection=%s queued=%s", self.collection_path, len(self._queue))
                    return None
                raise CommitInFlightError(self.collection_path)
            self._transition(MoveResolved(move))
            try:
                reduced = reduce_move(self._items, move)
            except InvalidMoveError:
                self._transition(Idle())
                raise
            if move.source_id == move.target_id:
                self._transition(Idle())
                return None
            txn = PendingTransaction(move=move, previous_list=list(self._items), new_list=reduced)
            self._items = list(reduced)
            # Under the queue policy gestures keep flowing and land in the queue
            self.drag.enabled = self.busy_policy == "queue"
            self._transition(OptimisticallyApplied(txn))
            return txn

    async def commit(self) -> Optional[ReorderOutcome]:
        """Persist the optimistically applied move, then drain queued moves.

        Returns the outcome of the transaction that was pending on entry.
        """
        outcome = await self._commit_pending()
        while outcome is not None and self._queue:
            move = self._queue.popleft()
            try:
                txn = self.stage(move)
            except InvalidMoveError as exc:
                logger.warning("session.queued_move_invalid collection=%s detail=%s", self.collection_path, exc)
                continue
            if txn is not None:
                await self._commit_pending()
        return outcome

    async def reorder(self, source_id: str, target_id: str) -> Optional[ReorderOutcome]:
        """Stage and commit a move in one call (synthetic gestures, tests)."""
        txn = self.stage(MoveIntent(source_id=source_id, target_id=target_id))
        if txn is None:
            return None
        return await self.commit()

    async def _commit_pending(self) -> Optional[ReorderOutcome]:
        with self._lock:
            state = self._state
            if not isinstance(state, OptimisticallyApplied):
                return None
            txn = state.txn
            txn.status = TxnStatus.COMMITTING
            self._transition(Committing(txn))
        # Once committing, the write must be allowed to settle
        with anyio.CancelScope(shield=True):
            resolution: Resolution
            error: Optional[PersistenceError] = None
            try:
                await self.committer.commit(self.collection_path, txn.previous_list, txn.new_list)
            except PersistenceError as exc:
                error = exc
            if error is None:
                with self._lock:
                    resolution = self.reconciler.resolve_success(txn, self.collection_path)
            else:
                resolution = await self.reconciler.resolve_failure(txn, error, self.collection_path)
        with self._lock:
            self._items = list(resolution.displayed)
            outcome: ReorderOutcome
            if resolution.committed:
                txn.status = TxnStatus.COMMITTED
                outcome = Committed(txn, ambiguity=resolution.ambiguity)
            else:
                txn.status = TxnStatus.ROLLED_BACK
                outcome = RolledBack(
                    txn,
                    error or PersistenceError("reorder rolled back"),
                    ambiguity=resolution.ambiguity,
                )
            self._transition(outcome)
            self.outcomes.append(outcome)
            self._transition(Idle())
            self.drag.enabled = True
        logger.info(
            "session.settled collection=%s outcome=%s reason=%s",
            self.collection_path,
            outcome.name,
            resolution.reason,
        )
        return outcome


__all__ = ["BUSY_POLICIES", "OrderedCollectionSync"]
