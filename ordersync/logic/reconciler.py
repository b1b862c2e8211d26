"""Settles an optimistic reorder against the backing store.

Resolution rules, applied once the commit has settled:

- success: show the new list, unless a later remote push diverged from it,
  in which case the remote snapshot wins;
- failure already confirmed by a matching remote push: treat as committed;
- failure with a diverging remote push: adopt the remote snapshot;
- ambiguous failure (the write may have landed): re-fetch and compare;
- definite failure: restore the pre-move snapshot verbatim.

Every non-committed outcome raises exactly one user notification.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
import logging

from ordersync.logic.committer import PersistenceCommitter
from ordersync.logic.errors import ConcurrentModificationAmbiguity, PersistenceError
from ordersync.logic.notifications import DEFAULT_REORDER_ERROR, Notification, Notifier
from ordersync.logic.order_model import ordered_ids, same_ordering, sort_items
from ordersync.models.ordered_item import OrderedItem
from ordersync.models.reorder_state import PendingTransaction

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    displayed: list[OrderedItem]
    committed: bool
    reason: str
    notification: Optional[Notification] = None
    ambiguity: Optional[ConcurrentModificationAmbiguity] = None


class Reconciler:
    def __init__(
        self,
        committer: PersistenceCommitter,
        notifier: Notifier,
        *,
        error_message: str = DEFAULT_REORDER_ERROR,
        refetch_on_ambiguous: bool = True,
    ) -> None:
        self.committer = committer
        self.notifier = notifier
        self.error_message = error_message
        self.refetch_on_ambiguous = refetch_on_ambiguous

    def observe_remote(self, txn: PendingTransaction, remote: Sequence[OrderedItem]) -> None:
        """Record a live-update push that arrived before ``txn`` settled."""
        snapshot = sort_items(remote)
        txn.remote_snapshot = snapshot
        txn.confirmed_by_remote = same_ordering(snapshot, txn.new_list)
        logger.info(
            "reconcile.remote_push move=%s->%s confirms=%s",
            txn.move.source_id,
            txn.move.target_id,
            txn.confirmed_by_remote,
        )

    def resolve_success(self, txn: PendingTransaction, collection_path: str = "") -> Resolution:
        remote = txn.remote_snapshot
        if remote is not None and not same_ordering(remote, txn.new_list):
            ambiguity = ConcurrentModificationAmbiguity(collection_path, ordered_ids(remote))
            logger.warning("reconcile.success_remote_diverged collection=%s remote=%s", collection_path, ambiguity.remote_ids)
            return Resolution(displayed=list(remote), committed=True, reason="remote_preferred", ambiguity=ambiguity)
        return Resolution(displayed=list(txn.new_list), committed=True, reason="committed")

    async def resolve_failure(
        self,
        txn: PendingTransaction,
        error: PersistenceError,
        collection_path: str = "",
    ) -> Resolution:
        remote = txn.remote_snapshot
        if remote is not None and txn.confirmed_by_remote:
            logger.info("reconcile.failure_confirmed_by_remote collection=%s", collection_path)
            return Resolution(displayed=list(txn.new_list), committed=True, reason="remote_confirmed")
        if remote is not None:
            ambiguity = ConcurrentModificationAmbiguity(collection_path, ordered_ids(remote))
            logger.warning("reconcile.failure_remote_adopted collection=%s remote=%s", collection_path, ambiguity.remote_ids)
            return self._rolled_back(list(remote), "remote_adopted", ambiguity=ambiguity)
        if error.ambiguous and self.refetch_on_ambiguous:
            try:
                fetched = sort_items(await self.committer.fetch(collection_path))
            except Exception:
                logger.error("reconcile.refetch_failed collection=%s", collection_path, exc_info=True)
                return self._rolled_back(list(txn.previous_list), "snapshot_restored")
            if same_ordering(fetched, txn.new_list):
                logger.info("reconcile.refetch_write_landed collection=%s", collection_path)
                return Resolution(displayed=list(txn.new_list), committed=True, reason="refetch_confirmed")
            if same_ordering(fetched, txn.previous_list):
                return self._rolled_back(list(txn.previous_list), "snapshot_restored")
            return self._rolled_back(fetched, "refetch_adopted")
        return self._rolled_back(list(txn.previous_list), "snapshot_restored")

    def _rolled_back(
        self,
        displayed: list[OrderedItem],
        reason: str,
        ambiguity: Optional[ConcurrentModificationAmbiguity] = None,
    ) -> Resolution:
        note = self.notifier.notify(self.error_message)
        logger.info("reconcile.rolled_back reason=%s ids=%s", reason, ordered_ids(displayed))
        return Resolution(
            displayed=displayed,
            committed=False,
            reason=reason,
            notification=note,
            ambiguity=ambiguity,
        )


__all__ = ["Resolution", "Reconciler"]
