"""
trade_ledger.py
===============

Runs the trade lifecycle against the active draft.

Creating a trade validates its structure (:mod:`trade_validator`), then
re-checks live pick ownership against the stored draft, and only then
moves picks.  All pick moves of one trade land in a single version-checked
write of the draft document, followed by the insert of the trade record.

Cancelling a trade pops the ownership entries the trade pushed.  Because
ownership history is a stack per pick, a trade can only be cancelled while
no later completed trade has moved any of its assets again.  Resetting a
draft wipes that history, so the reset goes through the ledger and voids
the draft's completed trades in the same call.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from draft_manager import DraftManager
from draft_models import AssetDistribution, Draft, Trade, TradeAsset, TradeParty, TradeStatus
from draft_state import DraftState
from draft_store import TRADES, MemoryStore
from errors import NotFoundError, OwnershipError, StateConflictError, StorageAcknowledgementError
from trade_validator import validate_trade

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TradeLedger:
    """Create, list, cancel and delete trades.

    Parameters
    ----------
    drafts : DraftManager
        Used to load and save the active draft.
    store : MemoryStore, optional
        Where trade documents live; defaults to the draft manager's store.
    clock : Callable[[], datetime], optional
        Source of trade timestamps (timezone-aware UTC).
    """

    def __init__(
        self,
        drafts: DraftManager,
        store: Optional[MemoryStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.drafts = drafts
        self.store = store if store is not None else drafts.store
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_trades(self, status: Optional[TradeStatus] = None) -> List[Trade]:
        """Return trades, newest first, optionally filtered by status."""
        trades = self.store.find(TRADES, None if status is None else (lambda t: t.status == status))
        return sorted(trades, key=lambda t: t.timestamp, reverse=True)

    def get_trade(self, trade_id: str) -> Trade:
        trade = self.store.get(TRADES, trade_id)
        if trade is None:
            raise NotFoundError(f"Trade {trade_id} not found", {"trade_id": trade_id})
        return trade

    def can_cancel(self, trade_id: str) -> bool:
        """Return True if :meth:`cancel_trade` would succeed for this trade.

        The trade must be completed, no later completed trade may have
        moved any of its assets, and every pick it handed out must still be
        held, unused, by its receiver in the active draft.
        """
        trade = self.get_trade(trade_id)
        if trade.status != TradeStatus.COMPLETED or self._later_conflicts(trade):
            return False
        try:
            self._load_revertible(trade)
        except (OwnershipError, StateConflictError):
            return False
        return True

    def _later_conflicts(self, trade: Trade) -> List[str]:
        keys = trade.asset_keys()
        later = self.store.find(
            TRADES,
            lambda t: t.status == TradeStatus.COMPLETED and t.timestamp > trade.timestamp,
        )
        return [t.id for t in later if keys & t.asset_keys()]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _next_timestamp(self) -> datetime:
        # Persisted timestamps are strictly increasing so "later" is unambiguous.
        now = self._clock()
        latest = max((t.timestamp for t in self.store.find(TRADES)), default=None)
        if latest is not None and now <= latest:
            now = latest + _TICK
        return now

    def create_trade(
        self,
        parties: Sequence[TradeParty],
        asset_distribution: Optional[AssetDistribution] = None,
        notes: Optional[str] = None,
    ) -> Trade:
        """Validate and execute a trade.

        Raises
        ------
        ValidationError / DistributionError
            The trade is structurally invalid.
        StateConflictError
            There is no active draft, or a pick belongs to another draft.
        OwnershipError
            A pick is missing, already used, or not owned by its contributor.
        StorageAcknowledgementError
            A write was not acknowledged.
        """
        trade = Trade(parties=list(parties), asset_distribution=dict(asset_distribution or {}), notes=notes)
        result = validate_trade(trade)
        if not result.ok:
            logger.warning("Rejected trade: %s (%s)", result.reason, result.details)
            result.raise_for_error()
        trade.asset_distribution = result.distribution

        contributed = [(m, a) for m, a in trade.iter_contributed() if a.is_draft_pick]
        if contributed:
            draft = self.drafts.require_active_draft()
            state = DraftState(draft)
            for contributor, asset in contributed:
                self._check_contributor_owns(state, contributor, asset)
            for receiver, contributor, asset in trade.iter_received():
                if asset.is_draft_pick:
                    state.transfer_ownership(asset.draft_id, asset.overall_pick_number, receiver)
                    logger.info(
                        "Pick %d of draft %s: %s -> %s",
                        asset.overall_pick_number, asset.draft_id, contributor, receiver,
                    )
            self.drafts.save(draft)

        trade.status = TradeStatus.COMPLETED
        trade.timestamp = self._next_timestamp()
        if not self.store.insert(TRADES, trade).acknowledged:
            logger.error("Trade %s was not saved; draft ownership was already updated", trade.id)
            raise StorageAcknowledgementError(
                f"Failed to save trade {trade.id}: write not acknowledged", {"trade_id": trade.id},
            )
        logger.info(
            "Trade %s completed between %s (%d assets)",
            trade.id, ", ".join(p.manager_id for p in trade.parties), len(trade.asset_keys()),
        )
        return trade

    @staticmethod
    def _check_active(state: DraftState, asset: TradeAsset) -> None:
        if asset.draft_id != state.draft.id:
            raise StateConflictError(
                f"Draft {asset.draft_id} is not the active draft",
                {"draft_id": asset.draft_id, "active_draft_id": state.draft.id},
            )

    def _check_contributor_owns(self, state: DraftState, contributor: str, asset: TradeAsset) -> None:
        self._check_active(state, asset)
        overall = asset.overall_pick_number
        pick = state.find_pick(overall)
        details = {"draft_id": asset.draft_id, "overall_pick_number": overall, "manager_id": contributor}
        if pick is None:
            raise OwnershipError(f"Pick {overall} not found in draft {asset.draft_id}", details)
        if pick.is_complete:
            raise OwnershipError(f"Pick {overall} has already been used", details)
        if pick.current_owner != contributor:
            raise OwnershipError(
                f"Pick {overall} is owned by {pick.current_owner}, not {contributor}",
                dict(details, owner=pick.current_owner),
            )

    # ------------------------------------------------------------------
    # Cancel / delete
    # ------------------------------------------------------------------

    def _received_picks(self, trade: Trade) -> List[Tuple[str, TradeAsset]]:
        return [(receiver, asset) for receiver, _, asset in trade.iter_received() if asset.is_draft_pick]

    def cancel_trade(self, trade_id: str) -> Trade:
        """Undo a trade's pick moves and mark it cancelled."""
        trade = self.get_trade(trade_id)
        if trade.status != TradeStatus.COMPLETED:
            raise StateConflictError(
                f"Trade {trade_id} is {trade.status.value} and cannot be cancelled",
                {"trade_id": trade_id, "status": trade.status.value},
            )
        blocking = self._later_conflicts(trade)
        if blocking:
            raise StateConflictError(
                f"Trade {trade_id} cannot be cancelled: a later trade moved one of its assets",
                {"trade_id": trade_id, "blocking_trades": blocking},
            )

        draft, state, received = self._load_revertible(trade)
        if received:
            for receiver, asset in received:
                state.revert_ownership(asset.draft_id, asset.overall_pick_number)
            self.drafts.save(draft)

        self._save_status(trade, TradeStatus.CANCELLED)
        logger.info("Cancelled trade %s (%d picks returned)", trade_id, len(received))
        return trade

    def _load_revertible(
        self, trade: Trade,
    ) -> Tuple[Optional[Draft], Optional[DraftState], List[Tuple[str, TradeAsset]]]:
        """Load the active draft and check every pick ``trade`` handed out can go back.

        Raises StateConflictError or OwnershipError without touching anything.
        """
        received = self._received_picks(trade)
        if not received:
            return None, None, received
        draft = self.drafts.require_active_draft()
        state = DraftState(draft)
        for receiver, asset in received:
            self._check_active(state, asset)
            pick = state.find_pick(asset.overall_pick_number)
            details = {"trade_id": trade.id, "overall_pick_number": asset.overall_pick_number}
            if pick is None:
                raise OwnershipError(f"Pick {asset.overall_pick_number} not found", details)
            if pick.is_complete:
                raise OwnershipError(f"Pick {asset.overall_pick_number} has already been used", details)
            if pick.current_owner != receiver:
                raise OwnershipError(
                    f"Pick {asset.overall_pick_number} is no longer owned by {receiver}",
                    dict(details, owner=pick.current_owner),
                )
        return draft, state, received

    def _save_status(self, trade: Trade, status: TradeStatus) -> None:
        previous = trade.status
        trade.status = status
        result = self.store.replace(TRADES, trade)
        if not result.acknowledged or result.modified_count == 0:
            trade.status = previous
            logger.error("Failed to update trade %s status to %s", trade.id, status.value)
            raise StorageAcknowledgementError(
                f"Failed to update trade {trade.id} status to {status.value}",
                {"trade_id": trade.id, "status": previous.value, "requested_status": status.value},
            )

    def void_draft_trades(self, draft_id: str) -> List[str]:
        """Mark every completed trade that moved a pick of ``draft_id`` as cancelled.

        Used once the draft's ownership history has been wiped, so there is
        nothing left to revert.  Returns the ids of the voided trades.
        """
        voided = []
        for trade in self.store.find(TRADES, lambda t: t.status == TradeStatus.COMPLETED):
            if any(a.is_draft_pick and a.draft_id == draft_id for _, a in trade.iter_contributed()):
                self._save_status(trade, TradeStatus.CANCELLED)
                voided.append(trade.id)
        if voided:
            logger.warning("Voided %d trades of draft %s: %s", len(voided), draft_id, ", ".join(voided))
        return voided

    def reset_draft(self, draft_id: str) -> Draft:
        """Reset a draft and void the trades whose pick moves the reset undid."""
        draft = self.drafts.reset_draft(draft_id)
        self.void_draft_trades(draft_id)
        return draft

    def delete_trade(self, trade_id: str) -> None:
        """Permanently delete a trade, cancelling it first if needed."""
        trade = self.get_trade(trade_id)
        if trade.status != TradeStatus.CANCELLED:
            logger.info("Trade %s is not cancelled. Cancelling first...", trade_id)
            self.cancel_trade(trade_id)
        result = self.store.delete(TRADES, trade_id)
        if not result.acknowledged or result.matched_count == 0:
            logger.error("Failed to delete trade %s", trade_id)
            raise StorageAcknowledgementError(f"Failed to delete trade {trade_id}", {"trade_id": trade_id})
        logger.info("Permanently deleted trade %s", trade_id)
