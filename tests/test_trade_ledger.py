from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_order, owner_of, party, pick_asset
from draft_manager import DraftManager
from draft_models import TradeAsset, TradeAssetType, TradeStatus
from draft_store import TRADES, MemoryStore, WriteResult
from errors import (
    DistributionError,
    NotFoundError,
    OwnershipError,
    StateConflictError,
    StorageAcknowledgementError,
    ValidationError,
)
from trade_ledger import TradeLedger


def player(pid):
    return TradeAsset(type=TradeAssetType.PLAYER, player_id=pid)


def owners(manager, draft_id, *overalls):
    return [owner_of(manager, draft_id, n) for n in overalls]


def test_two_party_trade_swaps_picks(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])

    assert trade.status == TradeStatus.COMPLETED
    assert owners(manager, draft.id, 12, 20) == ["a", "b"]
    stored = manager.require_draft(draft.id)
    assert stored.rounds[2].picks[1].manager_id == "b"
    assert stored.rounds[2].picks[1].traded_to == ["a"]
    # derived distribution is recorded on the trade
    assert set(trade.asset_distribution) == {"a", "b"}


def test_cancel_restores_original_owners(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    cancelled = ledger.cancel_trade(trade.id)

    assert cancelled.status == TradeStatus.CANCELLED
    assert ledger.get_trade(trade.id).status == TradeStatus.CANCELLED
    assert owners(manager, draft.id, 12, 20) == ["b", "a"]
    assert manager.require_draft(draft.id).rounds[2].picks[1].traded_to == []


def test_cancel_twice_is_rejected(ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    ledger.cancel_trade(trade.id)
    assert not ledger.can_cancel(trade.id)
    with pytest.raises(StateConflictError):
        ledger.cancel_trade(trade.id)


def test_later_trade_blocks_cancellation(manager, ledger, draft):
    t1 = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    t2 = ledger.create_trade([party("b", pick_asset(draft, 1)), party("c", pick_asset(draft, 3))])
    assert owner_of(manager, draft.id, 1) == "c"

    assert not ledger.can_cancel(t1.id)
    with pytest.raises(StateConflictError) as info:
        ledger.cancel_trade(t1.id)
    assert info.value.details["blocking_trades"] == [t2.id]
    assert owner_of(manager, draft.id, 1) == "c"

    assert ledger.can_cancel(t2.id)
    ledger.cancel_trade(t2.id)
    assert ledger.can_cancel(t1.id)
    ledger.cancel_trade(t1.id)
    assert owners(manager, draft.id, 1, 2, 3) == ["a", "b", "c"]


def test_unrelated_later_trade_does_not_block(ledger, draft):
    t1 = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    ledger.create_trade([party("c", pick_asset(draft, 3)), party("d", pick_asset(draft, 4))])
    assert ledger.can_cancel(t1.id)


def test_three_party_trade_with_balanced_distribution(manager, ledger, draft):
    p1, p2, p3 = (pick_asset(draft, n) for n in (1, 2, 3))
    ledger.create_trade(
        [party("a", p1), party("b", p2), party("c", p3)],
        {"a": {"c": [p3]}, "b": {"a": [p1]}, "c": {"b": [p2]}},
    )
    assert owners(manager, draft.id, 1, 2, 3) == ["b", "c", "a"]


def test_manager_left_empty_handed_changes_nothing(manager, ledger, draft):
    p1, p2, p3 = (pick_asset(draft, n) for n in (1, 2, 3))
    with pytest.raises(DistributionError):
        ledger.create_trade(
            [party("a", p1), party("b", p2), party("c", p3)],
            {"a": {"b": [p2], "c": [p3]}, "b": {"a": [p1]}},
        )
    assert owners(manager, draft.id, 1, 2, 3) == ["a", "b", "c"]
    assert ledger.get_trades() == []


def test_structural_errors_raise_validation_error(ledger, draft):
    with pytest.raises(ValidationError):
        ledger.create_trade([party("a", pick_asset(draft, 1))])


def test_trading_a_completed_pick_is_rejected(manager, ledger, draft):
    manager.mark_pick_complete(draft.id, 1, "a", "p1")
    with pytest.raises(OwnershipError):
        ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    assert owner_of(manager, draft.id, 2) == "b"
    assert ledger.get_trades() == []


def test_trading_someone_elses_pick_is_rejected(manager, ledger, draft):
    with pytest.raises(OwnershipError) as info:
        ledger.create_trade([party("a", pick_asset(draft, 2)), party("b", pick_asset(draft, 3))])
    assert info.value.details["owner"] == "b"
    assert owners(manager, draft.id, 2, 3) == ["b", "c"]


def test_unknown_pick_is_rejected(ledger, draft):
    missing = TradeAsset(type=TradeAssetType.DRAFT_PICK, draft_id=draft.id, overall_pick_number=99)
    with pytest.raises(OwnershipError):
        ledger.create_trade([party("a", missing), party("b", pick_asset(draft, 2))])


def test_pick_from_inactive_draft_is_rejected(manager, ledger, draft):
    manager.toggle_active(draft.id)
    other = manager.create_draft(2026, "Keeper", True, 2, make_order("a", "b"))
    old_pick = pick_asset(draft, 1)
    with pytest.raises(StateConflictError):
        ledger.create_trade([party("a", old_pick), party("b", pick_asset(other, 2))])
    assert owner_of(manager, draft.id, 1) == "a"


def test_pick_trade_needs_an_active_draft(manager, ledger, draft):
    manager.toggle_active(draft.id)
    with pytest.raises(StateConflictError):
        ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])


def test_player_only_trade_leaves_picks_alone(manager, ledger, draft):
    trade = ledger.create_trade([party("a", player("p1")), party("b", player("p2"))], notes="keepers")
    assert trade.notes == "keepers"
    assert owners(manager, draft.id, 1, 2) == ["a", "b"]
    ledger.cancel_trade(trade.id)
    assert ledger.get_trade(trade.id).status == TradeStatus.CANCELLED


def test_mixed_pick_and_player_trade(manager, ledger, draft):
    ledger.create_trade([party("a", pick_asset(draft, 10)), party("e", player("p7"))])
    assert owner_of(manager, draft.id, 10) == "e"


def test_cancel_refuses_when_received_pick_was_used(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    manager.mark_pick_complete(draft.id, 12, "a", "p12")
    with pytest.raises(OwnershipError):
        ledger.cancel_trade(trade.id)
    assert owners(manager, draft.id, 12, 20) == ["a", "b"]
    assert ledger.get_trade(trade.id).status == TradeStatus.COMPLETED


def test_delete_cancels_then_removes(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    ledger.delete_trade(trade.id)
    assert owners(manager, draft.id, 12, 20) == ["b", "a"]
    with pytest.raises(NotFoundError):
        ledger.get_trade(trade.id)


def test_delete_already_cancelled_trade(ledger, draft):
    trade = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    ledger.cancel_trade(trade.id)
    ledger.delete_trade(trade.id)
    assert ledger.get_trades() == []


def test_unknown_trade(ledger):
    with pytest.raises(NotFoundError):
        ledger.can_cancel("nope")
    with pytest.raises(NotFoundError):
        ledger.delete_trade("nope")


def test_timestamps_strictly_increase_and_list_newest_first(manager, draft):
    fixed = datetime(2025, 8, 30, 18, 0, tzinfo=timezone.utc)
    ledger = TradeLedger(manager, clock=lambda: fixed)
    first = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    second = ledger.create_trade([party("c", pick_asset(draft, 3)), party("d", pick_asset(draft, 4))])
    third = ledger.create_trade([party("e", player("p5")), party("a", player("p6"))])

    assert first.timestamp == fixed
    assert second.timestamp == fixed + timedelta(microseconds=1)
    assert third.timestamp > second.timestamp
    assert [t.id for t in ledger.get_trades()] == [third.id, second.id, first.id]


def test_get_trades_filters_by_status(ledger, draft):
    kept = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    dropped = ledger.create_trade([party("c", pick_asset(draft, 3)), party("d", pick_asset(draft, 4))])
    ledger.cancel_trade(dropped.id)
    assert [t.id for t in ledger.get_trades(TradeStatus.COMPLETED)] == [kept.id]
    assert [t.id for t in ledger.get_trades(TradeStatus.CANCELLED)] == [dropped.id]


def test_reset_voids_trades_so_they_can_be_deleted(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    ledger.reset_draft(draft.id)

    assert owners(manager, draft.id, 12, 20) == ["b", "a"]
    assert ledger.get_trade(trade.id).status == TradeStatus.CANCELLED
    assert not ledger.can_cancel(trade.id)
    ledger.delete_trade(trade.id)
    assert ledger.get_trades() == []


def test_reset_leaves_other_drafts_trades_alone(manager, ledger, draft):
    swap = ledger.create_trade([party("a", player("p1")), party("b", player("p2"))])
    picks = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    assert ledger.void_draft_trades("another-draft") == []
    assert ledger.void_draft_trades(draft.id) == [picks.id]
    assert ledger.get_trade(swap.id).status == TradeStatus.COMPLETED


def test_can_cancel_agrees_with_cancel_when_pick_was_used(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    manager.mark_pick_complete(draft.id, 20, "b", "p20")
    assert not ledger.can_cancel(trade.id)
    with pytest.raises(OwnershipError):
        ledger.cancel_trade(trade.id)


def test_can_cancel_is_false_without_active_draft(manager, ledger, draft):
    trade = ledger.create_trade([party("b", pick_asset(draft, 12)), party("a", pick_asset(draft, 20))])
    manager.toggle_active(draft.id)
    assert not ledger.can_cancel(trade.id)


class TradeWriteFailures(MemoryStore):
    """Draft writes behave normally; trade writes listed in ``refuse`` fail."""

    def __init__(self):
        super().__init__()
        self.refuse = {}

    def insert(self, collection, document):
        if collection == TRADES and "insert" in self.refuse:
            return self.refuse["insert"]
        return super().insert(collection, document)

    def replace(self, collection, document):
        if collection == TRADES and "replace" in self.refuse:
            return self.refuse["replace"]
        return super().replace(collection, document)

    def delete(self, collection, doc_id):
        if collection == TRADES and "delete" in self.refuse:
            return self.refuse["delete"]
        return super().delete(collection, doc_id)


@pytest.fixture
def failing():
    store = TradeWriteFailures()
    drafts = DraftManager(store=store)
    draft = drafts.create_draft(2025, "Keeper", True, 4, make_order("a", "b", "c", "d", "e"))
    return store, TradeLedger(drafts), draft


def test_unacknowledged_trade_insert(failing):
    store, ledger, draft = failing
    store.refuse["insert"] = WriteResult(acknowledged=False)
    with pytest.raises(StorageAcknowledgementError):
        ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    assert ledger.get_trades() == []


@pytest.mark.parametrize(
    "result",
    [WriteResult(acknowledged=False), WriteResult(acknowledged=True, matched_count=1, modified_count=0)],
)
def test_unacknowledged_cancel_keeps_status(failing, result):
    store, ledger, draft = failing
    trade = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    store.refuse["replace"] = result
    with pytest.raises(StorageAcknowledgementError) as info:
        ledger.cancel_trade(trade.id)
    assert info.value.details["status"] == "Completed"
    assert ledger.get_trade(trade.id).status == TradeStatus.COMPLETED


def test_unacknowledged_delete_keeps_trade(failing):
    store, ledger, draft = failing
    trade = ledger.create_trade([party("a", player("p1")), party("b", player("p2"))])
    ledger.cancel_trade(trade.id)
    store.refuse["delete"] = WriteResult(acknowledged=False)
    with pytest.raises(StorageAcknowledgementError):
        ledger.delete_trade(trade.id)
    assert ledger.get_trade(trade.id).status == TradeStatus.CANCELLED


def test_unacknowledged_void_on_reset(failing):
    store, ledger, draft = failing
    trade = ledger.create_trade([party("a", pick_asset(draft, 1)), party("b", pick_asset(draft, 2))])
    store.refuse["replace"] = WriteResult(acknowledged=False)
    with pytest.raises(StorageAcknowledgementError):
        ledger.reset_draft(draft.id)
    assert ledger.get_trade(trade.id).status == TradeStatus.COMPLETED
