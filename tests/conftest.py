import pytest

from draft_manager import DraftManager
from draft_models import ManagerSlot, TradeAsset, TradeAssetType, TradeParty
from draft_state import DraftState
from draft_store import MemoryStore
from trade_ledger import TradeLedger


def make_order(*managers):
    return [ManagerSlot(manager_id=m, pick_number=i + 1) for i, m in enumerate(managers)]


def pick_asset(draft, overall):
    state = DraftState(draft)
    cursor = state.cursor_for(overall)
    return TradeAsset(
        type=TradeAssetType.DRAFT_PICK,
        draft_id=draft.id,
        overall_pick_number=overall,
        pick_number=cursor.pick,
        round_number=cursor.round,
    )


def party(manager_id, *assets):
    return TradeParty(manager_id=manager_id, assets=list(assets))


def owner_of(manager, draft_id, overall):
    return DraftState(manager.require_draft(draft_id)).find_pick(overall).current_owner


@pytest.fixture
def order4():
    return make_order("a", "b", "c", "d")


@pytest.fixture
def state4(order4):
    """4 managers, 3 rounds, snake."""
    return DraftState.new(year=2025, type="Keeper", is_snake_draft=True, initial_rounds=3, draft_order=order4)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def manager(store):
    return DraftManager(store=store)


@pytest.fixture
def ledger(manager):
    return TradeLedger(manager)


@pytest.fixture
def draft(manager):
    """Active 5-manager snake draft with 4 rounds (20 picks)."""
    return manager.create_draft(2025, "Keeper", True, 4, make_order("a", "b", "c", "d", "e"))
