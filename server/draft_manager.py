# server/draft_manager.py
import logging
from typing import Callable, List, Optional, Sequence

from data_loader import load_default_draft_order
from draft_models import Draft, DraftPosition, ManagerSlot
from draft_state import DraftState
from draft_store import DRAFTS, MemoryStore, WriteResult
from errors import (
    ConcurrencyConflictError,
    NotFoundError,
    StateConflictError,
    StorageAcknowledgementError,
)

logger = logging.getLogger(__name__)


class DraftManager:
    """
    Loads drafts from the store, applies DraftState operations and writes
    them back. Every mutation is one version-checked write of the draft
    document, so a stale read fails instead of silently losing an update.
    Only one draft may be active at a time.
    """
    def __init__(self, store: Optional[MemoryStore] = None, data_dir: Optional[str] = None):
        self.store = store if store is not None else MemoryStore()
        self.data_dir = data_dir

    # ---- persistence -------------------------------------------------

    def save(self, draft: Draft) -> Draft:
        result = self.store.replace(DRAFTS, draft)
        self._check_write(result, f"update draft {draft.id}")
        if result.matched_count == 0:
            if self.store.get(DRAFTS, draft.id) is None:
                raise NotFoundError(f"Draft {draft.id} not found", {"draft_id": draft.id})
            raise ConcurrencyConflictError(
                f"Draft {draft.id} was modified by another operation",
                {"draft_id": draft.id, "version": draft.version},
            )
        return draft

    @staticmethod
    def _check_write(result: WriteResult, what: str) -> None:
        if not result.acknowledged:
            logger.error("Write not acknowledged: %s", what)
            raise StorageAcknowledgementError(f"Failed to {what}: write not acknowledged")

    def _mutate(self, draft: Draft, change: Callable[[DraftState], object]) -> Draft:
        change(DraftState(draft))
        return self.save(draft)

    # ---- lookups -----------------------------------------------------

    def list_drafts(self) -> List[Draft]:
        drafts = self.store.find(DRAFTS)
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)

    def get_active_draft(self) -> Optional[Draft]:
        active = self.store.find(DRAFTS, lambda d: d.is_active)
        return active[0] if active else None

    def require_active_draft(self) -> Draft:
        draft = self.get_active_draft()
        if draft is None:
            raise StateConflictError("No active draft exists")
        return draft

    def get_by_id(self, draft_id: str) -> Optional[Draft]:
        return self.store.get(DRAFTS, draft_id)

    def require_draft(self, draft_id: str) -> Draft:
        draft = self.get_by_id(draft_id)
        if draft is None:
            raise NotFoundError(f"Draft {draft_id} not found", {"draft_id": draft_id})
        return draft

    def get_current_pick(self) -> Optional[DraftPosition]:
        return DraftState(self.require_active_draft()).get_current_pick()

    def get_next_pick(self, draft_id: str, from_overall: int, skip_completed: bool = False) -> Optional[DraftPosition]:
        return DraftState(self.require_draft(draft_id)).get_next_pick(from_overall, skip_completed)

    def picks_owned_by(self, draft_id: str, manager_id: str, include_complete: bool = False) -> List[DraftPosition]:
        return DraftState(self.require_draft(draft_id)).picks_owned_by(manager_id, include_complete)

    # ---- lifecycle ---------------------------------------------------

    def create_draft(
        self,
        year: int,
        type: str,
        is_snake_draft: bool,
        initial_rounds: int,
        draft_order: Optional[Sequence[ManagerSlot]] = None,
    ) -> Draft:
        if self.get_active_draft() is not None:
            raise StateConflictError("There is already an active draft")
        if not draft_order and self.data_dir:
            draft_order = load_default_draft_order(self.data_dir)
        draft = DraftState.new(year, type, is_snake_draft, initial_rounds, draft_order or []).draft
        self._check_write(self.store.insert(DRAFTS, draft), f"create draft {draft.id}")
        logger.info(
            "Created draft %s (%s %s, snake=%s) with %d rounds for %d managers",
            draft.id, year, type, is_snake_draft, initial_rounds, draft.manager_count,
        )
        return draft

    def delete_draft(self, draft_id: str) -> None:
        self.require_draft(draft_id)
        result = self.store.delete(DRAFTS, draft_id)
        self._check_write(result, f"delete draft {draft_id}")
        if result.matched_count == 0:
            raise NotFoundError(f"Draft {draft_id} not found", {"draft_id": draft_id})
        logger.info("Deleted draft %s", draft_id)

    def toggle_active(self, draft_id: str) -> Draft:
        draft = self.require_draft(draft_id)
        if not draft.is_active:
            current = self.get_active_draft()
            if current is not None:
                current.is_active = False
                self.save(current)
                logger.info("Deactivated draft %s", current.id)
        draft.is_active = not draft.is_active
        self.save(draft)
        logger.info("Draft %s is now %s", draft.id, "active" if draft.is_active else "inactive")
        return draft

    def reset_draft(self, draft_id: str) -> Draft:
        draft = self._mutate(self.require_draft(draft_id), lambda s: s.reset())
        logger.warning("Reset draft %s: all picks and pick ownership history cleared", draft_id)
        return draft

    def add_round(self, draft_id: str) -> Draft:
        draft = self._mutate(self.require_draft(draft_id), lambda s: s.add_round())
        logger.info("Added round %d to draft %s", len(draft.rounds), draft_id)
        return draft

    def remove_round(self, draft_id: str) -> Draft:
        draft = self._mutate(self.require_draft(draft_id), lambda s: s.remove_round())
        logger.info("Removed round %d from draft %s", len(draft.rounds) + 1, draft_id)
        return draft

    # ---- pick progression --------------------------------------------

    def update_pick_state(self, round_number: int, pick_number: int, overall_pick_number: int) -> Draft:
        draft = self._mutate(
            self.require_active_draft(),
            lambda s: s.update_pick_state(round_number, pick_number, overall_pick_number),
        )
        logger.info(
            "Pick state for draft %s: current=%s active=%s", draft.id, draft.current, draft.active,
        )
        return draft

    def advance_pick(self, skip_completed: bool = False) -> Draft:
        draft = self._mutate(self.require_active_draft(), lambda s: s.advance_pick(skip_completed))
        logger.info("Advanced draft %s to overall pick %d", draft.id, draft.current.overall)
        return draft

    def mark_pick_complete(self, draft_id: str, overall_pick_number: int, manager_id: str, player_id: str) -> Draft:
        draft = self._mutate(
            self.require_draft(draft_id),
            lambda s: s.mark_pick_complete(overall_pick_number, manager_id, player_id),
        )
        logger.info(
            "Draft %s pick %d used by %s on player %s", draft_id, overall_pick_number, manager_id, player_id,
        )
        return draft
