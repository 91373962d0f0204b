"""
draft_state.py
==============

This module defines the ``DraftState`` class, which encapsulates the pick
progression and pick ownership of a single draft.  It wraps a
:class:`draft_models.Draft` document and applies every in-memory mutation
the draft supports: moving the current/active pick cursors, completing
picks, transferring and reverting pick ownership, adding and removing
rounds, and resetting the draft.

The class does **not** talk to storage.  Callers (``DraftManager`` and
``TradeLedger``) load a draft, mutate it through ``DraftState`` and then
persist the document in a single write.

Usage
-----

```python
from draft_models import ManagerSlot
from draft_state import DraftState

order = [ManagerSlot("a", 1), ManagerSlot("b", 2), ManagerSlot("c", 3)]
state = DraftState.new(year=2025, type="Keeper", is_snake_draft=True,
                       initial_rounds=3, draft_order=order)

# Record a pick, then move on to the next open one
state.mark_pick_complete(1, manager_id="a", player_id="p-17")
state.advance_pick(skip_completed=True)
```
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from draft_models import Draft, DraftPosition, DraftRound, ManagerSlot, PickCursor
from draft_utils import generate_round, generate_rounds, resolve_pick_state
from errors import NotFoundError, OwnershipError, StateConflictError, ValidationError


def validate_draft_order(draft_order: Sequence[ManagerSlot]) -> None:
    """Raise ``ValidationError`` unless the draft order is usable."""
    if not draft_order:
        raise ValidationError("Draft order must include at least one manager")
    managers = [slot.manager_id for slot in draft_order]
    if len(set(managers)) != len(managers):
        raise ValidationError("Draft order contains duplicate managers", {"managers": managers})
    numbers = [slot.pick_number for slot in draft_order]
    if len(set(numbers)) != len(numbers):
        raise ValidationError("Draft order contains duplicate pick numbers", {"pick_numbers": numbers})


class DraftState:
    """Maintain the pick state of one draft.

    Parameters
    ----------
    draft : Draft
        The draft document to operate on.  It is mutated in place.
    """

    def __init__(self, draft: Draft) -> None:
        self.draft = draft

    @classmethod
    def new(
        cls,
        year: int,
        type: str,
        is_snake_draft: bool,
        initial_rounds: int,
        draft_order: Sequence[ManagerSlot],
    ) -> "DraftState":
        """Build a fresh, active draft with both cursors on the first pick."""
        validate_draft_order(draft_order)
        if initial_rounds < 1:
            raise ValidationError("A draft needs at least one round", {"initial_rounds": initial_rounds})
        order = list(draft_order)
        draft = Draft(
            year=year,
            type=type,
            is_snake_draft=is_snake_draft,
            draft_order=order,
            rounds=generate_rounds(order, initial_rounds, is_snake_draft),
            is_active=True,
        )
        return cls(draft)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_pick(self, overall_pick_number: int) -> Optional[DraftPosition]:
        for _, pick in self.draft.iter_picks():
            if pick.overall_pick_number == overall_pick_number:
                return pick
        return None

    def find_round(self, round_number: int) -> Optional[DraftRound]:
        return next((r for r in self.draft.rounds if r.round_number == round_number), None)

    def cursor_for(self, overall_pick_number: int) -> Optional[PickCursor]:
        """Return the cursor pointing at ``overall_pick_number``, if any."""
        for rnd, pick in self.draft.iter_picks():
            if pick.overall_pick_number == overall_pick_number:
                return PickCursor(rnd.round_number, pick.pick_number, pick.overall_pick_number)
        return None

    def highest_completed_overall(self) -> int:
        """Return the highest completed overall pick number, 0 if none."""
        return max(
            (p.overall_pick_number for _, p in self.draft.iter_picks() if p.is_complete),
            default=0,
        )

    def is_draft_over(self) -> bool:
        """Return True if every pick in the draft has been made."""
        return all(p.is_complete for _, p in self.draft.iter_picks())

    def get_current_pick(self) -> Optional[DraftPosition]:
        """Return the pick under the current cursor.

        Returns None once the draft has ended (all picks complete) or when
        no pick carries the cursor's overall number.
        """
        if self.is_draft_over():
            return None
        return self.find_pick(self.draft.current.overall)

    def get_next_pick(self, from_overall: int, skip_completed: bool = False) -> Optional[DraftPosition]:
        """Return the first pick after ``from_overall`` in overall order.

        Parameters
        ----------
        from_overall : int
            Overall pick number to search after (exclusive).
        skip_completed : bool
            Ignore picks that have already been made.
        """
        candidates = sorted(
            (p for _, p in self.draft.iter_picks() if p.overall_pick_number > from_overall),
            key=lambda p: p.overall_pick_number,
        )
        for pick in candidates:
            if skip_completed and pick.is_complete:
                continue
            return pick
        return None

    def picks_owned_by(self, manager_id: str, include_complete: bool = False) -> List[DraftPosition]:
        """Return the picks a manager currently owns, in overall order."""
        owned = [
            p
            for _, p in self.draft.iter_picks()
            if p.current_owner == manager_id and (include_complete or not p.is_complete)
        ]
        return sorted(owned, key=lambda p: p.overall_pick_number)

    # ------------------------------------------------------------------
    # Cursor movement
    # ------------------------------------------------------------------

    def update_pick_state(self, round_number: int, pick_number: int, overall_pick_number: int) -> PickCursor:
        """Select a pick, moving the active cursor and possibly the current one.

        See :func:`draft_utils.resolve_pick_state` for the rules.  Returns
        the new active cursor.
        """
        rnd = self.find_round(round_number)
        pick = None
        if rnd is not None:
            pick = next((p for p in rnd.picks if p.pick_number == pick_number), None)
        if pick is None:
            raise NotFoundError(
                f"Pick {pick_number} not found in round {round_number}",
                {"round": round_number, "pick": pick_number},
            )
        if pick.overall_pick_number != overall_pick_number:
            raise ValidationError(
                "Overall pick number does not match the selected round and pick",
                {
                    "round": round_number,
                    "pick": pick_number,
                    "overall_pick_number": overall_pick_number,
                    "expected": pick.overall_pick_number,
                },
            )

        target = PickCursor(round_number, pick_number, overall_pick_number)
        current, active = resolve_pick_state(
            self.draft.current,
            target,
            self.highest_completed_overall(),
            self.cursor_for,
        )
        self.draft.current = current
        self.draft.active = active
        return active

    def advance_pick(self, skip_completed: bool = False) -> PickCursor:
        """Move to the pick after the current cursor."""
        nxt = self.get_next_pick(self.draft.current.overall, skip_completed=skip_completed)
        if nxt is None:
            raise StateConflictError(
                "No next pick available",
                {"current_overall": self.draft.current.overall, "skip_completed": skip_completed},
            )
        cursor = self.cursor_for(nxt.overall_pick_number)
        return self.update_pick_state(cursor.round, cursor.pick, cursor.overall)

    # ------------------------------------------------------------------
    # Pick mutation
    # ------------------------------------------------------------------

    def mark_pick_complete(self, overall_pick_number: int, manager_id: str, player_id: str) -> DraftPosition:
        """Record that ``manager_id`` selected ``player_id`` with a pick.

        Only the pick's current owner may use it, so a traded pick is used
        by the manager who received it; anyone else gets OwnershipError.

        Note: this does **not** move either cursor.  Call
        :meth:`advance_pick` separately after making a pick.
        """
        pick = self.find_pick(overall_pick_number)
        if pick is None:
            raise NotFoundError(
                f"Pick {overall_pick_number} not found",
                {"draft_id": self.draft.id, "overall_pick_number": overall_pick_number},
            )
        if pick.is_complete:
            raise StateConflictError(
                f"Pick {overall_pick_number} is already complete",
                {"overall_pick_number": overall_pick_number, "player_id": pick.player_id},
            )
        if pick.current_owner != manager_id:
            raise OwnershipError(
                f"Pick {overall_pick_number} belongs to {pick.current_owner}, not {manager_id}",
                {"overall_pick_number": overall_pick_number, "owner": pick.current_owner, "manager_id": manager_id},
            )
        pick.is_complete = True
        pick.player_id = player_id
        return pick

    def _require_tradeable_pick(self, draft_id: str, overall_pick_number: int) -> DraftPosition:
        if draft_id != self.draft.id:
            raise OwnershipError(
                f"Pick {overall_pick_number} belongs to draft {draft_id}, not {self.draft.id}",
                {"draft_id": draft_id, "overall_pick_number": overall_pick_number},
            )
        pick = self.find_pick(overall_pick_number)
        if pick is None:
            raise OwnershipError(
                f"Pick {overall_pick_number} not found in draft {draft_id}",
                {"draft_id": draft_id, "overall_pick_number": overall_pick_number},
            )
        return pick

    def transfer_ownership(self, draft_id: str, overall_pick_number: int, new_manager_id: str) -> DraftPosition:
        """Make ``new_manager_id`` the current owner of a pick."""
        pick = self._require_tradeable_pick(draft_id, overall_pick_number)
        if pick.is_complete:
            raise OwnershipError(
                f"Pick {overall_pick_number} has already been used",
                {"draft_id": draft_id, "overall_pick_number": overall_pick_number},
            )
        pick.traded_to.append(new_manager_id)
        return pick

    def revert_ownership(self, draft_id: str, overall_pick_number: int) -> str:
        """Undo the most recent ownership transfer of a pick.

        Returns the manager id that was removed from the history.
        """
        pick = self._require_tradeable_pick(draft_id, overall_pick_number)
        if not pick.traded_to:
            raise OwnershipError(
                f"Pick {overall_pick_number} has no ownership transfer to revert",
                {"draft_id": draft_id, "overall_pick_number": overall_pick_number},
            )
        return pick.traded_to.pop()

    # ------------------------------------------------------------------
    # Whole-draft operations
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear every pick and return both cursors to the first pick."""
        for _, pick in self.draft.iter_picks():
            pick.is_complete = False
            pick.player_id = None
            pick.traded_to = []
        self.draft.current = PickCursor.start()
        self.draft.active = PickCursor.start()

    def add_round(self) -> DraftRound:
        """Append the next round using the draft's numbering rules."""
        number = len(self.draft.rounds) + 1
        rnd = DraftRound(
            round_number=number,
            picks=generate_round(self.draft.draft_order, number, self.draft.is_snake_draft),
        )
        self.draft.rounds.append(rnd)
        return rnd

    def remove_round(self) -> DraftRound:
        """Remove the last round.

        Refuses to drop the only round, or a round in which any pick has
        been made or traded.  Cursors left pointing into the removed round
        move to the last remaining pick.
        """
        if len(self.draft.rounds) <= 1:
            raise StateConflictError("Cannot remove the last remaining round", {"rounds": len(self.draft.rounds)})
        last = self.draft.rounds[-1]
        touched = [p.overall_pick_number for p in last.picks if p.is_complete or p.is_traded]
        if touched:
            raise StateConflictError(
                f"Round {last.round_number} has completed or traded picks",
                {"round": last.round_number, "picks": sorted(touched)},
            )
        self.draft.rounds.pop()
        clamp = self.cursor_for(self.draft.total_picks)
        if self.draft.current.round >= last.round_number:
            self.draft.current = clamp
        if self.draft.active.round >= last.round_number:
            self.draft.active = clamp
        return last
