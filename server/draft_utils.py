"""
draft_utils.py
==============

Helper functions related to draft mechanics: generating the round/pick
numbering for a (snake) draft and the pure rule that moves the current and
active pick cursors.  Nothing here touches storage, so every function can
be exercised directly in tests.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from draft_models import Draft, DraftPosition, DraftRound, ManagerSlot, PickCursor


def is_reversed_round(round_number: int, is_snake: bool) -> bool:
    """Return True if ``round_number`` runs backwards in a snake draft."""
    return is_snake and round_number % 2 == 0


def generate_round(draft_order: Sequence[ManagerSlot], round_number: int, is_snake: bool) -> List[DraftPosition]:
    """Generate the picks for one round.

    In a snake draft, even rounds reverse the order of the previous round.
    For example, with four managers the second round is picked by the
    managers at draft-order indices ``3, 2, 1, 0`` and carries overall
    picks ``5, 6, 7, 8``.  Pick numbers stay tied to the manager (the
    manager picking fourth in round one keeps ``pick_number=4``), overall
    numbers stay tied to the round, and the list order follows the order
    in which picks are actually made.

    Parameters
    ----------
    draft_order : Sequence[ManagerSlot]
        The draft order fixed at draft creation.
    round_number : int
        1-based round number.
    is_snake : bool
        Whether even rounds are reversed.

    Returns
    -------
    List[DraftPosition]
        ``len(draft_order)`` fresh picks in physical pick order.
    """
    if round_number < 1:
        raise ValueError(f"round_number must be >= 1 (got {round_number})")
    n = len(draft_order)
    picks: List[Optional[DraftPosition]] = [None] * n
    reverse = is_reversed_round(round_number, is_snake)
    for j, slot in enumerate(draft_order):
        if reverse:
            overall = round_number * n - j
            index = n - 1 - j
        else:
            overall = (round_number - 1) * n + j + 1
            index = j
        picks[index] = DraftPosition(
            manager_id=slot.manager_id,
            pick_number=slot.pick_number,
            overall_pick_number=overall,
        )
    return picks  # type: ignore[return-value]


def generate_rounds(draft_order: Sequence[ManagerSlot], n_rounds: int, is_snake: bool) -> List[DraftRound]:
    """Generate rounds ``1..n_rounds`` for a new draft."""
    return [
        DraftRound(round_number=r, picks=generate_round(draft_order, r, is_snake))
        for r in range(1, n_rounds + 1)
    ]


def display_pick_number(draft: Draft, pick_number: int, round_number: Optional[int] = None) -> int:
    """Return the in-round pick number shown to the operator.

    Reversed rounds of a snake draft count from the other end, so the
    manager with ``pick_number=1`` picks last (``N``).  Defaults to the
    draft's active round.
    """
    rnd = round_number if round_number is not None else draft.active.round
    if not is_reversed_round(rnd, draft.is_snake_draft):
        return pick_number
    return draft.manager_count - pick_number + 1


def resolve_pick_state(
    current: PickCursor,
    target: PickCursor,
    highest_completed_overall: int,
    cursor_at: Callable[[int], Optional[PickCursor]],
) -> Tuple[PickCursor, PickCursor]:
    """Compute the new ``(current, active)`` cursors for a pick selection.

    - The active cursor always moves to ``target``.
    - Moving forward (``target.overall > current.overall``) also moves the
      current cursor to ``target``.
    - Otherwise the current cursor may not sit further ahead than one past
      the last completed pick.  When it does, it falls back to
      ``max(target.overall, highest_completed_overall + 1)``.

    Parameters
    ----------
    current : PickCursor
        The current (progress) cursor before the update.
    target : PickCursor
        The pick being selected.
    highest_completed_overall : int
        Highest overall pick number that is complete, 0 if none.
    cursor_at : Callable[[int], Optional[PickCursor]]
        Looks up the cursor for an overall pick number, None if the draft
        has no such pick.

    Returns
    -------
    Tuple[PickCursor, PickCursor]
        The new current cursor and the new active cursor.
    """
    active = target
    if target.overall > current.overall:
        return target, active

    floor = highest_completed_overall + 1
    if current.overall > floor:
        wanted = max(target.overall, floor)
        reset_to = cursor_at(wanted) or target
        return reset_to, active
    return current, active
