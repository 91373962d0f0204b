"""
draft_models.py
===============

Definitions of core domain objects used by the draft tracker.  These
classes describe a draft (its order, rounds and picks), the two pick
cursors that drive draft-day selection, and the trades that move picks
between managers.

The design uses frozen dataclasses for value objects (`ManagerSlot`,
`PickCursor`, `TradeAsset`) and regular dataclasses for the mutable
documents that are stored and updated (`Draft`, `Trade`).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TradeAssetType(str, Enum):
    DRAFT_PICK = "DraftPick"
    PLAYER = "Player"


class TradeStatus(str, Enum):
    # Only COMPLETED and CANCELLED are produced by the trade ledger today.
    PROPOSED = "Proposed"
    ACCEPTED = "Accepted"
    APPROVED = "Approved"
    COMPLETED = "Completed"
    REVERSED = "Reversed"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class ManagerSlot:
    """One entry of a draft order.

    Attributes
    ----------
    manager_id : str
        Identifier of the manager holding this slot.
    pick_number : int
        1-based position of the manager within an odd (forward) round.
    """

    manager_id: str
    pick_number: int


@dataclass(frozen=True)
class PickCursor:
    """A pointer to one pick of a draft.

    A draft carries two of these: ``current`` (genuine draft progress) and
    ``active`` (the pick the operator is looking at).
    """

    round: int
    pick: int
    overall: int

    @classmethod
    def start(cls) -> "PickCursor":
        return cls(round=1, pick=1, overall=1)


@dataclass
class DraftPosition:
    """A single pick in a single round.

    Attributes
    ----------
    manager_id : str
        The original owner of the pick.  Never changes after the round is
        generated; trades are tracked in ``traded_to`` instead.
    pick_number : int
        The original owner's draft-order pick number.
    overall_pick_number : int
        Globally unique, sequential number of this pick in the draft.
    is_complete : bool
        True once a player has been selected with this pick.
    player_id : str, optional
        The selected player, set when the pick is completed.
    traded_to : List[str]
        Ownership history, oldest first.  Empty means never traded.
    """

    manager_id: str
    pick_number: int
    overall_pick_number: int
    is_complete: bool = False
    player_id: Optional[str] = None
    traded_to: List[str] = field(default_factory=list)

    @property
    def current_owner(self) -> str:
        """Return the most recent owner of the pick."""
        return self.traded_to[-1] if self.traded_to else self.manager_id

    @property
    def is_traded(self) -> bool:
        return bool(self.traded_to)


@dataclass
class DraftRound:
    round_number: int
    picks: List[DraftPosition]


@dataclass
class Draft:
    """A draft document: order, rounds, picks and the two pick cursors.

    ``version`` is maintained by the document store and is used for
    compare-and-set writes; callers should not change it themselves.
    """

    year: int
    type: str
    is_snake_draft: bool
    draft_order: List[ManagerSlot]
    rounds: List[DraftRound] = field(default_factory=list)
    is_active: bool = True
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)
    current: PickCursor = field(default_factory=PickCursor.start)
    active: PickCursor = field(default_factory=PickCursor.start)
    version: int = 0

    @property
    def manager_count(self) -> int:
        return len(self.draft_order)

    @property
    def total_picks(self) -> int:
        return sum(len(r.picks) for r in self.rounds)

    def iter_picks(self) -> Iterator[Tuple[DraftRound, DraftPosition]]:
        """Yield ``(round, pick)`` pairs in stored (physical) order."""
        for rnd in self.rounds:
            for pick in rnd.picks:
                yield rnd, pick


@dataclass(frozen=True)
class TradeAsset:
    """Something a manager gives up in a trade.

    Draft picks are identified by ``(type, draft_id, overall_pick_number)``;
    players by ``(type, player_id)``.  ``pick_number`` and ``round_number``
    are informational only.
    """

    type: TradeAssetType
    draft_id: Optional[str] = None
    overall_pick_number: Optional[int] = None
    pick_number: Optional[int] = None
    round_number: Optional[int] = None
    player_id: Optional[str] = None

    @property
    def key(self) -> tuple:
        if self.type == TradeAssetType.PLAYER:
            return (self.type.value, self.player_id)
        return (self.type.value, self.draft_id, self.overall_pick_number)

    @property
    def is_draft_pick(self) -> bool:
        return self.type == TradeAssetType.DRAFT_PICK


@dataclass
class TradeParty:
    """A manager taking part in a trade and the assets they contribute."""

    manager_id: str
    assets: List[TradeAsset] = field(default_factory=list)


# receiving manager -> contributing manager -> assets
AssetDistribution = Dict[str, Dict[str, List[TradeAsset]]]


@dataclass
class Trade:
    parties: List[TradeParty]
    asset_distribution: AssetDistribution = field(default_factory=dict)
    notes: Optional[str] = None
    status: TradeStatus = TradeStatus.COMPLETED
    timestamp: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=_new_id)

    def iter_contributed(self) -> Iterator[Tuple[str, TradeAsset]]:
        """Yield ``(contributor, asset)`` for every contributed asset."""
        for party in self.parties:
            for asset in party.assets:
                yield party.manager_id, asset

    def iter_received(self) -> Iterator[Tuple[str, str, TradeAsset]]:
        """Yield ``(receiver, contributor, asset)`` from the distribution."""
        for receiver, by_contributor in self.asset_distribution.items():
            for contributor, assets in by_contributor.items():
                for asset in assets:
                    yield receiver, contributor, asset

    def asset_keys(self) -> set:
        return {asset.key for _, asset in self.iter_contributed()}
