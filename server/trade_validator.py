"""
trade_validator.py
==================

Structural checks for a proposed trade, run before any draft state is
touched.  The checks only look at the trade itself (who contributes what
and who receives what).  Live ownership of the picks is verified
separately by the trade ledger.

Rules run in a fixed order and the first failure wins:

1. at least two distinct managers take part;
2. every manager contributes at least one well-formed asset, and no asset
   is listed twice;
3. trades between more than two managers come with an explicit asset
   distribution in which every manager receives something, and which only
   names managers who are part of the trade;
4. nobody receives assets from themselves;
5. two-manager trades without a distribution get one derived (each side
   receives what the other contributed);
6. the distribution conserves assets: every contributed asset is handed
   out exactly once, by the manager who contributed it, and nothing else
   is handed out.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from draft_models import AssetDistribution, Trade, TradeAsset, TradeParty
from errors import DistributionError, ValidationError

VALIDATION = "validation"
DISTRIBUTION = "distribution"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: Optional[str] = None
    kind: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    distribution: Optional[AssetDistribution] = None

    def raise_for_error(self) -> None:
        """Raise the matching exception if the trade was rejected."""
        if self.ok:
            return
        exc_type = DistributionError if self.kind == DISTRIBUTION else ValidationError
        raise exc_type(self.reason or "Trade is invalid", self.details)


def _fail(kind: str, reason: str, **details: Any) -> ValidationResult:
    return ValidationResult(ok=False, reason=reason, kind=kind, details=details)


def _describe(asset: TradeAsset) -> str:
    if asset.is_draft_pick:
        return f"pick {asset.overall_pick_number} of draft {asset.draft_id}"
    return f"player {asset.player_id}"


def _malformed(asset: TradeAsset) -> bool:
    if asset.is_draft_pick:
        return not asset.draft_id or asset.overall_pick_number is None
    return not asset.player_id


def derive_two_party_distribution(parties: List[TradeParty]) -> AssetDistribution:
    """Each of the two parties receives exactly what the other contributed."""
    first, second = parties
    return {
        first.manager_id: {second.manager_id: list(second.assets)},
        second.manager_id: {first.manager_id: list(first.assets)},
    }


def validate_trade(trade: Trade) -> ValidationResult:
    """Validate the structure of ``trade``.

    Parameters
    ----------
    trade : Trade
        The proposed trade.  It is not modified.

    Returns
    -------
    ValidationResult
        ``ok=True`` with the effective distribution (derived for
        two-manager trades that did not supply one), or ``ok=False`` with
        a reason and a kind of ``"validation"`` or ``"distribution"``.
    """
    parties = trade.parties
    managers = [p.manager_id for p in parties]

    # 1) participants
    if len(parties) < 2:
        return _fail(VALIDATION, "A trade must include at least two managers", managers=managers)
    if len(set(managers)) != len(managers):
        return _fail(VALIDATION, "Each manager may only appear once in a trade", managers=managers)

    # 2) contributions
    empty = [p.manager_id for p in parties if not p.assets]
    if empty:
        return _fail(VALIDATION, "Each manager must include at least one trade asset", managers=empty)
    for manager_id, asset in trade.iter_contributed():
        if _malformed(asset):
            return _fail(
                VALIDATION,
                f"Trade asset from {manager_id} is missing its identifiers",
                manager_id=manager_id,
                asset_type=asset.type.value,
            )
    contributed = Counter(asset.key for _, asset in trade.iter_contributed())
    repeated = [key for key, n in contributed.items() if n > 1]
    if repeated:
        return _fail(VALIDATION, "The same asset is listed more than once", assets=[list(k) for k in repeated])

    # 5) two-party default
    distribution = trade.asset_distribution
    if not distribution:
        if len(parties) > 2:
            return _fail(
                DISTRIBUTION,
                "An asset distribution is required for trades between more than two managers",
                managers=managers,
            )
        distribution = derive_two_party_distribution(parties)

    # 3) membership and receipt
    party_set = set(managers)
    foreign = sorted(
        {r for r in distribution if r not in party_set}
        | {c for by_c in distribution.values() for c in by_c if c not in party_set}
    )
    if foreign:
        return _fail(
            DISTRIBUTION,
            "Asset distribution names managers who are not part of the trade",
            managers=foreign,
        )
    if len(parties) > 2:
        not_receiving = [m for m in managers if not any(distribution.get(m, {}).values())]
        if not_receiving:
            return _fail(
                DISTRIBUTION,
                "The following managers must receive at least one asset: " + ", ".join(not_receiving),
                managers=not_receiving,
            )

    # 4) self-receipt
    for receiver, by_contributor in distribution.items():
        if receiver in by_contributor:
            return _fail(
                DISTRIBUTION,
                f"Manager {receiver} cannot receive assets from themselves",
                manager_id=receiver,
            )

    # 6) conservation
    given = Counter((m, asset.key) for m, asset in trade.iter_contributed())
    handed_out = Counter(
        (contributor, asset.key)
        for by_contributor in distribution.values()
        for contributor, assets in by_contributor.items()
        for asset in assets
    )
    n_given = sum(given.values())
    n_handed_out = sum(handed_out.values())
    if n_given != n_handed_out:
        return _fail(
            DISTRIBUTION,
            f"Distributed asset count ({n_handed_out}) does not match contributed asset count ({n_given})",
            contributed=n_given,
            distributed=n_handed_out,
        )
    lookup = {(m, asset.key): asset for m, asset in trade.iter_contributed()}
    for entry, count in given.items():
        if handed_out.get(entry, 0) != count:
            manager_id, _ = entry
            return _fail(
                DISTRIBUTION,
                f"All assets must be distributed exactly once: {_describe(lookup[entry])} from {manager_id}",
                manager_id=manager_id,
                asset=list(entry[1]),
            )
    extra = [entry for entry in handed_out if entry not in given]
    if extra:
        manager_id, key = extra[0]
        return _fail(
            DISTRIBUTION,
            f"Asset distribution hands out an asset {manager_id} did not contribute",
            manager_id=manager_id,
            asset=list(key),
        )

    return ValidationResult(ok=True, distribution=distribution)
