"""
Cluster refinement and risk scoring.

Turns each merged candidate into a final BundleCluster: member valuation,
supply share, LP impact, the synchronized-sell check and a bounded risk
score.
"""

from typing import Dict, Iterable, Mapping, Optional, Set, Tuple

import numpy as np

from ..config import ClusteringSettings, get_settings
from ..secure_logging import get_secure_logger
from .models import (
    BundleCluster,
    BundleWallet,
    CandidateCluster,
    HeuristicTag,
    RiskLevel,
    WalletActivity,
    WalletStatus,
)

logger = get_secure_logger(__name__)

MAX_RISK_SCORE = 100


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def to_bundle_wallet(wallet: WalletActivity, price_usd: float) -> BundleWallet:
    return BundleWallet(
        address=wallet.address,
        bought_amount=wallet.bought_amount,
        received_amount=wallet.received_amount,
        current_balance=wallet.current_balance,
        sold_amount=wallet.sold_amount,
        holding_value_usd=wallet.current_balance * price_usd,
        status=WalletStatus.SOLD_ALL if wallet.current_balance == 0 else WalletStatus.ACTIVE,
    )


def has_sync_sell(wallets: Iterable[WalletActivity], window: float) -> bool:
    """
    Check whether any two sells across the wallets land within window.

    Only adjacent pairs of the sorted timestamps need checking: the smallest
    gap in a sorted sequence is always between neighbors.
    """
    times = np.array([s.timestamp for w in wallets for s in w.sells], dtype=float)
    if times.size < 2:
        return False
    return bool(np.any(np.diff(np.sort(times)) <= window))


def count_internal_transfers(wallets: Iterable[WalletActivity], members: Set[str]) -> int:
    """
    Count distinct transfer events between two cluster members.

    A transfer usually shows up twice, as the sender's outgoing and the
    receiver's incoming record; both map to the same key.
    """
    events: Set[Tuple[str, str, float, float]] = set()
    for wallet in wallets:
        for t in wallet.outgoing_transfers:
            if t.counterparty in members and t.counterparty != wallet.address:
                events.add((wallet.address, t.counterparty, t.timestamp, t.token_amount))
        for t in wallet.incoming_transfers:
            if t.counterparty in members and t.counterparty != wallet.address:
                events.add((t.counterparty, wallet.address, t.timestamp, t.token_amount))
    return len(events)


class ClusterScorer:
    """Scores merged candidates into final clusters."""

    def __init__(self, settings: Optional[ClusteringSettings] = None):
        self.settings = settings or get_settings().clustering

    @property
    def weights(self) -> Dict[HeuristicTag, int]:
        return {
            HeuristicTag.SHARED_FUNDING: self.settings.weight_shared_funding,
            HeuristicTag.TEMPORAL_MATCH: self.settings.weight_temporal_match,
            HeuristicTag.INTERNAL_TRANSFERS: self.settings.weight_internal_transfers,
            HeuristicTag.SYNC_SELL: self.settings.weight_sync_sell,
        }

    def risk_level(self, score: int) -> RiskLevel:
        if score > self.settings.high_risk_score:
            return RiskLevel.HIGH
        if score > self.settings.moderate_risk_score:
            return RiskLevel.MODERATE
        return RiskLevel.LOW

    def score_factors(self, factors: Iterable[HeuristicTag]) -> int:
        """Sum the weights of the given factors, clamped to [0, 100]."""
        raw = sum(self.weights[tag] for tag in set(factors))
        return max(0, min(raw, MAX_RISK_SCORE))

    def score(self,
              candidate: CandidateCluster,
              wallet_map: Mapping[str, WalletActivity],
              cluster_id: str,
              total_supply: float,
              price_usd: float,
              liquidity_usd: float) -> BundleCluster:
        """
        Build a final BundleCluster from a merged candidate.

        Args:
            candidate: Merged, disjoint candidate
            wallet_map: Address -> activity for the whole snapshot
            cluster_id: Identifier assigned to the final cluster
            total_supply: Token supply in base units
            price_usd: Token price, used for member valuation only
            liquidity_usd: Pool liquidity; 0 yields lp_impact 0

        Returns:
            Scored BundleCluster
        """
        activities = [wallet_map[a] for a in sorted(candidate.members) if a in wallet_map]
        members = tuple(to_bundle_wallet(w, price_usd) for w in activities)

        total_value_usd = sum(m.holding_value_usd for m in members)
        total_balance = sum(m.current_balance for m in members)
        total_supply_percent = safe_ratio(total_balance, total_supply) * 100

        factors = set(candidate.origin_tags)
        if (HeuristicTag.SYNC_SELL not in factors
                and has_sync_sell(activities, self.settings.sync_sell_window)):
            factors.add(HeuristicTag.SYNC_SELL)

        risk_score = self.score_factors(factors)
        cluster = BundleCluster(
            id=cluster_id,
            label=candidate.label,
            members=members,
            total_supply_percent=total_supply_percent,
            total_value_usd=total_value_usd,
            lp_impact=round(safe_ratio(total_value_usd, liquidity_usd), 2),
            risk_score=risk_score,
            risk_level=self.risk_level(risk_score),
            risk_factors=frozenset(factors),
            internal_transfer_count=count_internal_transfers(activities, set(candidate.members)),
        )

        logger.info("bundle_cluster_scored",
                    cluster_id=cluster_id,
                    wallets=len(members),
                    risk_score=risk_score,
                    risk_level=cluster.risk_level.value,
                    factors=sorted(tag.value for tag in factors))
        return cluster
