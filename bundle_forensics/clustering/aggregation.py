"""
Token-level aggregation of final clusters.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from ..config import ClusteringSettings, get_settings
from .models import AnalysisResult, BundleCluster, OverallRisk, WalletStatus
from .scoring import safe_ratio


def classify_overall_risk(lp_impact_ratio: float,
                          supply_percent: float,
                          settings: Optional[ClusteringSettings] = None) -> OverallRisk:
    """
    Map the LP impact ratio and bundled supply share to a token risk category.

    All thresholds are strict: a ratio of exactly 1.0 is HIGH, not CRITICAL.
    """
    settings = settings or get_settings().clustering

    if lp_impact_ratio > settings.critical_lp_impact or supply_percent > settings.critical_supply_percent:
        return OverallRisk.CRITICAL
    if lp_impact_ratio > settings.high_lp_impact or supply_percent > settings.high_supply_percent:
        return OverallRisk.HIGH
    if lp_impact_ratio > settings.moderate_lp_impact or supply_percent > settings.moderate_supply_percent:
        return OverallRisk.MODERATE
    return OverallRisk.LOW


def status_distribution(clusters: Sequence[BundleCluster]) -> Dict[str, int]:
    counts = {status.value: 0 for status in WalletStatus}
    for cluster in clusters:
        for member in cluster.members:
            counts[member.status.value] += 1
    return counts


def aggregate(clusters: Sequence[BundleCluster],
              total_supply: float,
              liquidity_usd: float,
              settings: Optional[ClusteringSettings] = None,
              metadata: Optional[Dict[str, Any]] = None) -> AnalysisResult:
    """
    Roll final clusters into an AnalysisResult.

    Risk is classified on the unrounded totals; the reported ratio, value
    and supply percent are rounded to two decimals.
    """
    total_value_usd = sum(c.total_value_usd for c in clusters)
    total_supply_percent = sum(c.total_supply_percent for c in clusters)
    lp_impact_ratio = safe_ratio(total_value_usd, liquidity_usd)
    wallets = {address for c in clusters for address in c.addresses}

    return AnalysisResult(
        clusters=tuple(clusters),
        overall_risk=classify_overall_risk(lp_impact_ratio, total_supply_percent, settings),
        liquidity_usd=liquidity_usd,
        cluster_count=len(clusters),
        lp_impact_ratio=round(lp_impact_ratio, 2),
        total_bundled_supply_percent=round(total_supply_percent, 2),
        total_bundled_tokens=total_supply_percent * total_supply / 100,
        total_bundled_value_usd=round(total_value_usd, 2),
        total_wallet_count=len(wallets),
        status_distribution=status_distribution(clusters),
        generated_at=datetime.now(timezone.utc),
        metadata=dict(metadata or {}),
    )
