"""
Clustering module for detecting coordinated "bundle" wallets.

This module groups wallets that appear to act under common control
(shared funding, co-timed buys, internal transfers, synchronized sells)
into disjoint risk-scored clusters and rolls them up into token-level risk.
"""

from .engine import (
    BundleClusteringEngine,
    analyze_bundle_clusters,
    get_clustering_engine,
)
from .models import (
    AnalysisResult,
    BundleCluster,
    BundleWallet,
    CandidateCluster,
    FundingSource,
    HeuristicTag,
    OverallRisk,
    RiskLevel,
    TokenAmountEvent,
    TokenSnapshot,
    TransferEvent,
    WalletActivity,
    WalletStatus,
)

__all__ = [
    "BundleClusteringEngine",
    "analyze_bundle_clusters",
    "get_clustering_engine",
    "AnalysisResult",
    "BundleCluster",
    "BundleWallet",
    "CandidateCluster",
    "FundingSource",
    "HeuristicTag",
    "OverallRisk",
    "RiskLevel",
    "TokenAmountEvent",
    "TokenSnapshot",
    "TransferEvent",
    "WalletActivity",
    "WalletStatus",
]
