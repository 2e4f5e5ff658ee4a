"""
Bundle clustering engine.

Runs the full detection pipeline over one wallet snapshot:

    funding / temporal / transfer-graph candidates
        -> merge overlapping candidates
        -> score each merged cluster
        -> aggregate token-level risk

The engine holds no state between calls, so a single instance can serve
concurrent analyses of independent tokens.
"""

import asyncio
from typing import List, Optional, Sequence

from ..config import ClusteringSettings, get_settings
from ..exceptions import ClusteringError, DetectionError
from ..secure_logging import get_secure_logger
from .aggregation import aggregate
from .generators import (
    FundingSourceGenerator,
    TemporalProximityGenerator,
    TransferGraph,
    TransferGraphGenerator,
)
from .merger import merge_candidates
from .models import AnalysisResult, CandidateCluster, TokenSnapshot, WalletActivity
from .scoring import ClusterScorer

logger = get_secure_logger(__name__)


class BundleClusteringEngine:
    """
    Main bundle clustering engine that coordinates detection and scoring.
    """

    def __init__(self, settings: Optional[ClusteringSettings] = None):
        self.settings = settings or get_settings().clustering
        self.funding_generator = FundingSourceGenerator(self.settings)
        self.temporal_generator = TemporalProximityGenerator(self.settings)
        self.transfer_generator = TransferGraphGenerator(self.settings)
        self.scorer = ClusterScorer(self.settings)

    def generate_candidates(self, wallets: Sequence[WalletActivity]) -> List[CandidateCluster]:
        """Run every heuristic; funding first, then temporal, then transfer graph."""
        graph = TransferGraph(wallets)
        return [
            *self.funding_generator.generate(wallets, graph),
            *self.temporal_generator.generate(wallets),
            *self.transfer_generator.generate(wallets, graph),
        ]

    def analyze(self,
                wallets: Sequence[WalletActivity],
                total_supply: float,
                price_usd: float,
                liquidity_usd: float) -> AnalysisResult:
        """
        Detect and score bundle clusters for one token.

        Args:
            wallets: Normalized wallet activity, addresses unique
            total_supply: Token supply in base units
            price_usd: Token price, used for valuation only
            liquidity_usd: Pool liquidity in USD; 0 is valid

        Returns:
            AnalysisResult; empty input yields a zero-valued LOW result
        """
        try:
            candidates = self.generate_candidates(wallets)
            merged = merge_candidates(candidates)

            wallet_map = {w.address: w for w in wallets}
            clusters = [
                self.scorer.score(
                    candidate,
                    wallet_map,
                    cluster_id=f"cluster_{n:04d}",
                    total_supply=total_supply,
                    price_usd=price_usd,
                    liquidity_usd=liquidity_usd,
                )
                for n, candidate in enumerate(merged, 1)
            ]

            result = aggregate(
                clusters,
                total_supply,
                liquidity_usd,
                self.settings,
                metadata={
                    'candidate_count': len(candidates),
                    'funding_grouping_mode': self.settings.funding_grouping_mode.value,
                },
            )

        except DetectionError:
            raise
        except Exception as e:
            logger.error("bundle_analysis_failed",
                         wallet_count=len(wallets),
                         error=str(e))
            raise ClusteringError("analyze", str(e), wallet_count=len(wallets)) from e

        logger.info("bundle_analysis_completed",
                    wallet_count=len(wallets),
                    candidates=len(candidates),
                    clusters=result.cluster_count,
                    overall_risk=result.overall_risk.value,
                    lp_impact_ratio=result.lp_impact_ratio)
        return result

    def analyze_snapshot(self, snapshot: TokenSnapshot) -> AnalysisResult:
        return self.analyze(
            snapshot.wallets,
            snapshot.total_supply,
            snapshot.price_usd,
            snapshot.liquidity_usd,
        )

    async def analyze_async(self, snapshot: TokenSnapshot) -> AnalysisResult:
        """Run one analysis in a worker thread."""
        return await asyncio.to_thread(self.analyze_snapshot, snapshot)

    async def analyze_many(self,
                           snapshots: Sequence[TokenSnapshot],
                           max_concurrency: Optional[int] = None,
                           timeout_seconds: Optional[float] = None) -> List[AnalysisResult]:
        """
        Analyze independent token snapshots concurrently.

        Results come back in input order. The engine has no internal
        deadline; timeout_seconds bounds the whole batch and raises
        asyncio.TimeoutError when exceeded.
        """
        limit = max_concurrency or get_settings().max_concurrent_analyses
        semaphore = asyncio.Semaphore(max(1, limit))

        async def run(snapshot: TokenSnapshot) -> AnalysisResult:
            async with semaphore:
                return await self.analyze_async(snapshot)

        batch = asyncio.gather(*(run(s) for s in snapshots))
        if timeout_seconds is None:
            return list(await batch)
        return list(await asyncio.wait_for(batch, timeout=timeout_seconds))


# Global clustering engine instance
_clustering_engine: Optional[BundleClusteringEngine] = None


def get_clustering_engine() -> BundleClusteringEngine:
    """Get or create global clustering engine."""
    global _clustering_engine
    if _clustering_engine is None:
        _clustering_engine = BundleClusteringEngine()
    return _clustering_engine


def analyze_bundle_clusters(wallets: Sequence[WalletActivity],
                            total_supply: float,
                            price_usd: float,
                            liquidity_usd: float) -> AnalysisResult:
    """Analyze one token with the global engine."""
    return get_clustering_engine().analyze(wallets, total_supply, price_usd, liquidity_usd)
