"""
Data model for bundle cluster detection.

Input records (WalletActivity and its events) are frozen snapshots supplied
by the upstream collector. Everything else is derived fresh on each
analysis call and never patched in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class HeuristicTag(str, Enum):
    """Evidence labels attached to candidate and final clusters."""
    SHARED_FUNDING = "Shared Funding"
    TEMPORAL_MATCH = "Temporal Match"
    INTERNAL_TRANSFERS = "Internal Transfers"
    SYNC_SELL = "Sync Sell"


class WalletStatus(str, Enum):
    ACTIVE = "active"
    DORMANT = "dormant"  # reserved, never assigned by the scorer
    SOLD_ALL = "sold_all"


class RiskLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class OverallRisk(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# =============================================================================
# Input Records
# =============================================================================

@dataclass(frozen=True)
class TokenAmountEvent:
    """A buy or sell swap."""
    token_amount: float
    timestamp: float


@dataclass(frozen=True)
class TransferEvent:
    """A plain token transfer, seen from one side."""
    counterparty: str
    token_amount: float
    timestamp: float


@dataclass(frozen=True)
class FundingSource:
    """
    The wallet's first/primary inbound funder.

    is_exchange marks known exchange hot wallets; those never form a
    shared-funding group since thousands of unrelated users share them.
    """
    address: str
    amount: float = 0.0
    timestamp: float = 0.0
    is_exchange: bool = False


@dataclass(frozen=True)
class WalletActivity:
    """
    Normalized per-wallet activity for one token.

    Attributes:
        address: Unique wallet address
        buys / sells: Swap events, in chronological order
        outgoing_transfers / incoming_transfers: Transfer events
        current_balance: Token balance at snapshot time
        funding_source: Resolved funder, if any
        is_seed_wallet / trace_depth: Provenance from the collector,
            not used by clustering
    """
    address: str
    buys: Tuple[TokenAmountEvent, ...] = ()
    sells: Tuple[TokenAmountEvent, ...] = ()
    outgoing_transfers: Tuple[TransferEvent, ...] = ()
    incoming_transfers: Tuple[TransferEvent, ...] = ()
    current_balance: float = 0.0
    funding_source: Optional[FundingSource] = None
    is_seed_wallet: bool = False
    trace_depth: int = 0

    @property
    def bought_amount(self) -> float:
        return sum(b.token_amount for b in self.buys)

    @property
    def sold_amount(self) -> float:
        return sum(s.token_amount for s in self.sells)

    @property
    def received_amount(self) -> float:
        return sum(t.token_amount for t in self.incoming_transfers)


@dataclass(frozen=True)
class TokenSnapshot:
    """Everything one analysis call needs for a single token."""
    wallets: Tuple[WalletActivity, ...]
    total_supply: float
    price_usd: float
    liquidity_usd: float
    token: str = ""


# =============================================================================
# Derived Values
# =============================================================================

@dataclass(frozen=True)
class CandidateCluster:
    """A possibly-overlapping grouping emitted by a single heuristic."""
    members: FrozenSet[str]
    origin_tags: FrozenSet[HeuristicTag]
    label: str = ""


@dataclass(frozen=True)
class BundleWallet:
    """A member wallet as reported inside a final cluster."""
    address: str
    bought_amount: float
    received_amount: float
    current_balance: float
    sold_amount: float
    holding_value_usd: float
    status: WalletStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'bought_amount': self.bought_amount,
            'received_amount': self.received_amount,
            'current_balance': self.current_balance,
            'sold_amount': self.sold_amount,
            'holding_value_usd': self.holding_value_usd,
            'status': self.status.value,
        }


@dataclass(frozen=True)
class BundleCluster:
    """A final, scored cluster. Members are unique and ordered by address."""
    id: str
    label: str
    members: Tuple[BundleWallet, ...]
    total_supply_percent: float
    total_value_usd: float
    lp_impact: float
    risk_score: int
    risk_level: RiskLevel
    risk_factors: FrozenSet[HeuristicTag]
    internal_transfer_count: int = 0

    @property
    def addresses(self) -> List[str]:
        return [m.address for m in self.members]

    def to_dict(self) -> Dict[str, Any]:
        """Get a JSON-friendly cluster summary."""
        return {
            'id': self.id,
            'label': self.label,
            'wallet_count': len(self.members),
            'members': [m.to_dict() for m in self.members],
            'total_supply_percent': self.total_supply_percent,
            'total_value_usd': self.total_value_usd,
            'lp_impact': self.lp_impact,
            'risk_score': self.risk_score,
            'risk_level': self.risk_level.value,
            'risk_factors': sorted(tag.value for tag in self.risk_factors),
            'internal_transfer_count': self.internal_transfer_count,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Token-level roll-up of every final cluster."""
    clusters: Tuple[BundleCluster, ...]
    overall_risk: OverallRisk
    liquidity_usd: float
    cluster_count: int
    lp_impact_ratio: float
    total_bundled_supply_percent: float
    total_bundled_tokens: float
    total_bundled_value_usd: float
    total_wallet_count: int
    status_distribution: Dict[str, int]
    generated_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_cluster_by_wallet(self, wallet_address: str) -> Optional[BundleCluster]:
        """Get cluster containing the specified wallet."""
        for cluster in self.clusters:
            if wallet_address in cluster.addresses:
                return cluster
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'clusters': [c.to_dict() for c in self.clusters],
            'overall_risk': self.overall_risk.value,
            'liquidity_usd': self.liquidity_usd,
            'cluster_count': self.cluster_count,
            'lp_impact_ratio': self.lp_impact_ratio,
            'total_bundled_supply_percent': self.total_bundled_supply_percent,
            'total_bundled_tokens': self.total_bundled_tokens,
            'total_bundled_value_usd': self.total_bundled_value_usd,
            'total_wallet_count': self.total_wallet_count,
            'status_distribution': dict(self.status_distribution),
            'generated_at': self.generated_at.isoformat(),
            'metadata': dict(self.metadata),
        }
