"""
Heuristic candidate generators.

Each generator scans the same wallet snapshot independently and emits
possibly-overlapping CandidateCluster groupings:

- FundingSourceGenerator: wallets sharing a non-exchange funder
- TemporalProximityGenerator: wallets buying inside the same time bucket
- TransferGraphGenerator: connected components of the internal transfer graph

Overlaps are resolved later by the merger. Every grouping here iterates in
input order (dicts preserve insertion order) so identical snapshots always
produce identical candidates.
"""

import math
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..config import ClusteringSettings, FundingGroupingMode, get_settings
from ..secure_logging import get_secure_logger
from .models import CandidateCluster, HeuristicTag, WalletActivity

logger = get_secure_logger(__name__)


class TransferGraph:
    """
    Undirected transfer graph over the analyzed wallet universe.

    Nodes are indices into the input sequence. An edge joins two wallets
    when either side records a transfer to or from the other; counterparties
    outside the universe are not nodes. Neighbor lists are sorted by address.
    """

    def __init__(self, wallets: Sequence[WalletActivity]):
        self.wallets = list(wallets)
        self.index: Dict[str, int] = {w.address: i for i, w in enumerate(self.wallets)}
        adjacency: List[Set[int]] = [set() for _ in self.wallets]

        for i, wallet in enumerate(self.wallets):
            related = [t.counterparty for t in wallet.outgoing_transfers]
            related.extend(t.counterparty for t in wallet.incoming_transfers)
            for address in related:
                j = self.index.get(address)
                if j is None or j == i:
                    continue
                adjacency[i].add(j)
                adjacency[j].add(i)

        self.adjacency: List[List[int]] = [
            sorted(neighbors, key=lambda n: self.wallets[n].address)
            for neighbors in adjacency
        ]

    @property
    def edge_count(self) -> int:
        return sum(len(neighbors) for neighbors in self.adjacency) // 2

    def traverse(self, start: int, visited: Set[int],
                 allowed: Optional[Set[int]] = None) -> List[int]:
        """BFS from start, marking nodes in visited; optionally confined to allowed."""
        component = []
        queue = deque([start])
        visited.add(start)

        while queue:
            current = queue.popleft()
            component.append(current)
            for neighbor in self.adjacency[current]:
                if neighbor in visited:
                    continue
                if allowed is not None and neighbor not in allowed:
                    continue
                visited.add(neighbor)
                queue.append(neighbor)

        return component

    def addresses(self, indices: Iterable[int]) -> List[str]:
        return [self.wallets[i].address for i in indices]


class FundingSourceGenerator:
    """Groups wallets by identical non-exchange funding source."""

    def __init__(self, settings: Optional[ClusteringSettings] = None):
        self.settings = settings or get_settings().clustering

    def group_by_funder(self, wallets: Sequence[WalletActivity]) -> Dict[str, List[WalletActivity]]:
        groups: Dict[str, List[WalletActivity]] = {}
        for wallet in wallets:
            source = wallet.funding_source
            if source is None or source.is_exchange:
                continue
            groups.setdefault(source.address, []).append(wallet)
        return groups

    def generate(self, wallets: Sequence[WalletActivity],
                 graph: Optional[TransferGraph] = None) -> List[CandidateCluster]:
        """
        Emit one SharedFunding candidate per funder with enough wallets.

        In strict mode each funder group is further split by transfer
        connectivity (see _split_by_connectivity).
        """
        groups = self.group_by_funder(wallets)
        strict = self.settings.funding_grouping_mode == FundingGroupingMode.STRICT
        if strict and graph is None:
            graph = TransferGraph(wallets)

        candidates = []
        for funder, members in groups.items():
            if len(members) < self.settings.min_funding_group_size:
                continue

            label = f"Funding Cluster ({funder[:4]})"
            if not strict:
                candidates.append(self._candidate(
                    [w.address for w in members], label
                ))
                continue

            for n, subgroup in enumerate(self._split_by_connectivity(members, graph)):
                suffix = f"-{n + 1}" if n else ""
                candidates.append(self._candidate(subgroup, label + suffix))

        logger.debug("funding_candidates_generated",
                     funders=len(groups),
                     candidates=len(candidates),
                     mode=self.settings.funding_grouping_mode.value)
        return candidates

    def _split_by_connectivity(self, members: List[WalletActivity],
                               graph: TransferGraph) -> List[List[str]]:
        """
        Sub-partition a funder group by transfers between its own members.

        Connected sub-networks of two or more wallets become separate groups;
        wallets with no transfer to any other member are kept together as a
        single dispersed group.
        """
        allowed = {graph.index[w.address] for w in members}
        visited: Set[int] = set()
        connected = []
        isolated = []

        for wallet in members:
            i = graph.index[wallet.address]
            if i in visited:
                continue
            component = graph.traverse(i, visited, allowed)
            if len(component) > 1:
                connected.append(graph.addresses(component))
            else:
                isolated.append(wallet.address)

        groups = connected
        if len(isolated) >= self.settings.min_funding_group_size:
            groups.append(isolated)
        return groups

    @staticmethod
    def _candidate(addresses: List[str], label: str) -> CandidateCluster:
        return CandidateCluster(
            members=frozenset(addresses),
            origin_tags=frozenset({HeuristicTag.SHARED_FUNDING}),
            label=label,
        )


class TemporalProximityGenerator:
    """Flags wallets whose buys land in the same fixed-width time bucket."""

    def __init__(self, settings: Optional[ClusteringSettings] = None):
        self.settings = settings or get_settings().clustering

    def bucket_of(self, timestamp: float) -> int:
        return math.floor(timestamp / self.settings.temporal_window)

    def generate(self, wallets: Sequence[WalletActivity]) -> List[CandidateCluster]:
        buckets: Dict[int, Dict[str, None]] = {}
        for wallet in wallets:
            for buy in wallet.buys:
                # dict keys dedupe a wallet buying twice in one bucket
                buckets.setdefault(self.bucket_of(buy.timestamp), {})[wallet.address] = None

        candidates = [
            CandidateCluster(
                members=frozenset(members),
                origin_tags=frozenset({HeuristicTag.TEMPORAL_MATCH}),
                label=f"Temporal Cluster ({bucket})",
            )
            for bucket, members in buckets.items()
            if len(members) >= self.settings.min_temporal_wallets
        ]

        logger.debug("temporal_candidates_generated",
                     buckets=len(buckets),
                     candidates=len(candidates))
        return candidates


class TransferGraphGenerator:
    """Connected components of the internal transfer graph."""

    def __init__(self, settings: Optional[ClusteringSettings] = None):
        self.settings = settings or get_settings().clustering

    def generate(self, wallets: Sequence[WalletActivity],
                 graph: Optional[TransferGraph] = None) -> List[CandidateCluster]:
        graph = graph or TransferGraph(wallets)
        visited: Set[int] = set()
        candidates = []

        for i, wallet in enumerate(graph.wallets):
            # Scans start only from senders; receivers are reached through them
            if i in visited or not wallet.outgoing_transfers:
                continue
            component = graph.traverse(i, visited)
            if len(component) >= self.settings.min_cluster_size:
                candidates.append(CandidateCluster(
                    members=frozenset(graph.addresses(component)),
                    origin_tags=frozenset({HeuristicTag.INTERNAL_TRANSFERS}),
                    label="Network Cluster",
                ))

        logger.debug("transfer_candidates_generated",
                     edges=graph.edge_count,
                     candidates=len(candidates))
        return candidates
