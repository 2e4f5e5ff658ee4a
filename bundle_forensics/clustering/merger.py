"""
Cluster merger.

Heuristic candidates overlap freely: a wallet can share a funder with one
group, buy alongside a second and transfer tokens to a third. The merger
collapses every chain of overlapping candidates into one group, so the
final clusters partition the flagged wallets.
"""

from typing import Dict, List, Sequence, Set

from ..secure_logging import get_secure_logger
from .models import CandidateCluster, HeuristicTag

logger = get_secure_logger(__name__)


class DisjointSet:
    """
    Union-Find over wallet addresses with path compression and union by rank.
    """

    def __init__(self):
        self.parent: Dict[str, str] = {}
        self.rank: Dict[str, int] = {}

    def add(self, x: str) -> None:
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0

    def find(self, x: str) -> str:
        """Find the representative of x's set."""
        self.add(x)
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: str, b: str) -> str:
        """Merge the sets containing a and b, returning the new root."""
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return root_a
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1
        return root_a


def merge_candidates(candidates: Sequence[CandidateCluster]) -> List[CandidateCluster]:
    """
    Merge candidates sharing any member into a disjoint set of groups.

    Every candidate unions all of its members, which yields the transitive
    closure of overlap: if A overlaps B and B overlaps C, A, B and C end up
    in one group even when A and C share nothing.

    Each merged group carries the union of its candidates' origin tags and
    the label of the earliest candidate. Groups are returned in order of
    their earliest candidate.

    Args:
        candidates: Funding, then temporal, then transfer-graph candidates

    Returns:
        Disjoint merged candidates
    """
    dsu = DisjointSet()
    for candidate in candidates:
        members = sorted(candidate.members)
        for address in members:
            dsu.add(address)
        for address in members[1:]:
            dsu.union(members[0], address)

    # Roots can move while unions run, so group only once all unions are done
    first_seen: Dict[str, int] = {}
    members_by_root: Dict[str, Set[str]] = {}
    tags_by_root: Dict[str, Set[HeuristicTag]] = {}

    for n, candidate in enumerate(candidates):
        if not candidate.members:
            continue
        root = dsu.find(next(iter(candidate.members)))
        first_seen.setdefault(root, n)
        members_by_root.setdefault(root, set()).update(candidate.members)
        tags_by_root.setdefault(root, set()).update(candidate.origin_tags)

    merged = [
        CandidateCluster(
            members=frozenset(members_by_root[root]),
            origin_tags=frozenset(tags_by_root[root]),
            label=candidates[n].label,
        )
        for root, n in sorted(first_seen.items(), key=lambda item: item[1])
    ]

    logger.debug("clusters_merged",
                 candidates=len(candidates),
                 merged=len(merged))
    return merged
