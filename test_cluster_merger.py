#!/usr/bin/env python3
"""
Tests for merging overlapping heuristic candidates.

Run with: pytest test_cluster_merger.py
"""

from bundle_forensics.clustering.merger import DisjointSet, merge_candidates
from bundle_forensics.clustering.models import CandidateCluster, HeuristicTag

FUNDING = HeuristicTag.SHARED_FUNDING
TEMPORAL = HeuristicTag.TEMPORAL_MATCH
NETWORK = HeuristicTag.INTERNAL_TRANSFERS


def candidate(members, tag, label=""):
    return CandidateCluster(frozenset(members), frozenset({tag}), label or tag.value)


def test_overlapping_pair_merges_to_exact_union():
    a = candidate({"w1", "w2", "w3"}, FUNDING)
    b = candidate({"w3", "w4"}, TEMPORAL)

    merged = merge_candidates([a, b])

    assert len(merged) == 1
    assert merged[0].members == a.members | b.members
    assert sorted(merged[0].members) == ["w1", "w2", "w3", "w4"]
    assert merged[0].origin_tags == {FUNDING, TEMPORAL}


def test_disjoint_candidates_stay_apart():
    a = candidate({"w1", "w2"}, FUNDING)
    b = candidate({"w3", "w4"}, NETWORK)

    merged = merge_candidates([a, b])

    assert [m.members for m in merged] == [a.members, b.members]


def test_transitive_overlap_is_closed():
    # A and C never overlap directly; B bridges them and comes last
    a = candidate({"a", "b"}, FUNDING, "first")
    c = candidate({"c", "d"}, TEMPORAL, "second")
    b = candidate({"b", "c"}, NETWORK, "third")

    merged = merge_candidates([a, c, b])

    assert len(merged) == 1
    assert merged[0].members == {"a", "b", "c", "d"}
    assert merged[0].origin_tags == {FUNDING, TEMPORAL, NETWORK}
    assert merged[0].label == "first"


def test_merged_groups_ordered_by_earliest_candidate():
    candidates = [
        candidate({"x1", "x2"}, FUNDING, "x-group"),
        candidate({"y1", "y2"}, FUNDING, "y-group"),
        candidate({"z1", "x2"}, TEMPORAL, "z-joins-x"),
        candidate({"y2", "y3"}, NETWORK, "y-extended"),
    ]

    merged = merge_candidates(candidates)

    assert [m.label for m in merged] == ["x-group", "y-group"]
    assert merged[0].members == {"x1", "x2", "z1"}
    assert merged[1].members == {"y1", "y2", "y3"}
    assert merged[1].origin_tags == {FUNDING, NETWORK}


def test_merge_output_is_a_partition():
    candidates = [
        candidate({"a", "b"}, FUNDING),
        candidate({"c", "d", "e"}, TEMPORAL),
        candidate({"e", "f"}, NETWORK),
        candidate({"g", "h"}, TEMPORAL),
        candidate({"h", "a"}, NETWORK),
    ]

    merged = merge_candidates(candidates)

    seen = set()
    for group in merged:
        assert seen.isdisjoint(group.members)
        seen |= group.members
    assert seen == set("abcdefgh")
    assert len(merged) == 2


def test_empty_input_merges_to_nothing():
    assert merge_candidates([]) == []


def test_disjoint_set_union_and_find():
    dsu = DisjointSet()
    dsu.union("a", "b")
    dsu.union("c", "d")
    assert dsu.find("a") == dsu.find("b")
    assert dsu.find("a") != dsu.find("c")

    dsu.union("b", "d")
    assert len({dsu.find(x) for x in "abcd"}) == 1
    assert dsu.find("unseen") == "unseen"
