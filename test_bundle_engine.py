#!/usr/bin/env python3
"""
End-to-end tests for the bundle clustering engine.

Run with: pytest test_bundle_engine.py
"""

import asyncio
import time

import pytest
from conftest import chain, make_wallet

from bundle_forensics import analyze_bundle_clusters
from bundle_forensics.clustering import (
    BundleClusteringEngine,
    HeuristicTag,
    OverallRisk,
    RiskLevel,
    TokenAmountEvent,
    TokenSnapshot,
    WalletActivity,
)
from bundle_forensics.config import ClusteringSettings, FundingGroupingMode
from bundle_forensics.exceptions import ClusteringError

SUPPLY = 1_000_000_000.0


def organic_wallets(count=5):
    """Unrelated buyers far apart in time with their own funders."""
    return [
        make_wallet(f"organic{i}", buys=[2_000_000.0 + i * 100], funder=f"Retail{i}")
        for i in range(count)
    ]


@pytest.fixture
def engine():
    return BundleClusteringEngine(ClusteringSettings())


@pytest.fixture
def strict_engine():
    return BundleClusteringEngine(
        ClusteringSettings(funding_grouping_mode=FundingGroupingMode.STRICT)
    )


def test_dispersed_wallets_with_one_funder(engine):
    wallets = [
        make_wallet(f"disp{i:02d}", buys=[1000.0 + i * 10], funder="DeployerFunder")
        for i in range(12)
    ]

    result = engine.analyze(wallets, SUPPLY, 1.0, 50_000.0)

    assert result.cluster_count == 1
    cluster = result.clusters[0]
    assert len(cluster.members) == 12
    assert cluster.risk_factors == {HeuristicTag.SHARED_FUNDING}
    assert cluster.risk_score == 35
    assert cluster.risk_level == RiskLevel.MODERATE
    assert cluster.id == "cluster_0001"
    assert cluster.label == "Funding Cluster (Depl)"


def test_unfunded_transfer_chains_stay_separate(engine):
    wallets = [*chain("A1", "A2", "A3"), *chain("B1", "B2")]

    result = engine.analyze(wallets, SUPPLY, 1.0, 50_000.0)

    assert [sorted(c.addresses) for c in result.clusters] == [
        ["A1", "A2", "A3"],
        ["B1", "B2"],
    ]
    assert [c.id for c in result.clusters] == ["cluster_0001", "cluster_0002"]
    assert all(c.risk_factors == {HeuristicTag.INTERNAL_TRANSFERS} for c in result.clusters)
    assert [c.internal_transfer_count for c in result.clusters] == [2, 1]


def test_shared_funder_joins_chains_in_lenient_mode(engine):
    wallets = [*chain("A1", "A2", "A3", funder="F1"), *chain("B1", "B2", funder="F1")]

    result = engine.analyze(wallets, SUPPLY, 1.0, 50_000.0)

    assert result.cluster_count == 1
    assert len(result.clusters[0].members) == 5
    assert result.clusters[0].risk_factors == {
        HeuristicTag.SHARED_FUNDING,
        HeuristicTag.INTERNAL_TRANSFERS,
    }
    assert result.metadata["funding_grouping_mode"] == "lenient"


def test_shared_funder_split_by_transfers_in_strict_mode(strict_engine):
    wallets = [*chain("A1", "A2", "A3", funder="F1"), *chain("B1", "B2", funder="F1")]

    result = strict_engine.analyze(wallets, SUPPLY, 1.0, 50_000.0)

    assert [sorted(c.addresses) for c in result.clusters] == [
        ["A1", "A2", "A3"],
        ["B1", "B2"],
    ]
    assert result.metadata["funding_grouping_mode"] == "strict"


def test_botnet_that_dumped_scores_maximum(engine):
    bots = [f"bot{i}" for i in range(10)]
    wallets = [
        make_wallet(
            name,
            buys=[1000.0],
            sells=[1100.0],
            sends=[(bots[(i + 1) % len(bots)], 1050.0)],
            balance=0.0,
            funder="BotFunder",
        )
        for i, name in enumerate(bots)
    ]
    wallets += organic_wallets()

    result = engine.analyze(wallets, SUPPLY, 0.01, 5_000.0)

    assert result.cluster_count == 1
    cluster = result.clusters[0]
    assert set(cluster.addresses) == set(bots)
    assert cluster.risk_factors == set(HeuristicTag)
    assert cluster.risk_score == 100
    assert cluster.risk_level == RiskLevel.HIGH
    assert cluster.internal_transfer_count == 10
    assert result.status_distribution["sold_all"] == 10
    assert result.status_distribution["active"] == 0
    assert result.total_bundled_value_usd == 0
    assert result.overall_risk == OverallRisk.LOW


def test_empty_snapshot_is_low_risk(engine):
    result = engine.analyze([], SUPPLY, 1.0, 10_000.0)

    assert result.clusters == ()
    assert result.overall_risk == OverallRisk.LOW
    assert result.lp_impact_ratio == 0
    assert result.total_bundled_supply_percent == 0
    assert result.total_bundled_value_usd == 0
    assert result.total_wallet_count == 0


def test_zero_supply_and_zero_liquidity(engine):
    wallets = [make_wallet(f"w{i}", funder="F1", balance=500.0) for i in range(3)]

    result = engine.analyze(wallets, 0.0, 1.0, 0.0)

    assert result.cluster_count == 1
    assert result.clusters[0].total_supply_percent == 0
    assert result.clusters[0].lp_impact == 0
    assert result.lp_impact_ratio == 0
    assert result.total_bundled_value_usd == 1500.0
    assert result.overall_risk == OverallRisk.LOW


def test_clusters_partition_wallets_without_singletons(engine):
    wallets = [
        *chain("C1", "C2"),
        make_wallet("C2x", funder="F9", buys=[50.0]),
        make_wallet("C1x", funder="F9", buys=[50.5]),
        make_wallet("T1", buys=[51.0]),
        make_wallet("solo", funder="F10"),
        *organic_wallets(3),
    ]

    result = engine.analyze(wallets, SUPPLY, 1.0, 10_000.0)

    seen = []
    for cluster in result.clusters:
        assert len(cluster.members) >= 2
        seen.extend(cluster.addresses)
    assert len(seen) == len(set(seen))
    assert "solo" not in seen
    assert not any(a.startswith("organic") for a in seen)
    assert result.total_wallet_count == len(seen)


def test_same_input_gives_same_output(engine):
    wallets = [
        *chain("A1", "A2", "A3", funder="F1"),
        *chain("B1", "B2"),
        *[make_wallet(f"t{i}", buys=[700.0 + i * 0.1]) for i in range(4)],
    ]

    first = engine.analyze(wallets, SUPPLY, 1.0, 10_000.0).to_dict()
    second = engine.analyze(wallets, SUPPLY, 1.0, 10_000.0).to_dict()
    first.pop("generated_at")
    second.pop("generated_at")

    assert first == second


@pytest.mark.parametrize("liquidity, expected", [
    (300.0, OverallRisk.HIGH),
    (297.03, OverallRisk.CRITICAL),
])
def test_lp_impact_ratio_boundary(engine, liquidity, expected):
    wallets = [make_wallet(f"w{i}", funder="F1", balance=150.0) for i in range(2)]

    result = engine.analyze(wallets, SUPPLY, 1.0, liquidity)

    assert result.total_bundled_value_usd == 300.0
    assert result.overall_risk == expected


def test_malformed_event_raises_clustering_error(engine):
    broken = WalletActivity(address="broken", buys=(TokenAmountEvent(10.0, None),))

    with pytest.raises(ClusteringError) as exc_info:
        engine.analyze([broken, make_wallet("fine")], SUPPLY, 1.0, 100.0)

    assert exc_info.value.details["stage"] == "analyze"


async def test_analyze_many_keeps_input_order(engine):
    snapshots = [
        TokenSnapshot(tuple(chain("A1", "A2")), SUPPLY, 1.0, 1000.0, token="AAA"),
        TokenSnapshot((), SUPPLY, 1.0, 1000.0, token="BBB"),
        TokenSnapshot(tuple(chain("C1", "C2", "C3")), SUPPLY, 1.0, 1000.0, token="CCC"),
    ]

    results = await engine.analyze_many(snapshots, max_concurrency=2)

    assert [r.cluster_count for r in results] == [1, 0, 1]
    assert len(results[2].clusters[0].members) == 3


async def test_analyze_many_within_deadline(engine):
    snapshot = TokenSnapshot(tuple(chain("A1", "A2")), SUPPLY, 1.0, 1000.0)

    results = await engine.analyze_many([snapshot], timeout_seconds=30)

    assert results[0].cluster_count == 1


async def test_analyze_many_deadline_expires(engine, monkeypatch):
    def slow_analyze(*args, **kwargs):
        time.sleep(0.3)

    monkeypatch.setattr(engine, "analyze", slow_analyze)
    snapshot = TokenSnapshot(tuple(chain("A1", "A2")), SUPPLY, 1.0, 1000.0)

    with pytest.raises(asyncio.TimeoutError):
        await engine.analyze_many([snapshot, snapshot], timeout_seconds=0.05)


def test_module_level_entry_point():
    wallets = [make_wallet(f"w{i}", funder="F1") for i in range(2)]

    result = analyze_bundle_clusters(wallets, SUPPLY, 1.0, 10_000.0)

    assert result.cluster_count == 1
    assert result.to_dict()["clusters"][0]["risk_factors"] == ["Shared Funding"]


def test_cluster_lookup_by_wallet(engine):
    wallets = [*chain("A1", "A2"), *chain("B1", "B2"), make_wallet("loner")]

    result = engine.analyze(wallets, SUPPLY, 1.0, 1000.0)

    assert result.get_cluster_by_wallet("B2").id == "cluster_0002"
    assert result.get_cluster_by_wallet("loner") is None
