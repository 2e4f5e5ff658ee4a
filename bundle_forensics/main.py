"""
Bundle Forensics - Main Entry Point

Loads one or more wallet snapshots, runs the bundle clustering engine and
renders the result:
1. Validates each snapshot file
2. Detects and scores bundle clusters
3. Prints a risk summary table (or JSON)

Run with:
    python -m bundle_forensics.main snapshot.json

Or for several tokens at once:
    python -m bundle_forensics.main a.json b.json --strict --json
"""

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .clustering import AnalysisResult, BundleClusteringEngine, OverallRisk, RiskLevel, TokenSnapshot
from .config import FundingGroupingMode, get_settings
from .exceptions import BundleForensicsError, ConfigurationError, SnapshotValidationError
from .schemas import load_snapshot_file
from .secure_logging import configure_secure_logging, get_secure_logger

logger = get_secure_logger(__name__)
console = Console()

RISK_STYLES = {
    OverallRisk.LOW: "green",
    OverallRisk.MODERATE: "yellow",
    OverallRisk.HIGH: "red",
    OverallRisk.CRITICAL: "bold red",
    RiskLevel.LOW: "green",
    RiskLevel.MODERATE: "yellow",
    RiskLevel.HIGH: "red",
}


# =============================================================================
# Rendering
# =============================================================================

def create_cluster_table(result: AnalysisResult, title: str = "Bundle Clusters") -> Table:
    """Create a table with one row per detected cluster."""
    table = Table(title=title)
    table.add_column("Cluster", style="cyan")
    table.add_column("Origin")
    table.add_column("Wallets", justify="right")
    table.add_column("Supply %", justify="right")
    table.add_column("Value USD", justify="right")
    table.add_column("LP Impact", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Risk")
    table.add_column("Factors")

    for cluster in result.clusters:
        style = RISK_STYLES[cluster.risk_level]
        table.add_row(
            cluster.id,
            cluster.label,
            str(len(cluster.members)),
            f"{cluster.total_supply_percent:.2f}",
            f"${cluster.total_value_usd:,.2f}",
            f"{cluster.lp_impact:.2f}x",
            str(cluster.risk_score),
            f"[{style}]{cluster.risk_level.value}[/{style}]",
            ", ".join(sorted(tag.value for tag in cluster.risk_factors)),
        )

    return table


def create_summary_panel(result: AnalysisResult, token: str = "") -> Panel:
    """Create a panel with the token-level roll-up."""
    style = RISK_STYLES[result.overall_risk]
    statuses = ", ".join(f"{k}: {v}" for k, v in result.status_distribution.items())
    body = (
        f"Overall risk: [{style}]{result.overall_risk.value}[/{style}]\n"
        f"Clusters: {result.cluster_count} | Wallets: {result.total_wallet_count}\n"
        f"Bundled supply: {result.total_bundled_supply_percent:.2f}% "
        f"({result.total_bundled_tokens:,.0f} tokens)\n"
        f"Bundled value: ${result.total_bundled_value_usd:,.2f} "
        f"vs liquidity ${result.liquidity_usd:,.2f} "
        f"(LP impact {result.lp_impact_ratio:.2f}x)\n"
        f"Wallet status: {statuses}"
    )
    return Panel.fit(body, title=f"Bundle Forensics {token}".strip())


def render(results: Sequence[AnalysisResult], snapshots: Sequence[TokenSnapshot],
           as_json: bool = False) -> None:
    if as_json:
        payload = [
            {'token': snapshot.token, **result.to_dict()}
            for snapshot, result in zip(snapshots, results)
        ]
        console.print_json(data=payload[0] if len(payload) == 1 else payload)
        return

    for snapshot, result in zip(snapshots, results):
        console.print(create_summary_panel(result, snapshot.token))
        if result.clusters:
            console.print(create_cluster_table(result))
        else:
            console.print("[dim]No bundle clusters detected.[/dim]\n")


# =============================================================================
# Entry Point
# =============================================================================

def build_engine(strict: bool = False) -> BundleClusteringEngine:
    settings = get_settings().clustering
    if strict:
        settings = settings.model_copy(
            update={'funding_grouping_mode': FundingGroupingMode.STRICT}
        )
    return BundleClusteringEngine(settings)


async def run_analysis(engine: BundleClusteringEngine,
                       snapshots: Sequence[TokenSnapshot],
                       timeout_seconds: Optional[float] = None) -> List[AnalysisResult]:
    """Analyze every snapshot concurrently under one optional deadline."""
    return await engine.analyze_many(snapshots, timeout_seconds=timeout_seconds)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point with argument handling."""
    parser = argparse.ArgumentParser(
        description="Bundle Forensics - coordinated wallet cluster detector"
    )
    parser.add_argument(
        "snapshots",
        nargs="+",
        help="Wallet snapshot JSON file(s)"
    )
    parser.add_argument(
        "--json", "-j",
        action="store_true",
        help="Print results as JSON"
    )
    parser.add_argument(
        "--strict", "-s",
        action="store_true",
        help="Split shared-funding groups into transfer-connected sub-networks"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for analyzing a batch of snapshots"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level"
    )

    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except (ConfigurationError, PydanticValidationError) as e:
        console.print(f"[red]✗ Invalid configuration: {escape(str(e))}[/red]")
        return 1

    configure_secure_logging(
        args.log_level or settings.log_level,
        settings.log_json_format
    )

    try:
        snapshots = [load_snapshot_file(path) for path in args.snapshots]
    except SnapshotValidationError as e:
        console.print(f"[red]✗ Invalid snapshot: {escape(str(e))}[/red]")
        return 2

    try:
        results = asyncio.run(run_analysis(build_engine(args.strict), snapshots, args.timeout))
    except asyncio.TimeoutError:
        logger.error("analysis_timed_out", timeout=args.timeout)
        console.print(f"[red]✗ Analysis exceeded {args.timeout}s deadline[/red]")
        return 1
    except BundleForensicsError as e:
        console.print(f"[red]✗ Analysis failed: {escape(str(e))}[/red]")
        return 1

    render(results, snapshots, as_json=args.json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
