"""
Shared builders for the bundle forensics test suite.
"""

import sys
from pathlib import Path
from typing import Iterable, Optional, Tuple

import pytest
import structlog

# Allow running the tests from a plain checkout
sys.path.insert(0, str(Path(__file__).parent))

from bundle_forensics.clustering.models import (
    FundingSource,
    TokenAmountEvent,
    TransferEvent,
    WalletActivity,
)
from bundle_forensics.config import ClusteringSettings, get_settings


def make_wallet(address: str,
                buys: Iterable[float] = (),
                sells: Iterable[float] = (),
                sends: Iterable[Tuple[str, float]] = (),
                receives: Iterable[Tuple[str, float]] = (),
                balance: float = 1000.0,
                funder: Optional[str] = None,
                is_exchange: bool = False,
                amount: float = 1000.0) -> WalletActivity:
    """
    Build a WalletActivity from compact arguments.

    buys/sells are timestamps; sends/receives are (counterparty, timestamp).
    """
    return WalletActivity(
        address=address,
        buys=tuple(TokenAmountEvent(amount, t) for t in buys),
        sells=tuple(TokenAmountEvent(amount, t) for t in sells),
        outgoing_transfers=tuple(TransferEvent(cp, 10.0, t) for cp, t in sends),
        incoming_transfers=tuple(TransferEvent(cp, 10.0, t) for cp, t in receives),
        current_balance=balance,
        funding_source=FundingSource(funder, 1.0, 0.0, is_exchange) if funder else None,
    )


def chain(*addresses: str, start: float = 5000.0, **kwargs) -> list:
    """Wallets passing tokens along a chain: a[0] -> a[1] -> ... -> a[n]."""
    wallets = []
    for i, address in enumerate(addresses):
        sends = [(addresses[i + 1], start + i)] if i + 1 < len(addresses) else []
        receives = [(addresses[i - 1], start + i - 1)] if i > 0 else []
        wallets.append(make_wallet(address, sends=sends, receives=receives, **kwargs))
    return wallets


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    # The CLI points structlog at whatever stderr the test had
    structlog.reset_defaults()


@pytest.fixture
def settings() -> ClusteringSettings:
    return ClusteringSettings()
