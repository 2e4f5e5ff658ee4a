"""
Pydantic schemas for validating upstream wallet snapshots.

The clustering engine trusts its input completely, so every snapshot coming
from the collector (or a JSON file on disk) goes through these schemas
first. They accept both our snake_case field names and the camelCase names
the collector emits (tokenAmount, isCex, outgoingTransfers, ...).
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .clustering.models import (
    FundingSource,
    TokenAmountEvent,
    TokenSnapshot,
    TransferEvent,
    WalletActivity,
)
from .exceptions import SnapshotValidationError
from .secure_logging import get_secure_logger

logger = get_secure_logger(__name__)


def _validate_address(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Address cannot be empty")
    return v


class AmountEventSchema(BaseModel):
    """Schema for a buy or sell swap."""

    model_config = ConfigDict(extra='ignore')

    token_amount: float = Field(..., ge=0, validation_alias=AliasChoices('token_amount', 'tokenAmount'))
    timestamp: float = Field(..., description="Event time (unix seconds)")

    def to_event(self) -> TokenAmountEvent:
        return TokenAmountEvent(token_amount=self.token_amount, timestamp=self.timestamp)


class TransferSchema(BaseModel):
    """Schema for one side of a token transfer."""

    model_config = ConfigDict(extra='ignore')

    counterparty: str = Field(
        ...,
        validation_alias=AliasChoices('counterparty', 'counterpartyAddress', 'to', 'from'),
        description="The other wallet: receiver for outgoing, sender for incoming"
    )
    token_amount: float = Field(..., ge=0, validation_alias=AliasChoices('token_amount', 'tokenAmount'))
    timestamp: float = Field(..., description="Transfer time (unix seconds)")

    @field_validator('counterparty')
    @classmethod
    def validate_counterparty(cls, v: str) -> str:
        return _validate_address(v)

    def to_event(self) -> TransferEvent:
        return TransferEvent(
            counterparty=self.counterparty,
            token_amount=self.token_amount,
            timestamp=self.timestamp,
        )


class FundingSourceSchema(BaseModel):
    """Schema for a wallet's resolved funder."""

    model_config = ConfigDict(extra='ignore')

    address: str = Field(..., description="Funder address")
    amount: float = Field(default=0.0, ge=0)
    timestamp: float = Field(default=0.0)
    is_exchange: bool = Field(
        default=False,
        validation_alias=AliasChoices('is_exchange', 'isExchange', 'isCex'),
        description="Funder is a known exchange hot wallet"
    )

    @field_validator('address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        return _validate_address(v)

    def to_source(self) -> FundingSource:
        return FundingSource(
            address=self.address,
            amount=self.amount,
            timestamp=self.timestamp,
            is_exchange=self.is_exchange,
        )


class WalletActivitySchema(BaseModel):
    """Schema for one wallet's normalized activity."""

    model_config = ConfigDict(extra='ignore')

    address: str = Field(..., description="Wallet address")
    buys: List[AmountEventSchema] = Field(default_factory=list)
    sells: List[AmountEventSchema] = Field(default_factory=list)
    outgoing_transfers: List[TransferSchema] = Field(
        default_factory=list,
        validation_alias=AliasChoices('outgoing_transfers', 'outgoingTransfers')
    )
    incoming_transfers: List[TransferSchema] = Field(
        default_factory=list,
        validation_alias=AliasChoices('incoming_transfers', 'incomingTransfers')
    )
    current_balance: float = Field(
        default=0.0, ge=0,
        validation_alias=AliasChoices('current_balance', 'currentBalance')
    )
    funding_source: Optional[FundingSourceSchema] = Field(
        default=None,
        validation_alias=AliasChoices('funding_source', 'fundingSource')
    )
    is_seed_wallet: bool = Field(
        default=False,
        validation_alias=AliasChoices('is_seed_wallet', 'isSeedWallet')
    )
    trace_depth: int = Field(
        default=0, ge=0,
        validation_alias=AliasChoices('trace_depth', 'traceDepth')
    )

    @field_validator('address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        return _validate_address(v)

    def to_activity(self) -> WalletActivity:
        return WalletActivity(
            address=self.address,
            buys=tuple(b.to_event() for b in self.buys),
            sells=tuple(s.to_event() for s in self.sells),
            outgoing_transfers=tuple(t.to_event() for t in self.outgoing_transfers),
            incoming_transfers=tuple(t.to_event() for t in self.incoming_transfers),
            current_balance=self.current_balance,
            funding_source=self.funding_source.to_source() if self.funding_source else None,
            is_seed_wallet=self.is_seed_wallet,
            trace_depth=self.trace_depth,
        )


class TokenSnapshotSchema(BaseModel):
    """Schema for a complete token snapshot handed to the engine."""

    model_config = ConfigDict(extra='ignore')

    token: str = Field(default="", description="Token address or symbol, informational")
    total_supply: float = Field(..., ge=0, validation_alias=AliasChoices('total_supply', 'totalSupply'))
    price_usd: float = Field(
        default=0.0, ge=0,
        validation_alias=AliasChoices('price_usd', 'priceUsd', 'priceUSD')
    )
    liquidity_usd: float = Field(
        default=0.0, ge=0,
        validation_alias=AliasChoices('liquidity_usd', 'liquidityUsd', 'liquidityUSD')
    )
    wallets: List[WalletActivitySchema] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_unique_addresses(self) -> "TokenSnapshotSchema":
        seen = set()
        duplicates = []
        for wallet in self.wallets:
            if wallet.address in seen:
                duplicates.append(wallet.address)
            seen.add(wallet.address)
        if duplicates:
            raise ValueError(f"Duplicate wallet addresses: {sorted(set(duplicates))}")
        return self

    def to_snapshot(self) -> TokenSnapshot:
        return TokenSnapshot(
            wallets=tuple(w.to_activity() for w in self.wallets),
            total_supply=self.total_supply,
            price_usd=self.price_usd,
            liquidity_usd=self.liquidity_usd,
            token=self.token,
        )


def load_snapshot(data: Dict[str, Any], source: Optional[str] = None) -> TokenSnapshot:
    """
    Validate a raw snapshot dict and convert it to engine input.

    Raises:
        SnapshotValidationError: If the snapshot is malformed
    """
    try:
        schema = TokenSnapshotSchema.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {'loc': '.'.join(str(part) for part in err['loc']), 'msg': err['msg']}
            for err in e.errors()
        ]
        logger.warning("snapshot_validation_failed",
                       source=source,
                       error_count=len(errors))
        raise SnapshotValidationError(
            f"{len(errors)} validation error(s) in snapshot", errors, source
        ) from e

    snapshot = schema.to_snapshot()
    logger.debug("snapshot_loaded",
                 source=source,
                 token=snapshot.token,
                 wallet_count=len(snapshot.wallets))
    return snapshot


def load_snapshot_file(path: Union[str, Path]) -> TokenSnapshot:
    """Read and validate a JSON snapshot file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotValidationError(f"Cannot read snapshot: {e}", source=str(path)) from e

    if not isinstance(data, dict):
        raise SnapshotValidationError(
            f"Expected a JSON object, got {type(data).__name__}", source=str(path)
        )
    return load_snapshot(data, source=str(path))
