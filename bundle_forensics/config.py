"""
Configuration management for Bundle Forensics.

Uses Pydantic Settings to load configuration from environment variables and .env files.
This approach gives us:
1. Type validation (catches config errors at startup, not mid-analysis)
2. Default values with easy overrides
3. Automatic .env file loading
4. IDE autocomplete for all settings
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from .exceptions import InvalidConfigError

# Load environment variables from .env file
load_dotenv()


class FundingGroupingMode(str, Enum):
    """How wallets sharing a funder are turned into candidate clusters."""
    LENIENT = "lenient"  # one candidate per funder
    STRICT = "strict"    # split each funder group by transfer connectivity


class ClusteringSettings(BaseSettings):
    """
    Thresholds and weights for bundle cluster detection.

    The defaults are the standard scoring weights. Every value can be
    overridden with a BUNDLE_ prefixed environment variable, e.g.
    BUNDLE_SYNC_SELL_WINDOW=30.
    """

    # Candidate generators
    temporal_window: float = Field(
        default=2.0,
        description="Width of the buy-time bucket used for temporal matching"
    )
    min_temporal_wallets: int = Field(
        default=3,
        description="Distinct wallets needed in one bucket to flag a temporal match"
    )
    min_funding_group_size: int = Field(
        default=2,
        description="Wallets sharing a funder needed to flag shared funding"
    )
    min_cluster_size: int = Field(
        default=2,
        description="Smallest component reported by the transfer-graph scan"
    )
    funding_grouping_mode: FundingGroupingMode = Field(
        default=FundingGroupingMode.LENIENT,
        description="'lenient' keeps one candidate per funder, 'strict' splits "
                    "funder groups into transfer-connected sub-networks"
    )

    # Secondary checks
    sync_sell_window: float = Field(
        default=60.0,
        description="Max gap between two member sells to count as a synchronized sell"
    )

    # Heuristic weights (raw sum is clamped to 100)
    weight_shared_funding: int = 35
    weight_temporal_match: int = 30
    weight_internal_transfers: int = 25
    weight_sync_sell: int = 40

    # Cluster risk levels
    high_risk_score: int = Field(
        default=70,
        description="Score strictly above this is High risk"
    )
    moderate_risk_score: int = Field(
        default=30,
        description="Score strictly above this is Moderate risk"
    )

    # Token-level risk (LP impact ratio, bundled supply percent)
    critical_lp_impact: float = 1.0
    high_lp_impact: float = 0.5
    moderate_lp_impact: float = 0.2
    critical_supply_percent: float = 40.0
    high_supply_percent: float = 20.0
    moderate_supply_percent: float = 10.0

    model_config = SettingsConfigDict(
        env_prefix="BUNDLE_"  # Looks for BUNDLE_TEMPORAL_WINDOW, ...
    )

    @model_validator(mode="after")
    def check_thresholds(self) -> "ClusteringSettings":
        if self.temporal_window <= 0:
            raise InvalidConfigError(
                "temporal_window", self.temporal_window, "positive number"
            )
        if self.sync_sell_window < 0:
            raise InvalidConfigError(
                "sync_sell_window", self.sync_sell_window, "non-negative number"
            )
        if self.min_temporal_wallets < 2:
            raise InvalidConfigError(
                "min_temporal_wallets", self.min_temporal_wallets, "integer >= 2"
            )
        if self.min_funding_group_size < 2:
            raise InvalidConfigError(
                "min_funding_group_size", self.min_funding_group_size, "integer >= 2"
            )
        if self.min_cluster_size < 2:
            raise InvalidConfigError(
                "min_cluster_size", self.min_cluster_size, "integer >= 2"
            )
        if not self.moderate_risk_score < self.high_risk_score:
            raise InvalidConfigError(
                "moderate_risk_score", self.moderate_risk_score,
                f"value below high_risk_score ({self.high_risk_score})"
            )
        if not (self.moderate_lp_impact < self.high_lp_impact < self.critical_lp_impact):
            raise InvalidConfigError(
                "lp_impact thresholds",
                (self.moderate_lp_impact, self.high_lp_impact, self.critical_lp_impact),
                "moderate < high < critical"
            )
        if not (self.moderate_supply_percent < self.high_supply_percent
                < self.critical_supply_percent):
            raise InvalidConfigError(
                "supply_percent thresholds",
                (self.moderate_supply_percent, self.high_supply_percent,
                 self.critical_supply_percent),
                "moderate < high < critical"
            )
        return self


class Settings(BaseSettings):
    """
    Main application settings.

    Loads from environment variables and .env file.
    Environment variables take precedence over .env file.

    Usage:
        from bundle_forensics.config import get_settings
        settings = get_settings()
        print(settings.clustering.temporal_window)
    """

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )
    log_json_format: bool = Field(
        default=False,
        description="Output logs as JSON (useful for log aggregation)"
    )

    # Concurrent analysis
    max_concurrent_analyses: int = Field(
        default=4,
        description="Upper bound on snapshots analyzed at once by analyze_many"
    )

    # Nested settings
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # Allows CLUSTERING__SYNC_SELL_WINDOW=30
        extra="ignore"  # Ignore unknown env vars
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    and the same instance is reused throughout the app.

    To reload settings (e.g., in tests), call:
        get_settings.cache_clear()
    """
    return Settings()
