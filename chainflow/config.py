"""
config.py - Ledger configuration

Dataclass configuration with defaults matching the deployed contract,
loadable from CHAINFLOW_* environment variables. The build_* helpers
turn a config into the objects LoanLedger takes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Mapping, Optional
import os

from .core import (
    COLLATERAL_DECIMALS, DEBT_DECIMALS, TIER_LETTERS,
    ConfigurationError, LiquidationParams, TierParams,
)
from .ledger import LoanLedger
from .pricing_source import DEFAULT_MAX_STALENESS
from .tier_policy import DEFAULT_TIER_PARAMS, TierPolicy


ENV_PREFIX = "CHAINFLOW_"


@dataclass
class TierConfig:
    """(ltv, apr) per tier letter, in basis points."""

    a: TierParams = field(default_factory=lambda: DEFAULT_TIER_PARAMS[TIER_LETTERS["A"]])
    b: TierParams = field(default_factory=lambda: DEFAULT_TIER_PARAMS[TIER_LETTERS["B"]])
    c: TierParams = field(default_factory=lambda: DEFAULT_TIER_PARAMS[TIER_LETTERS["C"]])

    def as_mapping(self):
        return {"A": self.a, "B": self.b, "C": self.c}


@dataclass
class LiquidationConfig:
    threshold_bps: int = 8500
    bonus_bps: int = 500


@dataclass
class OracleConfig:
    """Aggregator feed settings."""

    max_staleness: int = DEFAULT_MAX_STALENESS
    feed_decimals: int = 18


@dataclass
class LedgerConfig:
    """Main configuration for a LoanLedger deployment."""

    name: str = "chainflow"
    admin: str = "owner"
    tiers: TierConfig = field(default_factory=TierConfig)
    liquidation: LiquidationConfig = field(default_factory=LiquidationConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    collateral_decimals: int = COLLATERAL_DECIMALS
    debt_decimals: int = DEBT_DECIMALS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """
        Create config from environment variables.

        Unset variables keep their defaults. Non-integer values for
        integer settings raise ConfigurationError.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _int(key: str, default: int) -> int:
            raw = env.get(ENV_PREFIX + key)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None

        def _tier(letter: str, default: TierParams) -> TierParams:
            return TierParams(
                ltv_bps=_int(f"TIER_{letter}_LTV_BPS", default.ltv_bps),
                apr_bps=_int(f"TIER_{letter}_APR_BPS", default.apr_bps),
            )

        tiers = TierConfig(
            a=_tier("A", defaults.tiers.a),
            b=_tier("B", defaults.tiers.b),
            c=_tier("C", defaults.tiers.c),
        )
        liquidation = LiquidationConfig(
            threshold_bps=_int("LIQUIDATION_THRESHOLD_BPS", defaults.liquidation.threshold_bps),
            bonus_bps=_int("LIQUIDATION_BONUS_BPS", defaults.liquidation.bonus_bps),
        )
        oracle = OracleConfig(
            max_staleness=_int("ORACLE_MAX_STALENESS", defaults.oracle.max_staleness),
            feed_decimals=_int("ORACLE_FEED_DECIMALS", defaults.oracle.feed_decimals),
        )
        return cls(
            name=env.get(ENV_PREFIX + "NAME", defaults.name),
            admin=env.get(ENV_PREFIX + "ADMIN", defaults.admin),
            tiers=tiers,
            liquidation=liquidation,
            oracle=oracle,
            collateral_decimals=_int("COLLATERAL_DECIMALS", defaults.collateral_decimals),
            debt_decimals=_int("DEBT_DECIMALS", defaults.debt_decimals),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level),
        )


def build_tier_policy(config: LedgerConfig) -> TierPolicy:
    """Validated TierPolicy for the configured tiers."""
    return TierPolicy(config.tiers.as_mapping())


def build_liquidation_params(config: LedgerConfig) -> LiquidationParams:
    return LiquidationParams(
        threshold_bps=config.liquidation.threshold_bps,
        bonus_bps=config.liquidation.bonus_bps,
    )


def build_ledger(config: LedgerConfig, oracle, tier_source, custody, pool, initial_time: int = 0) -> LoanLedger:
    """LoanLedger wired with the configured terms, admin and decimals."""
    return LoanLedger(
        config.name,
        oracle,
        tier_source,
        custody,
        pool,
        admin=config.admin,
        tier_policy=build_tier_policy(config),
        liquidation_params=build_liquidation_params(config),
        initial_time=initial_time,
        collateral_decimals=config.collateral_decimals,
        debt_decimals=config.debt_decimals,
    )
