"""
chainflow - Credit-tiered collateralized lending ledger

Loan book with tier-gated origination, per-second interest accrual,
integer health factor and bonus liquidation.

Usage:
    from chainflow import (
        LoanLedger, CreditScoreRegistry, CollateralVault, LendingPool,
        StaticPriceOracle, TokenBalances,
    )

    wmatic = TokenBalances("WMATIC", decimals=18)
    usdc = TokenBalances("USDC", decimals=6)
    usdc.mint("pool", 10_000 * 10**6)
    wmatic.mint("alice", 1_000 * 10**18)

    registry = CreditScoreRegistry(updater="scoring-api")
    registry.commit_score("scoring-api", "alice", score=82, tier="A")

    ledger = LoanLedger(
        "main",
        oracle=StaticPriceOracle(5 * 10**17),
        tier_source=registry,
        custody=CollateralVault(wmatic),
        pool=LendingPool(usdc),
        admin="owner",
    )
    loan_id = ledger.open_loan("alice", 100 * 10**18, 35_000_000)
    ledger.advance_time(365 * 86400)
    ledger.preview_debt(loan_id)   # 37_100_000
"""

# Core types
from .core import (
    WAD,
    BPS,
    SECONDS_PER_YEAR,
    COLLATERAL_DECIMALS,
    DEBT_DECIMALS,
    MAX_HEALTH_FACTOR,
    TIER_A,
    TIER_B,
    TIER_C,
    Loan,
    LoanHealth,
    TierParams,
    LiquidationParams,
    LoanOpened,
    LoanRepaid,
    LoanLiquidated,
    TierParamsUpdated,
    LiquidationParamsUpdated,
    PauseToggled,
    PriceOracle,
    CreditTierSource,
    CollateralCustody,
    LiquidityPool,
    LendingError,
    ConfigurationError,
    NoCreditScore,
    InvalidAmount,
    ExceedsLTV,
    InsufficientLiquidity,
    LoanNotFound,
    LoanNotActive,
    NotBorrower,
    RepayExceedsDebt,
    HealthFactorOk,
    SeizureExceedsCollateral,
    OracleError,
    ClockRegression,
    Unauthorized,
    LendingPaused,
    CustodyError,
)

# Ledger
from .ledger import LoanLedger, DEFAULT_LIQUIDATION_PARAMS

# Pure calculations
from .loans import (
    calculate_interest,
    calculate_accrual,
    calculate_current_debt,
    calculate_collateral_value,
    calculate_debt_value,
    calculate_max_debt,
    calculate_health_factor,
    calculate_loan_health,
    calculate_seizure,
    calculate_max_coverable_repay,
)
from .tier_policy import TierPolicy, DEFAULT_TIER_PARAMS, parse_tier

# Collaborators
from .pricing_source import (
    StaticPriceOracle,
    TimeSeriesPriceOracle,
    MockPriceFeed,
    PriceFeedRouter,
)
from .custody import TokenBalances, CollateralVault, LendingPool
from .credit_registry import CreditScoreRegistry, score_commitment

# Automation and analysis
from .keeper import LiquidationKeeper
from .stress import (
    simulate_price_paths,
    liquidation_probability,
    liquidation_price,
    barrier_hit_probability,
)

from .config import LedgerConfig, build_ledger
from .logging import setup_logging

__version__ = "0.1.0"

__all__ = [
    # Constants
    'WAD', 'BPS', 'SECONDS_PER_YEAR', 'COLLATERAL_DECIMALS', 'DEBT_DECIMALS',
    'MAX_HEALTH_FACTOR', 'TIER_A', 'TIER_B', 'TIER_C',
    # Records and events
    'Loan', 'LoanHealth', 'TierParams', 'LiquidationParams',
    'LoanOpened', 'LoanRepaid', 'LoanLiquidated',
    'TierParamsUpdated', 'LiquidationParamsUpdated', 'PauseToggled',
    # Protocols
    'PriceOracle', 'CreditTierSource', 'CollateralCustody', 'LiquidityPool',
    # Exceptions
    'LendingError', 'ConfigurationError', 'NoCreditScore', 'InvalidAmount',
    'ExceedsLTV', 'InsufficientLiquidity', 'LoanNotFound', 'LoanNotActive',
    'NotBorrower', 'RepayExceedsDebt', 'HealthFactorOk',
    'SeizureExceedsCollateral', 'OracleError', 'ClockRegression', 'Unauthorized',
    'LendingPaused', 'CustodyError',
    # Ledger
    'LoanLedger', 'DEFAULT_LIQUIDATION_PARAMS',
    # Calculations
    'calculate_interest', 'calculate_accrual', 'calculate_current_debt',
    'calculate_collateral_value', 'calculate_debt_value', 'calculate_max_debt',
    'calculate_health_factor', 'calculate_loan_health', 'calculate_seizure',
    'calculate_max_coverable_repay',
    'TierPolicy', 'DEFAULT_TIER_PARAMS', 'parse_tier',
    # Collaborators
    'StaticPriceOracle', 'TimeSeriesPriceOracle', 'MockPriceFeed', 'PriceFeedRouter',
    'TokenBalances', 'CollateralVault', 'LendingPool',
    'CreditScoreRegistry', 'score_commitment',
    # Automation and analysis
    'LiquidationKeeper',
    'simulate_price_paths', 'liquidation_probability', 'liquidation_price',
    'barrier_hit_probability',
    'LedgerConfig', 'build_ledger', 'setup_logging',
]
