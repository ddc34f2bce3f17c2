"""
conftest.py - Shared pytest fixtures for lending ledger tests

Provides the deployment used across unit and functional tests:
- WMATIC (18 decimals) collateral and USDC (6 decimals) debt tokens
- Collateral vault and a lending pool funded with 10,000 USDC
- Credit registry with one borrower per tier plus an unscored one
- Static oracle at 0.5 USD and a ledger administered by "owner"
"""

import pytest

from chainflow import (
    CollateralVault,
    CreditScoreRegistry,
    LendingPool,
    LiquidationKeeper,
    LoanLedger,
    StaticPriceOracle,
    TokenBalances,
)


WHOLE_WMATIC = 10 ** 18
WHOLE_USDC = 10 ** 6

HALF_DOLLAR = 5 * 10 ** 17
POOL_FUNDING = 10_000 * WHOLE_USDC
BORROWER_COLLATERAL = 1_000 * WHOLE_WMATIC
BORROWER_CASH = 500 * WHOLE_USDC

ADMIN = "owner"
SCORER = "scoring-api"
LIQUIDATOR = "liquidator"


# =============================================================================
# TOKENS AND COLLABORATORS
# =============================================================================

@pytest.fixture
def wmatic():
    token = TokenBalances("WMATIC", decimals=18)
    for borrower in ("alice", "bob", "carol", "mallory"):
        token.mint(borrower, BORROWER_COLLATERAL)
    return token


@pytest.fixture
def usdc():
    token = TokenBalances("USDC", decimals=6)
    token.mint("pool", POOL_FUNDING)
    for borrower in ("alice", "bob", "carol", "mallory"):
        token.mint(borrower, BORROWER_CASH)
    token.mint(LIQUIDATOR, POOL_FUNDING)
    return token


@pytest.fixture
def vault(wmatic):
    return CollateralVault(wmatic)


@pytest.fixture
def pool(usdc):
    return LendingPool(usdc)


@pytest.fixture
def registry():
    """alice = tier A, bob = tier B, carol = tier C, mallory unscored."""
    reg = CreditScoreRegistry(updater=SCORER)
    reg.commit_score(SCORER, "alice", 85, "A")
    reg.commit_score(SCORER, "bob", 65, "B")
    reg.commit_score(SCORER, "carol", 40, "C")
    return reg


@pytest.fixture
def oracle():
    return StaticPriceOracle(HALF_DOLLAR)


# =============================================================================
# LEDGER
# =============================================================================

@pytest.fixture
def make_ledger(oracle, registry, vault, pool):
    """Factory for ledgers that swap in a single collaborator."""
    def _make(**overrides):
        kwargs = dict(
            oracle=oracle,
            tier_source=registry,
            custody=vault,
            pool=pool,
            admin=ADMIN,
        )
        kwargs.update(overrides)
        name = kwargs.pop("name", "test")
        return LoanLedger(name, **kwargs)
    return _make


@pytest.fixture
def ledger(make_ledger):
    return make_ledger()


@pytest.fixture
def boundary_loan(ledger):
    """Tier A loan opened exactly at the LTV limit: 100 WMATIC for 35 USDC at 0.5."""
    return ledger.open_loan("alice", 100 * WHOLE_WMATIC, 35 * WHOLE_USDC)


@pytest.fixture
def keeper(ledger):
    return LiquidationKeeper(ledger, LIQUIDATOR)
