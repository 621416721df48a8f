"""
conftest.py - Shared pytest fixtures for tranche pool tests

Provides common fixtures used across unit, conformance and functional tests:
- Ledgers (empty, funded with holders and a servicer)
- Pools at each lifecycle stage (fresh, collateralised, defined, sold)
"""

import pytest

from tranche_pool import Ledger, cash

from tests.pool_builders import (
    START, USDC, ORIGINATOR,
    make_ledger, make_pool, issue_loans, defined_pool,
)


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", START, verbose=False, test_mode=True)


@pytest.fixture
def basic_ledger():
    """Ledger with USDC and two unfunded wallets."""
    ledger = Ledger("test", START, verbose=False, test_mode=True)
    ledger.register_unit(cash(USDC, "USD Coin"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def funded_ledger():
    """Ledger with USDC, originator, servicer and funded holders alice..dave."""
    return make_ledger()


# =============================================================================
# POOL FIXTURES
# =============================================================================

@pytest.fixture
def pool(funded_ledger):
    """Pool in COLLATERAL_OPEN with two loans (600, 300) issued to the originator."""
    issue_loans(funded_ledger, [600, 300])
    return make_pool(funded_ledger)


@pytest.fixture
def collateralised_pool(pool):
    """Pool holding LOAN-000 (600) and LOAN-001 (300)."""
    pool.pool_loans(ORIGINATOR, ["LOAN-000", "LOAN-001"])
    return pool


@pytest.fixture
def defined():
    """(ledger, pool) with total principal 900 and 70/30 principal and interest tranches."""
    return defined_pool()


@pytest.fixture
def sold(defined):
    """(ledger, pool) with alice holding all 630 of T0 and bob all 270 of T1."""
    ledger, pool = defined
    pool.buy("alice", 0, 630)
    pool.buy("bob", 1, 270)
    return ledger, pool
