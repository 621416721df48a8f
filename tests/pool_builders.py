"""
pool_builders.py - Ledger and pool construction helpers for tests

Plain functions (not fixtures) so hypothesis tests can build a fresh
ledger and pool for every example.
"""

from __future__ import annotations
from datetime import datetime
from typing import List, Sequence, Tuple

from tranche_pool import (
    Ledger, TranchePool, cash, create_loan_unit, originate_loan, ExecuteResult,
)


START = datetime(2025, 1, 1)
MATURITY = datetime(2030, 1, 1)
USDC = "USDC"
ORIGINATOR = "originator"
SERVICER = "servicer"
HOLDERS = ("alice", "bob", "carol", "dave")
FUNDING = 10 ** 12


def make_ledger(funding: int = FUNDING) -> Ledger:
    """Ledger with USDC, an originator, a servicer and four funded holders."""
    ledger = Ledger("test", START, verbose=False, test_mode=True)
    ledger.register_unit(cash(USDC, "USD Coin"))
    for wallet in (ORIGINATOR, SERVICER) + HOLDERS:
        ledger.register_wallet(wallet)
        if wallet != ORIGINATOR:
            ledger.set_balance(wallet, USDC, funding)
    return ledger


def issue_loans(
    ledger: Ledger,
    values: Sequence[int],
    originator: str = ORIGINATOR,
    prefix: str = "LOAN",
) -> List[str]:
    """Originate one loan token per value and return the loan ids."""
    loan_ids = []
    for i, value in enumerate(values):
        loan_id = f"{prefix}-{i:03d}"
        result = ledger.execute(originate_loan(ledger, create_loan_unit(loan_id, value, originator)))
        assert result == ExecuteResult.APPLIED
        loan_ids.append(loan_id)
    return loan_ids


def make_pool(ledger: Ledger, pool_id: str = "ABS1", maturity: datetime = MATURITY) -> TranchePool:
    return TranchePool(ledger, pool_id, ORIGINATOR, maturity, USDC, verbose=False)


def defined_pool(
    loan_values: Sequence[int] = (600, 300),
    principal_bps: Sequence[int] = (7000, 3000),
    interest_bps: Sequence[int] = (7000, 3000),
) -> Tuple[Ledger, TranchePool]:
    """Ledger and pool with loans pooled and tranches T0..Tn-1 defined."""
    ledger = make_ledger()
    pool = make_pool(ledger)
    pool.pool_loans(ORIGINATOR, issue_loans(ledger, loan_values))
    count = len(principal_bps)
    pool.define_tranches(
        ORIGINATOR,
        [f"Tranche {i}" for i in range(count)],
        [f"T{i}" for i in range(count)],
        list(principal_bps),
        list(interest_bps),
    )
    return ledger, pool
