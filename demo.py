#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: A Tranche Pool Step by Step

Walks through the life of one pool of loans: origination, intake,
tranching, share sale, interest, claims, a secondary-market transfer,
maturity and the final principal sweep. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Setup        - The ledger, the settlement asset, loan tokens
  4-6:   Tranching    - Pooling collateral, defining tranches, selling shares
  7-9:   Cash Flows   - Interest deposits, the magnified index, claims
  10-11: Safety       - Transfers with checkpoints, refused operations
  12:    Maturity     - Principal, the final sweep, reconciliation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Tuple
import sys

from tranche_pool import (
    # Ledger
    Ledger, Move, build_transaction, cash, SYSTEM_WALLET, MAG,
    # Loans
    create_loan_unit, originate_loan, custodian_of,
    # Pool
    TranchePool, Flow,
    # Errors
    LedgerError, TransferRuleViolation, ExecuteResult,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    maturity: datetime = datetime(2028, 1, 1)

    # Settlement asset funding, in base units (cents)
    investor_funding: int = 1_000_000_00
    servicer_funding: int = 2_000_000_00

    # Loans: (id, recorded value in cents)
    loans: Tuple[Tuple[str, int], ...] = (
        ("MORT-001", 450_000_00),
        ("MORT-002", 300_000_00),
        ("AUTO-001", 250_000_00),
    )

    # Tranches: name, symbol, principal bps, interest bps
    names: Tuple[str, ...] = ("Senior", "Mezzanine", "Equity")
    symbols: Tuple[str, ...] = ("SNR", "MEZ", "EQ")
    principal_bps: Tuple[int, ...] = (7000, 2000, 1000)
    interest_bps: Tuple[int, ...] = (5000, 3000, 2000)

    monthly_interest: int = 6_250_00
    investors: Tuple[str, ...] = field(default=("alice", "bob", "carol"))


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def usd(amount: int) -> str:
    return f"${amount / 100:,.2f}"


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_ledger() -> Ledger:
    """Create the ledger that hosts every asset."""
    step_header(1, "The Ledger",
        "Every asset the pool touches lives on one atomic wallet/unit ledger.")

    print("""
    The pool never holds money or loans itself. It drives a ledger:

    1. USDC         - the settlement asset (integer cents, no overdrafts)
    2. LOAN units   - one non-fungible token per loan (max balance 1)
    3. SHARE units  - one fungible unit per tranche, movable only by the pool
    """)

    ledger = Ledger("abs", initial_time=CONFIG.start_time, verbose=False)
    ledger.register_unit(cash("USDC", "USD Coin"))
    for wallet in ("originator", "servicer") + CONFIG.investors:
        ledger.register_wallet(wallet)

    funding = [Move(CONFIG.investor_funding, "USDC", SYSTEM_WALLET, w, f"fund_{w}") for w in CONFIG.investors]
    funding.append(Move(CONFIG.servicer_funding, "USDC", SYSTEM_WALLET, "servicer", "fund_servicer"))
    ledger.execute(build_transaction(ledger, funding))

    section_header("Balances")
    for wallet in CONFIG.investors + ("servicer",):
        print(f"  {wallet:<10} {usd(ledger.get_balance(wallet, 'USDC'))}")
    print(f"\n  USDC issued: {usd(ledger.total_supply('USDC'))}")
    return ledger


def step_02_loans(ledger: Ledger):
    """Originate the loans."""
    step_header(2, "Loan Tokens",
        "A loan is a token; whoever holds it has custody. Its unit state is the registry entry.")

    for loan_id, value in CONFIG.loans:
        unit = create_loan_unit(loan_id, value, "originator", CONFIG.start_time)
        ledger.execute(originate_loan(ledger, unit))
        print(f"  {loan_id}: recorded {usd(value)}, custodian {custodian_of(ledger, loan_id)}")


def step_03_pool(ledger: Ledger) -> TranchePool:
    """Create the pool."""
    step_header(3, "The Pool",
        "A pool has an originator, a maturity date and its own wallet on the ledger.")

    print(">>> pool = TranchePool(ledger, 'ABS1', 'originator', maturity, 'USDC', verbose=True)")
    pool = TranchePool(ledger, "ABS1", "originator", CONFIG.maturity, "USDC", verbose=True)
    print(f"\n  wallet: {pool.wallet}")
    print(f"  phase:  {pool.phase.value}")
    return pool


# ============================================================================
# PHASE 2: TRANCHING (Steps 4-6)
# ============================================================================

def step_04_intake(ledger: Ledger, pool: TranchePool):
    """Pool the collateral."""
    step_header(4, "Collateral Intake",
        "Custody of a batch of loans moves into the pool in one atomic transaction.")

    loan_ids = [loan_id for loan_id, _ in CONFIG.loans]
    pool.pool_loans("originator", loan_ids[:2])
    pool.pool_loans("originator", loan_ids[2:])

    section_header("Custody")
    for loan_id in loan_ids:
        print(f"  {loan_id}: {custodian_of(ledger, loan_id)}")


def step_05_define(ledger: Ledger, pool: TranchePool):
    """Define the tranches."""
    step_header(5, "Tranche Definition",
        "One-time split of pooled principal into share units by basis-point weights.")

    event = pool.define_tranches(
        "originator", CONFIG.names, CONFIG.symbols, CONFIG.principal_bps, CONFIG.interest_bps,
    )

    section_header("Tranches")
    for tranche, minted in zip(pool.tranches, event.minted):
        print(f"  [{tranche.index}] {tranche.symbol:<4} principal {tranche.principal_weight_bps:>5} bps, "
              f"interest {tranche.interest_weight_bps:>5} bps, minted {minted:,}")
    print(f"\n  total principal: {usd(pool.total_principal)}")
    print(f"  phase:           {pool.phase.value}")

    section_header("Key Insight")
    print("""
    Shares are minted to the POOL wallet. They are sold later, one share
    per base unit of the settlement asset.
    """)


def step_06_sale(ledger: Ledger, pool: TranchePool):
    """Sell the shares."""
    step_header(6, "Share Sale",
        "Payment and share delivery happen in the same ledger transaction.")

    pool.buy("alice", 0, pool.unsold(0) // 2)
    pool.buy("bob", 0, pool.unsold(0))
    pool.buy("bob", 1, pool.unsold(1))
    pool.buy("carol", 2, pool.unsold(2))

    section_header("Holdings")
    for investor in CONFIG.investors:
        held = ", ".join(f"{t.symbol} {pool.share_balance(investor, t.index):,}" for t in pool.tranches)
        print(f"  {investor:<6} {held}")
    print(f"\n  pool USDC: {usd(ledger.get_balance(pool.wallet, 'USDC'))}")


# ============================================================================
# PHASE 3: CASH FLOWS (Steps 7-9)
# ============================================================================

def step_07_interest(ledger: Ledger, pool: TranchePool):
    """Deposit twelve months of interest."""
    step_header(7, "Interest Deposits",
        "A deposit is split by interest weights and credited to a per-share index.")

    when = ledger.current_time
    for _ in range(12):
        when += timedelta(days=30)
        ledger.advance_time(when)
        pool.deposit_interest("servicer", CONFIG.monthly_interest)

    section_header("Indices (scaled by MAG = 10^18)")
    for tranche in pool.tranches:
        value = pool.index(tranche.index, Flow.INTEREST)
        print(f"  {tranche.symbol:<4} {value:>28,}  ({value / MAG:.8f} per share)")

    section_header("Key Insight")
    print("""
    No holder was visited. A deposit costs the same with three holders or
    three million: each holder's entitlement is index * balance / MAG.
    """)


def step_08_claimable(pool: TranchePool):
    """Show what everyone can claim."""
    step_header(8, "Entitlements",
        "Claimable = (index * balance + correction) // MAG - withdrawn.")

    for investor in CONFIG.investors:
        for tranche in pool.tranches:
            owed = pool.claimable(investor, tranche.index)
            if owed:
                print(f"  {investor:<6} {tranche.symbol:<4} {usd(owed)}")


def step_09_claim(ledger: Ledger, pool: TranchePool):
    """Claim."""
    step_header(9, "Claims",
        "A claim pays what is owed; a second claim pays nothing.")

    paid = pool.claim_all("alice")
    print(f"\n  alice received {usd(paid)}")
    print(f"  alice claims again: {usd(pool.claim_all('alice'))}")


# ============================================================================
# PHASE 4: SAFETY (Steps 10-11)
# ============================================================================

def step_10_transfer(ledger: Ledger, pool: TranchePool):
    """Move shares between holders."""
    step_header(10, "Secondary Transfer",
        "Both sides are checkpointed: accrued income stays with the seller.")

    before = pool.claimable("bob", 0)
    pool.transfer_shares("bob", 0, "carol", pool.share_balance("bob", 0))
    print(f"\n  bob claimable before: {usd(before)}, after: {usd(pool.claimable('bob', 0))}")
    print(f"  carol claimable on SNR: {usd(pool.claimable('carol', 0))}")


def step_11_refusals(ledger: Ledger, pool: TranchePool):
    """Refused operations."""
    step_header(11, "Refused Operations",
        "Every failure raises before anything changes.")

    attempts = [
        ("define again", lambda: pool.define_tranches("originator", ["X"], ["X"], [10000], [10000])),
        ("principal early", lambda: pool.deposit_principal("servicer", 1_00)),
        ("buy sold-out", lambda: pool.buy("alice", 0, 1)),
        ("direct share move", lambda: _direct_share_move(ledger)),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except LedgerError as e:
            print(f"  {label:<18} {type(e).__name__}")


def _direct_share_move(ledger: Ledger):
    tx = build_transaction(ledger, [Move(1, "SNR", "alice", "bob", "otc_trade")])
    if ledger.execute(tx) == ExecuteResult.REJECTED:
        raise TransferRuleViolation(ledger.last_rejection)


# ============================================================================
# PHASE 5: MATURITY (Step 12)
# ============================================================================

def step_12_maturity(ledger: Ledger, pool: TranchePool):
    """Principal and the final sweep."""
    step_header(12, "Maturity",
        "Principal is accepted from maturity on; the final sweep reconciles to the cent.")

    ledger.advance_time(CONFIG.maturity)
    print(f"  phase: {pool.phase.value}")
    pool.deposit_principal("servicer", pool.total_principal)

    section_header("Final Sweep")
    for investor in CONFIG.investors:
        print(f"  {investor:<6} {usd(pool.claim_all(investor))}")

    solvency = pool.verify_solvency()
    section_header("Reconciliation")
    print(f"  pool balance:    {usd(solvency['balance'])}")
    print(f"  expected:        {usd(solvency['expected_balance'])}")
    for flow, totals in solvency['flows'].items():
        print(f"  {flow:<9} deposited {usd(totals['deposited'])}, claimed {usd(totals['claimed'])}")
    print(f"  books valid:     {solvency['valid'] and ledger.verify_double_entry()['valid']}")

    section_header("Event Log")
    for event in pool.events:
        print(f"  {type(event).__name__:<20} {event.exec_id}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       TRANCHE POOL - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    ledger = step_01_ledger()
    wait_for_enter()
    step_02_loans(ledger)
    wait_for_enter()
    pool = step_03_pool(ledger)
    wait_for_enter()

    step_04_intake(ledger, pool)
    wait_for_enter()
    step_05_define(ledger, pool)
    wait_for_enter()
    step_06_sale(ledger, pool)
    wait_for_enter()

    step_07_interest(ledger, pool)
    wait_for_enter()
    step_08_claimable(pool)
    wait_for_enter()
    step_09_claim(ledger, pool)
    wait_for_enter()

    step_10_transfer(ledger, pool)
    wait_for_enter()
    step_11_refusals(ledger, pool)
    wait_for_enter()

    step_12_maturity(ledger, pool)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See tranche_pool/distribution.py for the index and checkpoint model
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
