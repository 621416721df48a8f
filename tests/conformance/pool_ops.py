"""
pool_ops.py - Hypothesis strategies and an operation runner for pool conformance tests

An operation is a tuple whose first element names it:

    ("buy", holder, tranche, amount)
    ("transfer", holder, tranche, recipient, amount)
    ("interest", amount)
    ("principal", amount)
    ("claim", holder, tranche)
    ("claim_all", holder)
    ("mature",)

Tranche indices may be out of range and amounts may exceed what is
available; refused operations are part of the sequence.
"""

from typing import Any, Dict, Optional, Tuple

from hypothesis import strategies as st

from tranche_pool import LedgerError, FLOWS

from tests.pool_builders import HOLDERS, SERVICER, MATURITY, defined_pool


holders = st.sampled_from(HOLDERS)
tranche_indices = st.integers(min_value=0, max_value=3)
amounts = st.integers(min_value=1, max_value=5_000)

operations = st.one_of(
    st.tuples(st.just("buy"), holders, tranche_indices, amounts),
    st.tuples(st.just("transfer"), holders, tranche_indices, holders, amounts),
    st.tuples(st.just("interest"), amounts),
    st.tuples(st.just("principal"), amounts),
    st.tuples(st.just("claim"), holders, tranche_indices),
    st.tuples(st.just("claim_all"), holders),
    st.tuples(st.just("mature")),
)

operation_sequences = st.lists(operations, min_size=1, max_size=30)


@st.composite
def weight_vectors(draw, count: int):
    """Basis-point weights of the given length summing to exactly 10000."""
    cuts = sorted(draw(st.lists(st.integers(0, 10_000), min_size=count - 1, max_size=count - 1)))
    bounds = [0] + cuts + [10_000]
    return [hi - lo for lo, hi in zip(bounds, bounds[1:])]


@st.composite
def pool_setups(draw):
    """(loan_values, principal_bps, interest_bps) for defined_pool()."""
    count = draw(st.integers(min_value=1, max_value=4))
    loans = draw(st.lists(st.integers(min_value=1, max_value=3_000), min_size=1, max_size=4))
    return tuple(loans), draw(weight_vectors(count)), draw(weight_vectors(count))


def build(setup):
    loans, principal, interest = setup
    return defined_pool(loan_values=loans, principal_bps=principal, interest_bps=interest)


def apply_operation(ledger, pool, op) -> Optional[LedgerError]:
    """Run one operation. A refused operation returns its error instead of raising."""
    kind, args = op[0], op[1:]
    try:
        if kind == "buy":
            pool.buy(*args)
        elif kind == "transfer":
            pool.transfer_shares(*args)
        elif kind == "interest":
            pool.deposit_interest(SERVICER, *args)
        elif kind == "principal":
            pool.deposit_principal(SERVICER, *args)
        elif kind == "claim":
            pool.claim(*args)
        elif kind == "claim_all":
            pool.claim_all(*args)
        elif kind == "mature":
            ledger.advance_time(max(MATURITY, ledger.current_time))
        else:
            raise AssertionError(f"unknown operation {kind}")
    except LedgerError as e:
        return e
    return None


def indices(pool) -> Dict[Tuple[int, Any], int]:
    return {(i, flow): pool.index(i, flow) for i in range(len(pool.tranches)) for flow in FLOWS}


def snapshot(ledger, pool) -> Tuple:
    """Everything an operation could change, with zero balances dropped."""
    balances = {
        w: {u: q for u, q in ledger.get_wallet_balances(w).items() if q}
        for w in sorted(ledger.list_wallets())
    }
    withdrawn = {
        (h, i, flow): pool.withdrawn(h, i, flow)
        for h in HOLDERS for i in range(len(pool.tranches)) for flow in FLOWS
    }
    totals = tuple(
        (pool.total_deposited(f), pool.total_credited(f), pool.total_claimed(f)) for f in FLOWS
    )
    return (
        balances, indices(pool), withdrawn, totals,
        len(pool.events), len(ledger.transaction_log), ledger.current_time,
    )
