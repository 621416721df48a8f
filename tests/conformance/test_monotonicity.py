"""
Index Monotonicity Conformance Tests

INVARIANT: For every tranche i and flow f, across any operation sequence:
    index[i][f] after >= index[i][f] before

Indices move only on deposits, only upward, and only for tranches whose
share supply is nonzero at deposit time.
"""

from hypothesis import given, settings, HealthCheck

from tranche_pool import Flow, MAG

from .pool_ops import pool_setups, operation_sequences, build, apply_operation, indices


class TestIndexMonotonicity:

    @given(pool_setups(), operation_sequences)
    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_indices_never_decrease(self, setup, ops):
        ledger, pool = build(setup)
        before = indices(pool)
        for op in ops:
            apply_operation(ledger, pool, op)
            after = indices(pool)
            for key in before:
                assert after[key] >= before[key], f"{key} decreased after {op}"
            if op[0] not in ("interest", "principal"):
                assert after == before, f"{op} moved an index"
            before = after

    @given(pool_setups(), operation_sequences)
    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_zero_supply_tranche_never_moves(self, setup, ops):
        ledger, pool = build(setup)
        empty = [i for i in range(len(pool.tranches)) if pool.shares(i).total_supply() == 0]
        for op in ops:
            apply_operation(ledger, pool, op)
        for i in empty:
            assert pool.index(i, Flow.INTEREST) == 0
            assert pool.index(i, Flow.PRINCIPAL) == 0

    @given(pool_setups(), operation_sequences)
    @settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_index_increment_matches_formula(self, setup, ops):
        ledger, pool = build(setup)
        for op in ops:
            if op[0] == "interest":
                supplies = [pool.shares(i).total_supply() for i in range(len(pool.tranches))]
                before = indices(pool)
                if apply_operation(ledger, pool, op) is None:
                    event = pool.events[-1]
                    for i, (slice_amount, supply) in enumerate(zip(event.slices, supplies)):
                        step = slice_amount * MAG // supply if supply and slice_amount else 0
                        assert pool.index(i, Flow.INTEREST) == before[(i, Flow.INTEREST)] + step
            else:
                apply_operation(ledger, pool, op)
