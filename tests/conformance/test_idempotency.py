"""
Claim Idempotency Conformance Tests

INVARIANT: Without an intervening deposit or share movement,
    claim(h, i) followed by claim(h, i) pays 0 the second time
    claim_all(h) followed by claim_all(h) pays 0 the second time

A zero-owed claim is a no-op: no ledger transaction, no event.
"""

from hypothesis import given, settings, HealthCheck

from tests.pool_builders import HOLDERS
from .pool_ops import pool_setups, operation_sequences, build, apply_operation, snapshot


class TestClaimIdempotency:

    @given(pool_setups(), operation_sequences)
    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_second_claim_pays_nothing(self, setup, ops):
        ledger, pool = build(setup)
        for op in ops:
            apply_operation(ledger, pool, op)

        for holder in HOLDERS:
            for i in range(len(pool.tranches)):
                first = pool.claimable(holder, i)
                assert pool.claim(holder, i) == first
                before = snapshot(ledger, pool)
                assert pool.claim(holder, i) == 0
                assert snapshot(ledger, pool) == before

    @given(pool_setups(), operation_sequences)
    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_second_claim_all_pays_nothing(self, setup, ops):
        ledger, pool = build(setup)
        for op in ops:
            apply_operation(ledger, pool, op)

        for holder in HOLDERS:
            pool.claim_all(holder)
            before = snapshot(ledger, pool)
            assert pool.claim_all(holder) == 0
            assert snapshot(ledger, pool) == before
