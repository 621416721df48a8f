"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the tranche pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. waterfall_bounds.py - Floor split never over-distributes, residual < tranche count
2. monotonicity.py - Distribution indices never decrease
3. solvency.py - Claims never exceed attributed deposits; books reconcile
4. atomicity.py - Refused operations change nothing
5. idempotency.py - A second claim pays nothing
6. determinism.py - Same operations, same outcome

These tests use hypothesis for property-based testing.
"""
