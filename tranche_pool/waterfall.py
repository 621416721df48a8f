"""
waterfall.py - Basis-Point Waterfall Splitter

Splits one cash inflow into per-tranche slices:

    slice_i = amount * weight_i // 10000

Floor division, never banker's rounding. Because the weights sum to
exactly 10000, sum(slices) <= amount and the remainder is strictly less
than the number of tranches. The remainder stays in the pool's
settlement balance as an unattributed residual.

Pure functions. No ledger access.
"""
from __future__ import annotations
from typing import Sequence, Tuple

from .core import BPS_DENOMINATOR, ValidationError


def validate_weights(weights: Sequence[int], label: str = "weights") -> Tuple[int, ...]:
    """
    Check a basis-point weight vector and return it as a tuple.

    Raises:
        ValidationError: empty vector, non-integer weight, weight outside
                         [0, 10000], or sum different from 10000.
    """
    if len(weights) == 0:
        raise ValidationError(f"{label} cannot be empty")
    for i, w in enumerate(weights):
        if isinstance(w, bool) or not isinstance(w, int):
            raise ValidationError(f"{label}[{i}] must be int basis points, got {w!r}")
        if w < 0 or w > BPS_DENOMINATOR:
            raise ValidationError(f"{label}[{i}] must be in [0, {BPS_DENOMINATOR}], got {w}")
    total = sum(weights)
    if total != BPS_DENOMINATOR:
        raise ValidationError(f"{label} must sum to {BPS_DENOMINATOR}, got {total}")
    return tuple(weights)


def split_amount(amount: int, weights: Sequence[int]) -> Tuple[int, ...]:
    """
    Slice an amount by basis-point weights with floor division.

    Example:
        >>> split_amount(100, (7000, 3000))
        (70, 30)
        >>> split_amount(101, (3334, 3333, 3333))
        (33, 33, 33)
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"amount must be int, got {amount!r}")
    if amount < 0:
        raise ValidationError(f"amount must be non-negative, got {amount}")
    return tuple(amount * w // BPS_DENOMINATOR for w in weights)


def split_residual(amount: int, slices: Sequence[int]) -> int:
    """Base units of amount left unattributed by a split."""
    return amount - sum(slices)
