"""
distribution.py - Magnified Distribution Index and Claim Bookkeeping

=== INDEX MODEL ===

For every tranche i and flow f (interest, principal) the pool keeps one
fixed-point accumulator:

    index[i][f] += slice * MAG // supply_i        (only when supply_i > 0)

A deposit is O(tranches): holders are never enumerated. A slice that
arrives while supply_i == 0 is forfeit and the index is left unchanged.

=== CLAIM MODEL ===

Per (tranche, holder, flow) a ClaimRecord stores:
    withdrawn   - settlement units already paid out
    correction  - magnified checkpoint adjustments from share movements

    entitlement = (index * balance + correction) // MAG
    owed        = entitlement - withdrawn

Every share movement of x units at index I checkpoints both sides:
    sender.correction   += I * x
    receiver.correction -= I * x
so index * balance + correction is unchanged for each party at the moment
of the movement. The receiver earns nothing accrued before the movement
and the sender keeps what was accrued, so owed can never go negative.
With no movements the correction is zero and entitlement is exactly
index * balance // MAG.

=== PLAN / APPLY ===

DistributionBook never mutates while planning. plan_accrual, plan_claim
and plan_movement return a BookUpdate; the pool applies it only after the
ledger transaction for the same operation was applied.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from .core import MAG, LedgerError, TrancheIndexError, ValidationError


class Flow(Enum):
    """Cash-flow type of a deposit."""
    INTEREST = "interest"
    PRINCIPAL = "principal"


FLOWS: Tuple[Flow, ...] = (Flow.INTEREST, Flow.PRINCIPAL)

IndexKey = Tuple[int, Flow]
RecordKey = Tuple[int, str, Flow]


# =============================================================================
# FIXED-POINT TYPES
# =============================================================================

@dataclass(frozen=True, slots=True)
class MagnifiedIndex:
    """Cumulative per-share entitlement since genesis, scaled by MAG."""
    value: int = 0

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError(f"index value must be int, got {self.value!r}")
        if self.value < 0:
            raise ValueError(f"index value must be non-negative, got {self.value}")

    def accrue(self, amount: int, supply: int) -> MagnifiedIndex:
        """Index after distributing amount over supply shares (truncating)."""
        if supply <= 0 or amount <= 0:
            return self
        return MagnifiedIndex(self.value + amount * MAG // supply)

    def entitlement(self, balance: int, correction: int = 0) -> int:
        """Settlement units earned by balance shares, after checkpoint correction."""
        return (self.value * balance + correction) // MAG


@dataclass(frozen=True, slots=True)
class ClaimRecord:
    """What one holder has withdrawn from one tranche/flow, plus its checkpoint."""
    withdrawn: int = 0
    correction: int = 0

    def owed(self, index: MagnifiedIndex, balance: int) -> int:
        owed = index.entitlement(balance, self.correction) - self.withdrawn
        if owed < 0:
            raise LedgerError(
                f"claim bookkeeping broken: withdrawn {self.withdrawn} exceeds entitlement"
            )
        return owed


@dataclass(frozen=True, slots=True)
class BookUpdate:
    """Index and claim-record replacements produced by a plan_* call."""
    indices: Tuple[Tuple[IndexKey, MagnifiedIndex], ...] = ()
    records: Tuple[Tuple[RecordKey, ClaimRecord], ...] = ()

    def is_empty(self) -> bool:
        return not self.indices and not self.records

    def merge(self, other: BookUpdate) -> BookUpdate:
        return BookUpdate(self.indices + other.indices, self.records + other.records)


# =============================================================================
# BOOK
# =============================================================================

class DistributionBook:
    """
    Distribution indices and claim records for every tranche of one pool.

    Claim records are created lazily; an absent record reads as
    ClaimRecord() (nothing withdrawn, no correction).
    """

    def __init__(self, tranche_count: int):
        if tranche_count < 1:
            raise ValidationError(f"tranche_count must be >= 1, got {tranche_count}")
        self.tranche_count = tranche_count
        self._indices: Dict[IndexKey, MagnifiedIndex] = {
            (i, flow): MagnifiedIndex() for i in range(tranche_count) for flow in FLOWS
        }
        self._records: Dict[RecordKey, ClaimRecord] = {}

    def _check_tranche(self, tranche: int) -> None:
        if isinstance(tranche, bool) or not isinstance(tranche, int):
            raise TrancheIndexError(f"tranche index must be int, got {tranche!r}")
        if not 0 <= tranche < self.tranche_count:
            raise TrancheIndexError(
                f"tranche index {tranche} out of range [0, {self.tranche_count})"
            )

    def index(self, tranche: int, flow: Flow) -> MagnifiedIndex:
        self._check_tranche(tranche)
        return self._indices[(tranche, flow)]

    def record(self, tranche: int, holder: str, flow: Flow) -> ClaimRecord:
        self._check_tranche(tranche)
        return self._records.get((tranche, holder, flow), ClaimRecord())

    def owed(self, tranche: int, holder: str, flow: Flow, balance: int) -> int:
        return self.record(tranche, holder, flow).owed(self.index(tranche, flow), balance)

    # -------------------------------------------------------------------------
    # planning (pure)
    # -------------------------------------------------------------------------

    def plan_accrual(
        self,
        flow: Flow,
        slices: Sequence[int],
        supplies: Sequence[int],
    ) -> Tuple[BookUpdate, Tuple[int, ...]]:
        """
        Plan index increases for one deposit.

        Args:
            flow: Cash-flow type of the deposit
            slices: Per-tranche slice from the waterfall splitter
            supplies: Per-tranche share supply at deposit time

        Returns:
            (update, credited) where credited[i] is slices[i] when the
            tranche had holders and 0 when the slice was forfeit.
        """
        if len(slices) != self.tranche_count or len(supplies) != self.tranche_count:
            raise ValidationError(
                f"expected {self.tranche_count} slices and supplies, "
                f"got {len(slices)} and {len(supplies)}"
            )
        indices = []
        credited = []
        for i, (amount, supply) in enumerate(zip(slices, supplies)):
            if supply > 0 and amount > 0:
                indices.append(((i, flow), self._indices[(i, flow)].accrue(amount, supply)))
                credited.append(amount)
            else:
                credited.append(0)
        return BookUpdate(indices=tuple(indices)), tuple(credited)

    def plan_claim(
        self,
        tranche: int,
        holder: str,
        balance: int,
    ) -> Tuple[Dict[Flow, int], BookUpdate]:
        """Plan paying out everything holder is owed on both flows of a tranche."""
        self._check_tranche(tranche)
        owed: Dict[Flow, int] = {}
        records = []
        for flow in FLOWS:
            record = self.record(tranche, holder, flow)
            amount = record.owed(self._indices[(tranche, flow)], balance)
            owed[flow] = amount
            if amount > 0:
                records.append(((tranche, holder, flow), replace(record, withdrawn=record.withdrawn + amount)))
        return owed, BookUpdate(records=tuple(records))

    def plan_movement(
        self,
        tranche: int,
        source: Optional[str],
        dest: Optional[str],
        amount: int,
    ) -> BookUpdate:
        """
        Plan the checkpoint for a share movement.

        source is None for a mint, dest is None for a burn.
        """
        self._check_tranche(tranche)
        if amount <= 0:
            raise ValidationError(f"movement amount must be positive, got {amount}")
        records = []
        for flow in FLOWS:
            magnified = self._indices[(tranche, flow)].value * amount
            if magnified == 0:
                continue
            if source is not None:
                rec = self.record(tranche, source, flow)
                records.append(((tranche, source, flow), replace(rec, correction=rec.correction + magnified)))
            if dest is not None:
                rec = self.record(tranche, dest, flow)
                records.append(((tranche, dest, flow), replace(rec, correction=rec.correction - magnified)))
        return BookUpdate(records=tuple(records))

    # -------------------------------------------------------------------------
    # commit
    # -------------------------------------------------------------------------

    def apply(self, update: BookUpdate) -> None:
        """Commit a planned update. Indices may only move upward."""
        for key, new_index in update.indices:
            if new_index.value < self._indices[key].value:
                raise LedgerError(f"index for {key} would decrease")
        for key, new_index in update.indices:
            self._indices[key] = new_index
        for key, record in update.records:
            self._records[key] = record
