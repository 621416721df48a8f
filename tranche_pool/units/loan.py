"""
loan.py - Loan Tokens, Loan Registry and Collateral Custody

Every loan is a non-fungible LOAN unit: exactly one token exists and the
wallet holding it has custody of the loan. The unit state is the loan's
registry entry:

    recorded_value    - principal the registry vouches for (base units)
    originator        - wallet that originated the loan
    origination_date  - when it was originated (optional)
    metadata          - free-form origination terms (rate, term, ...)

Pattern:
    Origination:
        Move(source="system", dest=originator, unit=loan_id, quantity=1)

    Custody transfer into a pool:
        Move(source=originator, dest=pool_wallet, unit=loan_id, quantity=1)

The pool reads recorded values through the LoanRegistry protocol and moves
custody with custody_move(); it never mutates registry state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from ..core import (
    LedgerView, Move, PendingTransaction, Unit,
    TransactionOrigin, OriginType,
    SYSTEM_WALLET, UNIT_TYPE_LOAN,
    UnitNotRegistered, ValidationError,
    build_transaction, _freeze_state,
)


@dataclass(frozen=True, slots=True)
class LoanRecord:
    """Registry entry for one loan."""
    loan_id: str
    recorded_value: int
    originator: str
    origination_date: Optional[datetime] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@runtime_checkable
class LoanRegistry(Protocol):
    """Read-only lookup of a loan's recorded value and origination data."""

    def lookup(self, loan_id: str) -> LoanRecord:
        """
        Return the registry entry for loan_id.

        Raises:
            ValidationError: If the loan is unknown
        """
        ...


def create_loan_unit(
    loan_id: str,
    recorded_value: int,
    originator: str,
    origination_date: Optional[datetime] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Unit:
    """
    Create the non-fungible token for one loan.

    Args:
        loan_id: Unique loan identifier, also the unit symbol
        recorded_value: Principal recorded for the loan, in settlement base units
        originator: Wallet that originated the loan
        origination_date: Optional origination timestamp
        metadata: Optional origination terms

    Returns:
        Unit with max_balance 1 holding the registry entry in its state.

    Example:
        unit = create_loan_unit("LOAN-001", 600, "originator")
        ledger.execute(originate_loan(ledger, unit))
    """
    if not loan_id or not loan_id.strip():
        raise ValueError("loan_id cannot be empty")
    if isinstance(recorded_value, bool) or not isinstance(recorded_value, int):
        raise ValueError(f"recorded_value must be int, got {recorded_value!r}")
    if recorded_value <= 0:
        raise ValueError(f"recorded_value must be positive, got {recorded_value}")
    if not originator or not originator.strip():
        raise ValueError("originator cannot be empty")

    return Unit(
        symbol=loan_id,
        name=f"Loan {loan_id}",
        unit_type=UNIT_TYPE_LOAN,
        min_balance=0,
        max_balance=1,
        _frozen_state=_freeze_state({
            'recorded_value': recorded_value,
            'originator': originator,
            'origination_date': origination_date,
            'metadata': dict(metadata or {}),
        })
    )


def originate_loan(view: LedgerView, unit: Unit) -> PendingTransaction:
    """
    Register a loan token and issue it to its originator in one transaction.

    Returns:
        PendingTransaction creating the unit and moving the single token
        from SYSTEM_WALLET to the originator.
    """
    if unit.unit_type != UNIT_TYPE_LOAN:
        raise ValueError(f"{unit.symbol} is not a LOAN unit")
    originator = unit.state['originator']
    move = Move(1, unit.symbol, SYSTEM_WALLET, originator, f"originate_{unit.symbol}")
    origin = TransactionOrigin(OriginType.SYSTEM, originator, unit.symbol, "ORIGINATION")
    return build_transaction(view, [move], origin=origin, units_to_create=(unit,))


def custody_move(loan_id: str, source: str, dest: str, contract_id: str) -> Move:
    """The move that transfers custody of a loan token."""
    return Move(1, loan_id, source, dest, contract_id)


def custodian_of(view: LedgerView, loan_id: str) -> Optional[str]:
    """Wallet currently holding the loan token, or None if it was never issued."""
    holders = [w for w, qty in view.get_positions(loan_id).items() if qty > 0]
    return holders[0] if holders else None


class LedgerLoanRegistry:
    """LoanRegistry reading LOAN unit state from a ledger."""

    def __init__(self, view: LedgerView):
        self.view = view

    def lookup(self, loan_id: str) -> LoanRecord:
        try:
            unit = self.view.get_unit(loan_id)
        except UnitNotRegistered:
            raise ValidationError(f"unknown loan {loan_id}") from None
        if unit.unit_type != UNIT_TYPE_LOAN:
            raise ValidationError(f"{loan_id} is not a loan (unit type {unit.unit_type})")
        state = self.view.get_unit_state(loan_id)
        return LoanRecord(
            loan_id=loan_id,
            recorded_value=state['recorded_value'],
            originator=state['originator'],
            origination_date=state.get('origination_date'),
            metadata=state.get('metadata') or {},
        )
