"""
tranche_share.py - Tranche Share Units

One fungible TRANCHE_SHARE unit per tranche. The owning pool is the only
party allowed to move shares. The unit's transfer rule is bound to the pool
when the unit is created: a share move passes only if it carries the
pool's contract_id prefix ("<pool_id>:...") AND is one of the moves the
pool is executing at that moment. Holding the ledger is not enough to
mint or transfer shares. Mint and burn go through SYSTEM_WALLET, so the
ledger's issued supply counter is the tranche's total supply.

TrancheShares is the share-ledger adapter the pool drives. Its mint, burn
and transfer methods only build Moves; the pool bundles them with the
settlement moves of the same operation into one atomic transaction.
"""

from __future__ import annotations
from typing import Any, Callable, Dict

from ..core import (
    LedgerView, Move, Unit, TransferRule,
    SYSTEM_WALLET, UNIT_TYPE_TRANCHE_SHARE,
    TransferRuleViolation,
    _freeze_state,
)


def pool_contract_id(pool_id: str, reference: str) -> str:
    """contract_id for a move issued by pool_id."""
    return f"{pool_id}:{reference}"


# Answers whether the owning pool is executing this move right now
IssuingCheck = Callable[[Move], bool]


def tranche_share_transfer_rule(is_issuing: IssuingCheck) -> TransferRule:
    """
    Build the transfer rule that binds a share unit to its owning pool.

    Args:
        is_issuing: Supplied by the owning pool; True only for moves of the
                    transaction the pool is executing.

    Returns:
        Rule raising TransferRuleViolation if the unit has no owning pool,
        the move lacks the pool's contract_id prefix, or the pool is not
        executing it.
    """
    def pool_only_transfer(view: LedgerView, move: Move) -> None:
        state = view.get_unit_state(move.unit_symbol)
        pool_id = state.get('pool_id')
        if not pool_id:
            raise TransferRuleViolation(f"Tranche share {move.unit_symbol} has no owning pool")
        if not move.contract_id.startswith(pool_contract_id(pool_id, "")):
            raise TransferRuleViolation(
                f"Tranche share {move.unit_symbol}: moves must be issued by pool {pool_id}"
            )
        if not is_issuing(move):
            raise TransferRuleViolation(
                f"Tranche share {move.unit_symbol}: move {move.contract_id} "
                f"was not executed by pool {pool_id}"
            )

    return pool_only_transfer


def create_tranche_share_unit(
    symbol: str,
    name: str,
    pool_id: str,
    tranche_index: int,
    principal_weight_bps: int,
    interest_weight_bps: int,
    settlement_unit: str,
    is_issuing: IssuingCheck,
) -> Unit:
    """
    Create the share unit for one tranche.

    Args:
        symbol: Share symbol (e.g., "SNR")
        name: Human-readable name (e.g., "Senior Tranche")
        pool_id: Owning pool; only its moves pass the transfer rule
        tranche_index: 0-based creation order within the pool
        principal_weight_bps: Principal waterfall weight
        interest_weight_bps: Interest waterfall weight
        settlement_unit: Asset shares are bought with and claims are paid in
        is_issuing: Owning pool's check for moves it is executing

    Returns:
        Unit with zero minimum balance and the pool-only transfer rule.
    """
    if not symbol or not symbol.strip():
        raise ValueError("symbol cannot be empty")
    if not pool_id or not pool_id.strip():
        raise ValueError("pool_id cannot be empty")

    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_TRANCHE_SHARE,
        min_balance=0,
        transfer_rule=tranche_share_transfer_rule(is_issuing),
        _frozen_state=_freeze_state({
            'pool_id': pool_id,
            'tranche_index': tranche_index,
            'principal_weight_bps': principal_weight_bps,
            'interest_weight_bps': interest_weight_bps,
            'settlement_unit': settlement_unit,
        })
    )


class TrancheShares:
    """
    Share ledger for one tranche, backed by a TRANCHE_SHARE unit.

    Reads go straight to the ledger view; writes come back as Moves.
    """

    def __init__(self, view: LedgerView, symbol: str, pool_id: str):
        self.view = view
        self.symbol = symbol
        self.pool_id = pool_id

    def __repr__(self) -> str:
        return f"TrancheShares({self.symbol}, pool={self.pool_id})"

    def balance_of(self, holder: str) -> int:
        return self.view.get_balance(holder, self.symbol)

    def total_supply(self) -> int:
        return self.view.total_supply(self.symbol)

    def holders(self) -> Dict[str, int]:
        return self.view.get_positions(self.symbol)

    def state(self) -> Dict[str, Any]:
        return self.view.get_unit_state(self.symbol)

    def mint(self, to: str, amount: int, reference: str) -> Move:
        return Move(amount, self.symbol, SYSTEM_WALLET, to,
                    pool_contract_id(self.pool_id, f"{reference}:mint"))

    def burn(self, holder: str, amount: int, reference: str) -> Move:
        return Move(amount, self.symbol, holder, SYSTEM_WALLET,
                    pool_contract_id(self.pool_id, f"{reference}:burn"))

    def transfer(self, source: str, dest: str, amount: int, reference: str) -> Move:
        return Move(amount, self.symbol, source, dest,
                    pool_contract_id(self.pool_id, f"{reference}:transfer"))
