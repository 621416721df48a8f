"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing registry lookups
and transfer rules without requiring a full Ledger instance.
"""

from __future__ import annotations
from datetime import datetime
from typing import Dict, Set, Optional, Any

from tranche_pool import UnitNotRegistered
from tranche_pool.core import Unit


# Type aliases (matching core.py)
Positions = Dict[str, int]
UnitState = Dict[str, Any]


class FakeView:
    """
    Minimal LedgerView implementation for testing pure functions.

    Example:
        view = FakeView(
            balances={'alice': {'USDC': 1000, 'SNR': 10}},
            units={'SNR': create_tranche_share_unit(...)},
            time=datetime(2025, 1, 1)
        )

        positions = view.get_positions('SNR')
        # Returns: {'alice': 10}
    """

    def __init__(
        self,
        balances: Dict[str, Dict[str, int]],
        units: Optional[Dict[str, Unit]] = None,
        time: Optional[datetime] = None,
        supplies: Optional[Dict[str, int]] = None,
    ):
        self._balances = balances
        self._units = units or {}
        self._time = time or datetime(2025, 1, 1)
        self._supplies = supplies or {}

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_balance(self, wallet: str, unit: str) -> int:
        return self._balances.get(wallet, {}).get(unit, 0)

    def get_unit_state(self, unit: str) -> UnitState:
        return self.get_unit(unit).state

    def get_positions(self, unit: str) -> Positions:
        return {
            w: b[unit]
            for w, b in self._balances.items()
            if unit in b and b[unit] != 0
        }

    def total_supply(self, unit: str) -> int:
        if unit in self._supplies:
            return self._supplies[unit]
        return sum(self.get_positions(unit).values())

    def list_wallets(self) -> Set[str]:
        return set(self._balances.keys())

    def get_unit(self, symbol: str) -> Unit:
        if symbol not in self._units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self._units[symbol]
