"""
Liquidity-unit balance tracking.

Units are scoped per pool_id and are tracked separately from token balances.
Synthetics hold units here too: a synthetic's collateral is exactly its
unit balance in the backing pool.
"""

from __future__ import annotations

from typing import Dict, Tuple

from .balances import Account, Amount

# Type alias
PoolId = str

# Holder of the permanently locked genesis units.
LOCKED_UNITS_HOLDER = "0x" + "00" * 19 + "dead"


class LPTable:
    """
    Deterministic unit balance table mapping (holder, pool_id) -> units.

    Notes:
    - Unit balances are always non-negative.
    - Zero balances are omitted to keep the table sparse.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Account, PoolId], Amount] = {}

    def get(self, holder: Account, pool_id: PoolId) -> Amount:
        """Get unit balance for (holder, pool_id). Returns 0 if not found."""
        return self._balances.get((holder, pool_id), 0)

    def set(self, holder: Account, pool_id: PoolId, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Unit balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop((holder, pool_id), None)
        else:
            self._balances[(holder, pool_id)] = amount

    def add(self, holder: Account, pool_id: PoolId, delta: int) -> None:
        """Add delta to a unit balance (delta may be negative)."""
        current = self.get(holder, pool_id)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient unit balance: {current} + {delta} = {new_balance} < 0"
            )
        self.set(holder, pool_id, new_balance)

    def subtract(self, holder: Account, pool_id: PoolId, delta: Amount) -> None:
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        self.add(holder, pool_id, -delta)

    def total_for_pool(self, pool_id: PoolId) -> Amount:
        """Sum of all holder balances in ``pool_id``."""
        return sum(amount for (_, pid), amount in self._balances.items() if pid == pool_id)

    def get_all_balances(self) -> Dict[Tuple[Account, PoolId], Amount]:
        return dict(self._balances)

    def copy(self) -> "LPTable":
        copied = LPTable()
        copied._balances = dict(self._balances)
        return copied

    def restore(self, saved: "LPTable") -> None:
        self._balances = dict(saved._balances)

    def __repr__(self) -> str:
        return f"LPTable({len(self._balances)} entries)"
