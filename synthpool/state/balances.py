"""
Multi-token balance ledger with deterministic ordering.

Implements BalanceTable[Account, TokenId] -> Amount plus per-token supply.

The engine never custodies tokens itself: it realizes the deltas it computes
through ``transfer_in`` / ``transfer_out`` (account <-> pool custody) and
``mint_supply`` / ``burn_supply`` (synthetic tokens). This in-memory table is
the reference implementation of that collaborator.
"""

from __future__ import annotations

from typing import Dict, Protocol, Tuple


# Type aliases
Account = str
TokenId = str  # 32-byte hex string (0x...)
Amount = int  # Non-negative integer, 1e18-scaled

# The base asset paired in every pool.
BASE_ASSET = "0x" + "00" * 32


class BalanceLedger(Protocol):
    def transfer_in(self, account: Account, token: TokenId, amount: Amount) -> None: ...

    def transfer_out(self, account: Account, token: TokenId, amount: Amount) -> None: ...

    def mint_supply(self, token: TokenId, account: Account, amount: Amount) -> None: ...

    def burn_supply(self, token: TokenId, account: Account, amount: Amount) -> None: ...


class BalanceTable:
    """
    Deterministic balance table mapping (account, token) -> amount.

    Note: this class stores balances in a plain dict. Do not rely on dict
    iteration order; callers sort keys explicitly at serialization
    boundaries.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Account, TokenId], Amount] = {}
        self._supply: Dict[TokenId, Amount] = {}

    def get(self, account: Account, token: TokenId) -> Amount:
        """Get balance for (account, token). Returns 0 if not found."""
        return self._balances.get((account, token), 0)

    def set(self, account: Account, token: TokenId, amount: Amount) -> None:
        """
        Set balance for (account, token).

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            # Remove zero balances to keep table sparse
            self._balances.pop((account, token), None)
        else:
            self._balances[(account, token)] = amount

    def add(self, account: Account, token: TokenId, delta: int) -> None:
        """
        Add delta to balance (delta can be negative).

        Raises:
            ValueError: If resulting balance would be negative
        """
        current = self.get(account, token)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient balance: {current} + {delta} = {new_balance} < 0"
            )
        self.set(account, token, new_balance)

    def subtract(self, account: Account, token: TokenId, delta: Amount) -> None:
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        self.add(account, token, -delta)

    # -- collaborator interface --------------------------------------------

    def transfer_in(self, account: Account, token: TokenId, amount: Amount) -> None:
        """Move ``amount`` from ``account`` into pool custody."""
        self.subtract(account, token, amount)

    def transfer_out(self, account: Account, token: TokenId, amount: Amount) -> None:
        """Pay ``amount`` out of pool custody to ``account``."""
        if amount < 0:
            raise ValueError(f"Transfer amount must be non-negative: {amount}")
        self.add(account, token, amount)

    def mint_supply(self, token: TokenId, account: Account, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Mint amount must be non-negative: {amount}")
        self.add(account, token, amount)
        self._supply[token] = self._supply.get(token, 0) + amount

    def burn_supply(self, token: TokenId, account: Account, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Burn amount must be non-negative: {amount}")
        self.subtract(account, token, amount)
        self._supply[token] = self._supply.get(token, 0) - amount

    def total_supply(self, token: TokenId) -> Amount:
        """Supply issued through ``mint_supply`` minus ``burn_supply``."""
        return self._supply.get(token, 0)

    def restore_supply(self, token: TokenId, amount: Amount) -> None:
        """Set a token's recorded supply directly (snapshot loading only)."""
        if amount < 0:
            raise ValueError(f"Supply cannot be negative: {amount}")
        self._supply[token] = amount

    # -- inspection / rollback -----------------------------------------------

    def get_all_balances(self) -> Dict[Tuple[Account, TokenId], Amount]:
        return dict(self._balances)

    def get_balances_for_token(self, token: TokenId) -> Dict[Account, Amount]:
        result = {}
        for (acct, t), amount in self._balances.items():
            if t == token:
                result[acct] = amount
        return result

    def copy(self) -> "BalanceTable":
        copied = BalanceTable()
        copied._balances = dict(self._balances)
        copied._supply = dict(self._supply)
        return copied

    def restore(self, saved: "BalanceTable") -> None:
        """Overwrite this table in place with the contents of ``saved``."""
        self._balances = dict(saved._balances)
        self._supply = dict(saved._supply)

    def verify_non_negative(self) -> bool:
        return all(amount >= 0 for amount in self._balances.values())

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
