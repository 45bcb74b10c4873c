"""Withdrawal Ledger: per-address pending balances for pull payments.

Crediting records that funds are owed; nothing leaves custody until the
owed address calls ``withdraw_funds`` itself. ``debit`` reads and zeroes a
balance in one step so the zero is in place before any outbound transfer.
"""

from __future__ import annotations

from collections import defaultdict


class WithdrawalLedger:
    """Mapping of address -> pending balance."""

    def __init__(self, balances: dict[str, int] | None = None) -> None:
        self._balances: defaultdict[str, int] = defaultdict(int, balances or {})

    def credit(self, address: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Cannot credit a negative amount: {amount}")
        self._balances[address] += amount

    def debit(self, address: str) -> int:
        """Zero the pending balance of ``address`` and return the prior value."""
        amount = self._balances.get(address, 0)
        if amount:
            self._balances[address] = 0
        return amount

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def total_pending(self) -> int:
        return sum(self._balances.values())

    def items(self) -> list[tuple[str, int]]:
        """Return (address, balance) pairs, including zeroed entries."""
        return sorted(self._balances.items())
