"""Transaction Store: the authoritative table of escrow transactions.

IDs are dense, start at 0, and are never reused. Records are immutable
values; the mutators below are used only by the EscrowEngine, after the
state machine guard has approved the transition, and they refuse to touch a
record that has already reached a terminal state.
"""

from __future__ import annotations

from dataclasses import replace

from arbitrated_escrow.domain.enums import TransactionState
from arbitrated_escrow.domain.exceptions import (
    InvalidPartyError,
    InvalidStateError,
    TransactionNotFoundError,
)
from arbitrated_escrow.domain.models import Transaction, is_null_address, normalize_address


class TransactionStore:
    """Dense integer-keyed table of Transaction records."""

    def __init__(self, records: list[Transaction] | None = None) -> None:
        self._records: list[Transaction] = list(records or [])

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create(self, buyer: str, seller: str, created_at: int = 0) -> int:
        """Append a new AWAITING_PAYMENT record and return its ID."""
        if is_null_address(buyer):
            raise InvalidPartyError("Buyer must be a non-null address")
        if is_null_address(seller):
            raise InvalidPartyError("Seller must be a non-null address")
        buyer, seller = normalize_address(buyer), normalize_address(seller)
        if seller == buyer:
            raise InvalidPartyError("Seller must differ from buyer")

        transaction_id = len(self._records)
        self._records.append(
            Transaction(
                id=transaction_id,
                buyer=buyer,
                seller=seller,
                created_at=created_at,
            )
        )
        return transaction_id

    def get(self, transaction_id: int) -> Transaction:
        if not 0 <= transaction_id < len(self._records):
            raise TransactionNotFoundError(transaction_id)
        return self._records[transaction_id]

    def count(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    # ------------------------------------------------------------------
    # Engine-internal mutators
    # ------------------------------------------------------------------

    def record_deposit(self, transaction_id: int, amount: int) -> Transaction:
        """Set the amount and move the record to AWAITING_DELIVERY."""
        record = self._mutable(transaction_id, "deposit")
        if record.amount != 0:
            raise InvalidStateError(record.state, "deposit")
        return self._put(
            replace(record, amount=amount, state=TransactionState.AWAITING_DELIVERY)
        )

    def set_state(self, transaction_id: int, state: TransactionState) -> Transaction:
        """Move a record to a non-terminal state."""
        record = self._mutable(transaction_id, state.value)
        return self._put(replace(record, state=state))

    def finalize(
        self, transaction_id: int, state: TransactionState, completed_at: int
    ) -> Transaction:
        """Move a record to a terminal state and stamp its completion time."""
        if not state.is_terminal:
            raise ValueError(f"{state} is not a terminal state")
        record = self._mutable(transaction_id, state.value)
        return self._put(replace(record, state=state, completed_at=completed_at))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _mutable(self, transaction_id: int, action: str) -> Transaction:
        record = self.get(transaction_id)
        if record.is_terminal:
            raise InvalidStateError(record.state, action)
        return record

    def _put(self, record: Transaction) -> Transaction:
        self._records[record.id] = record
        return record
