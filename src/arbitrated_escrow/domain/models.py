"""Core value objects: addresses, transaction records, and configuration.

Records are frozen dataclasses. The TransactionStore replaces a record
wholesale on every legal transition, so a reference handed out by a read
accessor can never be mutated behind the store's back.
"""

from __future__ import annotations

from dataclasses import dataclass

from arbitrated_escrow.domain.enums import TransactionState

ZERO_ADDRESS = "0x" + "0" * 40

# 1.0 unit of value, expressed in indivisible base units.
UNIT = 10**18


def normalize_address(address: str | None) -> str | None:
    """Return the canonical form of an address: stripped and lowercased.

    Hex addresses are case-insensitive, so every identity comparison is made
    on this form. None passes through unchanged.
    """
    if address is None:
        return None
    return address.strip().lower()


def is_null_address(address: str | None) -> bool:
    """Return True for None, the empty string, or the all-zero address."""
    canonical = normalize_address(address)
    return not canonical or canonical == ZERO_ADDRESS


@dataclass(frozen=True)
class Transaction:
    """A single buyer-seller-amount escrow record.

    Attributes:
        id: Dense, zero-based identifier assigned at creation.
        buyer: Address that created (and pays into) the transaction.
        seller: Counterparty receiving the net amount on completion.
        amount: Deposited value; zero until payment is deposited.
        state: Current lifecycle state.
        created_at: Runtime timestamp at creation.
        completed_at: Runtime timestamp of the terminal transition, else zero.
    """

    id: int
    buyer: str
    seller: str
    amount: int = 0
    state: TransactionState = TransactionState.AWAITING_PAYMENT
    created_at: int = 0
    completed_at: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def is_party(self, address: str | None) -> bool:
        return address is not None and normalize_address(address) in (
            normalize_address(self.buyer),
            normalize_address(self.seller),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyer": self.buyer,
            "seller": self.seller,
            "amount": self.amount,
            "state": self.state.value,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }


@dataclass
class EscrowConfig:
    """Process-wide configuration, writable only through owner-gated operations."""

    arbitrator: str
    fee_rate_bps: int = 0

    def __post_init__(self) -> None:
        self.arbitrator = normalize_address(self.arbitrator)
