"""Domain enumerations for the escrow program.

These enums define the canonical states and event types used throughout the
system. They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class TransactionState(enum.StrEnum):
    """Lifecycle states of an escrow transaction.

    State transitions are enforced by the TransactionStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    AWAITING_DELIVERY = "AWAITING_DELIVERY"
    DISPUTED = "DISPUTED"
    COMPLETE = "COMPLETE"
    REFUNDED = "REFUNDED"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.COMPLETE, TransactionState.REFUNDED)


class EventType(enum.StrEnum):
    """Observable events appended to the escrow event log.

    Each one fires exactly once per successful triggering call.
    """

    # Transaction lifecycle
    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    PAYMENT_DEPOSITED = "PAYMENT_DEPOSITED"
    DELIVERY_CONFIRMED = "DELIVERY_CONFIRMED"

    # Disputes
    TRANSACTION_DISPUTED = "TRANSACTION_DISPUTED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
    TRANSACTION_REFUNDED = "TRANSACTION_REFUNDED"

    # Configuration
    ARBITRATOR_CHANGED = "ARBITRATOR_CHANGED"
    FEE_RATE_CHANGED = "FEE_RATE_CHANGED"
    FEES_WITHDRAWN = "FEES_WITHDRAWN"

    # Payouts
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    WITHDRAWAL_FAILED = "WITHDRAWAL_FAILED"
