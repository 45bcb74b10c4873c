"""Domain layer: pure business types with zero framework dependencies."""

from arbitrated_escrow.domain.enums import EventType, TransactionState
from arbitrated_escrow.domain.exceptions import (
    ConfigOutOfBoundsError,
    EscrowError,
    InvalidAmountError,
    InvalidPartyError,
    InvalidStateError,
    NothingToWithdrawError,
    OwnershipNotTransferableError,
    TransactionNotFoundError,
    UnauthorizedError,
)
from arbitrated_escrow.domain.models import (
    UNIT,
    ZERO_ADDRESS,
    EscrowConfig,
    Transaction,
    is_null_address,
    normalize_address,
)
from arbitrated_escrow.domain.ownership import (
    OwnershipPolicy,
    SingleOwner,
    TransferableOwnership,
)
from arbitrated_escrow.domain.runtime_protocol import CallContext, LedgerRuntime
from arbitrated_escrow.domain.state_machine import (
    TransactionStateMachine,
    validate_transition,
)

__all__ = [
    "EventType",
    "TransactionState",
    "EscrowError",
    "ConfigOutOfBoundsError",
    "InvalidAmountError",
    "InvalidPartyError",
    "InvalidStateError",
    "NothingToWithdrawError",
    "OwnershipNotTransferableError",
    "TransactionNotFoundError",
    "UnauthorizedError",
    "UNIT",
    "ZERO_ADDRESS",
    "EscrowConfig",
    "Transaction",
    "is_null_address",
    "normalize_address",
    "OwnershipPolicy",
    "SingleOwner",
    "TransferableOwnership",
    "CallContext",
    "LedgerRuntime",
    "TransactionStateMachine",
    "validate_transition",
]
