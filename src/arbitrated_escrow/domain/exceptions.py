"""Domain exceptions for the escrow program.

Every exception here represents a rejected call: the ledger runtime rolls
back all mutations made during that call before the error reaches the
caller. The API layer's middleware translates them to HTTP responses.
"""

from __future__ import annotations


class EscrowError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Access Control ---


class UnauthorizedError(EscrowError):
    """Raised when the caller does not hold the role an operation requires."""

    def __init__(self, caller: str | None, required_role: str) -> None:
        super().__init__(
            message=f"Caller {caller} is not authorized: requires {required_role}",
            code="UNAUTHORIZED",
        )
        self.caller = caller
        self.required_role = required_role


# --- Transaction Errors ---


class TransactionNotFoundError(EscrowError):
    """Raised when a transaction ID has never been assigned."""

    def __init__(self, transaction_id: int) -> None:
        super().__init__(
            message=f"Transaction not found: {transaction_id}",
            code="TRANSACTION_NOT_FOUND",
        )
        self.transaction_id = transaction_id


class InvalidStateError(EscrowError):
    """Raised when an operation is not valid for the transaction's current state.

    Example: depositing twice (AWAITING_DELIVERY -> deposit).
    """

    def __init__(self, current_state: str, attempted_action: str) -> None:
        super().__init__(
            message=f"Invalid state for {attempted_action}: transaction is {current_state}",
            code="INVALID_STATE",
        )
        self.current_state = current_state
        self.attempted_action = attempted_action


class InvalidPartyError(EscrowError):
    """Raised when a counterparty address is null or equals the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="INVALID_PARTY")


class InvalidAmountError(EscrowError):
    """Raised when a value is zero or out of range."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="INVALID_AMOUNT")


# --- Configuration Errors ---


class ConfigOutOfBoundsError(EscrowError):
    """Raised when a configuration change falls outside its allowed bounds."""

    def __init__(self, setting: str, value: object) -> None:
        super().__init__(
            message=f"Configuration value out of bounds: {setting}={value!r}",
            code="CONFIG_OUT_OF_BOUNDS",
        )
        self.setting = setting
        self.value = value


class OwnershipNotTransferableError(EscrowError):
    """Raised when the ownership policy has no way to hand over the capability."""

    def __init__(self, policy: str) -> None:
        super().__init__(
            message=f"Ownership cannot be transferred under {policy}",
            code="OWNERSHIP_NOT_TRANSFERABLE",
        )
        self.policy = policy


# --- Withdrawal Errors ---


class NothingToWithdrawError(EscrowError):
    """Raised when a withdrawal finds a zero balance."""

    def __init__(self, account: str | None, what: str = "pending balance") -> None:
        super().__init__(
            message=f"Nothing to withdraw: {what} of {account} is zero",
            code="NOTHING_TO_WITHDRAW",
        )
        self.account = account


# --- Runtime Errors ---


class ReentrantCallError(EscrowError):
    """Raised when a mutating operation is entered while another is running."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            message=f"Reentrant call rejected: {operation}",
            code="REENTRANT_CALL",
        )
        self.operation = operation


class InsufficientFundsError(EscrowError):
    """Raised when a caller attaches more value than their wallet holds."""

    def __init__(self, account: str, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient funds: {account} requires {required}, available {available}",
            code="INSUFFICIENT_FUNDS",
        )
        self.account = account
        self.required = required
        self.available = available


class NoActiveCallError(EscrowError):
    """Raised when the engine is invoked outside a ledger runtime call."""

    def __init__(self) -> None:
        super().__init__(
            message="No active call context: invoke operations through the ledger runtime",
            code="NO_ACTIVE_CALL",
        )
