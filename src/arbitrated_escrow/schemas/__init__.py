"""Pydantic API schemas."""

from arbitrated_escrow.schemas.escrow import (
    AccountResponse,
    ChangeArbitratorRequest,
    ChangeFeeRateRequest,
    CreateTransactionRequest,
    DepositPaymentRequest,
    EscrowConfigResponse,
    EscrowEventResponse,
    FaucetRequest,
    FeesWithdrawnResponse,
    HealthResponse,
    PendingWithdrawalResponse,
    ResolveDisputeRequest,
    TransactionCountResponse,
    TransactionResponse,
    TransactionStatusResponse,
    TransferOwnershipRequest,
    WithdrawalResponse,
)

__all__ = [
    "AccountResponse",
    "ChangeArbitratorRequest",
    "ChangeFeeRateRequest",
    "CreateTransactionRequest",
    "DepositPaymentRequest",
    "EscrowConfigResponse",
    "EscrowEventResponse",
    "FaucetRequest",
    "FeesWithdrawnResponse",
    "HealthResponse",
    "PendingWithdrawalResponse",
    "ResolveDisputeRequest",
    "TransactionCountResponse",
    "TransactionResponse",
    "TransactionStatusResponse",
    "TransferOwnershipRequest",
    "WithdrawalResponse",
]
