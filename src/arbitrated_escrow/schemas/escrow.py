"""Pydantic schemas for the Escrow API.

These schemas define the request/response shapes for the REST API. They are
separate from the domain records and ORM rows to keep clean boundaries
between the API, engine, and database layers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateTransactionRequest(BaseModel):
    """Request body for opening a transaction. The caller becomes the buyer."""

    seller: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Address of the seller (must differ from the caller)",
        examples=["0x742d35Cc6634C0532925a3b844Bc9e7595f2bD18"],
    )


class DepositPaymentRequest(BaseModel):
    """Request body for depositing payment into a transaction."""

    value: int = Field(
        ...,
        ge=0,
        description="Value attached to the call, in base units",
        examples=[10**18],
    )


class ResolveDisputeRequest(BaseModel):
    """Request body for the arbitrator's ruling."""

    release_to_seller: bool = Field(
        ...,
        description="True completes the sale for the seller; False refunds the buyer",
    )


class ChangeArbitratorRequest(BaseModel):
    arbitrator: str = Field(..., max_length=64)


class ChangeFeeRateRequest(BaseModel):
    fee_rate_bps: int = Field(
        ...,
        strict=True,
        description="New fee rate in basis points (0-1000)",
        examples=[250],
    )


class TransferOwnershipRequest(BaseModel):
    new_owner: str = Field(..., max_length=64)


class FaucetRequest(BaseModel):
    """Request body for minting simulated value into a wallet."""

    address: str = Field(..., min_length=1, max_length=64)
    amount: int = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class TransactionResponse(BaseModel):
    """Response schema for an escrow transaction."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    buyer: str
    seller: str
    amount: int
    state: str
    created_at: int
    completed_at: int


class TransactionStatusResponse(BaseModel):
    """Lightweight status check response."""

    transaction_id: int
    state: str
    allowed_actions: list[str] = Field(
        description="State machine events that can fire from the current state"
    )


class TransactionCountResponse(BaseModel):
    count: int


class EscrowEventResponse(BaseModel):
    """Response schema for an emitted event."""

    model_config = ConfigDict(from_attributes=True)

    sequence: int
    event_type: str
    actor: str
    transaction_id: int | None
    data: dict
    timestamp: int


class WithdrawalResponse(BaseModel):
    """Outcome of a withdrawal attempt.

    ``success`` is False when the recipient rejected the payout; the amount
    stays pending and can be withdrawn later.
    """

    address: str
    amount: int
    success: bool
    pending: int


class PendingWithdrawalResponse(BaseModel):
    address: str
    pending: int


class FeesWithdrawnResponse(BaseModel):
    amount: int
    pending: int


class EscrowConfigResponse(BaseModel):
    owner: str | None
    arbitrator: str
    fee_rate_bps: int
    collected_fees: int
    transaction_count: int


class AccountResponse(BaseModel):
    address: str
    balance: int
    pending: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    custody: int = 0
    solvent: bool = True
