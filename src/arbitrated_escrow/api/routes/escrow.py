"""Escrow transaction REST API routes.

Every mutating endpoint runs its engine operation through the ledger
runtime as the caller named in the X-Caller-Address header and writes the
committed state through to the database before the next request may call.

Routes:
    POST   /api/v1/escrow/transactions                Open a transaction (caller = buyer)
    GET    /api/v1/escrow/transactions/count          Number of transactions
    GET    /api/v1/escrow/transactions/{id}           Transaction record
    GET    /api/v1/escrow/transactions/{id}/status    State and allowed actions
    GET    /api/v1/escrow/transactions/{id}/events    Events for one transaction
    POST   /api/v1/escrow/transactions/{id}/deposit   Buyer deposits payment
    POST   /api/v1/escrow/transactions/{id}/confirm   Buyer confirms delivery
    POST   /api/v1/escrow/transactions/{id}/dispute   Buyer or seller disputes
    POST   /api/v1/escrow/transactions/{id}/resolve   Arbitrator resolves
    POST   /api/v1/escrow/withdrawals                 Pull the caller's pending balance
    GET    /api/v1/escrow/withdrawals/{address}       Pending balance of an address
    GET    /api/v1/escrow/config                      Arbitrator, fee rate, fees, count
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from arbitrated_escrow.api.deps import (
    CommittedCall,
    get_caller,
    get_committed_call,
    get_engine,
)
from arbitrated_escrow.domain.models import Transaction, normalize_address
from arbitrated_escrow.logging_config import get_logger
from arbitrated_escrow.schemas.escrow import (
    CreateTransactionRequest,
    DepositPaymentRequest,
    EscrowConfigResponse,
    EscrowEventResponse,
    PendingWithdrawalResponse,
    ResolveDisputeRequest,
    TransactionCountResponse,
    TransactionResponse,
    TransactionStatusResponse,
    WithdrawalResponse,
)
from arbitrated_escrow.services.escrow_engine import EscrowEngine

router = APIRouter(prefix="/api/v1/escrow", tags=["Escrow"])
logger = get_logger(__name__)


def _to_response(record: Transaction) -> TransactionResponse:
    return TransactionResponse(**record.to_dict())


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "/transactions",
    response_model=TransactionResponse,
    status_code=201,
    summary="Open a new escrow transaction",
)
async def create_transaction(
    request: CreateTransactionRequest,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> TransactionResponse:
    """Create a transaction in AWAITING_PAYMENT with the caller as buyer."""
    transaction_id = await committed(caller, engine.create_transaction, request.seller)
    return _to_response(engine.get_transaction(transaction_id))


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/transactions/count",
    response_model=TransactionCountResponse,
    summary="Count transactions",
)
async def get_transaction_count(
    engine: EscrowEngine = Depends(get_engine),
) -> TransactionCountResponse:
    return TransactionCountResponse(count=engine.get_transaction_count())


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction details",
)
async def get_transaction(
    transaction_id: int,
    engine: EscrowEngine = Depends(get_engine),
) -> TransactionResponse:
    return _to_response(engine.get_transaction(transaction_id))


@router.get(
    "/transactions/{transaction_id}/status",
    response_model=TransactionStatusResponse,
    summary="Get lightweight status check",
)
async def get_status(
    transaction_id: int,
    engine: EscrowEngine = Depends(get_engine),
) -> TransactionStatusResponse:
    """Return the current state and the transitions that may fire next."""
    record = engine.get_transaction(transaction_id)
    return TransactionStatusResponse(
        transaction_id=record.id,
        state=record.state.value,
        allowed_actions=engine.allowed_actions(transaction_id),
    )


@router.get(
    "/transactions/{transaction_id}/events",
    response_model=list[EscrowEventResponse],
    summary="Get events for a transaction",
)
async def get_events(
    transaction_id: int,
    engine: EscrowEngine = Depends(get_engine),
) -> list[EscrowEventResponse]:
    return [EscrowEventResponse(**e.to_dict()) for e in engine.get_events(transaction_id)]


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------


@router.post(
    "/transactions/{transaction_id}/deposit",
    response_model=TransactionResponse,
    summary="Deposit payment",
)
async def deposit_payment(
    transaction_id: int,
    request: DepositPaymentRequest,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> TransactionResponse:
    """Buyer attaches value. Transitions AWAITING_PAYMENT -> AWAITING_DELIVERY."""
    record = await committed(
        caller, engine.deposit_payment, transaction_id, value=request.value
    )
    return _to_response(record)


@router.post(
    "/transactions/{transaction_id}/confirm",
    response_model=TransactionResponse,
    summary="Confirm delivery",
)
async def confirm_delivery(
    transaction_id: int,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> TransactionResponse:
    """Buyer confirms. Transitions AWAITING_DELIVERY -> COMPLETE."""
    record = await committed(caller, engine.confirm_delivery, transaction_id)
    return _to_response(record)


@router.post(
    "/transactions/{transaction_id}/dispute",
    response_model=TransactionResponse,
    summary="Raise a dispute",
)
async def initiate_dispute(
    transaction_id: int,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> TransactionResponse:
    """Buyer or seller disputes. Transitions AWAITING_DELIVERY -> DISPUTED."""
    record = await committed(caller, engine.initiate_dispute, transaction_id)
    return _to_response(record)


@router.post(
    "/transactions/{transaction_id}/resolve",
    response_model=TransactionResponse,
    summary="Resolve a dispute",
)
async def resolve_dispute(
    transaction_id: int,
    request: ResolveDisputeRequest,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> TransactionResponse:
    """Arbitrator rules. Transitions DISPUTED -> COMPLETE or REFUNDED."""
    record = await committed(
        caller, engine.resolve_dispute, transaction_id, request.release_to_seller
    )
    return _to_response(record)


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@router.post(
    "/withdrawals",
    response_model=WithdrawalResponse,
    summary="Withdraw the caller's pending balance",
)
async def withdraw_funds(
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> WithdrawalResponse:
    """Pay out the caller's pending balance; a rejected payout stays pending."""

    def withdraw() -> WithdrawalResponse:
        amount = engine.get_pending_withdrawal(caller)
        success = engine.withdraw_funds()
        return WithdrawalResponse(
            address=caller,
            amount=amount,
            success=success,
            pending=engine.get_pending_withdrawal(caller),
        )

    return await committed(caller, withdraw)


@router.get(
    "/withdrawals/{address}",
    response_model=PendingWithdrawalResponse,
    summary="Get an address's pending balance",
)
async def get_pending_withdrawal(
    address: str,
    engine: EscrowEngine = Depends(get_engine),
) -> PendingWithdrawalResponse:
    address = normalize_address(address)
    return PendingWithdrawalResponse(
        address=address, pending=engine.get_pending_withdrawal(address)
    )


# ---------------------------------------------------------------------------
# Configuration (read-only)
# ---------------------------------------------------------------------------


@router.get(
    "/config",
    response_model=EscrowConfigResponse,
    summary="Get program configuration and totals",
)
async def get_config(
    engine: EscrowEngine = Depends(get_engine),
) -> EscrowConfigResponse:
    return EscrowConfigResponse(
        owner=engine.owner,
        arbitrator=engine.arbitrator,
        fee_rate_bps=engine.fee_rate,
        collected_fees=engine.collected_fees,
        transaction_count=engine.get_transaction_count(),
    )
