"""Owner-gated configuration routes.

Routes:
    POST   /api/v1/admin/arbitrator      Replace the arbitrator
    POST   /api/v1/admin/fee-rate        Replace the fee rate (0-1000 bps)
    POST   /api/v1/admin/fees/withdraw   Move collected fees to the owner's pending balance
    POST   /api/v1/admin/owner           Hand the owner capability to another address
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from arbitrated_escrow.api.deps import (
    CommittedCall,
    get_caller,
    get_committed_call,
    get_engine,
)
from arbitrated_escrow.schemas.escrow import (
    ChangeArbitratorRequest,
    ChangeFeeRateRequest,
    EscrowConfigResponse,
    FeesWithdrawnResponse,
    TransferOwnershipRequest,
)
from arbitrated_escrow.services.escrow_engine import EscrowEngine

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _config_response(engine: EscrowEngine) -> EscrowConfigResponse:
    return EscrowConfigResponse(
        owner=engine.owner,
        arbitrator=engine.arbitrator,
        fee_rate_bps=engine.fee_rate,
        collected_fees=engine.collected_fees,
        transaction_count=engine.get_transaction_count(),
    )


@router.post("/arbitrator", response_model=EscrowConfigResponse, summary="Change arbitrator")
async def change_arbitrator(
    request: ChangeArbitratorRequest,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> EscrowConfigResponse:
    await committed(caller, engine.change_arbitrator, request.arbitrator)
    return _config_response(engine)


@router.post("/fee-rate", response_model=EscrowConfigResponse, summary="Change fee rate")
async def change_fee_rate(
    request: ChangeFeeRateRequest,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> EscrowConfigResponse:
    await committed(caller, engine.change_fee_rate, request.fee_rate_bps)
    return _config_response(engine)


@router.post(
    "/fees/withdraw",
    response_model=FeesWithdrawnResponse,
    summary="Withdraw collected fees",
)
async def withdraw_fees(
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> FeesWithdrawnResponse:
    """Credit collected fees to the owner; pull them with POST /escrow/withdrawals."""
    amount = await committed(caller, engine.withdraw_fees)
    return FeesWithdrawnResponse(amount=amount, pending=engine.get_pending_withdrawal(caller))


@router.post("/owner", response_model=EscrowConfigResponse, summary="Transfer ownership")
async def transfer_ownership(
    request: TransferOwnershipRequest,
    caller: str = Depends(get_caller),
    engine: EscrowEngine = Depends(get_engine),
    committed: CommittedCall = Depends(get_committed_call),
) -> EscrowConfigResponse:
    await committed(caller, engine.transfer_ownership, request.new_owner)
    return _config_response(engine)
