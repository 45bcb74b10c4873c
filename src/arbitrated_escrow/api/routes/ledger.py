"""Simulated ledger routes: wallet balances and a development faucet.

Routes:
    POST   /api/v1/ledger/faucet               Mint value into a wallet (if enabled)
    GET    /api/v1/ledger/accounts/{address}   Wallet balance and pending withdrawal
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from arbitrated_escrow.api.deps import get_app_settings, get_call_lock, get_engine, get_runtime
from arbitrated_escrow.config import Settings
from arbitrated_escrow.domain.models import normalize_address
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime
from arbitrated_escrow.logging_config import get_logger
from arbitrated_escrow.schemas.escrow import AccountResponse, FaucetRequest
from arbitrated_escrow.services.escrow_engine import EscrowEngine

router = APIRouter(prefix="/api/v1/ledger", tags=["Ledger"])
logger = get_logger(__name__)


def _account(address: str, engine: EscrowEngine, runtime: InMemoryLedgerRuntime) -> AccountResponse:
    address = normalize_address(address)
    return AccountResponse(
        address=address,
        balance=runtime.balance_of(address),
        pending=engine.get_pending_withdrawal(address),
    )


@router.post("/faucet", response_model=AccountResponse, summary="Mint simulated value")
async def faucet(
    request: FaucetRequest,
    settings: Settings = Depends(get_app_settings),
    engine: EscrowEngine = Depends(get_engine),
    runtime: InMemoryLedgerRuntime = Depends(get_runtime),
    lock: asyncio.Lock = Depends(get_call_lock),
) -> AccountResponse:
    if not settings.faucet_enabled:
        raise HTTPException(status_code=404, detail="Faucet is disabled")
    async with lock:
        runtime.mint(request.address, request.amount)
    logger.info(
        "ledger.faucet", address=normalize_address(request.address), amount=request.amount
    )
    return _account(request.address, engine, runtime)


@router.get(
    "/accounts/{address}",
    response_model=AccountResponse,
    summary="Get wallet balance and pending withdrawal",
)
async def get_account(
    address: str,
    engine: EscrowEngine = Depends(get_engine),
    runtime: InMemoryLedgerRuntime = Depends(get_runtime),
) -> AccountResponse:
    return _account(address, engine, runtime)
