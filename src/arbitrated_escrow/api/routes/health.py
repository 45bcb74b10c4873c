"""Health check endpoint.

Verifies database connectivity and the custody invariant: everything the
program holds is either locked in an open transaction or owed to someone.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text

from arbitrated_escrow import __version__
from arbitrated_escrow.api.deps import get_engine, get_runtime
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime
from arbitrated_escrow.logging_config import get_logger
from arbitrated_escrow.schemas.escrow import HealthResponse
from arbitrated_escrow.services.escrow_engine import EscrowEngine

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its custody invariant.",
)
async def health_check(
    engine: EscrowEngine = Depends(get_engine),
    runtime: InMemoryLedgerRuntime = Depends(get_runtime),
) -> HealthResponse:
    db_status = "unknown"
    try:
        from arbitrated_escrow.infrastructure.database.engine import _get_engine

        async with _get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    solvent = runtime.custody == engine.escrowed_balance() + engine.total_liabilities()
    if not solvent:
        logger.error(
            "health.custody_mismatch",
            custody=runtime.custody,
            escrowed=engine.escrowed_balance(),
            liabilities=engine.total_liabilities(),
        )

    overall = "ok" if db_status == "healthy" and solvent else "degraded"
    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        custody=runtime.custody,
        solvent=solvent,
    )
