"""FastAPI application entry point for the arbitrated escrow service.

Lifecycle:
    1. Startup: Initialize logging and the database, then either deploy a
       fresh escrow engine from settings or rebuild it from persisted state.
    2. Running: Serve the REST API on a single Uvicorn process. All engine
       calls go through one in-process ledger runtime, one at a time, and
       each is committed to the database before the next one starts.
    3. Shutdown: Dispose of the database engine.

Run with:
    uv run uvicorn arbitrated_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from arbitrated_escrow import __version__
from arbitrated_escrow.config import Settings, get_settings
from arbitrated_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings: Settings = app.state.settings

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    # 2. Initialize database
    from arbitrated_escrow.infrastructure.database.engine import (
        _get_session_factory,
        close_db,
        init_db,
    )
    from arbitrated_escrow.infrastructure.database.repositories import EscrowStateRepository

    await init_db(settings)

    # 3. Bring up the runtime and the escrow engine
    from arbitrated_escrow.domain.ownership import SingleOwner
    from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime
    from arbitrated_escrow.services.escrow_engine import EscrowEngine

    runtime = InMemoryLedgerRuntime()
    async with _get_session_factory()() as session:
        persisted = await EscrowStateRepository(session).load()

    if persisted is None:
        engine = EscrowEngine.deploy(
            runtime,
            owner=settings.escrow_owner_address,
            arbitrator=settings.escrow_arbitrator_address,
            fee_rate_bps=settings.escrow_fee_rate_bps,
        )
    else:
        runtime.custody = persisted.custody
        engine = EscrowEngine(
            runtime,
            SingleOwner(persisted.owner or settings.escrow_owner_address),
            persisted.state,
        )
        logger.info(
            "app.escrow_restored",
            transactions=engine.get_transaction_count(),
            custody=persisted.custody,
        )

    app.state.runtime = runtime
    app.state.engine = engine
    # Serializes call, save and commit across concurrent requests
    app.state.call_lock = asyncio.Lock()

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    logger.info("app.stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory: creates and configures the FastAPI app."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Arbitrated Escrow",
        description=(
            "Two-party escrow with a single arbitrator, pull-payment "
            "withdrawals, and an owner-configurable protocol fee."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings

    # --- Middleware ---
    from arbitrated_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from arbitrated_escrow.api.routes.admin import router as admin_router
    from arbitrated_escrow.api.routes.escrow import router as escrow_router
    from arbitrated_escrow.api.routes.health import router as health_router
    from arbitrated_escrow.api.routes.ledger import router as ledger_router

    app.include_router(health_router)
    app.include_router(escrow_router)
    app.include_router(admin_router)
    app.include_router(ledger_router)

    return app


# The app instance used by Uvicorn
app = create_app()
