"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the ledger
runtime, the escrow engine, the authenticated caller, database sessions,
and configuration.

Mutating routes go through ``CommittedCall``: the engine call, the write to
the database, and the commit happen under one application-wide lock, so
concurrent requests reach the database in the order they committed in
memory.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from arbitrated_escrow.config import Settings
from arbitrated_escrow.domain.models import normalize_address
from arbitrated_escrow.infrastructure.database.engine import get_async_session
from arbitrated_escrow.infrastructure.database.repositories import EscrowStateRepository
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime
from arbitrated_escrow.logging_config import get_logger
from arbitrated_escrow.services.escrow_engine import EscrowEngine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

logger = get_logger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_runtime(request: Request) -> InMemoryLedgerRuntime:
    """Provide the ledger runtime created at startup."""
    return request.app.state.runtime


def get_engine(request: Request) -> EscrowEngine:
    """Provide the escrow engine created at startup."""
    return request.app.state.engine


def get_call_lock(request: Request) -> asyncio.Lock:
    """Provide the lock that serializes state changes across requests."""
    return request.app.state.call_lock


def get_caller(
    x_caller_address: str = Header(..., alias="X-Caller-Address", min_length=1),
) -> str:
    """Provide the address the call is made as, in canonical form."""
    return normalize_address(x_caller_address)


def get_app_settings(request: Request) -> Settings:
    """Provide the application settings."""
    return request.app.state.settings


class CommittedCall:
    """Run one engine operation and write the result through to the database.

    The call either commits in memory and in the database, or in neither:
    if saving or committing fails, the runtime is rolled back to the
    checkpoint taken before the call and the error propagates.
    """

    def __init__(
        self,
        engine: EscrowEngine,
        runtime: InMemoryLedgerRuntime,
        lock: asyncio.Lock,
        session: AsyncSession,
    ) -> None:
        self.engine = engine
        self.runtime = runtime
        self.lock = lock
        self.session = session

    async def __call__(
        self,
        caller: str,
        operation: Callable[..., Any],
        *args: Any,
        value: int = 0,
    ) -> Any:
        async with self.lock:
            checkpoint = self.runtime.checkpoint()
            result = self.runtime.call(caller, operation, *args, value=value)
            try:
                await EscrowStateRepository(self.session).save(
                    self.engine.export_state(),
                    owner=self.engine.owner,
                    custody=self.runtime.custody,
                )
                await self.session.commit()
            except Exception as exc:
                await self.session.rollback()
                self.runtime.rollback(checkpoint)
                logger.error(
                    "escrow.persist_failed",
                    caller=caller,
                    operation=getattr(operation, "__name__", repr(operation)),
                    error=str(exc),
                )
                raise
            return result


def get_committed_call(
    engine: EscrowEngine = Depends(get_engine),
    runtime: InMemoryLedgerRuntime = Depends(get_runtime),
    lock: asyncio.Lock = Depends(get_call_lock),
    session: AsyncSession = Depends(get_db_session),
) -> CommittedCall:
    """Provide a CommittedCall bound to the request's database session."""
    return CommittedCall(engine, runtime, lock, session)
