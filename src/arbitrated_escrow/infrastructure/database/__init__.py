"""Database infrastructure: engine, ORM models, and the state repository."""

from arbitrated_escrow.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
)
from arbitrated_escrow.infrastructure.database.orm_models import (
    Base,
    EscrowEventRecord,
    EscrowGlobals,
    EscrowTransactionRecord,
    PendingWithdrawal,
)
from arbitrated_escrow.infrastructure.database.repositories import (
    EscrowStateRepository,
    PersistedEscrow,
)

__all__ = [
    "Base",
    "EscrowEventRecord",
    "EscrowGlobals",
    "EscrowTransactionRecord",
    "PendingWithdrawal",
    "EscrowStateRepository",
    "PersistedEscrow",
    "get_async_session",
    "init_db",
    "close_db",
]
