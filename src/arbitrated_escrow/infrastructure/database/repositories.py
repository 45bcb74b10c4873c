"""Repository for persisted escrow state.

The engine keeps its state in memory; after every committed call the API
layer hands a detached copy of it to ``EscrowStateRepository.save``, and on
startup ``load`` rebuilds it. The repository accepts an AsyncSession and
never manages its own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from arbitrated_escrow.domain.enums import EventType, TransactionState
from arbitrated_escrow.domain.models import EscrowConfig, Transaction
from arbitrated_escrow.infrastructure.database.orm_models import (
    EscrowEventRecord,
    EscrowGlobals,
    EscrowTransactionRecord,
    PendingWithdrawal,
)
from arbitrated_escrow.services.escrow_engine import EscrowState
from arbitrated_escrow.services.event_log import EscrowEvent, EventLog
from arbitrated_escrow.services.transaction_store import TransactionStore
from arbitrated_escrow.services.withdrawal_ledger import WithdrawalLedger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

GLOBALS_ROW_ID = 1


@dataclass(frozen=True)
class PersistedEscrow:
    """Everything needed to bring an engine and its custody back."""

    state: EscrowState
    owner: str | None
    custody: int


class EscrowStateRepository:
    """Data access for the escrow program's persisted layout."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, state: EscrowState, owner: str | None, custody: int) -> None:
        """Write the given state: upsert tables, append unseen events."""
        await self._session.merge(
            EscrowGlobals(
                id=GLOBALS_ROW_ID,
                owner=owner,
                arbitrator=state.config.arbitrator,
                fee_rate_bps=state.config.fee_rate_bps,
                collected_fees=state.collected_fees,
                transaction_counter=state.transactions.count(),
                custodied_value=custody,
            )
        )

        for record in state.transactions:
            await self._session.merge(_transaction_to_row(record))

        for address, amount in state.withdrawals.items():
            await self._session.merge(PendingWithdrawal(address=address, amount=amount))

        stored = await self.event_count()
        for evt in state.events.all()[stored:]:
            self._session.add(_event_to_row(evt))

        await self._session.flush()

    async def load(self) -> PersistedEscrow | None:
        """Rebuild the engine state, or return None if nothing was saved yet."""
        globals_row = await self._session.get(EscrowGlobals, GLOBALS_ROW_ID)
        if globals_row is None:
            return None

        transactions = await self._session.execute(
            select(EscrowTransactionRecord).order_by(EscrowTransactionRecord.id.asc())
        )
        pending = await self._session.execute(select(PendingWithdrawal))
        events = await self._session.execute(
            select(EscrowEventRecord).order_by(EscrowEventRecord.sequence.asc())
        )

        state = EscrowState(
            config=EscrowConfig(
                arbitrator=globals_row.arbitrator,
                fee_rate_bps=globals_row.fee_rate_bps,
            ),
            transactions=TransactionStore(
                [_row_to_transaction(row) for row in transactions.scalars().all()]
            ),
            withdrawals=WithdrawalLedger(
                {row.address: row.amount for row in pending.scalars().all()}
            ),
            events=EventLog([_row_to_event(row) for row in events.scalars().all()]),
            collected_fees=globals_row.collected_fees,
        )
        return PersistedEscrow(
            state=state,
            owner=globals_row.owner,
            custody=globals_row.custodied_value,
        )

    async def event_count(self) -> int:
        result = await self._session.execute(select(func.count(EscrowEventRecord.sequence)))
        return int(result.scalar_one())


# ---------------------------------------------------------------------------
# Row <-> domain conversion
# ---------------------------------------------------------------------------


def _transaction_to_row(record: Transaction) -> EscrowTransactionRecord:
    return EscrowTransactionRecord(
        id=record.id,
        buyer=record.buyer,
        seller=record.seller,
        amount=record.amount,
        state=record.state.value,
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


def _row_to_transaction(row: EscrowTransactionRecord) -> Transaction:
    return Transaction(
        id=row.id,
        buyer=row.buyer,
        seller=row.seller,
        amount=row.amount,
        state=TransactionState(row.state),
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _event_to_row(evt: EscrowEvent) -> EscrowEventRecord:
    return EscrowEventRecord(
        sequence=evt.sequence,
        event_type=evt.event_type.value,
        transaction_id=evt.transaction_id,
        actor=evt.actor,
        metadata_json=evt.data or None,
        created_at=evt.timestamp,
    )


def _row_to_event(row: EscrowEventRecord) -> EscrowEvent:
    return EscrowEvent(
        sequence=row.sequence,
        event_type=EventType(row.event_type),
        actor=row.actor,
        transaction_id=row.transaction_id,
        data=row.metadata_json or {},
        timestamp=row.created_at,
    )
