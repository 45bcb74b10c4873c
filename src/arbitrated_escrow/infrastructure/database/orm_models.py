"""SQLAlchemy 2.0 ORM models for persisted escrow state.

Four tables:
    1. escrow_globals        Single row of program-wide scalars.
    2. escrow_transactions   Transaction records keyed by dense integer ID.
    3. pending_withdrawals   Per-address pull-payment balances.
    4. escrow_events         Append-only log of emitted events.

Design decisions:
    - Integer primary keys for transactions and events, matching the
      engine's dense, zero-based numbering.
    - Amounts are unbounded Python ints, stored through the UInt256 type as
      decimal strings so no backend integer width can truncate them.
    - CHECK constraints mirror the engine's invariants at the DB level.
    - escrow_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    TypeDecorator,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UInt256(TypeDecorator):
    """Non-negative integer of arbitrary size, stored as a decimal string."""

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001, ANN201
        if value is None:
            return None
        if value < 0:
            raise ValueError(f"UInt256 cannot store a negative value: {value}")
        return str(int(value))

    def process_result_value(self, value, dialect):  # noqa: ANN001, ANN201
        return None if value is None else int(value)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# Helper: auto-set updated_at on flush
# ---------------------------------------------------------------------------
def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. escrow_globals
# ---------------------------------------------------------------------------
class EscrowGlobals(Base):
    """Program-wide scalars. Exactly one row, id = 1."""

    __tablename__ = "escrow_globals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    owner: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Address holding the owner capability",
    )
    arbitrator: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Address allowed to resolve disputes",
    )
    fee_rate_bps: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Protocol fee in basis points (10000 = 100%)",
    )
    collected_fees: Mapped[int] = mapped_column(
        UInt256,
        nullable=False,
        default=0,
        comment="Accrued, not yet withdrawn protocol fees",
    )
    transaction_counter: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Next transaction ID to assign",
    )
    custodied_value: Mapped[int] = mapped_column(
        UInt256,
        nullable=False,
        default=0,
        comment="Total value held by the program",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_globals_single_row"),
        CheckConstraint(
            "fee_rate_bps >= 0 AND fee_rate_bps <= 1000",
            name="ck_globals_fee_rate_bounds",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowGlobals arbitrator={self.arbitrator} fee_rate={self.fee_rate_bps} "
            f"transactions={self.transaction_counter}>"
        )


# ---------------------------------------------------------------------------
# 2. escrow_transactions
# ---------------------------------------------------------------------------
class EscrowTransactionRecord(Base):
    """One buyer-seller-amount escrow record."""

    __tablename__ = "escrow_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    # --- Participants ---
    buyer: Mapped[str] = mapped_column(String(64), nullable=False)
    seller: Mapped[str] = mapped_column(String(64), nullable=False)

    # --- Financials ---
    amount: Mapped[int] = mapped_column(
        UInt256,
        nullable=False,
        default=0,
        comment="Deposited value; zero until AWAITING_DELIVERY",
    )

    # --- Status (guarded by TransactionStateMachine) ---
    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="AWAITING_PAYMENT",
    )

    # --- Runtime timestamps ---
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    completed_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "state IN ('AWAITING_PAYMENT', 'AWAITING_DELIVERY', 'DISPUTED', "
            "'COMPLETE', 'REFUNDED')",
            name="ck_transaction_valid_state",
        ),
        CheckConstraint("buyer <> seller", name="ck_transaction_distinct_parties"),
        Index("idx_transaction_buyer", "buyer"),
        Index("idx_transaction_seller", "seller"),
        Index("idx_transaction_state", "state"),
    )

    def __repr__(self) -> str:
        return f"<EscrowTransactionRecord id={self.id} state={self.state} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 3. pending_withdrawals
# ---------------------------------------------------------------------------
class PendingWithdrawal(Base):
    """Value owed to an address and not yet pulled."""

    __tablename__ = "pending_withdrawals"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    amount: Mapped[int] = mapped_column(UInt256, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<PendingWithdrawal address={self.address} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 4. escrow_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class EscrowEventRecord(Base):
    """Immutable record of one emitted escrow event.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "escrow_events"

    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value (e.g., PAYMENT_DEPOSITED)",
    )
    transaction_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Transaction concerned (null for configuration and payout events)",
    )
    actor: Mapped[str] = mapped_column(String(64), nullable=False)
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        default=None,
    )
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        Index("idx_event_transaction", "transaction_id"),
        Index("idx_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return f"<EscrowEventRecord seq={self.sequence} type={self.event_type}>"


# ---------------------------------------------------------------------------
# Register the auto-update listener for updated_at
# ---------------------------------------------------------------------------
event.listen(EscrowGlobals, "before_update", _set_updated_at)
