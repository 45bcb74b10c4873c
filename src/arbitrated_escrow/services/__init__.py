"""Application services: the escrow program and its building blocks."""

from arbitrated_escrow.services.escrow_engine import EscrowEngine, EscrowState
from arbitrated_escrow.services.event_log import EscrowEvent, EventLog
from arbitrated_escrow.services.fee_policy import (
    BPS_DENOMINATOR,
    MAX_FEE_RATE_BPS,
    compute_fee,
)
from arbitrated_escrow.services.transaction_store import TransactionStore
from arbitrated_escrow.services.withdrawal_ledger import WithdrawalLedger

__all__ = [
    "EscrowEngine",
    "EscrowState",
    "EscrowEvent",
    "EventLog",
    "BPS_DENOMINATOR",
    "MAX_FEE_RATE_BPS",
    "compute_fee",
    "TransactionStore",
    "WithdrawalLedger",
]
