"""Escrow Engine: every public escrow operation as a guarded transition.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - TransactionStore (transaction records)
    - WithdrawalLedger (pull-payment balances)
    - EventLog (observable events)
    - The ledger runtime (caller, attached value, clock, outbound transfers)

Each operation runs checks first, then effects, and only then the single
permitted interaction (the outbound transfer inside ``withdraw_funds``).
A rejected call raises an EscrowError; the runtime discards every mutation
made during that call.

Fee rate note: completion uses the fee rate in force when the transaction
completes, not the rate at deposit time. An owner changing the rate affects
transactions already in flight.
"""

from __future__ import annotations

import functools
from copy import deepcopy
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from statemachine.exceptions import TransitionNotAllowed

from arbitrated_escrow.domain.enums import EventType, TransactionState
from arbitrated_escrow.domain.exceptions import (
    ConfigOutOfBoundsError,
    InvalidAmountError,
    InvalidPartyError,
    InvalidStateError,
    NoActiveCallError,
    NothingToWithdrawError,
    OwnershipNotTransferableError,
    ReentrantCallError,
    UnauthorizedError,
)
from arbitrated_escrow.domain.models import (
    EscrowConfig,
    Transaction,
    is_null_address,
    normalize_address,
)
from arbitrated_escrow.domain.ownership import OwnershipPolicy, SingleOwner, TransferableOwnership
from arbitrated_escrow.domain.state_machine import TransactionStateMachine
from arbitrated_escrow.logging_config import get_logger
from arbitrated_escrow.services.event_log import EscrowEvent, EventLog
from arbitrated_escrow.services.fee_policy import compute_fee, is_valid_fee_rate
from arbitrated_escrow.services.transaction_store import TransactionStore
from arbitrated_escrow.services.withdrawal_ledger import WithdrawalLedger

if TYPE_CHECKING:
    from collections.abc import Callable

    from arbitrated_escrow.domain.runtime_protocol import CallContext, LedgerRuntime

logger = get_logger(__name__)


@dataclass
class EscrowState:
    """Everything the engine owns. Snapshotted and restored as one unit."""

    config: EscrowConfig
    transactions: TransactionStore = field(default_factory=TransactionStore)
    withdrawals: WithdrawalLedger = field(default_factory=WithdrawalLedger)
    events: EventLog = field(default_factory=EventLog)
    collected_fees: int = 0


def non_reentrant(method: Callable) -> Callable:
    """Reject a mutating operation entered while another one is running."""

    @functools.wraps(method)
    def wrapper(self: EscrowEngine, *args: Any, **kwargs: Any) -> Any:
        if self._entered:
            raise ReentrantCallError(method.__name__)
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


class EscrowEngine:
    """Two-party escrow with a single arbitrator and pull-payment payouts."""

    def __init__(
        self,
        runtime: LedgerRuntime,
        ownership: OwnershipPolicy,
        state: EscrowState,
    ) -> None:
        self._runtime = runtime
        self._ownership = ownership
        self._state = state
        self._entered = False
        runtime.attach(self)

    @classmethod
    def deploy(
        cls,
        runtime: LedgerRuntime,
        owner: str | OwnershipPolicy,
        arbitrator: str,
        fee_rate_bps: int = 0,
    ) -> EscrowEngine:
        """Create a fresh engine with empty tables and validated configuration."""
        if is_null_address(arbitrator):
            raise ConfigOutOfBoundsError("arbitrator", arbitrator)
        if not is_valid_fee_rate(fee_rate_bps):
            raise ConfigOutOfBoundsError("fee_rate_bps", fee_rate_bps)

        ownership = owner if isinstance(owner, OwnershipPolicy) else SingleOwner(owner)
        state = EscrowState(config=EscrowConfig(arbitrator=arbitrator, fee_rate_bps=fee_rate_bps))
        engine = cls(runtime, ownership, state)
        logger.info("escrow.deployed", arbitrator=state.config.arbitrator, fee_rate_bps=fee_rate_bps)
        return engine

    # ------------------------------------------------------------------
    # Transaction lifecycle
    # ------------------------------------------------------------------

    @non_reentrant
    def create_transaction(self, seller: str) -> int:
        """Open a transaction with the caller as buyer. Returns its ID."""
        ctx = self._context("create_transaction")
        if is_null_address(seller):
            raise InvalidPartyError("Seller must be a non-null address")
        seller = normalize_address(seller)
        if seller == ctx.caller:
            raise InvalidPartyError("Seller must differ from the buyer")

        transaction_id = self._state.transactions.create(
            buyer=ctx.caller, seller=seller, created_at=ctx.timestamp
        )
        self._emit(
            EventType.TRANSACTION_CREATED,
            ctx,
            transaction_id,
            buyer=ctx.caller,
            seller=seller,
        )
        return transaction_id

    @non_reentrant
    def deposit_payment(self, transaction_id: int) -> Transaction:
        """Lock the value attached to this call as the transaction amount."""
        ctx = self._context("deposit_payment", payable=True)
        record = self._state.transactions.get(transaction_id)
        self._require_buyer(record, ctx)
        self._fire_transition(record, "deposit")
        if ctx.value <= 0:
            raise InvalidAmountError("Deposit must attach a positive value")

        record = self._state.transactions.record_deposit(transaction_id, ctx.value)
        self._emit(EventType.PAYMENT_DEPOSITED, ctx, transaction_id, amount=ctx.value)
        return record

    @non_reentrant
    def confirm_delivery(self, transaction_id: int) -> Transaction:
        """Buyer accepts delivery: seller is credited net of the protocol fee."""
        ctx = self._context("confirm_delivery")
        record = self._state.transactions.get(transaction_id)
        self._require_buyer(record, ctx)
        self._fire_transition(record, "confirm")

        fee, net = self._complete(record, ctx)
        self._emit(
            EventType.DELIVERY_CONFIRMED,
            ctx,
            transaction_id,
            seller=record.seller,
            fee=fee,
            net=net,
        )
        return self._state.transactions.get(transaction_id)

    @non_reentrant
    def initiate_dispute(self, transaction_id: int) -> Transaction:
        """Either party freezes a funded transaction pending arbitration."""
        ctx = self._context("initiate_dispute")
        record = self._state.transactions.get(transaction_id)
        if not record.is_party(ctx.caller):
            raise UnauthorizedError(ctx.caller, "buyer or seller")
        self._fire_transition(record, "dispute")

        record = self._state.transactions.set_state(transaction_id, TransactionState.DISPUTED)
        self._emit(EventType.TRANSACTION_DISPUTED, ctx, transaction_id)
        return record

    @non_reentrant
    def resolve_dispute(self, transaction_id: int, release_to_seller: bool) -> Transaction:
        """Arbitrator rules: complete in the seller's favor or refund the buyer."""
        ctx = self._context("resolve_dispute")
        record = self._state.transactions.get(transaction_id)
        if ctx.caller != self._state.config.arbitrator:
            raise UnauthorizedError(ctx.caller, "arbitrator")

        if release_to_seller:
            self._fire_transition(record, "release_to_seller")
            fee, net = self._complete(record, ctx)
            self._emit(
                EventType.DISPUTE_RESOLVED,
                ctx,
                transaction_id,
                winner=record.seller,
                release_to_seller=True,
                fee=fee,
                net=net,
            )
        else:
            self._fire_transition(record, "refund_to_buyer")
            self._refund(record, ctx)
            self._emit(
                EventType.DISPUTE_RESOLVED,
                ctx,
                transaction_id,
                winner=record.buyer,
                release_to_seller=False,
            )
            self._emit(
                EventType.TRANSACTION_REFUNDED,
                ctx,
                transaction_id,
                buyer=record.buyer,
                amount=record.amount,
            )
        return self._state.transactions.get(transaction_id)

    # ------------------------------------------------------------------
    # Pull payments
    # ------------------------------------------------------------------

    @non_reentrant
    def withdraw_funds(self) -> bool:
        """Pay out the caller's pending balance.

        The balance is zeroed before the outbound transfer. If the recipient
        rejects the transfer, the balance is restored, a WITHDRAWAL_FAILED
        event is emitted, and False is returned; the call itself commits.
        """
        ctx = self._context("withdraw_funds")
        if self._state.withdrawals.balance_of(ctx.caller) == 0:
            raise NothingToWithdrawError(ctx.caller)

        amount = self._state.withdrawals.debit(ctx.caller)

        if not self._runtime.transfer(ctx.caller, amount):
            self._state.withdrawals.credit(ctx.caller, amount)
            self._emit(EventType.WITHDRAWAL_FAILED, ctx, recipient=ctx.caller, amount=amount)
            return False

        self._emit(EventType.PAYMENT_RELEASED, ctx, recipient=ctx.caller, amount=amount)
        return True

    # ------------------------------------------------------------------
    # Owner-gated configuration
    # ------------------------------------------------------------------

    @non_reentrant
    def change_arbitrator(self, new_arbitrator: str) -> None:
        ctx = self._context("change_arbitrator")
        self._require_owner(ctx)
        if is_null_address(new_arbitrator):
            raise ConfigOutOfBoundsError("arbitrator", new_arbitrator)
        new_arbitrator = normalize_address(new_arbitrator)

        old = self._state.config.arbitrator
        self._state.config.arbitrator = new_arbitrator
        self._emit(EventType.ARBITRATOR_CHANGED, ctx, old=old, new=new_arbitrator)

    @non_reentrant
    def change_fee_rate(self, new_fee_rate_bps: int) -> None:
        ctx = self._context("change_fee_rate")
        self._require_owner(ctx)
        if not is_valid_fee_rate(new_fee_rate_bps):
            raise ConfigOutOfBoundsError("fee_rate_bps", new_fee_rate_bps)

        old = self._state.config.fee_rate_bps
        self._state.config.fee_rate_bps = new_fee_rate_bps
        self._emit(EventType.FEE_RATE_CHANGED, ctx, old=old, new=new_fee_rate_bps)

    @non_reentrant
    def withdraw_fees(self) -> int:
        """Move all collected fees into the owner's pending balance."""
        ctx = self._context("withdraw_fees")
        self._require_owner(ctx)
        amount = self._state.collected_fees
        if amount == 0:
            raise NothingToWithdrawError(ctx.caller, what="collected fees")

        self._state.collected_fees = 0
        self._state.withdrawals.credit(ctx.caller, amount)
        self._emit(EventType.FEES_WITHDRAWN, ctx, recipient=ctx.caller, amount=amount)
        return amount

    @non_reentrant
    def transfer_ownership(self, new_owner: str) -> None:
        ctx = self._context("transfer_ownership")
        if not isinstance(self._ownership, TransferableOwnership):
            raise OwnershipNotTransferableError(type(self._ownership).__name__)
        self._ownership.transfer_ownership(ctx.caller, new_owner)
        logger.info(
            "escrow.ownership_transferred", old=ctx.caller, new=normalize_address(new_owner)
        )

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: int) -> Transaction:
        return self._state.transactions.get(transaction_id)

    def get_transaction_count(self) -> int:
        return self._state.transactions.count()

    def get_pending_withdrawal(self, address: str) -> int:
        return self._state.withdrawals.balance_of(normalize_address(address))

    @property
    def arbitrator(self) -> str:
        return self._state.config.arbitrator

    @property
    def fee_rate(self) -> int:
        return self._state.config.fee_rate_bps

    @property
    def collected_fees(self) -> int:
        return self._state.collected_fees

    @property
    def owner(self) -> str | None:
        return getattr(self._ownership, "owner", None)

    def is_owner(self, address: str | None) -> bool:
        return self._ownership.is_owner(address)

    def get_events(self, transaction_id: int | None = None) -> list[EscrowEvent]:
        if transaction_id is None:
            return self._state.events.all()
        self._state.transactions.get(transaction_id)
        return self._state.events.for_transaction(transaction_id)

    def allowed_actions(self, transaction_id: int) -> list[str]:
        """Return the transitions that may fire from the record's current state."""
        record = self._state.transactions.get(transaction_id)
        return TransactionStateMachine(current_state=record.state.value).get_allowed_events()

    def escrowed_balance(self) -> int:
        """Value locked in funded, not-yet-settled transactions."""
        return sum(
            t.amount
            for t in self._state.transactions
            if t.state in (TransactionState.AWAITING_DELIVERY, TransactionState.DISPUTED)
        )

    def total_liabilities(self) -> int:
        """Value owed but not yet paid out: pending balances plus collected fees."""
        return self._state.withdrawals.total_pending() + self._state.collected_fees

    # ------------------------------------------------------------------
    # Runtime hooks
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[EscrowState, OwnershipPolicy]:
        return deepcopy(self._state), deepcopy(self._ownership)

    def restore(self, snapshot: tuple[EscrowState, OwnershipPolicy]) -> None:
        self._state, self._ownership = snapshot

    def export_state(self) -> EscrowState:
        """Return a detached copy of the engine state for persistence."""
        return deepcopy(self._state)

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _complete(self, record: Transaction, ctx: CallContext) -> tuple[int, int]:
        fee, net = compute_fee(record.amount, self._state.config.fee_rate_bps)
        self._state.collected_fees += fee
        self._state.withdrawals.credit(record.seller, net)
        self._state.transactions.finalize(record.id, TransactionState.COMPLETE, ctx.timestamp)
        return fee, net

    def _refund(self, record: Transaction, ctx: CallContext) -> None:
        self._state.withdrawals.credit(record.buyer, record.amount)
        self._state.transactions.finalize(record.id, TransactionState.REFUNDED, ctx.timestamp)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _context(self, operation: str, payable: bool = False) -> CallContext:
        ctx = self._runtime.context
        if ctx is None:
            raise NoActiveCallError()
        if not payable and ctx.value:
            raise InvalidAmountError(f"{operation} does not accept attached value")
        return replace(ctx, caller=normalize_address(ctx.caller))

    def _require_buyer(self, record: Transaction, ctx: CallContext) -> None:
        if ctx.caller != record.buyer:
            raise UnauthorizedError(ctx.caller, "buyer")

    def _require_owner(self, ctx: CallContext) -> None:
        if not self._ownership.is_owner(ctx.caller):
            raise UnauthorizedError(ctx.caller, "owner")

    def _fire_transition(self, record: Transaction, event_name: str) -> None:
        """Validate a transition against the state machine.

        Raises InvalidStateError if the transition is illegal.
        """
        sm = TransactionStateMachine(current_state=record.state.value)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise InvalidStateError(record.state.value, event_name) from err

    def _emit(
        self,
        event_type: EventType,
        ctx: CallContext,
        transaction_id: int | None = None,
        **data: Any,
    ) -> EscrowEvent:
        event = self._state.events.append(
            event_type,
            actor=ctx.caller,
            transaction_id=transaction_id,
            data=data,
            timestamp=ctx.timestamp,
        )
        log = logger.warning if event_type is EventType.WITHDRAWAL_FAILED else logger.info
        log(
            f"escrow.{event_type.value.lower()}",
            transaction_id=transaction_id,
            actor=ctx.caller,
            **data,
        )
        return event
