"""Tests for pull-payment withdrawals.

Covers the plain round trip, recipients that reject payment, recipients that
try to re-enter the engine mid-payout, and custody accounting throughout.
"""

from __future__ import annotations

import pytest
from conftest import ARBITRATOR, BUYER, OWNER, SELLER, is_solvent

from arbitrated_escrow.domain.enums import EventType
from arbitrated_escrow.domain.exceptions import NothingToWithdrawError, ReentrantCallError
from arbitrated_escrow.domain.models import UNIT

NET = 975 * 10**15


@pytest.fixture
def completed_tx(runtime, engine, funded_tx) -> int:
    runtime.call(BUYER, engine.confirm_delivery, funded_tx)
    return funded_tx


class TestWithdrawFunds:
    def test_round_trip(self, runtime, engine, completed_tx) -> None:
        assert runtime.call(SELLER, engine.withdraw_funds) is True
        assert runtime.balance_of(SELLER) == NET
        assert engine.get_pending_withdrawal(SELLER) == 0
        assert runtime.custody == engine.collected_fees
        assert is_solvent(runtime, engine)

        last = engine.get_events()[-1]
        assert last.event_type == EventType.PAYMENT_RELEASED
        assert last.data == {"recipient": SELLER, "amount": NET}

    def test_nothing_to_withdraw(self, runtime, engine) -> None:
        with pytest.raises(NothingToWithdrawError):
            runtime.call(SELLER, engine.withdraw_funds)

    def test_second_withdrawal_has_nothing(self, runtime, engine, completed_tx) -> None:
        runtime.call(SELLER, engine.withdraw_funds)
        with pytest.raises(NothingToWithdrawError):
            runtime.call(SELLER, engine.withdraw_funds)
        assert runtime.balance_of(SELLER) == NET

    def test_refunded_buyer_recovers_deposit(self, runtime, engine, disputed_tx) -> None:
        runtime.call(ARBITRATOR, engine.resolve_dispute, disputed_tx, False)
        runtime.call(BUYER, engine.withdraw_funds)
        assert runtime.balance_of(BUYER) == 10 * UNIT
        assert runtime.custody == 0

    def test_end_to_end_fee_sweep(self, runtime, engine, completed_tx) -> None:
        runtime.call(SELLER, engine.withdraw_funds)
        runtime.call(OWNER, engine.withdraw_fees)
        runtime.call(OWNER, engine.withdraw_funds)
        assert runtime.balance_of(SELLER) == NET
        assert runtime.balance_of(OWNER) == UNIT - NET
        assert runtime.balance_of(BUYER) == 9 * UNIT
        assert runtime.custody == 0


class TestRejectingRecipient:
    def test_rejection_keeps_balance_pending(self, runtime, engine, completed_tx) -> None:
        runtime.register_receiver(SELLER, lambda amount: False)

        assert runtime.call(SELLER, engine.withdraw_funds) is False
        assert engine.get_pending_withdrawal(SELLER) == NET
        assert runtime.balance_of(SELLER) == 0
        assert is_solvent(runtime, engine)

        failed = engine.get_events()[-1]
        assert failed.event_type == EventType.WITHDRAWAL_FAILED
        assert failed.data["amount"] == NET

    def test_retry_after_rejection(self, runtime, engine, completed_tx) -> None:
        runtime.register_receiver(SELLER, lambda amount: False)
        runtime.call(SELLER, engine.withdraw_funds)

        runtime.unregister_receiver(SELLER)
        assert runtime.call(SELLER, engine.withdraw_funds) is True
        assert runtime.balance_of(SELLER) == NET
        assert engine.get_pending_withdrawal(SELLER) == 0

    def test_raising_hook_counts_as_rejection(self, runtime, engine, completed_tx) -> None:
        def explode(amount: int) -> bool:
            raise RuntimeError("wallet offline")

        runtime.register_receiver(SELLER, explode)
        assert runtime.call(SELLER, engine.withdraw_funds) is False
        assert engine.get_pending_withdrawal(SELLER) == NET

    def test_accepting_hook_sees_amount(self, runtime, engine, completed_tx) -> None:
        received: list[int] = []
        runtime.register_receiver(SELLER, received.append)
        assert runtime.call(SELLER, engine.withdraw_funds) is True
        assert received == [NET]


class TestReentrancy:
    def test_nested_withdrawal_rejected(self, runtime, engine) -> None:
        for _ in range(3):
            tx_id = runtime.call(BUYER, engine.create_transaction, SELLER)
            runtime.call(BUYER, engine.deposit_payment, tx_id, value=UNIT)
            runtime.call(BUYER, engine.confirm_delivery, tx_id)
        owed = engine.get_pending_withdrawal(SELLER)
        errors: list[Exception] = []

        def reenter(amount: int) -> bool:
            try:
                runtime.call(SELLER, engine.withdraw_funds)
            except ReentrantCallError as exc:
                errors.append(exc)
            return True

        runtime.register_receiver(SELLER, reenter)
        assert runtime.call(SELLER, engine.withdraw_funds) is True

        assert len(errors) == 1
        assert runtime.balance_of(SELLER) == owed
        assert engine.get_pending_withdrawal(SELLER) == 0
        assert is_solvent(runtime, engine)

    def test_unhandled_reentry_fails_the_payout(self, runtime, engine, completed_tx) -> None:
        runtime.register_receiver(
            SELLER, lambda amount: runtime.call(SELLER, engine.withdraw_funds)
        )
        assert runtime.call(SELLER, engine.withdraw_funds) is False
        assert engine.get_pending_withdrawal(SELLER) == NET
        assert runtime.balance_of(SELLER) == 0
        assert engine.get_events()[-1].event_type == EventType.WITHDRAWAL_FAILED

    def test_reentry_into_other_operations_rejected(self, runtime, engine, completed_tx) -> None:
        attempts: list[type] = []

        def reenter(amount: int) -> bool:
            try:
                runtime.call(SELLER, engine.create_transaction, BUYER)
            except ReentrantCallError as exc:
                attempts.append(type(exc))
            return True

        runtime.register_receiver(SELLER, reenter)
        runtime.call(SELLER, engine.withdraw_funds)
        assert attempts == [ReentrantCallError]
        assert engine.get_transaction_count() == 1

    def test_engine_usable_after_reentry(self, runtime, engine, completed_tx) -> None:
        runtime.register_receiver(
            SELLER, lambda amount: runtime.call(SELLER, engine.withdraw_funds)
        )
        runtime.call(SELLER, engine.withdraw_funds)
        runtime.unregister_receiver(SELLER)

        tx_id = runtime.call(BUYER, engine.create_transaction, SELLER)
        assert tx_id == 1
