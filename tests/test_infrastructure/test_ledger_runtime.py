"""Tests for the in-process ledger runtime."""

from __future__ import annotations

import pytest

from arbitrated_escrow.domain.exceptions import InsufficientFundsError, InvalidAmountError
from arbitrated_escrow.domain.runtime_protocol import LedgerRuntime
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime

ALICE = "0x" + "a" * 40
BOB = "0x" + "b" * 40


class Counter:
    """Minimal stateful program for rollback checks."""

    def __init__(self, runtime: InMemoryLedgerRuntime) -> None:
        self.value = 0
        runtime.attach(self)

    def snapshot(self) -> int:
        return self.value

    def restore(self, snapshot: int) -> None:
        self.value = snapshot


@pytest.fixture
def ledger() -> InMemoryLedgerRuntime:
    runtime = InMemoryLedgerRuntime(clock=lambda: 500)
    runtime.mint(ALICE, 100)
    return runtime


class TestWallets:
    def test_satisfies_protocol(self, ledger) -> None:
        assert isinstance(ledger, LedgerRuntime)

    def test_mint(self, ledger) -> None:
        assert ledger.balance_of(ALICE) == 100
        assert ledger.balance_of(BOB) == 0

    @pytest.mark.parametrize("amount", [0, -5])
    def test_mint_requires_positive(self, ledger, amount: int) -> None:
        with pytest.raises(InvalidAmountError):
            ledger.mint(BOB, amount)

    def test_custody_cannot_go_negative(self, ledger) -> None:
        with pytest.raises(ValueError):
            ledger.custody = -1

    def test_addresses_ignore_case(self, ledger) -> None:
        ledger.mint(ALICE.upper(), 5)
        assert ledger.balance_of(ALICE) == 105
        assert ledger.call(ALICE.upper(), lambda: ledger.context.caller) == ALICE


class TestCall:
    def test_context_inside_call_only(self, ledger) -> None:
        seen = ledger.call(ALICE, lambda: ledger.context, value=10)
        assert seen.caller == ALICE
        assert seen.value == 10
        assert seen.timestamp == 500
        assert ledger.context is None

    def test_value_moves_into_custody(self, ledger) -> None:
        ledger.call(ALICE, lambda: None, value=40)
        assert ledger.balance_of(ALICE) == 60
        assert ledger.custody == 40

    def test_insufficient_funds(self, ledger) -> None:
        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger.call(ALICE, lambda: None, value=101)
        assert exc_info.value.available == 100
        assert ledger.balance_of(ALICE) == 100
        assert ledger.custody == 0

    def test_negative_value_rejected(self, ledger) -> None:
        with pytest.raises(InvalidAmountError):
            ledger.call(ALICE, lambda: None, value=-1)

    def test_failed_call_rolls_back(self, ledger) -> None:
        counter = Counter(ledger)

        def bump_then_fail() -> None:
            counter.value += 1
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            ledger.call(ALICE, bump_then_fail, value=30)
        assert counter.value == 0
        assert ledger.balance_of(ALICE) == 100
        assert ledger.custody == 0

    def test_successful_call_commits(self, ledger) -> None:
        counter = Counter(ledger)

        def bump() -> int:
            counter.value += 1
            return counter.value

        assert ledger.call(ALICE, bump) == 1
        assert counter.value == 1

    def test_call_passes_arguments(self, ledger) -> None:
        assert ledger.call(BOB, lambda a, b=0: a + b, 2, b=3) == 5


class TestCheckpoint:
    def test_rollback_discards_committed_calls(self, ledger) -> None:
        counter = Counter(ledger)
        checkpoint = ledger.checkpoint()

        def bump() -> None:
            counter.value += 1

        ledger.call(ALICE, bump, value=30)
        ledger.call(ALICE, bump, value=20)
        assert counter.value == 2
        assert ledger.custody == 50

        ledger.rollback(checkpoint)
        assert counter.value == 0
        assert ledger.custody == 0
        assert ledger.balance_of(ALICE) == 100

    def test_checkpoint_is_detached(self, ledger) -> None:
        checkpoint = ledger.checkpoint()
        ledger.mint(BOB, 7)
        ledger.rollback(checkpoint)
        assert ledger.balance_of(BOB) == 0


class TestClock:
    def test_never_goes_backwards(self) -> None:
        readings = iter([100, 50, 200])
        runtime = InMemoryLedgerRuntime(clock=lambda: next(readings))
        assert [runtime.now(), runtime.now(), runtime.now()] == [100, 100, 200]


class TestTransfer:
    def test_plain_transfer(self, ledger) -> None:
        assert ledger.call(ALICE, lambda: ledger.transfer(BOB, 25), value=25) is True
        assert ledger.balance_of(BOB) == 25
        assert ledger.custody == 0

    def test_cannot_exceed_custody(self, ledger) -> None:
        with pytest.raises(InsufficientFundsError):
            ledger.call(ALICE, lambda: ledger.transfer(BOB, 26), value=25)
        assert ledger.balance_of(ALICE) == 100

    def test_non_positive_amount(self, ledger) -> None:
        with pytest.raises(InvalidAmountError):
            ledger.transfer(BOB, 0)

    def test_rejected_transfer_is_undone(self, ledger) -> None:
        counter = Counter(ledger)

        def hook(amount: int) -> bool:
            counter.value = 99
            return False

        ledger.register_receiver(BOB, hook)
        assert ledger.call(ALICE, lambda: ledger.transfer(BOB, 10), value=10) is False
        assert ledger.balance_of(BOB) == 0
        assert ledger.custody == 10
        assert counter.value == 0

    def test_hook_returning_none_accepts(self, ledger) -> None:
        ledger.register_receiver(BOB, lambda amount: None)
        assert ledger.call(ALICE, lambda: ledger.transfer(BOB, 10), value=10) is True
        assert ledger.balance_of(BOB) == 10
