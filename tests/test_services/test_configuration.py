"""Tests for deployment and the owner-gated configuration surface."""

from __future__ import annotations

import pytest
from conftest import ARBITRATOR, BUYER, OWNER, SELLER, STRANGER, is_solvent

from arbitrated_escrow.domain.enums import EventType
from arbitrated_escrow.domain.exceptions import (
    ConfigOutOfBoundsError,
    InvalidPartyError,
    NothingToWithdrawError,
    OwnershipNotTransferableError,
    UnauthorizedError,
)
from arbitrated_escrow.domain.models import UNIT, ZERO_ADDRESS
from arbitrated_escrow.domain.ownership import SingleOwner
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime
from arbitrated_escrow.services.escrow_engine import EscrowEngine

FEE = 25 * 10**15


class TestDeploy:
    def test_initial_configuration(self, engine) -> None:
        assert engine.owner == OWNER
        assert engine.arbitrator == ARBITRATOR
        assert engine.fee_rate == 250
        assert engine.collected_fees == 0
        assert engine.get_transaction_count() == 0

    def test_null_arbitrator_rejected(self) -> None:
        with pytest.raises(ConfigOutOfBoundsError):
            EscrowEngine.deploy(InMemoryLedgerRuntime(), owner=OWNER, arbitrator=ZERO_ADDRESS)

    @pytest.mark.parametrize("fee_rate_bps", [-1, 1_001, True, False])
    def test_fee_rate_out_of_bounds(self, fee_rate_bps: int) -> None:
        with pytest.raises(ConfigOutOfBoundsError):
            EscrowEngine.deploy(
                InMemoryLedgerRuntime(),
                owner=OWNER,
                arbitrator=ARBITRATOR,
                fee_rate_bps=fee_rate_bps,
            )

    def test_null_owner_rejected(self) -> None:
        with pytest.raises(InvalidPartyError):
            EscrowEngine.deploy(InMemoryLedgerRuntime(), owner="", arbitrator=ARBITRATOR)

    def test_accepts_ownership_policy(self) -> None:
        engine = EscrowEngine.deploy(
            InMemoryLedgerRuntime(), owner=SingleOwner(STRANGER), arbitrator=ARBITRATOR
        )
        assert engine.is_owner(STRANGER)


class TestChangeFeeRate:
    def test_owner_sets_upper_bound(self, runtime, engine) -> None:
        runtime.call(OWNER, engine.change_fee_rate, 1_000)
        assert engine.fee_rate == 1_000
        event = engine.get_events()[-1]
        assert event.event_type == EventType.FEE_RATE_CHANGED
        assert event.data == {"old": 250, "new": 1_000}

    def test_zero_rate_allowed(self, runtime, engine) -> None:
        runtime.call(OWNER, engine.change_fee_rate, 0)
        assert engine.fee_rate == 0

    @pytest.mark.parametrize("fee_rate_bps", [1_001, -1, 10_000])
    def test_out_of_bounds_rejected(self, runtime, engine, fee_rate_bps: int) -> None:
        with pytest.raises(ConfigOutOfBoundsError):
            runtime.call(OWNER, engine.change_fee_rate, fee_rate_bps)
        assert engine.fee_rate == 250

    def test_non_integer_rejected(self, runtime, engine) -> None:
        with pytest.raises(ConfigOutOfBoundsError):
            runtime.call(OWNER, engine.change_fee_rate, 2.5)

    @pytest.mark.parametrize("fee_rate_bps", [True, False])
    def test_boolean_rejected(self, runtime, engine, fee_rate_bps: bool) -> None:
        with pytest.raises(ConfigOutOfBoundsError):
            runtime.call(OWNER, engine.change_fee_rate, fee_rate_bps)
        assert engine.fee_rate == 250
        assert type(engine.fee_rate) is int

    def test_owner_in_other_case(self, runtime, engine) -> None:
        runtime.call(OWNER.upper(), engine.change_fee_rate, 100)
        assert engine.fee_rate == 100

    @pytest.mark.parametrize("caller", [ARBITRATOR, BUYER, STRANGER])
    def test_non_owner_rejected(self, runtime, engine, caller: str) -> None:
        with pytest.raises(UnauthorizedError):
            runtime.call(caller, engine.change_fee_rate, 0)
        assert engine.fee_rate == 250


class TestChangeArbitrator:
    def test_new_arbitrator_takes_over(self, runtime, engine, disputed_tx) -> None:
        runtime.call(OWNER, engine.change_arbitrator, STRANGER)
        assert engine.arbitrator == STRANGER

        with pytest.raises(UnauthorizedError):
            runtime.call(ARBITRATOR, engine.resolve_dispute, disputed_tx, True)
        runtime.call(STRANGER, engine.resolve_dispute, disputed_tx, True)
        assert engine.get_pending_withdrawal(SELLER) == UNIT - FEE

    def test_null_arbitrator_rejected(self, runtime, engine) -> None:
        with pytest.raises(ConfigOutOfBoundsError):
            runtime.call(OWNER, engine.change_arbitrator, ZERO_ADDRESS)
        assert engine.arbitrator == ARBITRATOR

    def test_arbitrator_cannot_replace_itself(self, runtime, engine) -> None:
        with pytest.raises(UnauthorizedError):
            runtime.call(ARBITRATOR, engine.change_arbitrator, STRANGER)

    def test_arbitrator_stored_in_canonical_form(self, runtime, engine, disputed_tx) -> None:
        runtime.call(OWNER, engine.change_arbitrator, STRANGER.upper())
        assert engine.arbitrator == STRANGER
        runtime.call(STRANGER, engine.resolve_dispute, disputed_tx, False)


class TestWithdrawFees:
    def test_fees_move_to_owner_pending(self, runtime, engine, funded_tx) -> None:
        runtime.call(BUYER, engine.confirm_delivery, funded_tx)

        assert runtime.call(OWNER, engine.withdraw_fees) == FEE
        assert engine.collected_fees == 0
        assert engine.get_pending_withdrawal(OWNER) == FEE
        assert is_solvent(runtime, engine)

        runtime.call(OWNER, engine.withdraw_funds)
        assert runtime.balance_of(OWNER) == FEE

    def test_no_fees_collected(self, runtime, engine) -> None:
        with pytest.raises(NothingToWithdrawError):
            runtime.call(OWNER, engine.withdraw_fees)

    def test_non_owner_rejected(self, runtime, engine, funded_tx) -> None:
        runtime.call(BUYER, engine.confirm_delivery, funded_tx)
        with pytest.raises(UnauthorizedError):
            runtime.call(SELLER, engine.withdraw_fees)
        assert engine.collected_fees == FEE


class TestTransferOwnership:
    def test_new_owner_gains_capability(self, runtime, engine) -> None:
        runtime.call(OWNER, engine.transfer_ownership, STRANGER)
        assert engine.owner == STRANGER

        runtime.call(STRANGER, engine.change_fee_rate, 100)
        with pytest.raises(UnauthorizedError):
            runtime.call(OWNER, engine.change_fee_rate, 200)
        assert engine.fee_rate == 100

    def test_non_owner_cannot_transfer(self, runtime, engine) -> None:
        with pytest.raises(UnauthorizedError):
            runtime.call(STRANGER, engine.transfer_ownership, STRANGER)
        assert engine.owner == OWNER

    def test_transfer_rolls_back_with_call(self, runtime, engine) -> None:
        with pytest.raises(InvalidPartyError):
            runtime.call(OWNER, engine.transfer_ownership, ZERO_ADDRESS)
        assert engine.owner == OWNER

    def test_new_owner_stored_in_canonical_form(self, runtime, engine) -> None:
        runtime.call(OWNER, engine.transfer_ownership, STRANGER.upper())
        assert engine.owner == STRANGER
        assert engine.is_owner(STRANGER.upper())

    def test_policy_without_transfer(self, runtime) -> None:
        class FixedOwner:
            def is_owner(self, caller: str | None) -> bool:
                return caller == OWNER

        engine = EscrowEngine.deploy(runtime, owner=FixedOwner(), arbitrator=ARBITRATOR)
        with pytest.raises(OwnershipNotTransferableError) as exc_info:
            runtime.call(OWNER, engine.transfer_ownership, STRANGER)
        assert exc_info.value.code == "OWNERSHIP_NOT_TRANSFERABLE"
        assert engine.is_owner(OWNER)
        assert not engine.is_owner(STRANGER)
