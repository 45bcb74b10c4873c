#!/usr/bin/env python3
"""Arbitrated Escrow: End-to-End Simulation.

Drives the escrow engine through the in-process ledger runtime with a
handful of simulated wallets:

    Scenario 1: Happy Path
        - Buyer opens a transaction and deposits 1.0 unit
        - Buyer confirms delivery -> COMPLETE, seller credited net of fee
        - Seller withdraws, owner sweeps and withdraws the fee

    Scenario 2: Dispute and Refund
        - Buyer deposits, seller disputes
        - Arbitrator rules for the buyer -> REFUNDED
        - Buyer withdraws the full deposit

    Scenario 3: Rejecting Recipient
        - Seller's wallet rejects the first payout
        - The pending balance survives, WITHDRAWAL_FAILED is recorded
        - Seller stops rejecting and the retry succeeds

    Scenario 4: Reentrancy Attacker
        - Seller's receive hook tries to call withdraw_funds again mid-payout
        - The nested call is rejected and the seller is paid exactly once

Usage:
    uv run python simulation.py
    uv run python simulation.py --scenario 3
    uv run python simulation.py --persist     # also round-trip the final state through SQLite
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from arbitrated_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from arbitrated_escrow.domain.exceptions import EscrowError, ReentrantCallError  # noqa: E402
from arbitrated_escrow.domain.models import UNIT  # noqa: E402
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime  # noqa: E402
from arbitrated_escrow.services.escrow_engine import EscrowEngine  # noqa: E402

OWNER = "0x" + "0" * 39 + "1"
ARBITRATOR = "0x" + "a" * 40
BUYER = "0x" + "b" * 40
SELLER = "0x" + "5" * 40
FEE_RATE_BPS = 250


@dataclass
class Deployment:
    """A runtime with an engine deployed on it and a funded buyer."""

    runtime: InMemoryLedgerRuntime = field(default_factory=InMemoryLedgerRuntime)
    engine: EscrowEngine | None = None

    def __post_init__(self) -> None:
        self.engine = EscrowEngine.deploy(
            self.runtime,
            owner=OWNER,
            arbitrator=ARBITRATOR,
            fee_rate_bps=FEE_RATE_BPS,
        )
        self.runtime.mint(BUYER, 10 * UNIT)

    def open_funded(self, amount: int = UNIT) -> int:
        """Create a transaction from BUYER to SELLER and deposit ``amount``."""
        tx_id = self.runtime.call(BUYER, self.engine.create_transaction, SELLER)
        self.runtime.call(BUYER, self.engine.deposit_payment, tx_id, value=amount)
        return tx_id


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def units(amount: int) -> str:
    return f"{amount / UNIT:.6f}"


def print_balances(d: Deployment, *addresses: str) -> None:
    for address in addresses:
        print(
            f"  {address[:10]}…  wallet={units(d.runtime.balance_of(address))}"
            f"  pending={units(d.engine.get_pending_withdrawal(address))}"
        )
    solvent = d.runtime.custody == d.engine.escrowed_balance() + d.engine.total_liabilities()
    print(f"  custody={units(d.runtime.custody)}  solvent={solvent}")


def print_audit_trail(d: Deployment) -> None:
    """Print every event the engine has emitted."""
    print("\n  Audit Trail:")
    for evt in d.engine.get_events():
        target = f"tx {evt.transaction_id}" if evt.transaction_id is not None else "program"
        print(f"    {evt.sequence}. [{evt.event_type.value}] {target} (by {evt.actor[:10]}…)")
    print()


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
def scenario_1_happy_path() -> Deployment:
    banner("SCENARIO 1: Happy Path")
    d = Deployment()

    section("Buyer opens and funds a transaction")
    tx_id = d.open_funded()
    print(f"  Transaction {tx_id}: {d.engine.get_transaction(tx_id).state.value}")

    section("Buyer confirms delivery")
    d.runtime.call(BUYER, d.engine.confirm_delivery, tx_id)
    print(f"  Transaction {tx_id}: {d.engine.get_transaction(tx_id).state.value}")
    print(f"  Collected fees: {units(d.engine.collected_fees)}")

    section("Seller withdraws, owner sweeps fees")
    d.runtime.call(SELLER, d.engine.withdraw_funds)
    d.runtime.call(OWNER, d.engine.withdraw_fees)
    d.runtime.call(OWNER, d.engine.withdraw_funds)
    print_balances(d, BUYER, SELLER, OWNER)
    print_audit_trail(d)
    return d


# ===========================================================================
# Scenario 2: Dispute and Refund
# ===========================================================================
def scenario_2_dispute_refund() -> Deployment:
    banner("SCENARIO 2: Dispute and Refund")
    d = Deployment()
    tx_id = d.open_funded()

    section("Seller raises a dispute")
    d.runtime.call(SELLER, d.engine.initiate_dispute, tx_id)
    print(f"  Allowed next: {d.engine.allowed_actions(tx_id)}")

    section("Buyer tries to confirm a disputed transaction")
    try:
        d.runtime.call(BUYER, d.engine.confirm_delivery, tx_id)
    except EscrowError as exc:
        print(f"  Rejected: [{exc.code}] {exc.message}")

    section("Arbitrator refunds the buyer")
    d.runtime.call(ARBITRATOR, d.engine.resolve_dispute, tx_id, False)
    d.runtime.call(BUYER, d.engine.withdraw_funds)
    print(f"  Transaction {tx_id}: {d.engine.get_transaction(tx_id).state.value}")
    print_balances(d, BUYER, SELLER)
    print_audit_trail(d)
    return d


# ===========================================================================
# Scenario 3: Rejecting Recipient
# ===========================================================================
def scenario_3_rejecting_recipient() -> Deployment:
    banner("SCENARIO 3: Rejecting Recipient")
    d = Deployment()
    tx_id = d.open_funded()
    d.runtime.call(BUYER, d.engine.confirm_delivery, tx_id)

    section("Seller's wallet rejects the payout")
    d.runtime.register_receiver(SELLER, lambda amount: False)
    paid = d.runtime.call(SELLER, d.engine.withdraw_funds)
    print(f"  Paid: {paid}")
    print_balances(d, SELLER)

    section("Seller accepts and retries")
    d.runtime.unregister_receiver(SELLER)
    paid = d.runtime.call(SELLER, d.engine.withdraw_funds)
    print(f"  Paid: {paid}")
    print_balances(d, SELLER)
    print_audit_trail(d)
    return d


# ===========================================================================
# Scenario 4: Reentrancy Attacker
# ===========================================================================
def scenario_4_reentrancy_attacker() -> Deployment:
    banner("SCENARIO 4: Reentrancy Attacker")
    d = Deployment()
    for _ in range(3):
        tx_id = d.open_funded()
        d.runtime.call(BUYER, d.engine.confirm_delivery, tx_id)

    attempts: list[str] = []

    def reenter(amount: int) -> bool:
        try:
            d.runtime.call(SELLER, d.engine.withdraw_funds)
            attempts.append("nested withdrawal succeeded")
        except ReentrantCallError as exc:
            attempts.append(f"nested withdrawal rejected: {exc.code}")
        return True

    section("Seller withdraws with a re-entering receive hook")
    owed = d.engine.get_pending_withdrawal(SELLER)
    d.runtime.register_receiver(SELLER, reenter)
    d.runtime.call(SELLER, d.engine.withdraw_funds)
    for line in attempts:
        print(f"  {line}")
    print(f"  Owed {units(owed)}, received {units(d.runtime.balance_of(SELLER))}")
    print_balances(d, SELLER)
    return d


# ===========================================================================
# Persistence
# ===========================================================================
async def persist_roundtrip(d: Deployment) -> None:
    """Save the deployment into in-memory SQLite and load it back."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from arbitrated_escrow.infrastructure.database.orm_models import Base
    from arbitrated_escrow.infrastructure.database.repositories import EscrowStateRepository

    section("Persisting final state to SQLite")
    db = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    try:
        async with db.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(db, expire_on_commit=False)

        async with factory() as session:
            await EscrowStateRepository(session).save(
                d.engine.export_state(), owner=d.engine.owner, custody=d.runtime.custody
            )
            await session.commit()

        async with factory() as session:
            loaded = await EscrowStateRepository(session).load()
    finally:
        await db.dispose()

    print(f"  Transactions: {loaded.state.transactions.count()}")
    print(f"  Events:       {len(loaded.state.events)}")
    print(f"  Custody:      {units(loaded.custody)}")


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_dispute_refund,
    3: scenario_3_rejecting_recipient,
    4: scenario_4_reentrancy_attacker,
}


def run(selected: list[int], persist: bool = False) -> None:
    for num in selected:
        deployment = SCENARIOS[num]()
        if persist:
            asyncio.run(persist_roundtrip(deployment))

    print("\n" + "=" * 70)
    print("  ALL SCENARIOS COMPLETED")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Arbitrated Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        choices=[0, *SCENARIOS],
        help="Run a specific scenario (1-4). Default: run all.",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Round-trip each scenario's final state through in-memory SQLite.",
    )
    args = parser.parse_args()

    run(sorted(SCENARIOS) if args.scenario == 0 else [args.scenario], persist=args.persist)
