"""Shared test fixtures for the arbitrated escrow test suite.

Provides:
    - Well-known party addresses
    - A ledger runtime with a deterministic clock and funded wallets
    - A deployed escrow engine and a funded transaction
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

import itertools

import pytest

from arbitrated_escrow.domain.models import UNIT
from arbitrated_escrow.infrastructure.ledger_runtime import InMemoryLedgerRuntime
from arbitrated_escrow.services.escrow_engine import EscrowEngine

OWNER = "0x" + "0" * 39 + "1"
ARBITRATOR = "0x" + "a" * 40
BUYER = "0x" + "b" * 40
SELLER = "0x" + "5" * 40
STRANGER = "0x" + "c" * 40

FEE_RATE_BPS = 250

# ---------------------------------------------------------------------------
# Runtime Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runtime() -> InMemoryLedgerRuntime:
    """Return a runtime whose clock ticks once per reading, with funded wallets."""
    ledger = InMemoryLedgerRuntime(clock=itertools.count(1_000).__next__)
    ledger.mint(BUYER, 10 * UNIT)
    ledger.mint(STRANGER, 10 * UNIT)
    return ledger


# ---------------------------------------------------------------------------
# Engine Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine(runtime: InMemoryLedgerRuntime) -> EscrowEngine:
    """Return an engine deployed at a 2.5% fee."""
    return EscrowEngine.deploy(
        runtime,
        owner=OWNER,
        arbitrator=ARBITRATOR,
        fee_rate_bps=FEE_RATE_BPS,
    )


@pytest.fixture
def funded_tx(runtime: InMemoryLedgerRuntime, engine: EscrowEngine) -> int:
    """Return the ID of a BUYER -> SELLER transaction holding 1.0 unit."""
    tx_id = runtime.call(BUYER, engine.create_transaction, SELLER)
    runtime.call(BUYER, engine.deposit_payment, tx_id, value=UNIT)
    return tx_id


@pytest.fixture
def disputed_tx(runtime: InMemoryLedgerRuntime, engine: EscrowEngine, funded_tx: int) -> int:
    runtime.call(SELLER, engine.initiate_dispute, funded_tx)
    return funded_tx


def is_solvent(runtime: InMemoryLedgerRuntime, engine: EscrowEngine) -> bool:
    """Custody equals locked deposits plus everything owed."""
    return runtime.custody == engine.escrowed_balance() + engine.total_liabilities()
