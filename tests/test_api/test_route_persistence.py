"""Write-through persistence under concurrent requests and failed saves.

These tests run against a file-backed SQLite database so state survives an
application restart, the way a deployment restarts.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import ARBITRATOR, BUYER, OWNER, SELLER
from fastapi.testclient import TestClient

from arbitrated_escrow.config import Settings
from arbitrated_escrow.domain.models import UNIT
from arbitrated_escrow.infrastructure.database.repositories import EscrowStateRepository
from arbitrated_escrow.main import create_app

CONCURRENT_REQUESTS = 40


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'escrow.db'}",
        app_log_level="WARNING",
        escrow_owner_address=OWNER,
        escrow_arbitrator_address=ARBITRATOR,
        escrow_fee_rate_bps=250,
    )


def _as(address: str) -> dict:
    return {"X-Caller-Address": address}


def _create(client: TestClient) -> int:
    return client.post(
        "/api/v1/escrow/transactions", json={"seller": SELLER}, headers=_as(BUYER)
    ).status_code


async def _failing_save(self, *args, **kwargs) -> None:
    raise RuntimeError("disk full")


class TestConcurrentRequests:
    def test_every_created_transaction_survives_restart(self, settings) -> None:
        with TestClient(create_app(settings)) as client:
            with ThreadPoolExecutor(max_workers=8) as pool:
                codes = list(pool.map(lambda _: _create(client), range(CONCURRENT_REQUESTS)))
            assert codes == [201] * CONCURRENT_REQUESTS
            count = client.get("/api/v1/escrow/transactions/count").json()["count"]
            assert count == CONCURRENT_REQUESTS

        with TestClient(create_app(settings)) as restarted:
            count = restarted.get("/api/v1/escrow/transactions/count").json()["count"]
            assert count == CONCURRENT_REQUESTS
            ids = {
                restarted.get(f"/api/v1/escrow/transactions/{i}").json()["id"]
                for i in range(CONCURRENT_REQUESTS)
            }
            assert ids == set(range(CONCURRENT_REQUESTS))
            events = restarted.get("/api/v1/escrow/transactions/39/events").json()
            assert [e["event_type"] for e in events] == ["TRANSACTION_CREATED"]

    def test_concurrent_deposits_keep_custody(self, settings) -> None:
        with TestClient(create_app(settings)) as client:
            client.post(
                "/api/v1/ledger/faucet", json={"address": BUYER, "amount": 10 * UNIT}
            )
            for _ in range(5):
                assert _create(client) == 201

            def deposit(tx_id: int) -> int:
                return client.post(
                    f"/api/v1/escrow/transactions/{tx_id}/deposit",
                    json={"value": UNIT},
                    headers=_as(BUYER),
                ).status_code

            with ThreadPoolExecutor(max_workers=5) as pool:
                assert list(pool.map(deposit, range(5))) == [200] * 5

        with TestClient(create_app(settings)) as restarted:
            health = restarted.get("/health").json()
            assert health["custody"] == 5 * UNIT
            assert health["solvent"] is True
            for tx_id in range(5):
                record = restarted.get(f"/api/v1/escrow/transactions/{tx_id}").json()
                assert record["state"] == "AWAITING_DELIVERY"


class TestFailedSave:
    def test_create_is_undone(self, settings, monkeypatch) -> None:
        with TestClient(create_app(settings)) as client:
            monkeypatch.setattr(EscrowStateRepository, "save", _failing_save)
            assert _create(client) == 500
            assert client.get("/api/v1/escrow/transactions/count").json()["count"] == 0

            monkeypatch.undo()
            response = client.post(
                "/api/v1/escrow/transactions", json={"seller": SELLER}, headers=_as(BUYER)
            )
            assert response.status_code == 201
            assert response.json()["id"] == 0

        with TestClient(create_app(settings)) as restarted:
            assert restarted.get("/api/v1/escrow/transactions/count").json()["count"] == 1

    def test_deposit_is_undone(self, settings, monkeypatch) -> None:
        with TestClient(create_app(settings)) as client:
            client.post("/api/v1/ledger/faucet", json={"address": BUYER, "amount": 2 * UNIT})
            assert _create(client) == 201

            monkeypatch.setattr(EscrowStateRepository, "save", _failing_save)
            response = client.post(
                "/api/v1/escrow/transactions/0/deposit",
                json={"value": UNIT},
                headers=_as(BUYER),
            )
            assert response.status_code == 500

            account = client.get(f"/api/v1/ledger/accounts/{BUYER}").json()
            assert account["balance"] == 2 * UNIT
            record = client.get("/api/v1/escrow/transactions/0").json()
            assert record["state"] == "AWAITING_PAYMENT"
            assert record["amount"] == 0
            health = client.get("/health").json()
            assert health["custody"] == 0
            assert health["solvent"] is True
