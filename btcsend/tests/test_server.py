"""
Tests for the HTTP binding.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiohttp import test_utils
from conftest import G_P2PKH_ADDRESS, G_P2WPKH_ADDRESS, G_WIF, FakeExplorer

from btcsend.config import Settings
from btcsend.errors import (
    BroadcastError,
    InsufficientFundsError,
    MalformedInputError,
    SigningError,
    TransactionBuildError,
    UpstreamFetchError,
)
from btcsend.models import ScriptType
from btcsend.server import ROUTES, TransactionServer, status_for
from btcsend.service import TransactionService
from btcsend.transaction import Transaction

UTXO = f"{'ab' * 32}:0,15000,{G_WIF}"


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "utxosString": UTXO,
        "recipientAddress": G_P2WPKH_ADDRESS,
        "amountToSend": "5000",
        "changeAddress": G_P2PKH_ADDRESS,
        "transactionFee": "1000",
        "RBF": False,
        "isBroadcast": False,
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def client(explorer: FakeExplorer):
    server = TransactionServer(Settings(_env_file=None), TransactionService(explorer))
    async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
        yield client


class TestStatusFor:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (MalformedInputError("x"), 400),
            (InsufficientFundsError("x"), 422),
            (SigningError("x"), 422),
            (UpstreamFetchError("x"), 502),
            (BroadcastError("x"), 502),
            (TransactionBuildError("x"), 500),
        ],
    )
    def test_mapping(self, error: TransactionBuildError, status: int) -> None:
        assert status_for(error) == status


def test_routes_cover_every_script_type() -> None:
    assert set(ROUTES.values()) == set(ScriptType)


class TestEndpoints:
    """Tests for the HTTP routes."""

    @pytest.mark.asyncio
    async def test_health(self, client: test_utils.TestClient) -> None:
        response = await client.get("/health")

        assert response.status == 200
        assert await response.json() == {"status": "healthy", "network": "mainnet"}

    @pytest.mark.asyncio
    async def test_bech_builds_transaction(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/bech", json=_payload())

        assert response.status == 200
        body = await response.json()
        tx = Transaction.from_hex(body["hex"])
        assert body["virtualSize"] == tx.virtual_size
        assert [out.value for out in tx.outputs] == [5000, 9000]

    @pytest.mark.asyncio
    async def test_broadcast_returns_txid(
        self, client: test_utils.TestClient, explorer: FakeExplorer
    ) -> None:
        response = await client.post("/api/bech", json=_payload(isBroadcast=True))

        assert response.status == 200
        assert await response.json() == {"txid": explorer.broadcast_txid}
        assert len(explorer.broadcasts) == 1

    @pytest.mark.asyncio
    async def test_legacy_fetch_failure_is_bad_gateway(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/legacy", json=_payload())

        assert response.status == 502
        assert "error" in await response.json()

    @pytest.mark.asyncio
    async def test_malformed_utxos(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/p2sh", json=_payload(utxosString="garbage"))

        assert response.status == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"utxosString": f"{'ab' * 32}:{2**32},15000,{G_WIF}"},
            {"utxosString": f"{'ab' * 32}:0,{2**64},{G_WIF}"},
            {"amountToSend": str(2**64)},
            {"transactionFee": str(2**64)},
        ],
    )
    async def test_oversized_integers_are_bad_request(
        self, client: test_utils.TestClient, overrides: dict[str, str]
    ) -> None:
        response = await client.post("/api/bech", json=_payload(**overrides))

        assert response.status == 400
        assert G_WIF not in await response.text()

    @pytest.mark.asyncio
    async def test_fee_exceeds_inputs(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/bech", json=_payload(transactionFee="20000"))

        assert response.status == 422

    @pytest.mark.asyncio
    async def test_non_json_body(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/bech", data="not json")

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_json_array_body(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/bech", json=[1, 2, 3])

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_error_body_never_echoes_key(self, client: test_utils.TestClient) -> None:
        response = await client.post("/api/bech", json=_payload(amountToSend="5000,6000"))

        assert response.status == 400
        assert G_WIF not in await response.text()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self, explorer: FakeExplorer) -> None:
        service = TransactionService(explorer)
        service.create_transaction = AsyncMock(side_effect=RuntimeError("boom"))
        server = TransactionServer(Settings(_env_file=None), service)

        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.post("/api/bech", json=_payload())

        assert response.status == 500


@pytest.mark.asyncio
async def test_stop_closes_backend(explorer: FakeExplorer) -> None:
    server = TransactionServer(Settings(_env_file=None), TransactionService(explorer))

    await server.stop()

    assert explorer.closed is True
