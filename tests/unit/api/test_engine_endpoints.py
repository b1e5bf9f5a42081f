"""Unit tests for the engine HTTP API: validation, error mapping, limits."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from clamm import __version__
from clamm.api.endpoints import error_status, get_manager
from clamm.api.main import app
from clamm.errors import PoolAlreadyInitialized, PoolNotInitialized, TickMisaligned
from clamm.manager import PoolManager
from tests.helpers import DAI, SQRT_PRICE_1_1, USDC, make_key, make_manager


def key_json(**overrides: object) -> dict[str, object]:
    body: dict[str, object] = {
        "currency0": DAI,
        "currency1": USDC,
        "fee": 3000,
        "tickSpacing": 60,
        "hooks": "0x" + "00" * 20,
    }
    body.update(overrides)
    return body


@pytest.fixture
def engine() -> PoolManager:
    return make_manager()


@pytest.fixture
def client(engine: PoolManager) -> Iterator[TestClient]:
    """Test client bound to a fresh engine."""
    app.dependency_overrides[get_manager] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestErrorStatus:
    def test_unknown_pool_is_404(self) -> None:
        assert error_status(PoolNotInitialized("x")) == 404

    def test_other_engine_errors_are_400(self) -> None:
        assert error_status(PoolAlreadyInitialized("x")) == 400
        assert error_status(TickMisaligned("x")) == 400


class TestInitializeEndpoint:
    def test_creates_pool(self, client: TestClient, engine: PoolManager) -> None:
        response = client.post(
            "/pools", json={"key": key_json(), "sqrtPriceX96": str(SQRT_PRICE_1_1)}
        )
        assert response.status_code == 200
        data = response.json()
        assert data == {"poolId": make_key().to_id_hex(), "tick": 0}
        assert engine.pool_ids == [make_key().to_id()]

    def test_duplicate_pool_returns_code(self, client: TestClient) -> None:
        body = {"key": key_json(), "sqrtPriceX96": str(SQRT_PRICE_1_1)}
        client.post("/pools", json=body)
        response = client.post("/pools", json=body)
        assert response.status_code == 400
        assert response.json()["code"] == "PoolAlreadyInitialized"

    def test_currencies_out_of_order(self, client: TestClient) -> None:
        response = client.post(
            "/pools",
            json={
                "key": key_json(currency0=USDC, currency1=DAI),
                "sqrtPriceX96": str(SQRT_PRICE_1_1),
            },
        )
        assert response.status_code == 400
        assert response.json()["code"] == "CurrenciesOutOfOrder"

    def test_negative_price_rejected_by_schema(self, client: TestClient) -> None:
        response = client.post("/pools", json={"key": key_json(), "sqrtPriceX96": "-1"})
        assert response.status_code == 422

    def test_bad_hook_data(self, client: TestClient) -> None:
        response = client.post(
            "/pools",
            json={"key": key_json(), "sqrtPriceX96": str(SQRT_PRICE_1_1), "hookData": "0xabc"},
        )
        assert response.status_code == 422


class TestPoolLookup:
    def test_unknown_pool(self, client: TestClient) -> None:
        response = client.get(f"/pools/{make_key().to_id_hex()}")
        assert response.status_code == 404
        assert response.json()["code"] == "PoolNotInitialized"

    def test_malformed_pool_id(self, client: TestClient) -> None:
        assert client.get("/pools/0x1234").status_code == 422
        assert client.get("/pools/not-hex").status_code == 422

    def test_returns_state(self, client: TestClient, engine: PoolManager) -> None:
        engine.initialize(make_key(), SQRT_PRICE_1_1)
        response = client.get(f"/pools/{make_key().to_id_hex()}")
        assert response.status_code == 200
        data = response.json()
        assert data["sqrtPriceX96"] == str(SQRT_PRICE_1_1)
        assert data["tick"] == 0
        assert data["liquidity"] == "0"
        assert data["swapFee"] == 3000
        assert data["key"]["tickSpacing"] == 60


class TestRequestLimits:
    def test_oversized_request_returns_413(self, client: TestClient) -> None:
        response = client.post(
            "/pools",
            json={"key": key_json(), "sqrtPriceX96": str(SQRT_PRICE_1_1)},
            headers={"Content-Length": str(20 * 1024 * 1024)},
        )
        assert response.status_code == 413
        assert response.json()["detail"] == "Request too large"


class TestHealthEndpoint:
    def test_health_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}
