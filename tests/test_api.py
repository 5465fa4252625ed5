import pytest
from fastapi.testclient import TestClient

from conftest import FakeMarketClient
from forecaster.errors import ForecastGenerationError
from forecaster.main import app
from forecaster.services.forecast_cache import MemoryForecastCache
from forecaster.services.forecast_service import ForecastService, get_forecast_service


class FailingService:
    async def get_forecast(self, coin_id, refresh=False):
        raise ForecastGenerationError(f"Error generating predictions for {coin_id}")


@pytest.fixture
def client():
    service = ForecastService(client=FakeMarketClient(), cache=MemoryForecastCache(), cache_ttl=60, seed=3)
    app.dependency_overrides[get_forecast_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_prediction_returns_bundle(client):
    response = client.get("/api/coin/prediction/solana")
    assert response.status_code == 200

    data = response.json()
    assert data["assetId"] == "solana"
    assert data["currentPrice"] == 120.0
    assert len(data["chartSeries"]) == 31
    assert "oneYear" in data["predictions"]


def test_refresh_query_is_accepted(client):
    assert client.get("/api/coin/prediction/solana", params={"refresh": "true"}).status_code == 200


def test_blank_id_is_rejected(client):
    response = client.get("/api/coin/prediction/%20")
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid id parameter"}


def test_only_get_is_allowed(client):
    assert client.post("/api/coin/prediction/solana").status_code == 405


def test_generation_failure_maps_to_500():
    app.dependency_overrides[get_forecast_service] = lambda: FailingService()
    try:
        response = TestClient(app).get("/api/coin/prediction/solana")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"message": "Error generating predictions"}


def test_ping_and_health(client):
    assert client.get("/api/coin/prediction/ping").json() == {"message": "prediction router active"}
    assert client.get("/health").json() == {"status": "ok"}
