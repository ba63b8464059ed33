"""Tests for the operator API."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from marketdata.api.v1.endpoints import admin
from marketdata.main import app
from marketdata.schemas.market import FetchResult, PriceInterval, SyncResult
from marketdata.services.base import (
    InactiveDataSourceError,
    NotFoundError,
    ProviderHttpError,
    ProviderUnsupportedError,
)
from marketdata.services.data_ingestion.service import set_market_data_service


class StubService:
    """Returns a canned result or raises."""

    def __init__(self, outcome=None):
        self.outcome = outcome
        self.requests = []
        self.registry = SimpleNamespace(available_providers=lambda: ["Alpha Vantage", "Yahoo Finance", "Grow API"])

    async def execute(self, request):
        self.requests.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def client():
    yield TestClient(app)
    set_market_data_service(None)


class TestFetchEndpoint:
    """POST /api/v1/market-data/fetch"""

    def test_success(self, client):
        stub = StubService(FetchResult(job_id=7, records_fetched=3, records_saved=2))
        set_market_data_service(stub)

        response = client.post(
            "/api/v1/market-data/fetch",
            params={"stock_id": 1, "data_source_id": 2, "interval": "1h"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["job_id"] == 7
        assert body["records_saved"] == 2
        assert stub.requests[0].interval == PriceInterval.ONE_HOUR

    @pytest.mark.parametrize("error,status", [
        (NotFoundError("Stock not found with id: 1"), 404),
        (InactiveDataSourceError("Data source is not active: Yahoo"), 409),
        (ProviderUnsupportedError("No provider found for data source: X"), 409),
        (ProviderHttpError("Failed to fetch data from Alpha Vantage: 500 - boom", status=500, body="boom"), 502),
    ])
    def test_error_mapping(self, client, error, status):
        set_market_data_service(StubService(error))

        response = client.post("/api/v1/market-data/fetch", params={"stock_id": 1, "data_source_id": 2})

        assert response.status_code == status
        detail = response.json()["detail"]
        assert detail["error"] == type(error).__name__
        assert detail["message"] == error.message

    def test_upstream_status_in_detail(self, client):
        set_market_data_service(StubService(ProviderHttpError("bad", status=503, body="busy")))
        detail = client.post("/api/v1/market-data/fetch", params={"stock_id": 1, "data_source_id": 1}).json()["detail"]
        assert detail["status"] == 503
        assert detail["body"] == "busy"

    def test_validation(self, client):
        set_market_data_service(StubService())
        assert client.post("/api/v1/market-data/fetch", params={"stock_id": 0, "data_source_id": 1}).status_code == 422
        assert client.post(
            "/api/v1/market-data/fetch", params={"stock_id": 1, "data_source_id": 1, "interval": "2d"}
        ).status_code == 422


class TestOtherEndpoints:
    """Providers, admin sync and health."""

    def test_providers(self, client):
        set_market_data_service(StubService())
        response = client.get("/api/v1/market-data/providers")
        assert response.json() == {"providers": ["Alpha Vantage", "Yahoo Finance", "Grow API"]}

    def test_sync_instruments(self, client, monkeypatch):
        async def fetch_and_sync():
            return SyncResult(created=5, skipped=1, existing=2)

        monkeypatch.setattr(
            admin, "get_instrument_sync_service", lambda: SimpleNamespace(fetch_and_sync=fetch_and_sync)
        )

        response = client.post("/api/v1/admin/sync-instruments")

        assert response.status_code == 200
        assert response.json() == {"created": 5, "skipped": 1, "existing": 2}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
