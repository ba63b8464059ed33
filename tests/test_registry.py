"""Tests for provider selection."""

import pytest

from marketdata.db.models import DataSource
from marketdata.services.base import ProviderUnsupportedError
from marketdata.services.data_ingestion.registry import build_default_registry


class TestDefaultRegistry:
    """Built-in adapters and their matching rules."""

    @pytest.fixture
    def registry(self):
        return build_default_registry()

    def test_available_providers_in_order(self, registry):
        assert registry.available_providers() == ["Alpha Vantage", "Yahoo Finance", "Grow API"]

    @pytest.mark.parametrize("ds,expected", [
        (DataSource(name="AV", provider_type="X", api_endpoint="https://www.alphavantage.co/query"), "Alpha Vantage"),
        (DataSource(name="Primary", provider_type="ALPHA_VANTAGE", api_endpoint="http://proxy"), "Alpha Vantage"),
        (DataSource(name="Yahoo", provider_type="REST", api_endpoint="https://query1.finance.yahoo.com/v8/finance/chart"), "Yahoo Finance"),
        (DataSource(name="Live", provider_type="REST", api_endpoint="https://api.groww.in/v1/live-data/ohlc"), "Grow API"),
        (DataSource(name="Grow API", provider_type="REST", api_endpoint="http://internal"), "Grow API"),
    ])
    def test_selection(self, registry, ds, expected):
        assert registry.get_provider(ds).name == expected

    def test_first_match_wins(self, registry):
        ds = DataSource(name="yahoo mirror", provider_type="ALPHA_VANTAGE", api_endpoint="http://x")
        assert registry.get_provider(ds).name == "Alpha Vantage"

    def test_selection_is_deterministic(self, registry):
        ds = DataSource(name="groww via yahoo", provider_type="REST", api_endpoint="http://x")
        names = {registry.get_provider(ds).name for _ in range(10)}
        assert names == {"Yahoo Finance"}

    def test_unsupported(self, registry):
        ds = DataSource(name="Bloomberg", provider_type="BLP", api_endpoint="https://example.com")
        with pytest.raises(ProviderUnsupportedError, match="Bloomberg"):
            registry.get_provider(ds)

    def test_missing_fields_do_not_match(self, registry):
        ds = DataSource(name=None, provider_type=None, api_endpoint=None)
        with pytest.raises(ProviderUnsupportedError):
            registry.get_provider(ds)


class TestRegistryDelegation:
    """Registry passes the call through to the chosen adapter."""

    async def test_fetch_delegates(self, make_registry, fake_provider_cls, daily_response):
        first = fake_provider_cls(name="First", keyword="alpha", response=daily_response)
        second = fake_provider_cls(name="Second", keyword="alpha")
        registry = make_registry(first, second)
        ds = DataSource(id=7, name="Alpha Vantage", provider_type="ALPHA_VANTAGE", api_endpoint="")

        response = await registry.fetch_ohlc_data(ds, "IBM", "1d", exchange="NYSE")

        assert response is daily_response
        assert first.calls == [(7, "IBM", "1d", "NYSE")]
        assert second.calls == []
