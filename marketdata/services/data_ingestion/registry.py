"""
Provider Registry

Ordered list of adapters. The first adapter whose supports() matches a data
source wins, so registration order is the tie-break.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from marketdata.db.models import DataSource
from marketdata.schemas.market import OhlcApiResponse, PriceInterval
from marketdata.services.base import ProviderUnsupportedError
from marketdata.services.data_ingestion.alpha_vantage_adapter import AlphaVantageAdapter
from marketdata.services.data_ingestion.groww_adapter import GrowwAdapter
from marketdata.services.data_ingestion.interface import MarketDataProvider
from marketdata.services.data_ingestion.token_service import GrowwTokenService
from marketdata.services.data_ingestion.yahoo_adapter import YahooFinanceAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Selects the adapter for a data source and delegates the fetch."""

    def __init__(self, providers: Iterable[MarketDataProvider]):
        self._providers = list(providers)

    @property
    def providers(self) -> list[MarketDataProvider]:
        return list(self._providers)

    def available_providers(self) -> list[str]:
        """Provider names in registration order."""
        return [p.name for p in self._providers]

    def get_provider(self, data_source: DataSource) -> MarketDataProvider:
        for provider in self._providers:
            if provider.supports(data_source):
                return provider
        raise ProviderUnsupportedError(
            f"No provider found for data source: {data_source.name} "
            f"(type={data_source.provider_type}, endpoint={data_source.api_endpoint})",
            service_name="ProviderRegistry",
        )

    async def fetch_ohlc_data(
        self,
        data_source: DataSource,
        symbol: str,
        interval: PriceInterval,
        exchange: Optional[str] = None,
    ) -> OhlcApiResponse:
        provider = self.get_provider(data_source)
        logger.info(f"Using provider {provider.name} for data source {data_source.name}")
        return await provider.fetch_ohlc_data(data_source, symbol, interval, exchange=exchange)

    async def close(self) -> None:
        for provider in self._providers:
            await provider.close()


def build_default_registry(
    session_factory: Optional[async_sessionmaker] = None,
    token_service: Optional[GrowwTokenService] = None,
) -> ProviderRegistry:
    """Alpha Vantage, Yahoo Finance, Groww, in that order."""
    return ProviderRegistry([
        AlphaVantageAdapter(),
        YahooFinanceAdapter(),
        GrowwAdapter(token_service=token_service, session_factory=session_factory),
    ])


# Singleton instance
_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    """Get or create the provider registry singleton."""
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry
