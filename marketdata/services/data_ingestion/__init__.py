"""
Market Data Ingestion Service

CONTRACT:
    Input:  FetchRequest
    Output: FetchResult

RESPONSIBILITIES:
    - Select the provider adapter for a data source
    - Fetch OHLC data (Alpha Vantage, Yahoo Finance, Groww)
    - Normalize timestamps and values
    - Deduplicate against stored prices and persist new ones
    - Track every attempt as an ingestion job
    - Notify subscribers of newly saved prices
"""

from marketdata.services.data_ingestion.interface import (
    MarketDataProvider,
    MarketDataServiceInterface,
)
from marketdata.services.data_ingestion.registry import (
    ProviderRegistry,
    build_default_registry,
    get_provider_registry,
)
from marketdata.services.data_ingestion.service import (
    MarketDataService,
    get_market_data_service,
)

__all__ = [
    "MarketDataProvider",
    "MarketDataServiceInterface",
    "ProviderRegistry",
    "build_default_registry",
    "get_provider_registry",
    "MarketDataService",
    "get_market_data_service",
]
