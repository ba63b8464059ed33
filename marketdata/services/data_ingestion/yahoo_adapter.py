"""
Yahoo Finance Data Adapter

Chart-style provider: parallel arrays of epoch timestamps and quote values.

Format: https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?interval=1d&range=1mo
"""

import logging
from typing import Optional

from marketdata.db.models import DataSource
from marketdata.schemas.market import OhlcApiResponse, PriceInterval
from marketdata.services.base import ProviderPayloadError
from marketdata.services.data_ingestion.interface import HttpProviderAdapter, data_source_matches

logger = logging.getLogger(__name__)


# Yahoo interval mapping
INTERVAL_MAP = {
    PriceInterval.ONE_MINUTE: "1m",
    PriceInterval.FIVE_MINUTE: "5m",
    PriceInterval.FIFTEEN_MINUTE: "15m",
    PriceInterval.THIRTY_MINUTE: "30m",
    PriceInterval.ONE_HOUR: "1h",
    PriceInterval.FOUR_HOUR: "4h",
    PriceInterval.ONE_DAY: "1d",
    PriceInterval.ONE_WEEK: "1wk",
    PriceInterval.ONE_MONTH: "1mo",
}


class YahooFinanceAdapter(HttpProviderAdapter):
    """Yahoo Finance v8 chart API client."""

    @property
    def name(self) -> str:
        return "Yahoo Finance"

    def supports(self, data_source: DataSource) -> bool:
        return data_source_matches(
            data_source,
            endpoint_keywords=("yahoo",),
            type_keywords=("yahoo",),
            name_keywords=("yahoo",),
        )

    def build_url(self, data_source: DataSource, symbol: str) -> str:
        return f"{(data_source.api_endpoint or '').rstrip('/')}/{symbol}"

    async def fetch_ohlc_data(
        self,
        data_source: DataSource,
        symbol: str,
        interval: PriceInterval,
        exchange: Optional[str] = None,
    ) -> OhlcApiResponse:
        yahoo_interval = INTERVAL_MAP.get(interval, "1d")
        logger.info(f"Fetching OHLC data from Yahoo Finance for {symbol} ({yahoo_interval})")

        payload = await self._request_json(
            "GET",
            self.build_url(data_source, symbol),
            data_source,
            params={"interval": yahoo_interval, "range": "1mo"},
            headers={"Accept": "application/json"},
        )
        if not isinstance(payload, dict):
            raise ProviderPayloadError("Yahoo Finance returned an unexpected payload", service_name=self.name)

        chart = payload.get("chart") or {}
        error = chart.get("error")
        if error:
            description = error.get("description") if isinstance(error, dict) else error
            raise ProviderPayloadError(f"Yahoo Finance error: {description}", service_name=self.name)

        return OhlcApiResponse.model_validate(payload)
