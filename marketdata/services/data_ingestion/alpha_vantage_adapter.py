"""
Alpha Vantage Data Adapter

Date-series provider: daily and intraday series keyed by timestamp string.

API Documentation: https://www.alphavantage.co/documentation/
"""

import logging
from typing import Optional

import aiohttp

from marketdata.db.models import DataSource
from marketdata.schemas.market import OhlcApiResponse, PriceInterval
from marketdata.services.base import CredentialMissingError, ProviderPayloadError
from marketdata.services.data_ingestion.interface import HttpProviderAdapter, data_source_matches

logger = logging.getLogger(__name__)

BASE_URL = "https://www.alphavantage.co/query"

# Resolutions without a keyed intraday series read the daily series
DAILY_INTERVALS = {
    PriceInterval.THIRTY_MINUTE,
    PriceInterval.FOUR_HOUR,
    PriceInterval.ONE_DAY,
    PriceInterval.ONE_WEEK,
    PriceInterval.ONE_MONTH,
}

# Intraday resolution vocabulary
INTERVAL_MAP = {
    PriceInterval.ONE_MINUTE: "1min",
    PriceInterval.FIVE_MINUTE: "5min",
    PriceInterval.FIFTEEN_MINUTE: "15min",
    PriceInterval.ONE_HOUR: "60min",
}


class AlphaVantageAdapter(HttpProviderAdapter):
    """Alpha Vantage TIME_SERIES_DAILY / TIME_SERIES_INTRADAY client."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, default_url: str = BASE_URL, **kwargs):
        super().__init__(session=session, **kwargs)
        self.default_url = default_url

    @property
    def name(self) -> str:
        return "Alpha Vantage"

    def supports(self, data_source: DataSource) -> bool:
        return data_source_matches(
            data_source,
            endpoint_keywords=("alphavantage",),
            type_keywords=("alpha", "vantage"),
            name_keywords=("alpha vantage",),
        )

    def build_params(self, symbol: str, interval: PriceInterval, api_key: str) -> dict[str, str]:
        params = {"symbol": symbol, "outputsize": "compact", "apikey": api_key}
        if interval in DAILY_INTERVALS:
            params["function"] = "TIME_SERIES_DAILY"
        else:
            params["function"] = "TIME_SERIES_INTRADAY"
            params["interval"] = INTERVAL_MAP.get(interval, "60min")
        return params

    def build_url(self, data_source: DataSource) -> str:
        endpoint = data_source.api_endpoint or ""
        return endpoint if "alphavantage" in endpoint.lower() else self.default_url

    async def fetch_ohlc_data(
        self,
        data_source: DataSource,
        symbol: str,
        interval: PriceInterval,
        exchange: Optional[str] = None,
    ) -> OhlcApiResponse:
        api_key = (data_source.api_key or "").strip()
        if not api_key:
            raise CredentialMissingError(
                "Alpha Vantage requires api_key on the data source",
                service_name=self.name,
            )

        logger.info(f"Fetching OHLC data from Alpha Vantage for {symbol} ({interval.value})")
        payload = await self._request_json(
            "GET",
            self.build_url(data_source),
            data_source,
            params=self.build_params(symbol, interval, api_key),
            headers={"Accept": "application/json"},
        )
        if not isinstance(payload, dict):
            raise ProviderPayloadError("Alpha Vantage returned an unexpected payload", service_name=self.name)

        response = OhlcApiResponse.model_validate(payload)
        self._check_error_fields(response)
        return response

    def _check_error_fields(self, response: OhlcApiResponse) -> None:
        """An error, note or information field is fatal even on HTTP 200."""
        if response.error_message and response.error_message.strip():
            raise ProviderPayloadError(f"Alpha Vantage error: {response.error_message}", service_name=self.name)
        if response.note and response.note.strip():
            raise ProviderPayloadError(f"Alpha Vantage note (e.g. rate limit): {response.note}", service_name=self.name)
        if response.information and response.information.strip():
            raise ProviderPayloadError(f"Alpha Vantage information: {response.information}", service_name=self.name)
