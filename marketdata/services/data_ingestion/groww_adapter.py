"""
Groww Live Data Adapter

Snapshot provider: returns today's OHLC for one instrument, whatever
interval is requested.

API Documentation: https://api.groww.in/v1/live-data/ohlc

Response format:
    {"status": "SUCCESS",
     "payload": {"NSE_RELIANCE": "{open: 149.50,high: 150.50,low: 148.50,close: 149.50}"}}
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

import aiohttp
from sqlalchemy.ext.asyncio import async_sessionmaker

from marketdata.db.database import find_stock_by_symbol, get_db_context
from marketdata.db.models import DataSource
from marketdata.schemas.market import GrowwOhlcResponse, OhlcApiResponse, PriceInterval
from marketdata.services.base import (
    CredentialMissingError,
    NotFoundError,
    ProviderPayloadError,
    RecordParseError,
)
from marketdata.services.data_ingestion.interface import HttpProviderAdapter, data_source_matches
from marketdata.services.data_ingestion.token_service import GrowwTokenService

logger = logging.getLogger(__name__)
IST = ZoneInfo("Asia/Kolkata")

BASE_URL = "https://api.groww.in/v1/live-data/ohlc"

OHLC_PATTERN = re.compile(
    r"\{open:\s*([\d.]+),\s*high:\s*([\d.]+),\s*low:\s*([\d.]+),\s*close:\s*([\d.]+)\}"
)

# Futures suffix, or an option suffix after the strike
FNO_SUFFIX = re.compile(r"(FUT|\d(CE|PE))$")


def parse_ohlc_string(ohlc_string: Any) -> dict[str, str]:
    """
    Parse "{open: 149.50,high: 150.50,low: 148.50,close: 149.50}".

    Returns a date-series row (string fields, volume "0").

    Raises:
        RecordParseError: If the string does not match exactly
    """
    if not isinstance(ohlc_string, str):
        raise RecordParseError(f"Failed to parse OHLC string: {ohlc_string!r}", service_name="Groww")
    match = OHLC_PATTERN.fullmatch(ohlc_string.strip())
    if not match:
        raise RecordParseError(f"Failed to parse OHLC string: {ohlc_string}", service_name="Groww")
    return {
        "1. open": match.group(1),
        "2. high": match.group(2),
        "3. low": match.group(3),
        "4. close": match.group(4),
        "5. volume": "0",
    }


def parse_groww_response(response: GrowwOhlcResponse, today: Optional[str] = None) -> OhlcApiResponse:
    """
    Convert the Groww envelope to the canonical container.

    The single bar is keyed by today's date in Asia/Kolkata.
    """
    if (response.status or "").upper() != "SUCCESS":
        raise ProviderPayloadError(
            f"Grow API returned error: {response.error} - {response.message}",
            service_name="Groww",
        )
    if not response.payload:
        raise ProviderPayloadError("Grow API returned empty payload", service_name="Groww")

    ohlc_string = next(iter(response.payload.values()))
    row = parse_ohlc_string(ohlc_string)
    key = today or datetime.now(IST).date().isoformat()
    return OhlcApiResponse(time_series_daily={key: row})


def determine_segment(symbol: str) -> str:
    """FNO for derivative-looking symbols, CASH otherwise."""
    if FNO_SUFFIX.search(symbol.strip().upper()):
        return "FNO"
    return "CASH"


class GrowwAdapter(HttpProviderAdapter):
    """Groww live OHLC client with bearer-token auth."""

    def __init__(
        self,
        token_service: Optional[GrowwTokenService] = None,
        session_factory: Optional[async_sessionmaker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        default_url: str = BASE_URL,
        **kwargs,
    ):
        super().__init__(session=session, **kwargs)
        self.token_service = token_service or GrowwTokenService()
        self.session_factory = session_factory
        self.default_url = default_url

    async def close(self) -> None:
        await super().close()
        await self.token_service.close()

    @property
    def name(self) -> str:
        return "Grow API"

    def supports(self, data_source: DataSource) -> bool:
        return data_source_matches(
            data_source,
            endpoint_keywords=("groww.in", "grow"),
            type_keywords=("grow",),
            name_keywords=("grow",),
        )

    def build_url(self, data_source: DataSource) -> str:
        endpoint = data_source.api_endpoint or ""
        return endpoint if "api.groww.in" in endpoint else self.default_url

    async def resolve_access_token(self, data_source: DataSource) -> str:
        """Token from key+secret exchange when configured, else the data source api_key."""
        if self.token_service.is_key_secret_configured():
            return await self.token_service.get_access_token()

        token = (data_source.api_key or "").strip()
        if not token:
            raise CredentialMissingError(
                "Groww API requires either groww_api_key + groww_api_secret in config, "
                "or api_key set on the data source (access token)",
                service_name=self.name,
            )
        return token

    async def _resolve_exchange(self, symbol: str) -> str:
        async with get_db_context(self.session_factory) as db:
            stock = await find_stock_by_symbol(db, symbol)
            if stock is None:
                raise NotFoundError(f"Stock not found with symbol: {symbol}", service_name=self.name)
            return stock.exchange.code

    async def fetch_ohlc_data(
        self,
        data_source: DataSource,
        symbol: str,
        interval: PriceInterval,
        exchange: Optional[str] = None,
    ) -> OhlcApiResponse:
        if interval != PriceInterval.ONE_DAY:
            logger.warning(
                f"Grow API OHLC endpoint returns real-time data only. Interval {interval.value} will be ignored."
            )

        exchange_code = exchange or await self._resolve_exchange(symbol)
        exchange_symbol = f"{exchange_code.upper()}_{symbol.upper()}"
        segment = determine_segment(symbol)
        token = await self.resolve_access_token(data_source)

        logger.info(f"Fetching OHLC data from Grow API for exchange_symbol: {exchange_symbol}, segment: {segment}")
        payload = await self._request_json(
            "GET",
            self.build_url(data_source),
            data_source,
            params={"segment": segment, "exchange_symbols": exchange_symbol},
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {token}",
                "X-API-VERSION": "1.0",
            },
        )
        if not isinstance(payload, dict):
            raise ProviderPayloadError("Grow API returned an unexpected payload", service_name=self.name)

        try:
            return parse_groww_response(GrowwOhlcResponse.model_validate(payload))
        except RecordParseError as e:
            # fatal: the snapshot has no other bar
            raise ProviderPayloadError(e.message, service_name=self.name) from e
