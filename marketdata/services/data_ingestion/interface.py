"""
Market Data Provider Interface

Defines the contract every provider adapter implements, plus the shared
aiohttp plumbing (session, timeout, retry on 5xx) the HTTP adapters use.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from marketdata.core.config import settings
from marketdata.db.models import DataSource
from marketdata.schemas.market import FetchRequest, FetchResult, OhlcApiResponse, PriceInterval
from marketdata.services.base import (
    BaseService,
    ProviderHttpError,
    ProviderPayloadError,
)

logger = logging.getLogger(__name__)


def data_source_matches(data_source: DataSource, endpoint_keywords=(), type_keywords=(), name_keywords=()) -> bool:
    """Case-insensitive substring match on endpoint, provider type and name."""
    endpoint = (data_source.api_endpoint or "").lower()
    provider_type = (data_source.provider_type or "").lower()
    name = (data_source.name or "").lower()
    return (
        any(k in endpoint for k in endpoint_keywords)
        or any(k in provider_type for k in type_keywords)
        or any(k in name for k in name_keywords)
    )


class MarketDataProvider(ABC):
    """
    Provider adapter contract.

    supports(): does this adapter handle the data source?
    fetch_ohlc_data(): fetch and return the canonical series container.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging."""
        pass

    @abstractmethod
    def supports(self, data_source: DataSource) -> bool:
        pass

    @abstractmethod
    async def fetch_ohlc_data(
        self,
        data_source: DataSource,
        symbol: str,
        interval: PriceInterval,
        exchange: Optional[str] = None,
    ) -> OhlcApiResponse:
        """
        Fetch OHLC data for one symbol.

        Args:
            data_source: Provider configuration
            symbol: Trading symbol
            interval: Requested candle interval
            exchange: Exchange code of the instrument, when the caller knows it

        Raises:
            MarketDataError: On any fatal provider condition
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass


class HttpProviderAdapter(MarketDataProvider):
    """
    Base for adapters talking JSON over HTTP.

    Retries only on remote 5xx, with a fixed backoff between attempts.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        self._session = session
        self._owns_session = session is None
        self.max_retries = settings.provider_max_retries if max_retries is None else max_retries
        self.retry_backoff = (
            settings.provider_retry_backoff_seconds if retry_backoff is None else retry_backoff
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _timeout(self, data_source: DataSource) -> aiohttp.ClientTimeout:
        seconds = data_source.timeout_seconds or settings.provider_default_timeout_seconds
        return aiohttp.ClientTimeout(total=seconds)

    async def _request_json(
        self,
        method: str,
        url: str,
        data_source: DataSource,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        Perform a request and decode the JSON body.

        Raises:
            ProviderHttpError: Non-2xx status (after retries for 5xx), timeout or transport error
            ProviderPayloadError: Body is not JSON
        """
        session = await self._ensure_session()
        timeout = self._timeout(data_source)
        attempt = 0

        while True:
            try:
                async with session.request(
                    method, url, params=params, headers=headers, timeout=timeout
                ) as resp:
                    body = await resp.text()
                    if resp.status >= 400:
                        raise ProviderHttpError(
                            f"Failed to fetch data from {self.name}: {resp.status} - {body}",
                            status=resp.status,
                            body=body,
                            service_name=self.name,
                        )
            except ProviderHttpError as e:
                if e.retryable and attempt < self.max_retries:
                    attempt += 1
                    logger.warning(f"Retrying {self.name} call after error (attempt {attempt}): {e.status}")
                    await asyncio.sleep(self.retry_backoff)
                    continue
                logger.error(f"{self.name} call failed with status {e.status}: {e.body}")
                raise
            except asyncio.TimeoutError as e:
                logger.error(f"{self.name} call timed out after {timeout.total}s")
                raise ProviderHttpError(
                    f"Failed to fetch data from {self.name}: timed out after {timeout.total}s",
                    service_name=self.name,
                ) from e
            except aiohttp.ClientError as e:
                logger.error(f"{self.name} call failed: {e}")
                raise ProviderHttpError(
                    f"Failed to fetch data from {self.name}: {e}",
                    service_name=self.name,
                ) from e

            try:
                return json.loads(body)
            except ValueError as e:
                raise ProviderPayloadError(
                    f"{self.name} returned a non-JSON body",
                    body=body[:500],
                    service_name=self.name,
                ) from e


class MarketDataServiceInterface(BaseService[FetchRequest, FetchResult]):
    """
    Market Data Ingestion Contract.

    INPUT: FetchRequest
        - stock_id: Instrument to fetch
        - data_source_id: Provider configuration to use
        - interval: Candle interval

    OUTPUT: FetchResult
        - job_id: Audit job recording the attempt
        - records_fetched / records_saved: Counts
        - saved: Newly persisted records
    """

    @property
    def name(self) -> str:
        return "MarketDataService"

    @abstractmethod
    async def execute(self, input_data: FetchRequest) -> FetchResult:
        """Fetch, normalize, dedup and persist OHLC data."""
        pass

    @abstractmethod
    async def fetch_and_save(
        self,
        stock_id: int,
        data_source_id: int,
        interval: PriceInterval = PriceInterval.ONE_DAY,
    ) -> FetchResult:
        pass
