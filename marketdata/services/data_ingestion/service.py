"""
Market Data Service Implementation

Fetch -> normalize -> dedup -> persist, with an audit job per attempt.

1. Load stock and data source (NotFound / InactiveDataSource, no job)
2. Open a RUNNING job and commit it
3. Fetch through the provider registry (no DB session held)
4. In one transaction: save new records and complete the job
5. On any error: mark the job FAILED in its own transaction, re-raise
6. After commit: notify subscribers in the background
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from marketdata.db.database import (
    add_prices,
    get_data_source,
    get_db_context,
    get_stock,
    price_exists,
)
from marketdata.db.models import DataIngestionJob, StockPrice
from marketdata.schemas.market import (
    FetchRequest,
    FetchResult,
    PriceInterval,
    StockPriceMessage,
)
from marketdata.services.base import (
    InactiveDataSourceError,
    MarketDataError,
    NotFoundError,
)
from marketdata.services.data_ingestion import job_tracker
from marketdata.services.data_ingestion.interface import MarketDataServiceInterface
from marketdata.services.data_ingestion.normalizer import normalize
from marketdata.services.data_ingestion.registry import ProviderRegistry, get_provider_registry
from marketdata.services.notifications.notifier import PriceUpdateNotifier, get_notifier

logger = logging.getLogger(__name__)


class MarketDataService(MarketDataServiceInterface):
    """
    Ingestion orchestrator.

    Every call that gets past the stock/data-source lookup leaves exactly one
    job in COMPLETED or FAILED.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        registry: Optional[ProviderRegistry] = None,
        notifier: Optional[PriceUpdateNotifier] = None,
    ):
        self.session_factory = session_factory
        self.registry = registry or get_provider_registry()
        self.notifier = notifier or get_notifier()
        self._pending: set[asyncio.Task] = set()

    async def execute(self, input_data: FetchRequest) -> FetchResult:
        return await self.fetch_and_save(
            input_data.stock_id,
            input_data.data_source_id,
            input_data.interval,
            date_range_start=input_data.date_range_start,
            date_range_end=input_data.date_range_end,
        )

    async def fetch_and_save(
        self,
        stock_id: int,
        data_source_id: int,
        interval: PriceInterval = PriceInterval.ONE_DAY,
        date_range_start: Optional[datetime] = None,
        date_range_end: Optional[datetime] = None,
    ) -> FetchResult:
        logger.info(
            f"Fetching OHLC data for stock_id: {stock_id}, data_source_id: {data_source_id}, interval: {interval.value}"
        )

        async with get_db_context(self.session_factory) as db:
            stock = await get_stock(db, stock_id)
            if stock is None:
                raise NotFoundError(f"Stock not found with id: {stock_id}")
            data_source = await get_data_source(db, data_source_id)
            if data_source is None:
                raise NotFoundError(f"Data source not found with id: {data_source_id}")
            if not data_source.is_active:
                raise InactiveDataSourceError(f"Data source is not active: {data_source.name}")

            job = await job_tracker.create_ohlc_fetch_job(
                db,
                data_source_id=data_source.id,
                stock_id=stock.id,
                interval=interval,
                date_range_start=date_range_start,
                date_range_end=date_range_end,
            )
            job_id = job.id
            symbol = stock.symbol
            exchange_code = stock.exchange.code if stock.exchange else None

        try:
            response = await self.registry.fetch_ohlc_data(
                data_source, symbol, interval, exchange=exchange_code
            )
            result = await self._save(job_id, stock_id, data_source_id, interval, response)
        except asyncio.CancelledError:
            await self._record_failure(job_id, "Fetch cancelled before completion")
            raise
        except Exception as e:
            if isinstance(e, MarketDataError):
                await self._record_failure(job_id, e.message)
                raise
            await self._record_failure(job_id, f"{type(e).__name__}: {e}")
            raise MarketDataError(f"Failed to fetch OHLC data: {e}") from e

        logger.info(f"Successfully saved {result.records_saved} price records for {symbol}")
        if result.saved:
            self._schedule_notification(result.saved)
        return result

    async def _save(self, job_id, stock_id, data_source_id, interval, response) -> FetchResult:
        bars = normalize(response, interval)

        async with get_db_context(self.session_factory) as db:
            stock = await get_stock(db, stock_id)
            job = await db.get(DataIngestionJob, job_id)

            new_prices = []
            for bar in bars:
                if await price_exists(db, stock_id, bar.timestamp, interval):
                    continue
                new_prices.append(StockPrice(
                    stock=stock,
                    stock_id=stock_id,
                    data_source_id=data_source_id,
                    timestamp=bar.timestamp,
                    interval=interval,
                    open=bar.open,
                    high=bar.high,
                    low=bar.low,
                    close=bar.close,
                    volume=bar.volume,
                ))

            await add_prices(db, new_prices)
            job_tracker.complete_job(job, records_fetched=len(bars), records_saved=len(new_prices))
            saved = [StockPriceMessage.from_price(p) for p in new_prices]

        return FetchResult(
            job_id=job_id,
            records_fetched=len(bars),
            records_saved=len(saved),
            saved=saved,
        )

    async def _record_failure(self, job_id: int, error_message: str) -> None:
        try:
            async with get_db_context(self.session_factory) as db:
                job = await db.get(DataIngestionJob, job_id)
                job_tracker.fail_job(job, error_message)
        except Exception as e:
            logger.error(f"Could not mark job {job_id} as failed: {e}")

    # ============ Notifications ============

    def _schedule_notification(self, saved: list[StockPriceMessage]) -> None:
        task = asyncio.create_task(self.notifier.notify_saved(saved))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for outstanding notification deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def health_check(self) -> bool:
        try:
            async with get_db_context(self.session_factory) as db:
                await db.execute(select(1))
            return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False


# Singleton instance
_service_instance: Optional[MarketDataService] = None


def get_market_data_service() -> MarketDataService:
    """Get or create the market data service singleton."""
    global _service_instance
    if _service_instance is None:
        _service_instance = MarketDataService()
    return _service_instance


def set_market_data_service(service: Optional[MarketDataService]) -> None:
    """Replace the singleton (application startup and tests)."""
    global _service_instance
    _service_instance = service
