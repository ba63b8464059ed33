"""
Market Data Scheduler

Periodically walks the active instruments against one active data source.

Fixed rate with an initial delay. Instruments are fetched one at a time
with a throttle between them. A failing instrument is logged and the tick
moves on; stop() ends the tick at the next throttle wait.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketdata.core.config import settings
from marketdata.db.database import get_db_context, list_active_data_sources, list_active_stocks
from marketdata.db.models import DataSource
from marketdata.schemas.market import PriceInterval
from marketdata.services.data_ingestion.service import MarketDataService, get_market_data_service

logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    succeeded: int = 0
    failed: int = 0
    total: int = 0
    interrupted: bool = False


class MarketDataScheduler:
    """
    Usage:
        scheduler = MarketDataScheduler(service)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    label = "Market data"

    def __init__(
        self,
        service: Optional[MarketDataService] = None,
        session_factory: Optional[async_sessionmaker] = None,
        interval_ms: Optional[int] = None,
        initial_delay_ms: Optional[int] = None,
        throttle_ms: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
        price_interval: Optional[PriceInterval] = None,
    ):
        self.service = service or get_market_data_service()
        self.session_factory = session_factory
        self.interval = (settings.scheduler_interval_ms if interval_ms is None else interval_ms) / 1000
        self.initial_delay = (
            settings.scheduler_initial_delay_ms if initial_delay_ms is None else initial_delay_ms
        ) / 1000
        self.throttle = (settings.scheduler_throttle_ms if throttle_ms is None else throttle_ms) / 1000
        self.fetch_timeout = settings.scheduler_fetch_timeout_seconds if fetch_timeout is None else fetch_timeout
        self.price_interval = price_interval or PriceInterval(settings.scheduler_price_interval)

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            logger.warning(f"{self.label} scheduler already running")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"{self.label} scheduler started (interval={self.interval}s, initial_delay={self.initial_delay}s)"
        )

    def request_stop(self) -> None:
        """Signal the loop and any running tick to stop at the next wait."""
        self._stop_event.set()

    async def stop(self) -> None:
        """Stop the loop. An in-flight fetch may finish or time out first."""
        self.request_stop()
        if self._task:
            done, _ = await asyncio.wait({self._task}, timeout=self.fetch_timeout)
            if not done:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        logger.info(f"{self.label} scheduler stopped")

    async def _wait_for_stop(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if stop was requested."""
        if self._stop_event.is_set():
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run(self) -> None:
        if await self._wait_for_stop(self.initial_delay):
            return
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"{self.label} scheduler tick failed: {e}")
            remaining = self.interval - (time.monotonic() - started)
            if await self._wait_for_stop(remaining):
                return

    async def select_data_source(self, db: AsyncSession) -> Optional[DataSource]:
        """The highest-priority active data source, or None to skip the tick."""
        data_sources = await list_active_data_sources(db)
        if not data_sources:
            logger.info("No active data source present, skipping tick")
            return None
        return data_sources[0]

    async def tick(self) -> TickSummary:
        """One pass over the active instruments."""
        logger.info(f"{self.label} scheduler tick started")
        async with get_db_context(self.session_factory) as db:
            data_source = await self.select_data_source(db)
            if data_source is None:
                return TickSummary()
            stocks = [(s.id, s.symbol) for s in await list_active_stocks(db)]

        if not stocks:
            logger.info("No active stocks to fetch, skipping tick")
            return TickSummary()

        summary = TickSummary(total=len(stocks))
        for index, (stock_id, symbol) in enumerate(stocks):
            try:
                result = await asyncio.wait_for(
                    self.service.fetch_and_save(stock_id, data_source.id, self.price_interval),
                    timeout=self.fetch_timeout,
                )
                summary.succeeded += 1
                logger.debug(f"Fetched {symbol} from {data_source.name}: {result.records_saved} saved")
            except asyncio.TimeoutError:
                summary.failed += 1
                logger.warning(f"Fetch timed out for {symbol} from {data_source.name}")
            except Exception as e:
                summary.failed += 1
                logger.warning(f"Fetch failed for {symbol} ({stock_id}) from {data_source.name}: {e}")

            if index < len(stocks) - 1 and await self._wait_for_stop(self.throttle):
                summary.interrupted = True
                logger.warning(f"{self.label} scheduler interrupted")
                break

        logger.info(
            f"{self.label} fetch completed: {summary.succeeded} succeeded, "
            f"{summary.failed} failed (total: {summary.total})"
        )
        return summary
