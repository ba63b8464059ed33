"""
Instrument Sync Scheduler

Runs the instrument sync on a cron expression (croniter), and once on
startup when the stock table is empty.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from croniter import croniter

from marketdata.core.config import settings
from marketdata.schemas.market import SyncResult
from marketdata.services.instruments.service import InstrumentSyncService, get_instrument_sync_service

logger = logging.getLogger(__name__)


async def run_startup_sync(sync_service: Optional[InstrumentSyncService] = None) -> Optional[SyncResult]:
    """Sync instruments if the stock table is empty. Failures are logged."""
    sync_service = sync_service or get_instrument_sync_service()
    try:
        if await sync_service.has_stocks():
            logger.info("Stock table has records, skipping instruments sync on startup")
            return None
        logger.info("Stock table is empty, running instruments sync on startup")
        result = await sync_service.fetch_and_sync()
        logger.info(f"Startup instruments sync complete: {result.created} created")
        return result
    except Exception as e:
        logger.error(f"Startup instrument sync failed: {e}")
        return None


class InstrumentSyncScheduler:
    """Fires the instrument sync at each cron occurrence (local time)."""

    def __init__(
        self,
        sync_service: Optional[InstrumentSyncService] = None,
        cron_expression: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.sync_service = sync_service or get_instrument_sync_service()
        self.cron_expression = cron_expression or settings.instruments_sync_cron
        if not croniter.is_valid(self.cron_expression):
            raise ValueError(f"Invalid instruments sync cron expression: {self.cron_expression}")
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def next_run(self, after: Optional[datetime] = None) -> datetime:
        return croniter(self.cron_expression, after or self._clock()).get_next(datetime)

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Instrument sync scheduler started (cron: {self.cron_expression}, next: {self.next_run()})")

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Instrument sync scheduler stopped")

    async def run_once(self) -> Optional[SyncResult]:
        logger.info("Scheduled instruments sync started")
        try:
            return await self.sync_service.fetch_and_sync()
        except Exception as e:
            logger.error(f"Instruments sync failed: {e}")
            return None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            delay = (self.next_run() - self._clock()).total_seconds()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=max(delay, 0))
                return
            except asyncio.TimeoutError:
                pass
            await self.run_once()
