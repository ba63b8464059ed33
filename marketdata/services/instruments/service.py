"""
Instrument Sync Service

Syncs CASH/EQ instruments from the reference CSV into the stocks table.
Idempotent: an instrument already present for (symbol, exchange) is left as is.
The HTTP fetch runs outside any transaction; the DB sync runs in one.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketdata.core.config import settings
from marketdata.db.database import (
    count_stocks,
    find_exchange_by_code,
    find_stock_by_symbol_and_exchange,
    get_db_context,
)
from marketdata.db.models import Exchange, Stock
from marketdata.schemas.market import SyncResult
from marketdata.services.instruments.csv_parser import InstrumentRow, parse_instruments
from marketdata.services.instruments.fetcher import InstrumentFetcher

logger = logging.getLogger(__name__)

SEGMENT_CASH = "CASH"
SERIES_EQ = "EQ"


class InstrumentSyncService:
    """Fetch, filter and upsert reference instruments."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        fetcher: Optional[InstrumentFetcher] = None,
        supported_exchanges: Optional[Iterable[str]] = None,
    ):
        self.session_factory = session_factory
        self.fetcher = fetcher or InstrumentFetcher()
        exchanges = supported_exchanges if supported_exchanges is not None else settings.instruments_supported_exchanges
        self.supported_exchanges = {e.upper() for e in exchanges}

    def is_eligible(self, row: InstrumentRow) -> bool:
        return (
            row.segment.upper() == SEGMENT_CASH
            and row.series.upper() == SERIES_EQ
            and row.exchange.upper() in self.supported_exchanges
            and bool(row.trading_symbol)
            and bool(row.name)
        )

    async def fetch_and_sync(self) -> SyncResult:
        """Fetch the CSV and sync it. An empty or failed fetch yields a zero result."""
        logger.info(f"Starting instruments sync from {self.fetcher.url}")
        csv_body = await self.fetcher.fetch()
        if not csv_body or not csv_body.strip():
            logger.warning("Empty response from instruments URL")
            return SyncResult()
        return await self.parse_and_sync(csv_body)

    async def parse_and_sync(self, csv_body: str) -> SyncResult:
        rows = parse_instruments(csv_body)
        if not rows:
            logger.warning("Instruments CSV has no usable rows")
            return SyncResult()

        async with get_db_context(self.session_factory) as db:
            result = await self._sync_rows(db, rows)

        logger.info(
            f"Instruments sync complete: {result.created} created, "
            f"{result.skipped} skipped (exchange not found), {result.existing} already present"
        )
        return result

    async def _sync_rows(self, db: AsyncSession, rows: list[InstrumentRow]) -> SyncResult:
        result = SyncResult()
        exchanges: dict[str, Optional[Exchange]] = {}
        seen: set[tuple[str, int]] = set()

        for row in rows:
            if not self.is_eligible(row):
                continue

            code = row.exchange.upper()
            if code not in exchanges:
                exchanges[code] = await find_exchange_by_code(db, code)
            exchange = exchanges[code]
            if exchange is None:
                logger.debug(f"Exchange {code} not found, skipping {row.trading_symbol}")
                result.skipped += 1
                continue

            key = (row.trading_symbol, exchange.id)
            if key in seen or await find_stock_by_symbol_and_exchange(db, row.trading_symbol, exchange.id):
                result.existing += 1
                continue

            db.add(Stock(
                symbol=row.trading_symbol,
                name=row.name,
                exchange_id=exchange.id,
                segment=SEGMENT_CASH,
                is_active=True,
            ))
            seen.add(key)
            result.created += 1

        await db.flush()
        return result

    async def has_stocks(self) -> bool:
        async with get_db_context(self.session_factory) as db:
            return await count_stocks(db) > 0

    async def close(self) -> None:
        await self.fetcher.close()


# Singleton instance
_sync_service: Optional[InstrumentSyncService] = None


def get_instrument_sync_service() -> InstrumentSyncService:
    """Get or create the instrument sync service singleton."""
    global _sync_service
    if _sync_service is None:
        _sync_service = InstrumentSyncService()
    return _sync_service
