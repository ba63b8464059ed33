"""
Groww Live Data Scheduler

Polls daily bars for every active instrument from the Groww data source,
which is looked up by name rather than by priority.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketdata.core.config import settings
from marketdata.db.database import find_data_source_by_name
from marketdata.db.models import DataSource
from marketdata.schemas.market import PriceInterval
from marketdata.services.data_ingestion.service import MarketDataService
from marketdata.services.scheduler.market_data import MarketDataScheduler

logger = logging.getLogger(__name__)

# Tried in order, case-insensitive
DATA_SOURCE_NAMES = ("Grow API", "Groww API")


class GrowwLiveDataScheduler(MarketDataScheduler):
    """Fixed-rate Groww poll reusing the market data tick."""

    label = "Groww live data"

    def __init__(
        self,
        service: Optional[MarketDataService] = None,
        session_factory: Optional[async_sessionmaker] = None,
        interval_ms: Optional[int] = None,
        initial_delay_ms: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
    ):
        super().__init__(
            service=service,
            session_factory=session_factory,
            interval_ms=settings.groww_scheduler_interval_ms if interval_ms is None else interval_ms,
            initial_delay_ms=(
                settings.groww_scheduler_initial_delay_ms if initial_delay_ms is None else initial_delay_ms
            ),
            throttle_ms=0,
            fetch_timeout=fetch_timeout,
            price_interval=PriceInterval.ONE_DAY,
        )

    async def select_data_source(self, db: AsyncSession) -> Optional[DataSource]:
        for name in DATA_SOURCE_NAMES:
            data_source = await find_data_source_by_name(db, name)
            if data_source is not None:
                break
        else:
            logger.warning(
                "No Groww data source found. Create a data source named 'Grow API' or 'Groww API'."
            )
            return None

        if not data_source.is_active:
            logger.info(f"Groww data source '{data_source.name}' is not active, skipping tick")
            return None
        return data_source
