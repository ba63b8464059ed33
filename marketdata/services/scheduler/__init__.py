"""
Schedulers

Periodic market data fetch, Groww live polling and cron-driven instrument sync.
"""

from marketdata.services.scheduler.market_data import MarketDataScheduler, TickSummary
from marketdata.services.scheduler.groww_live import GrowwLiveDataScheduler
from marketdata.services.scheduler.instrument_sync import InstrumentSyncScheduler, run_startup_sync

__all__ = [
    "MarketDataScheduler",
    "TickSummary",
    "GrowwLiveDataScheduler",
    "InstrumentSyncScheduler",
    "run_startup_sync",
]
