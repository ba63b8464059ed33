"""
Instrument Sync

Reference-data sync: instruments CSV -> stocks table.
"""

from marketdata.services.instruments.csv_parser import InstrumentRow, parse_instruments
from marketdata.services.instruments.fetcher import InstrumentFetcher
from marketdata.services.instruments.service import (
    InstrumentSyncService,
    get_instrument_sync_service,
)

__all__ = [
    "InstrumentRow",
    "parse_instruments",
    "InstrumentFetcher",
    "InstrumentSyncService",
    "get_instrument_sync_service",
]
