"""
Database module for MarketData Ingest.

Provides SQLite database connection, models and CRUD helpers.
"""

from marketdata.db.database import get_db, get_db_context, init_db, close_db, AsyncSessionLocal
from marketdata.db.models import (
    Base,
    DataSource,
    Exchange,
    Stock,
    StockPrice,
    DataIngestionJob,
)

__all__ = [
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    "AsyncSessionLocal",
    "Base",
    "DataSource",
    "Exchange",
    "Stock",
    "StockPrice",
    "DataIngestionJob",
]
