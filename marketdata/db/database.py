"""
Database connection and session management.

Uses SQLite with aiosqlite for async support.
"""

import os
import logging
from datetime import datetime
from typing import AsyncGenerator, Optional, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from marketdata.db.models import (
    Base,
    DataSource,
    Exchange,
    Stock,
    StockPrice,
)
from marketdata.core.config import settings
from marketdata.schemas.market import PriceInterval

logger = logging.getLogger(__name__)

# Database path - create data directory if needed
DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "data")

# SQLite database URL
SQLITE_PATH = settings.sqlite_path or os.path.join(DATA_DIR, "marketdata.db")
DATABASE_URL = f"sqlite+aiosqlite:///{SQLITE_PATH}"

# Create async engine
# Note: SQLite requires check_same_thread=False for async
engine = create_async_engine(
    DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Recommended for SQLite
)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db() -> None:
    """
    Initialize the database - create all tables.
    Called on application startup.
    """
    try:
        os.makedirs(os.path.dirname(os.path.abspath(SQLITE_PATH)), exist_ok=True)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database initialized at: {SQLITE_PATH}")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db() -> None:
    """
    Close database connections.
    Called on application shutdown.
    """
    await engine.dispose()
    logger.info("Database connections closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.
    Use with FastAPI Depends().
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions.
    Commits on success, rolls back on error.
    """
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# CRUD helper functions

async def get_stock(session: AsyncSession, stock_id: int) -> Optional[Stock]:
    """Get a stock by id (exchange eagerly loaded)."""
    return await session.get(Stock, stock_id)


async def get_data_source(session: AsyncSession, data_source_id: int) -> Optional[DataSource]:
    """Get a data source by id."""
    return await session.get(DataSource, data_source_id)


async def find_data_source_by_name(session: AsyncSession, name: str) -> Optional[DataSource]:
    """Find a data source by name, ignoring case."""
    result = await session.execute(
        select(DataSource).where(func.lower(DataSource.name) == name.lower())
    )
    return result.scalars().first()


async def find_stock_by_symbol(session: AsyncSession, symbol: str) -> Optional[Stock]:
    """
    Find a stock by symbol.
    If the symbol is listed on several exchanges the lowest id wins.
    """
    result = await session.execute(
        select(Stock).where(Stock.symbol == symbol).order_by(Stock.id).limit(1)
    )
    return result.scalars().first()


async def find_stock_by_symbol_and_exchange(
    session: AsyncSession, symbol: str, exchange_id: int
) -> Optional[Stock]:
    """Find a stock by (symbol, exchange)."""
    result = await session.execute(
        select(Stock).where(Stock.symbol == symbol, Stock.exchange_id == exchange_id)
    )
    return result.scalars().first()


async def find_exchange_by_code(session: AsyncSession, code: str) -> Optional[Exchange]:
    """Find an exchange by its code (NSE, BSE)."""
    result = await session.execute(
        select(Exchange).where(func.upper(Exchange.code) == code.upper())
    )
    return result.scalars().first()


async def list_active_stocks(session: AsyncSession) -> Sequence[Stock]:
    """All active stocks, in id order."""
    result = await session.execute(
        select(Stock).where(Stock.is_active.is_(True)).order_by(Stock.id)
    )
    return result.scalars().all()


async def list_active_data_sources(session: AsyncSession) -> Sequence[DataSource]:
    """Active data sources ordered by priority (unset last), then id."""
    result = await session.execute(
        select(DataSource)
        .where(DataSource.is_active.is_(True))
        .order_by(DataSource.priority.is_(None), DataSource.priority, DataSource.id)
    )
    return result.scalars().all()


async def count_stocks(session: AsyncSession) -> int:
    """Total number of stocks."""
    result = await session.execute(select(func.count()).select_from(Stock))
    return int(result.scalar_one())


async def price_exists(
    session: AsyncSession,
    stock_id: int,
    timestamp: datetime,
    interval: PriceInterval,
) -> bool:
    """Check whether a price row already exists for the dedup key."""
    result = await session.execute(
        select(StockPrice.id).where(
            StockPrice.stock_id == stock_id,
            StockPrice.timestamp == timestamp,
            StockPrice.interval == interval,
        ).limit(1)
    )
    return result.first() is not None


async def add_prices(session: AsyncSession, prices: list[StockPrice]) -> list[StockPrice]:
    """Add a batch of price rows and flush so ids are assigned."""
    if prices:
        session.add_all(prices)
        await session.flush()
    return prices
