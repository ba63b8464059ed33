"""
SQLAlchemy models for the market data store.

- Data sources and exchanges (operator-curated reference data)
- Stocks (created by instrument sync or manually)
- Stock prices (one row per instrument, timestamp and interval)
- Data ingestion jobs (audit trail of fetch attempts)
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    BigInteger,
    Numeric,
    DateTime,
    Time,
    Boolean,
    Text,
    Enum,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from marketdata.schemas.market import PriceInterval, JobStatus


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class DataSource(Base):
    """
    Third-party market data provider configuration.
    Read-only to the pipeline.
    """
    __tablename__ = "data_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    provider_type = Column(String(50), nullable=False)
    api_endpoint = Column(String(500), nullable=False)
    api_key = Column(String(1000), nullable=True)  # API key or direct bearer token
    rate_limit_per_minute = Column(Integer, nullable=True)
    rate_limit_per_day = Column(Integer, nullable=True)
    timeout_seconds = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=True)  # lower = preferred
    description = Column(String(1000), nullable=True)


class Exchange(Base):
    """Static exchange reference data."""
    __tablename__ = "exchanges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    code = Column(String(10), nullable=False, unique=True)  # NSE, BSE
    country = Column(String(50), nullable=False, default="IN")
    currency = Column(String(10), nullable=False, default="INR")
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class Stock(Base):
    """
    Tradable instrument.
    Created by instrument sync or manually; read by the orchestrator and scheduler.
    """
    __tablename__ = "stocks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    exchange_id = Column(Integer, ForeignKey("exchanges.id"), nullable=False)
    segment = Column(String(20), nullable=False, default="CASH")
    is_active = Column(Boolean, nullable=False, default=True)

    exchange = relationship("Exchange", lazy="joined")

    __table_args__ = (
        UniqueConstraint("symbol", "exchange_id", name="uq_stocks_symbol_exchange"),
    )


class StockPrice(Base):
    """
    One OHLCV candle.
    (stock_id, timestamp, interval) is the dedup key.
    """
    __tablename__ = "stock_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stock_id = Column(Integer, ForeignKey("stocks.id"), nullable=False)
    data_source_id = Column(Integer, ForeignKey("data_sources.id"), nullable=True)
    timestamp = Column(DateTime, nullable=False)  # naive UTC
    interval = Column(Enum(PriceInterval, native_enum=False, length=20), nullable=False)

    open = Column(Numeric(19, 4, asdecimal=True), nullable=False)
    high = Column(Numeric(19, 4, asdecimal=True), nullable=False)
    low = Column(Numeric(19, 4, asdecimal=True), nullable=False)
    close = Column(Numeric(19, 4, asdecimal=True), nullable=False)
    volume = Column(BigInteger, nullable=False, default=0)

    stock = relationship("Stock")

    __table_args__ = (
        UniqueConstraint("stock_id", "timestamp", "interval", name="uq_stock_prices_key"),
        Index("ix_stock_prices_stock_ts", "stock_id", "timestamp"),
    )


class DataIngestionJob(Base):
    """
    Audit record of one fetch attempt.
    Created RUNNING, updated exactly once to COMPLETED or FAILED, never deleted.
    """
    __tablename__ = "data_ingestion_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    data_source_id = Column(Integer, ForeignKey("data_sources.id"), nullable=False)
    stock_id = Column(Integer, ForeignKey("stocks.id"), nullable=False)
    job_type = Column(String(50), nullable=False)
    status = Column(Enum(JobStatus, native_enum=False, length=20), nullable=False)

    started_at = Column(DateTime, nullable=True, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    records_fetched = Column(Integer, nullable=True)
    records_saved = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)  # truncated to 2000 chars
    retry_count = Column(Integer, nullable=True, default=0)  # reserved

    interval_type = Column(Enum(PriceInterval, native_enum=False, length=20), nullable=True)
    date_range_start = Column(DateTime, nullable=True)
    date_range_end = Column(DateTime, nullable=True)
