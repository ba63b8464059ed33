"""
CONTRACT: Market Data Ingestion

Input:  FetchRequest
Output: FetchResult

Provider payloads are parsed into OhlcApiResponse (the canonical series container),
normalized into OHLCVBar records and persisted as StockPrice rows. Saved rows are
broadcast as StockPriceMessage.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================


class PriceInterval(str, Enum):
    ONE_MINUTE = "1m"
    FIVE_MINUTE = "5m"
    FIFTEEN_MINUTE = "15m"
    THIRTY_MINUTE = "30m"
    ONE_HOUR = "1h"
    FOUR_HOUR = "4h"
    ONE_DAY = "1d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1mo"


class JobStatus(str, Enum):
    # PENDING and CANCELLED are reserved; jobs are created directly in RUNNING
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# =============================================================================
# PROVIDER PAYLOADS
# =============================================================================


class OhlcApiResponse(BaseModel):
    """
    Canonical series container returned by every provider adapter.

    Date-series providers fill the keyed sub-series (timestamp -> row dict).
    Chart-style providers fill `chart`. Rows are kept as raw dicts so that one
    malformed row never invalidates the whole payload.
    """

    time_series_daily: Optional[dict[str, Any]] = Field(default=None, alias="Time Series (Daily)")
    time_series_1min: Optional[dict[str, Any]] = Field(default=None, alias="Time Series (1min)")
    time_series_5min: Optional[dict[str, Any]] = Field(default=None, alias="Time Series (5min)")
    time_series_15min: Optional[dict[str, Any]] = Field(default=None, alias="Time Series (15min)")
    time_series_60min: Optional[dict[str, Any]] = Field(default=None, alias="Time Series (60min)")

    chart: Optional[dict[str, Any]] = None

    error_message: Optional[str] = Field(default=None, alias="Error Message")
    note: Optional[str] = Field(default=None, alias="Note")
    information: Optional[str] = Field(default=None, alias="Information")

    class Config:
        populate_by_name = True
        extra = "ignore"


class GrowwOhlcResponse(BaseModel):
    """
    Groww live OHLC envelope.

    {"status": "SUCCESS", "payload": {"NSE_RELIANCE": "{open: 149.50,high: 150.50,low: 148.50,close: 149.50}"}}
    """

    status: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None

    class Config:
        extra = "ignore"


class GrowwTokenResponse(BaseModel):
    """Groww key+secret token exchange response."""

    access_token: Optional[str] = None
    expires_in: Optional[int] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    class Config:
        extra = "ignore"


# =============================================================================
# NORMALIZED RECORDS
# =============================================================================


class OHLCVBar(BaseModel):
    """Single normalized candle, UTC timestamp, decimal prices."""

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = Field(default=0, ge=0)


class StockPriceMessage(BaseModel):
    """Broadcast payload for a newly saved price record."""

    id: Optional[int] = None
    stock_id: int
    symbol: str
    stock_name: Optional[str] = None
    timestamp: datetime
    interval: PriceInterval
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int

    @classmethod
    def from_price(cls, price: Any) -> "StockPriceMessage":
        return cls(
            id=price.id,
            stock_id=price.stock_id,
            symbol=price.stock.symbol,
            stock_name=price.stock.name,
            timestamp=price.timestamp,
            interval=price.interval,
            open=price.open,
            high=price.high,
            low=price.low,
            close=price.close,
            volume=price.volume,
        )


# =============================================================================
# INPUT / OUTPUT
# =============================================================================


class FetchRequest(BaseModel):
    """
    Request to fetch and persist OHLC data for one instrument.
    Sent by: Scheduler / operator API
    Received by: MarketDataService
    """

    stock_id: int = Field(..., ge=1)
    data_source_id: int = Field(..., ge=1)
    interval: PriceInterval = PriceInterval.ONE_DAY
    date_range_start: Optional[datetime] = None
    date_range_end: Optional[datetime] = None


class FetchResult(BaseModel):
    """Outcome of a successful fetch."""

    job_id: int
    records_fetched: int = Field(..., ge=0)
    records_saved: int = Field(..., ge=0)
    saved: list[StockPriceMessage] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Outcome of an instrument sync."""

    created: int = 0
    skipped: int = 0  # exchange not found
    existing: int = 0  # instrument already present
