"""
Market Data Schema Contracts

JSON contracts between the ingestion components, the store and subscribers.
"""

from marketdata.schemas.market import (
    PriceInterval,
    JobStatus,
    OhlcApiResponse,
    GrowwOhlcResponse,
    GrowwTokenResponse,
    OHLCVBar,
    StockPriceMessage,
    FetchRequest,
    FetchResult,
    SyncResult,
)

__all__ = [
    "PriceInterval",
    "JobStatus",
    "OhlcApiResponse",
    "GrowwOhlcResponse",
    "GrowwTokenResponse",
    "OHLCVBar",
    "StockPriceMessage",
    "FetchRequest",
    "FetchResult",
    "SyncResult",
]
