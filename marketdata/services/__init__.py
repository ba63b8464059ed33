"""
MarketData Services

Service layer containing the ingestion pipeline.
Each service has a defined interface (contract) and implementation.
"""

from marketdata.services.base import BaseService, ServiceError, MarketDataError

__all__ = ["BaseService", "ServiceError", "MarketDataError"]
