"""
Market Data API Endpoints

Operator endpoints to trigger a fetch and inspect registered providers.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from marketdata.schemas.market import FetchRequest, FetchResult, PriceInterval
from marketdata.services.base import (
    InactiveDataSourceError,
    MarketDataError,
    NotFoundError,
    ProviderUnsupportedError,
)
from marketdata.services.data_ingestion.service import get_market_data_service

logger = logging.getLogger(__name__)

router = APIRouter()


def http_error(e: MarketDataError) -> HTTPException:
    """Map a domain error to an HTTP status."""
    if isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, (InactiveDataSourceError, ProviderUnsupportedError)):
        status = 409
    else:
        status = 502
    return HTTPException(status_code=status, detail=e.to_dict())


@router.post("/fetch", response_model=FetchResult)
async def fetch_market_data(
    stock_id: int = Query(..., ge=1),
    data_source_id: int = Query(..., ge=1),
    interval: PriceInterval = Query(default=PriceInterval.ONE_DAY),
):
    """
    Fetch OHLC data for one stock from one data source and persist new records.

    Returns the ingestion job id and fetched/saved counts.
    """
    service = get_market_data_service()
    try:
        return await service.execute(
            FetchRequest(stock_id=stock_id, data_source_id=data_source_id, interval=interval)
        )
    except MarketDataError as e:
        logger.warning(f"Fetch failed for stock {stock_id}: {e.message}")
        raise http_error(e)


@router.get("/providers")
async def list_providers():
    """Registered providers, in selection order."""
    service = get_market_data_service()
    return {"providers": service.registry.available_providers()}
