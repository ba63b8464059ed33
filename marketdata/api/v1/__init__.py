"""
API v1 Router

Operator endpoints for the ingestion pipeline.
"""

from fastapi import APIRouter

from marketdata.api.v1.endpoints import market_data, admin, stream

router = APIRouter()

# Include all endpoint routers
router.include_router(market_data.router, prefix="/market-data", tags=["Market Data"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
router.include_router(stream.router, prefix="/stream", tags=["Price Streaming"])
