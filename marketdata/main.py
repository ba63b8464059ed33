"""
MarketData Ingest - FastAPI Application

Main entry point: wires the ingestion pipeline, schedulers and operator API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from marketdata.core.config import settings
from marketdata.api.v1 import router as api_v1_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    # Initialize SQLite database
    from marketdata.db.database import init_db, close_db
    await init_db()

    # Initialize Redis fan-out
    from marketdata.services.notifications.redis_client import init_redis, close_redis
    redis_client = await init_redis()
    if not redis_client:
        logger.info("Redis unavailable - price updates delivered in-process only")

    from marketdata.services.data_ingestion.service import get_market_data_service
    from marketdata.services.instruments.service import get_instrument_sync_service
    from marketdata.services.scheduler import (
        GrowwLiveDataScheduler,
        InstrumentSyncScheduler,
        MarketDataScheduler,
        run_startup_sync,
    )

    service = get_market_data_service()
    sync_service = get_instrument_sync_service()

    if settings.instruments_sync_on_startup:
        await run_startup_sync(sync_service)

    market_scheduler = None
    if settings.scheduler_enabled:
        market_scheduler = MarketDataScheduler(service)
        await market_scheduler.start()
    else:
        logger.info("Market data scheduler disabled (scheduler_enabled=false)")

    groww_scheduler = None
    if settings.groww_scheduler_enabled:
        groww_scheduler = GrowwLiveDataScheduler(service)
        await groww_scheduler.start()

    sync_scheduler = None
    if settings.instruments_sync_scheduled:
        sync_scheduler = InstrumentSyncScheduler(sync_service)
        await sync_scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    if market_scheduler:
        await market_scheduler.stop()
    if groww_scheduler:
        await groww_scheduler.stop()
    if sync_scheduler:
        await sync_scheduler.stop()
    await service.drain()
    await service.registry.close()
    await sync_service.close()
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    MarketData Ingest API

    ## Pipeline
    - **Providers**: Alpha Vantage, Yahoo Finance, Groww (selected per data source)
    - **Normalization**: Canonical UTC timestamps and decimal prices
    - **Dedup**: One record per (stock, timestamp, interval)
    - **Jobs**: Every fetch attempt is audited
    - **Streaming**: Newly saved prices pushed over SSE and Redis
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Include API routes
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
