"""
Admin API Endpoints

Manual trigger for the instrument sync.
"""

from fastapi import APIRouter

from marketdata.schemas.market import SyncResult
from marketdata.services.instruments.service import get_instrument_sync_service

router = APIRouter()


@router.post("/sync-instruments", response_model=SyncResult)
async def sync_instruments():
    """Fetch the instruments CSV and sync CASH/EQ stocks."""
    return await get_instrument_sync_service().fetch_and_sync()
