"""
Server-Sent Events (SSE) endpoint for price update streaming.

Pushes newly saved price records to clients as they are ingested.
"""

import asyncio
import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from marketdata.services.notifications.notifier import TOPIC_ALL, get_notifier, stock_topic

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/prices")
async def stream_prices(
    stock_id: Optional[int] = Query(default=None, ge=1, description="Only updates for this stock"),
    heartbeat: int = Query(default=15, ge=1, le=60, description="Heartbeat interval in seconds"),
):
    """
    Stream price updates via SSE.

    Usage (JavaScript):
    ```js
    const eventSource = new EventSource('/api/v1/stream/prices?stock_id=1');
    eventSource.onmessage = (event) => {
      const records = JSON.parse(event.data);
    };
    ```
    """
    topic = stock_topic(stock_id) if stock_id else TOPIC_ALL

    async def event_generator():
        notifier = get_notifier()
        client_id = str(uuid.uuid4())
        queue = notifier.subscribe(client_id, topic)

        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
                    yield f"event: {event['topic']}\ndata: {json.dumps(event['data'])}\n\n"
                except asyncio.TimeoutError:
                    # Send heartbeat to keep connection alive
                    yield ": heartbeat\n\n"
        except asyncio.CancelledError:
            pass
        finally:
            notifier.unsubscribe(client_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering for nginx
        },
    )
