"""Live device endpoints.

Endpoints:
- GET /api/live/devices - Current merged device collection
- GET /api/live/stream - Merge results as Server-Sent Events
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from cropwatch.live import LiveHub, get_live_hub
from cropwatch.schemas import DeviceRecord

logger = logging.getLogger(__name__)

# Seconds between keep-alive comments on an idle stream
KEEPALIVE_SECONDS = 15

router = APIRouter(prefix="/api/live", tags=["live"])


def sse_event(event_type: str, data: dict) -> str:
    """Format data as an SSE event."""
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"


@router.get("/devices", response_model=list[DeviceRecord])
async def live_devices(hub: LiveHub = Depends(get_live_hub)) -> list[DeviceRecord]:
    """Current state of the live device collection, most recently added first."""
    return hub.devices.snapshot


@router.get("/stream")
async def live_stream(request: Request, hub: LiveHub = Depends(get_live_hub)):
    """Stream device merges via Server-Sent Events.

    SSE Event Types:
    - device: A device was inserted or updated (action, index, device)
    """
    channel = hub.merge.open_channel()
    logger.info("Live stream opened")

    async def event_stream():
        try:
            while not await request.is_disconnected():
                try:
                    async with asyncio.timeout(KEEPALIVE_SECONDS):
                        result = await channel.get()
                except TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield sse_event("device", result.to_payload())
        finally:
            hub.merge.close_channel(channel)
            logger.info("Live stream closed")

    return StreamingResponse(event_stream(), media_type="text/event-stream")
