"""
AI Stocks Bot — Status API Route
GET /api/status — subscriber count, last broadcast and next scheduled run.

Subscriber data is owned by the dispatcher, so it is requested through the
dispatcher's inbox rather than read directly.
"""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request

from core.models import StatusQuery

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_TIMEOUT = 5.0


@router.get("/status")
async def get_status(request: Request):
    """Bot status. 503 while the dispatcher is busy (e.g. generating analytics)."""
    dispatcher = request.app.state.dispatcher
    runner = request.app.state.runner

    reply = asyncio.get_running_loop().create_future()
    await dispatcher.submit(StatusQuery(reply=reply))
    try:
        state = await asyncio.wait_for(reply, timeout=STATUS_TIMEOUT)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail="Dispatcher busy")

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "subscribers": state["subscribers"],
        "last_broadcast": state["last_broadcast"],
        "jobs": runner.get_job_status() if runner else [],
    }
