"""
AI Stocks Bot — FastAPI Application Factory
Health and status endpoints.
"""

import logging
from typing import Optional

from fastapi import FastAPI

from core.dispatcher import Dispatcher
from pipeline.runner import PipelineRunner
from web.routes import status

logger = logging.getLogger(__name__)


def create_app(dispatcher: Dispatcher, runner: Optional[PipelineRunner] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="AI Stocks Bot",
        description="Daily Russian market analytics bot",
        version="1.0.0",
    )
    app.state.dispatcher = dispatcher
    app.state.runner = runner

    app.include_router(status.router, prefix="/api", tags=["Status"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "ai-stocks-bot"}

    return app
