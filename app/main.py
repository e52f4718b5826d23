"""
FastAPI application entrypoint for the Drive integration service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import (
    get_channel_manager,
    get_credential_manager,
    get_renewal_scheduler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the renewal scheduler and the optional watch channel with the app."""
    settings = get_settings()
    scheduler = get_renewal_scheduler()
    scheduler.start()

    webhook_url = settings.drive_watch.webhook_url
    if settings.drive_watch.auto_start and webhook_url:
        if await get_credential_manager().is_authenticated():
            await get_channel_manager().start(str(webhook_url))
        else:
            logger.warning("Drive watch auto-start skipped: Google account not connected")

    yield

    await get_channel_manager().stop()
    scheduler.shutdown()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Drive Integration Service",
        version="0.1.0",
        description="Credential, change-notification and archive export API for Google Drive.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
