"""
FastAPI application entry point for the presence service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storage_presence.config import get_settings
from storage_presence.errors import StoreUnavailable
from storage_presence.routes import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Storage Presence Service", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        # Raised outside a route's _http_errors block, e.g. from a dependency.
        logger.warning("Store unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Storage temporarily unavailable, retry later"},
            headers={"Retry-After": "1"},
        )

    return app


app = create_app()
