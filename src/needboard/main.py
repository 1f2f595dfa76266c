# src/needboard/main.py
"""Main entry point for the Needboard application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from needboard.api.v1 import (
    messages_router,
    realtime_router,
    review_router,
    users_router,
)
from needboard.core.settings import settings
from needboard.db import create_tables

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Needboard API",
    description="Location-scoped realtime request board",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(messages_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(review_router, prefix="/api/v1")
app.include_router(realtime_router)


@app.on_event("startup")
async def on_startup() -> None:
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    if settings.create_tables_on_startup:
        create_tables()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Location-scoped realtime request board",
        "docs": "/docs",
        "websocket": "/ws",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("needboard.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
