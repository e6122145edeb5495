# src/telegram_attest/main.py
"""Main entry point for the Telegram attestation service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from telegram_attest.api.v1 import devices_router, redirects_router, telegram_router
from telegram_attest.api.v1.dependencies import close_orchestrator
from telegram_attest.core.logging_config import configure_logging
from telegram_attest.core.settings import settings
from telegram_attest.db.session import create_tables

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Binds Telegram identities to verified wallet addresses",
    version=settings.app_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Verify and pairing links are opened by people, so they live at the root.
app.include_router(redirects_router)
app.include_router(telegram_router, prefix="/api/v1")
app.include_router(devices_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    create_tables()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_orchestrator()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the service."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "telegram_attest.main:app",
        host=settings.webserver_host,
        port=settings.webserver_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
