# src/telegram_attest/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .devices import router as devices_router
from .redirects import router as redirects_router
from .telegram import router as telegram_router

__all__ = [
    "devices_router",
    "redirects_router",
    "telegram_router",
]
