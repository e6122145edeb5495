# src/telegram_attest/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import devices_router, redirects_router, telegram_router

__all__ = [
    "devices_router",
    "redirects_router",
    "telegram_router",
]
