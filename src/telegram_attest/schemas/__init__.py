# src/telegram_attest/schemas/__init__.py
"""
Pydantic schemas for API request/response models.
"""

from .device import DeviceEvent, DeviceEventResponse
from .telegram import WebhookResponse

__all__ = ["DeviceEvent", "DeviceEventResponse", "WebhookResponse"]
