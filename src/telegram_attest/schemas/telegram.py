"""Telegram webhook schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Telegram for every update."""

    ok: bool = Field(True, description="Always true so Telegram does not redeliver")
    handled: str = Field(..., description="Event the update was dispatched as")
