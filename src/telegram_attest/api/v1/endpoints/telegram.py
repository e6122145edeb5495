"""Telegram webhook intake."""

from __future__ import annotations

import hmac
from typing import Annotated, Any

from fastapi import APIRouter, Body, Header, HTTPException, status

from telegram_attest.api.v1.dependencies import DispatcherDep
from telegram_attest.core.settings import settings
from telegram_attest.schemas.telegram import WebhookResponse

router = APIRouter(prefix="/telegram", tags=["telegram"])


@router.post("/webhook", response_model=WebhookResponse)
async def telegram_webhook(
    dispatcher: DispatcherDep,
    update: Annotated[dict[str, Any], Body(...)],
    secret_token: Annotated[
        str | None, Header(alias="X-Telegram-Bot-Api-Secret-Token")
    ] = None,
) -> WebhookResponse:
    """Dispatch one Telegram update.

    Always answers 200 once the secret matches; errors are reported to the
    user in the chat, never to Telegram.
    """
    expected = settings.telegram_webhook_secret
    if expected and not hmac.compare_digest(secret_token or "", expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret token")

    handled = await dispatcher.dispatch(update)
    return WebhookResponse(ok=True, handled=handled)
