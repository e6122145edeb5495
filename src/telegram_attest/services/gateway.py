"""Outbound messaging to the chat channel and the wallet device channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from telegram_attest.core.settings import Settings, settings
from telegram_attest.errors import GatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Button:
    """Inline button attached to a chat message.

    Exactly one of ``url`` or ``callback`` is set.
    """

    text: str
    url: str | None = None
    callback: str | None = None

    def as_telegram(self) -> dict[str, str]:
        if self.url is not None:
            return {"text": self.text, "url": self.url}
        return {"text": self.text, "callback_data": self.callback or ""}


class MessagingGateway(Protocol):
    """Messaging capability consumed by the orchestrator."""

    async def send_to_chat(
        self,
        chat_id: str,
        text: str,
        *,
        html: bool = False,
        buttons: Sequence[Button] = (),
    ) -> None: ...

    async def answer_callback(self, callback_query_id: str) -> None: ...

    async def send_to_device(self, device_address: str, text: str) -> None: ...

    def pairing_url(self, secret: str | None = None) -> str: ...


def build_pairing_url(secret: str | None = None, *, config: Settings | None = None) -> str:
    """Return the out-of-band URL a wallet opens to pair with this device."""
    config = config or settings
    if not config.device_pubkey:
        raise GatewayError("Device public key is not configured")
    pairing_secret = secret or config.permanent_pairing_secret
    return f"{config.pairing_protocol}:{config.device_pubkey}@{config.hub}#{pairing_secret}"


class HttpMessagingGateway:
    """Telegram Bot API for chats, HTTP device relay for wallets."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.device_relay_timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _post(self, url: str, payload: dict[str, Any], *, what: str) -> httpx.Response:
        client = await self._ensure_client()
        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise GatewayError(f"{what} failed: {exc}") from exc
        if not response.is_success:
            raise GatewayError(f"{what} responded with {response.status_code}")
        return response

    async def send_to_chat(
        self,
        chat_id: str,
        text: str,
        *,
        html: bool = False,
        buttons: Sequence[Button] = (),
    ) -> None:
        if not self.config.telegram_bot_token:
            raise GatewayError("Telegram bot token is not configured")
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if html:
            payload["parse_mode"] = "HTML"
        if buttons:
            # One button per row.
            payload["reply_markup"] = {
                "inline_keyboard": [[button.as_telegram()] for button in buttons]
            }
        url = (
            f"{self.config.telegram_api_base_url.rstrip('/')}"
            f"/bot{self.config.telegram_bot_token}/sendMessage"
        )
        await self._post(url, payload, what="Telegram sendMessage")

    async def answer_callback(self, callback_query_id: str) -> None:
        """Acknowledge a button press so the client stops its spinner."""
        if not self.config.telegram_bot_token:
            raise GatewayError("Telegram bot token is not configured")
        url = (
            f"{self.config.telegram_api_base_url.rstrip('/')}"
            f"/bot{self.config.telegram_bot_token}/answerCallbackQuery"
        )
        await self._post(url, {"callback_query_id": callback_query_id}, what="answerCallbackQuery")

    async def send_to_device(self, device_address: str, text: str) -> None:
        url = (
            f"{self.config.device_relay_url.rstrip('/')}"
            f"/devices/{quote(device_address, safe='')}/messages"
        )
        await self._post(url, {"subject": "text", "body": text}, what="Device relay")

    def pairing_url(self, secret: str | None = None) -> str:
        return build_pairing_url(secret, config=self.config)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
