"""Translate Telegram updates into orchestrator calls."""

from __future__ import annotations

import logging
from typing import Any

from telegram_attest import messages
from telegram_attest.errors import AttestationError, GatewayError
from telegram_attest.models.order import Identity
from telegram_attest.services.orchestrator import (
    CALLBACK_CONFIRM,
    CALLBACK_REMOVE,
    AttestationOrchestrator,
)

logger = logging.getLogger(__name__)


def _identity_from(sender: dict[str, Any] | None) -> Identity | None:
    if not sender or sender.get("id") is None:
        return None
    return Identity(platform_user_id=str(sender["id"]), display_name=sender.get("username"))


def _split_command(text: str) -> tuple[str, str]:
    """Return ``(command, argument)`` for ``/cmd@bot arg`` style text."""
    head, _, rest = text.partition(" ")
    command = head[1:].split("@", 1)[0].lower()
    return command, rest.strip()


class UpdateDispatcher:
    """Routes one Telegram update to the matching orchestrator event.

    Classified failures have already been reported to the user by the
    orchestrator. Anything else is logged and answered with a generic text;
    no exception escapes :meth:`dispatch`.
    """

    def __init__(self, orchestrator: AttestationOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def dispatch(self, update: dict[str, Any]) -> str:
        """Handle ``update`` and return the name of the event it produced."""
        chat_id: str | None = None
        try:
            if "callback_query" in update:
                query = update["callback_query"]
                identity = _identity_from(query.get("from"))
                if identity is None:
                    return "ignored"
                chat_id = identity.platform_user_id
                return await self._on_callback(identity, query)

            message = update.get("message") or {}
            text = message.get("text")
            identity = _identity_from(message.get("from"))
            if identity is None or not isinstance(text, str):
                return "ignored"
            chat_id = identity.platform_user_id
            return await self._on_text(identity, text.strip())
        except AttestationError as err:
            logger.info("Update %s refused: %s", update.get("update_id"), err.code.value)
            return err.code.value
        except Exception:
            logger.error("Failed to process update %s", update.get("update_id"), exc_info=True)
            if chat_id is not None:
                await self._send_generic_failure(chat_id)
            return "error"

    async def _send_generic_failure(self, chat_id: str) -> None:
        try:
            await self.orchestrator.gateway.send_to_chat(chat_id, messages.UNKNOWN_ERROR)
        except GatewayError as exc:
            logger.warning("Could not report failure to %s: %s", chat_id, exc)

    async def _on_text(self, identity: Identity, text: str) -> str:
        orchestrator = self.orchestrator
        if text.startswith("/"):
            command, argument = _split_command(text)
            if command == "start":
                await orchestrator.open_deep_link(identity, argument or None)
                return "start"
            if command == "attest":
                await orchestrator.start_attestation(identity)
                return "attest"
            if command == "remove":
                await orchestrator.remove(identity)
                return "remove"
            await orchestrator.gateway.send_to_chat(
                identity.platform_user_id, messages.ATTESTATION_COMMAND
            )
            return "unknown_command"

        await orchestrator.submit_address(identity, text)
        return "address"

    async def _on_callback(self, identity: Identity, query: dict[str, Any]) -> str:
        query_id = query.get("id")
        if query_id:
            try:
                await self.orchestrator.gateway.answer_callback(str(query_id))
            except GatewayError as exc:
                logger.warning("Could not answer callback %s: %s", query_id, exc)

        action, _, address = str(query.get("data") or "").partition(":")
        if action == CALLBACK_CONFIRM:
            await self.orchestrator.confirm(identity, address or None)
            return "confirm"
        if action == CALLBACK_REMOVE:
            await self.orchestrator.remove(identity, address or None)
            return "remove"
        logger.warning("Unknown callback data %r", query.get("data"))
        return "ignored"
