"""Wallet device events forwarded by the device relay."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from telegram_attest.api.v1.dependencies import OrchestratorDep
from telegram_attest.errors import AttestationError
from telegram_attest.schemas.device import DeviceEvent, DeviceEventResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["devices"])


@router.post("/events", response_model=DeviceEventResponse)
async def device_event(event: DeviceEvent, orchestrator: OrchestratorDep) -> DeviceEventResponse:
    """Apply a wallet-side event; refusals are reported to the device itself."""
    try:
        if event.event == "paired":
            await orchestrator.on_device_paired(event.device_address, event.pairing_secret)
            return DeviceEventResponse(status="ok")
        if event.event == "address_added":
            await orchestrator.on_address_added(event.device_address, event.wallet_address or "")
            return DeviceEventResponse(status="ok")
        deep_link = await orchestrator.on_wallet_address_verified(
            event.device_address, event.wallet_address or ""
        )
    except AttestationError as err:
        logger.info("Device event %s from %s refused: %s", event.event, event.device_address, err)
        return DeviceEventResponse(status=err.code.value)
    return DeviceEventResponse(status="ok", deep_link=deep_link)
