"""Tests for the messaging gateway."""

from __future__ import annotations

import json

import httpx
import pytest

from telegram_attest.core.settings import Settings
from telegram_attest.errors import GatewayError
from telegram_attest.services.gateway import Button, HttpMessagingGateway, build_pairing_url


@pytest.fixture
def recorded() -> list[httpx.Request]:
    return []


@pytest.fixture
def gateway_settings(test_settings: Settings) -> Settings:
    return test_settings.model_copy(
        update={
            "telegram_api_base_url": "https://telegram.test",
            "device_relay_url": "http://relay.test/",
        }
    )


def _gateway(config: Settings, recorded: list[httpx.Request], status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        recorded.append(request)
        return httpx.Response(status, json={"ok": status < 400})

    return HttpMessagingGateway(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_send_to_chat_with_buttons(gateway_settings: Settings, recorded) -> None:
    gateway = _gateway(gateway_settings, recorded)

    await gateway.send_to_chat(
        "1001",
        "<b>hi</b>",
        html=True,
        buttons=[
            Button("Verify", url="https://attest.example/verify/X"),
            Button("Yes", callback="confirm:X"),
        ],
    )
    await gateway.close()

    [request] = recorded
    assert request.url == "https://telegram.test/bot123:test-token/sendMessage"
    assert json.loads(request.content) == {
        "chat_id": "1001",
        "text": "<b>hi</b>",
        "parse_mode": "HTML",
        "reply_markup": {
            "inline_keyboard": [
                [{"text": "Verify", "url": "https://attest.example/verify/X"}],
                [{"text": "Yes", "callback_data": "confirm:X"}],
            ]
        },
    }


@pytest.mark.asyncio
async def test_plain_chat_message(gateway_settings: Settings, recorded) -> None:
    gateway = _gateway(gateway_settings, recorded)
    await gateway.send_to_chat("1001", "hello")
    await gateway.answer_callback("cbq-1")
    await gateway.close()

    assert json.loads(recorded[0].content) == {"chat_id": "1001", "text": "hello"}
    assert recorded[1].url.path.endswith("/answerCallbackQuery")
    assert json.loads(recorded[1].content) == {"callback_query_id": "cbq-1"}


@pytest.mark.asyncio
async def test_send_to_device(gateway_settings: Settings, recorded) -> None:
    gateway = _gateway(gateway_settings, recorded)
    await gateway.send_to_device("0DEVICE/ADDR", "Attestation unit: x")
    await gateway.close()

    [request] = recorded
    assert request.url.raw_path == b"/devices/0DEVICE%2FADDR/messages"
    assert json.loads(request.content) == {"subject": "text", "body": "Attestation unit: x"}


@pytest.mark.asyncio
async def test_failed_delivery_raises(gateway_settings: Settings, recorded) -> None:
    gateway = _gateway(gateway_settings, recorded, status=502)
    with pytest.raises(GatewayError):
        await gateway.send_to_device("0DEVICE", "hello")
    await gateway.close()


@pytest.mark.asyncio
async def test_missing_bot_token_raises(gateway_settings: Settings, recorded) -> None:
    config = gateway_settings.model_copy(update={"telegram_bot_token": None})
    gateway = _gateway(config, recorded)
    with pytest.raises(GatewayError):
        await gateway.send_to_chat("1001", "hello")
    assert recorded == []


def test_pairing_url(test_settings: Settings) -> None:
    pubkey = test_settings.device_pubkey
    assert build_pairing_url("s3cret", config=test_settings) == f"obyte:{pubkey}@obyte.org/bb#s3cret"
    assert build_pairing_url(config=test_settings) == f"obyte:{pubkey}@obyte.org/bb#*"

    testnet = test_settings.model_copy(update={"testnet": True})
    assert build_pairing_url("s", config=testnet).startswith("obyte-tn:")


def test_pairing_url_requires_device_key(test_settings: Settings) -> None:
    config = test_settings.model_copy(update={"device_pubkey": ""})
    with pytest.raises(GatewayError):
        build_pairing_url("s", config=config)
