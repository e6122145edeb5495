# mypy: ignore-errors
"""Tests for the Telegram webhook endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient

from telegram_attest import messages
from telegram_attest.core.settings import settings

WEBHOOK = "/api/v1/telegram/webhook"


def _update(text: str) -> dict:
    return {
        "update_id": 10,
        "message": {"message_id": 1, "from": {"id": 1001, "username": "alice"}, "text": text},
    }


def test_webhook_dispatches_update(client: TestClient, gateway) -> None:
    r = client.post(WEBHOOK, json=_update("/attest"))

    assert r.status_code == 200
    assert r.json() == {"ok": True, "handled": "attest"}
    assert gateway.chat_texts()[-1] == messages.SEND_WALLET


def test_webhook_reports_refusals_with_200(client: TestClient) -> None:
    r = client.post(WEBHOOK, json=_update("not an address"))

    assert r.status_code == 200
    assert r.json()["handled"] == "INVALID_ADDRESS"


def test_webhook_secret_is_enforced(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(settings, "telegram_webhook_secret", "hook-secret")

    r = client.post(WEBHOOK, json=_update("/attest"))
    assert r.status_code == 403

    r = client.post(
        WEBHOOK,
        json=_update("/attest"),
        headers={"X-Telegram-Bot-Api-Secret-Token": "hook-secret"},
    )
    assert r.status_code == 200
    assert r.json()["handled"] == "attest"
