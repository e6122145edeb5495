"""Tests for the HTTP attestation publisher."""

from __future__ import annotations

import json

import httpx
import pytest
from jose import jwt

from telegram_attest.errors import PublishFailedError
from telegram_attest.services.publisher import (
    HttpAttestationPublisher,
    PublisherConfig,
    idempotency_key,
)

PROFILE = {"userId": "1001", "username": "alice"}


def _config(secret: str | None = "shared-secret") -> PublisherConfig:
    return PublisherConfig(
        base_url="http://publisher.test",
        shared_secret=secret,
        audience="attestation-publisher",
        token_ttl_seconds=60,
        timeout_seconds=5.0,
    )


def _publisher(handler, secret: str | None = "shared-secret") -> HttpAttestationPublisher:
    return HttpAttestationPublisher(_config(secret), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_publish_returns_unit(address: str) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"unit": "unit-abc"})

    publisher = _publisher(handler)
    try:
        unit = await publisher.publish(address, PROFILE)
    finally:
        await publisher.close()

    assert unit == "unit-abc"
    [request] = seen
    assert request.method == "POST"
    assert request.url == "http://publisher.test/attestations"
    assert json.loads(request.content) == {"address": address, "profile": PROFILE}
    assert request.headers["Idempotency-Key"] == idempotency_key(address, PROFILE)

    scheme, token = request.headers["Authorization"].split(" ", 1)
    assert scheme == "Bearer"
    claims = jwt.decode(
        token, "shared-secret", algorithms=["HS256"], audience="attestation-publisher"
    )
    assert claims["exp"] > claims["iat"]


@pytest.mark.asyncio
async def test_publish_without_secret_sends_no_bearer(address: str) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"unit": "unit-abc"})

    publisher = _publisher(handler, secret=None)
    assert await publisher.publish(address, PROFILE) == "unit-abc"
    assert "Authorization" not in seen[0].headers
    await publisher.close()


def test_idempotency_key_is_stable(address: str) -> None:
    reordered = {"username": "alice", "userId": "1001"}
    assert idempotency_key(address, PROFILE) == idempotency_key(address, reordered)
    assert idempotency_key(address, PROFILE) != idempotency_key(address, {"userId": "1001"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "node down"}),
        httpx.Response(200, json={"status": "queued"}),
        httpx.Response(200, json={"unit": ""}),
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json=["unit-abc"]),
    ],
)
async def test_bad_answers_raise(address: str, response: httpx.Response) -> None:
    publisher = _publisher(lambda request: response)
    with pytest.raises(PublishFailedError):
        await publisher.publish(address, PROFILE)
    await publisher.close()


@pytest.mark.asyncio
async def test_transport_errors_raise(address: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    publisher = _publisher(handler)
    with pytest.raises(PublishFailedError):
        await publisher.publish(address, PROFILE)
    await publisher.close()
