"""Attestation publisher client.

Commits an identity-to-address binding to the ledger through the attestor
node's HTTP interface and returns the identifier of the unit that carries it.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import httpx
from jose import jwt

from telegram_attest.core.settings import settings
from telegram_attest.errors import PublishFailedError
from telegram_attest.utils.hash import blake3_hexdigest, canonical_json

logger = logging.getLogger(__name__)


class AttestationPublisher(Protocol):
    """Capability the orchestrator uses to publish attestations."""

    async def publish(self, address: str, profile: Mapping[str, str]) -> str: ...


@dataclass(frozen=True)
class PublisherConfig:
    """Immutable configuration for publisher requests."""

    base_url: str
    shared_secret: str | None
    audience: str
    token_ttl_seconds: int
    timeout_seconds: float


def load_publisher_config() -> PublisherConfig:
    """Build configuration object from global settings."""
    return PublisherConfig(
        base_url=settings.publisher_base_url,
        shared_secret=settings.publisher_shared_secret,
        audience=settings.publisher_audience,
        token_ttl_seconds=settings.publisher_token_ttl_seconds,
        timeout_seconds=float(settings.publisher_timeout_seconds),
    )


def idempotency_key(address: str, profile: Mapping[str, str]) -> str:
    """Return a stable key identifying one (address, profile) attestation."""
    return blake3_hexdigest(canonical_json({"address": address, "profile": dict(profile)}))


class HttpAttestationPublisher:
    """HTTP client wrapper for the attestor node."""

    def __init__(
        self,
        config: PublisherConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_publisher_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    def _build_headers(self, *, key: str) -> dict[str, str]:
        headers = {"Idempotency-Key": key}
        if self.config.shared_secret:
            now = int(time.time())
            payload = {
                "iss": settings.app_name,
                "aud": self.config.audience,
                "iat": now,
                "exp": now + max(1, self.config.token_ttl_seconds),
                "jti": secrets.token_hex(8),
            }
            token = jwt.encode(payload, self.config.shared_secret, algorithm="HS256")
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def publish(self, address: str, profile: Mapping[str, str]) -> str:
        """Publish the attestation and return the unit identifier.

        Raises:
            PublishFailedError: On transport failure, a non-2xx answer, or an
                answer without a unit.
        """
        client = await self._ensure_client()
        key = idempotency_key(address, profile)
        try:
            response = await client.post(
                "/attestations",
                json={"address": address, "profile": dict(profile)},
                headers=self._build_headers(key=key),
            )
        except httpx.HTTPError as exc:
            logger.warning("Attestation publish for %s failed: %s", address, exc)
            raise PublishFailedError(f"Publisher request failed: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "Publisher rejected attestation for %s with status %d",
                address,
                response.status_code,
            )
            raise PublishFailedError(f"Publisher responded with {response.status_code}")

        try:
            unit = response.json().get("unit")
        except (ValueError, AttributeError) as exc:
            raise PublishFailedError("Publisher returned an unreadable body") from exc
        if not isinstance(unit, str) or not unit:
            raise PublishFailedError("Publisher response carried no unit")

        logger.info("Attested %s in unit %s", address, unit)
        return unit

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
