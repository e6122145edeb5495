"""Short-lived key/value relation ferrying wallet addresses between channels."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Final

import redis

from telegram_attest.core.settings import settings

logger = logging.getLogger(__name__)

_KEY_PREFIX: Final[str] = "attest:session:"


class SessionBridge:
    """Maps a pairing token or device address to a wallet address.

    Entries are single-use: :meth:`consume` reads and deletes atomically.
    Backed by Redis when ``REDIS_URL`` is configured; otherwise, and whenever
    Redis becomes unreachable, entries live in an in-process store.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        ttl_seconds: int | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        self.ttl_seconds = int(ttl_seconds or settings.session_ttl_seconds)
        self._redis: redis.Redis | None = client
        if self._redis is None and redis_url:
            self._redis = redis.from_url(redis_url, decode_responses=True)
        self._local: dict[str, tuple[str, float]] = {}
        self._lock = Lock()

    def _redis_failed(self, op: str, exc: Exception) -> None:
        logger.warning("Session store %s failed, using in-process store: %s", op, exc)
        self._redis = None

    def put(self, key: str, address: str, ttl_seconds: int | None = None) -> None:
        """Store ``address`` under ``key``, replacing any previous entry."""
        ttl = int(ttl_seconds or self.ttl_seconds)
        if self._redis is not None:
            try:
                self._redis.set(_KEY_PREFIX + key, address, ex=ttl)
                return
            except redis.RedisError as exc:
                self._redis_failed("put", exc)

        with self._lock:
            self._local[key] = (address, time.monotonic() + ttl)

    def get(self, key: str) -> str | None:
        """Return the address stored under ``key`` without consuming it."""
        if self._redis is not None:
            try:
                return self._redis.get(_KEY_PREFIX + key)
            except redis.RedisError as exc:
                self._redis_failed("get", exc)

        with self._lock:
            return self._live_entry(key)

    def consume(self, key: str) -> str | None:
        """Return and delete the address stored under ``key``."""
        if self._redis is not None:
            try:
                pipe = self._redis.pipeline(transaction=True)
                pipe.get(_KEY_PREFIX + key)
                pipe.delete(_KEY_PREFIX + key)
                value, _ = pipe.execute()
                return value
            except redis.RedisError as exc:
                self._redis_failed("consume", exc)

        with self._lock:
            value = self._live_entry(key)
            self._local.pop(key, None)
            return value

    def delete(self, key: str | None) -> None:
        """Drop the entry for ``key`` if there is one."""
        if not key:
            return
        if self._redis is not None:
            try:
                self._redis.delete(_KEY_PREFIX + key)
                return
            except redis.RedisError as exc:
                self._redis_failed("delete", exc)

        with self._lock:
            self._local.pop(key, None)

    def _live_entry(self, key: str) -> str | None:
        entry = self._local.get(key)
        if entry is None:
            return None
        address, expiry = entry
        if expiry < time.monotonic():
            self._local.pop(key, None)
            return None
        return address


def get_session_bridge() -> SessionBridge:
    """Build a session bridge configured from settings.

    Callers keep the instance; the in-process store is not shared between
    instances.
    """
    return SessionBridge(settings.redis_url)
