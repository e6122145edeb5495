"""Correlation tokens bridging the wallet and chat channels.

A token is the URL-safe base64 form (padding stripped) of a urlencoded
``key=value`` map. Telegram only passes ``[A-Za-z0-9_-]`` through ``/start``
deep-link payloads, which this alphabet satisfies.
"""

from __future__ import annotations

import base64
import binascii
import re
import secrets
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode

from telegram_attest.errors import MalformedTokenError

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _encode_b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _decode_b64(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


class CorrelationTokenCodec:
    """Encodes and decodes correlation tokens."""

    def encode(self, payload: Mapping[str, str]) -> str:
        if not payload:
            raise ValueError("Cannot encode an empty payload")
        return _encode_b64(urlencode(list(payload.items())).encode("utf-8"))

    def decode(self, token: str) -> dict[str, str]:
        """Return the map carried by ``token``.

        Raises:
            MalformedTokenError: If the token is not a well-formed encoding.
        """
        if not isinstance(token, str) or not token.strip():
            raise MalformedTokenError("Empty correlation token")
        # Padding is optional; some encoders keep it.
        token = token.strip().rstrip("=")
        if not _TOKEN_RE.match(token):
            raise MalformedTokenError("Correlation token is not URL-safe base64")
        try:
            raw = _decode_b64(token)
            query = raw.decode("utf-8")
            pairs = parse_qsl(query, keep_blank_values=True, strict_parsing=True)
        except (binascii.Error, UnicodeDecodeError, ValueError) as err:
            raise MalformedTokenError("Correlation token could not be decoded") from err
        if not pairs:
            raise MalformedTokenError("Correlation token carries no data")
        return dict(pairs)

    @staticmethod
    def mint_secret(nbytes: int = 12) -> str:
        """Return a fresh random URL-safe secret."""
        return secrets.token_urlsafe(nbytes)


default_codec = CorrelationTokenCodec()
