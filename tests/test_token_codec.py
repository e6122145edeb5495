"""Tests for the correlation token codec."""

from __future__ import annotations

import base64

import pytest

from telegram_attest.errors import ErrorCode, MalformedTokenError
from telegram_attest.services.token_codec import CorrelationTokenCodec

codec = CorrelationTokenCodec()


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def test_decode_returns_encoded_map() -> None:
    payload = {"address": "0DEVICEADDRESS", "note": "a b&c=d"}
    token = codec.encode(payload)
    assert codec.decode(token) == payload


def test_tokens_use_deep_link_alphabet() -> None:
    token = codec.encode({"address": "??>>//++"})
    assert "=" not in token
    assert set(token) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_")


def test_encode_rejects_empty_payload() -> None:
    with pytest.raises(ValueError):
        codec.encode({})


@pytest.mark.parametrize(
    "token",
    [
        "",
        "   ",
        "not base64!",
        "a",
        _b64(b"\xff\xfe"),
        _b64(b"no-separator"),
    ],
)
def test_malformed_tokens_raise(token: str) -> None:
    with pytest.raises(MalformedTokenError) as exc_info:
        codec.decode(token)
    assert exc_info.value.code is ErrorCode.MALFORMED_TOKEN


def test_non_string_token_raises() -> None:
    with pytest.raises(MalformedTokenError):
        codec.decode(None)  # type: ignore[arg-type]


def test_minted_secrets_are_unique_and_url_safe() -> None:
    secrets = {codec.mint_secret() for _ in range(50)}
    assert len(secrets) == 50
    for secret in secrets:
        assert codec.decode(codec.encode({"s": secret})) == {"s": secret}


def test_padded_tokens_are_accepted() -> None:
    payload = {"address": "0DEVICES"}
    padded = base64.urlsafe_b64encode(b"address=0DEVICES").decode()
    assert padded.endswith("=")
    assert codec.decode(padded) == payload
    assert codec.decode(codec.encode(payload) + "==") == payload


def test_padding_alone_is_malformed() -> None:
    with pytest.raises(MalformedTokenError):
        codec.decode("===")
