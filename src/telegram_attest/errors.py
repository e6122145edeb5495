"""Error kinds raised by the attestation core.

Every failure the orchestrator can report carries an :class:`ErrorCode` so the
chat dispatcher and the HTTP endpoints can translate it without inspecting
messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable identifiers for attestation failures."""

    INVALID_ADDRESS = "INVALID_ADDRESS"
    INVALID_DATA = "INVALID_DATA"
    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ALREADY_ATTESTED = "ALREADY_ATTESTED"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AttestationError(RuntimeError):
    """Base exception for classified attestation failures."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code.value)


class InvalidAddressError(AttestationError):
    """Raised when a submitted string is not a wallet address."""

    code = ErrorCode.INVALID_ADDRESS


class InvalidDataError(AttestationError):
    """Raised when identity data is missing or malformed."""

    code = ErrorCode.INVALID_DATA


class MalformedTokenError(AttestationError):
    """Raised when a correlation token cannot be decoded."""

    code = ErrorCode.MALFORMED_TOKEN


class OrderNotFoundError(AttestationError):
    """Raised when no order matches the identity, address or id."""

    code = ErrorCode.ORDER_NOT_FOUND


class AlreadyAttestedError(AttestationError):
    """Raised when an attested order would be changed or re-published.

    ``unit`` holds the identifier of the earlier attestation when known.
    """

    code = ErrorCode.ALREADY_ATTESTED

    def __init__(self, message: str | None = None, *, unit: str | None = None) -> None:
        super().__init__(message)
        self.unit = unit


class AttestationInProgressError(AlreadyAttestedError):
    """Raised when an order changes while its attestation is being published."""


class PublishFailedError(AttestationError):
    """Raised when the attestation publisher rejects or cannot be reached."""

    code = ErrorCode.PUBLISH_FAILED


class GatewayError(RuntimeError):
    """Raised when an outbound notification cannot be delivered."""
