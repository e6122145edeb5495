# src/telegram_attest/models/__init__.py
"""SQLAlchemy models for the attestation service."""

from .order import (
    ORDER_STATUS_ATTESTED,
    ORDER_STATUS_PENDING,
    AttestationOrder,
    Identity,
    OrderState,
)

__all__ = [
    "AttestationOrder",
    "Identity",
    "OrderState",
    "ORDER_STATUS_ATTESTED",
    "ORDER_STATUS_PENDING",
]
