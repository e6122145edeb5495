# src/telegram_attest/services/__init__.py
"""Business logic services for the attestation service."""

from .gateway import HttpMessagingGateway, MessagingGateway
from .orchestrator import AttestationEvent, AttestationOrchestrator
from .publisher import AttestationPublisher, HttpAttestationPublisher
from .session_bridge import SessionBridge
from .token_codec import CorrelationTokenCodec
from .validation import ObyteAddressValidator

__all__ = [
    "AttestationEvent",
    "AttestationOrchestrator",
    "AttestationPublisher",
    "CorrelationTokenCodec",
    "HttpAttestationPublisher",
    "HttpMessagingGateway",
    "MessagingGateway",
    "ObyteAddressValidator",
    "SessionBridge",
]
