"""Telegram identity to wallet address attestation service."""

__version__ = "0.1.0"
