"""Telegram update handling."""

from .dispatcher import UpdateDispatcher

__all__ = ["UpdateDispatcher"]
