"""Process-wide logging setup."""

from __future__ import annotations

import logging

from telegram_attest.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level and format to the root logger."""
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("telegram_attest").setLevel(resolved)
    # httpx logs every request at INFO, which leaks bot tokens embedded in URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
