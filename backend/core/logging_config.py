"""Process-wide logging setup."""

from __future__ import annotations

import logging

from backend.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """Configure the root logger from settings (DEBUG when debug is on)."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # Client libraries log every HTTP request at INFO
    for noisy in ("httpx", "openai", "anthropic", "urllib3"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
