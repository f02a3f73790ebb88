"""Logging configuration for the service."""

from __future__ import annotations

import logging

from storefront_chat.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once, using ``LOG_LEVEL`` by default."""
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("storefront_chat").setLevel(resolved)
    if settings.sql_debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
