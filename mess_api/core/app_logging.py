"""Logging configuration helpers."""

import logging

from mess_api.core.config import settings


def configure_logging() -> None:
    """Configure the ``mess_api`` logger with a single stream handler."""
    logger = logging.getLogger("mess_api")
    logger.setLevel(settings.LOG_LEVEL.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
