"""Logging configuration for the CLI."""
from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging; unknown level names fall back to INFO."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(format=_FORMAT, force=True)
    logging.getLogger().setLevel(numeric)

    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
