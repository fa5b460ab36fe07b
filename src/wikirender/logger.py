"""Logging utilities for wikirender."""

from __future__ import annotations

import logging

logger = logging.getLogger("wikirender")


def init_logging(level: str | int = "WARNING") -> None:
    """Attach a console handler to the package logger and set its level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
