"""Exceptions raised outside the parse core."""

from __future__ import annotations

from typing import Any


class WikiRenderError(Exception):
    """Base error for wikirender."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnsupportedSourceError(WikiRenderError, ValueError):
    """The input payload has no shape the source adapter understands."""
