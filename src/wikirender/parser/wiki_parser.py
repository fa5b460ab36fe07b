"""Wikitext parser: noise stripping, math extraction, block and inline parsing."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from wikirender.config import ParserOptions

from . import noise
from .base import Document, Paragraph, Text
from .blocks import BlockParser
from .math import extract
from .source import WikiSource

logger = logging.getLogger(__name__)


class WikiParser:
    """Parse wikitext into the Document IR.

    Parsing never raises on malformed markup; the worst case is a document of
    plain-text paragraphs.
    """

    def __init__(self, options: ParserOptions | None = None) -> None:
        self.options = options or ParserOptions()

    def parse(self, input_path: Path) -> Document:
        source = WikiSource.from_path(input_path)
        return self.parse_text(source.text)

    def parse_payload(self, payload: Any) -> Document:
        return self.parse_text(WikiSource.from_payload(payload).text)

    def parse_text(self, text: str) -> Document:
        try:
            cleaned = noise.strip(text)
            extraction = extract(cleaned, self.options)
            blocks = BlockParser(extraction.math_table, self.options).parse(extraction.processed)
        except Exception:
            logger.exception("Wikitext parsing failed; falling back to plain paragraphs")
            return plain_document(text)

        logger.debug("Parsed %d block(s) from %d characters", len(blocks), len(text))
        return Document(blocks=tuple(blocks))


def plain_document(text: str) -> Document:
    """Every blank-line separated chunk of *text* as a literal paragraph."""
    blocks = []
    for part in re.split(r"\n\s*\n", text.replace("\x00", "")):
        cleaned = re.sub(r"\s+", " ", part).strip()
        if cleaned:
            blocks.append(Paragraph(runs=((Text(text=cleaned),),)))
    return Document(blocks=tuple(blocks))
