"""Removal of non-prose wikitext: comments, references, infoboxes, citations, file embeds."""

from __future__ import annotations

import logging
import re

from .spans import paired_spans

logger = logging.getLogger(__name__)

_COMMENT_OPEN_RE = re.compile(r"<!--")
_COMMENT_CLOSE_RE = re.compile(r"-->")
_SELF_CLOSING_REF_RE = re.compile(r"<ref(?:erences)?\b[^<>]{0,500}/>", re.IGNORECASE)
_REF_OPEN_RE = re.compile(r"<ref\b[^<>]{0,500}(?<!/)>", re.IGNORECASE)
_REF_CLOSE_RE = re.compile(r"</ref\s*>", re.IGNORECASE)
_REFERENCES_OPEN_RE = re.compile(r"<references\b[^<>]{0,500}(?<!/)>", re.IGNORECASE)
_REFERENCES_CLOSE_RE = re.compile(r"</references\s*>", re.IGNORECASE)

# Only the head of a block is inspected when deciding whether it is noise.
_PEEK_LENGTH = 20

TEMPLATE_NOISE_PREFIXES = (
    "infobox",
    "citation",
    "cite",
    "navbox",
    "sidebar",
    "reflist",
    "notelist",
    "sfn",
    "efn",
    "refn",
    "short description",
    "authority control",
    "taxobox",
    "speciesbox",
    "automatic taxobox",
    "coord",
    "use dmy dates",
    "use mdy dates",
    "pp-",
    "good article",
    "featured article",
    "defaultsort",
    "portal",
    "commons category",
    "dead link",
    "main|",
    "see also|",
    "further|",
    "about|",
    "redirect",
    "distinguish|",
    "hatnote",
    "file:",
    "image:",
)

LINK_NOISE_PREFIXES = ("file:", "image:")


def strip(raw: str) -> str:
    """Remove comments, reference tags and noise blocks from *raw* wikitext."""
    text = _drop_paired(raw, _COMMENT_OPEN_RE, _COMMENT_CLOSE_RE)
    text = _SELF_CLOSING_REF_RE.sub("", text)
    text = _drop_paired(text, _REF_OPEN_RE, _REF_CLOSE_RE)
    text = _drop_paired(text, _REFERENCES_OPEN_RE, _REFERENCES_CLOSE_RE)

    ranges = _find_noise_ranges(text)
    if not ranges:
        return text

    merged = _merge_ranges(ranges)
    logger.debug("Stripping %d noise block(s)", len(merged))

    out: list[str] = []
    cur = 0
    for start, end in merged:
        out.append(text[cur:start])
        cur = end
    out.append(text[cur:])
    return "".join(out)


def _find_noise_ranges(text: str) -> list[tuple[int, int]]:
    """Single pass over *text* pairing ``{{``/``}}`` and ``[[``/``]]`` with two stacks."""
    braces: list[int] = []
    brackets: list[int] = []
    ranges: list[tuple[int, int]] = []

    i = 0
    n = len(text)
    while i < n - 1:
        pair = text[i : i + 2]
        if pair == "{{":
            braces.append(i)
            i += 2
        elif pair == "}}":
            if braces:
                start = braces.pop()
                if _is_noise(text, start, TEMPLATE_NOISE_PREFIXES):
                    ranges.append((start, i + 2))
            i += 2
        elif pair == "[[":
            brackets.append(i)
            i += 2
        elif pair == "]]":
            if brackets:
                start = brackets.pop()
                if _is_noise(text, start, LINK_NOISE_PREFIXES):
                    ranges.append((start, i + 2))
            i += 2
        else:
            i += 1

    return ranges


def _is_noise(text: str, start: int, prefixes: tuple[str, ...]) -> bool:
    head = text[start + 2 : start + 2 + _PEEK_LENGTH].lstrip().lower()
    return head.startswith(prefixes)


def _merge_ranges(ranges: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            prev_start, prev_end = merged[-1]
            merged[-1] = (prev_start, max(prev_end, end))
        else:
            merged.append((start, end))
    return merged


def _drop_paired(text: str, opener: re.Pattern[str], closer: re.Pattern[str]) -> str:
    out: list[str] = []
    cur = 0
    for opening, closing in paired_spans(text, opener, closer):
        out.append(text[cur : opening.start()])
        cur = closing.end()
    if not cur:
        return text
    out.append(text[cur:])
    return "".join(out)
