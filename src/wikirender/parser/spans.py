"""Linear-time pairing of delimiters."""

from __future__ import annotations

import re
from collections.abc import Iterator

_BRACE_RE = re.compile(r"[{}]")


def paired_spans(
    text: str, opener: re.Pattern[str], closer: re.Pattern[str]
) -> Iterator[tuple[re.Match[str], re.Match[str]]]:
    """Yield ``(open, close)`` matches, each opener paired with the first closer after it.

    Openers inside an earlier span are skipped. Once an opener finds no closer no
    later opener can, so the scan stops there.
    """
    pos = 0
    while True:
        opening = opener.search(text, pos)
        if opening is None:
            return
        closing = closer.search(text, opening.end())
        if closing is None:
            return
        yield opening, closing
        pos = closing.end()


def match_braces(text: str) -> dict[int, int]:
    """Map the index of every balanced ``{`` to the index just past its ``}``.

    Braces preceded by a backslash do not count.
    """
    pairs: dict[int, int] = {}
    stack: list[int] = []
    for match in _BRACE_RE.finditer(text):
        i = match.start()
        if i and text[i - 1] == "\\":
            continue
        if match.group(0) == "{":
            stack.append(i)
        elif stack:
            pairs[stack.pop()] = i + 1
    return pairs
