"""Inline tokenizer: emphasis, links, code, math placeholders, sup/sub and a few templates."""

from __future__ import annotations

import re
from urllib.parse import quote

from wikirender.config import WIKI_LINK_BASE

from .base import (
    Bold,
    BoldItalic,
    Code,
    InlineMath,
    InlineRun,
    Italic,
    Link,
    Subscript,
    Superscript,
    Text,
    Token,
    WikiLink,
)
from .math import PLACEHOLDER_RE, MathTable

# Characters that may open a construct; everything else is plain text.
_PLAIN_RE = re.compile(r"[^'\[`<{\x00]+")
_EXTERNAL_LINK_RE = re.compile(r"\[(https?://[^\s\]]+)(?:\s+([^\]]+))?\]")
_WEB_URL_RE = re.compile(r"https?://\S", re.IGNORECASE)
_LINK_BREAK_RE = re.compile(r"[\[\]\n]")
_LINK_TRAIL_RE = re.compile(r"[a-z]+")
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<(sup|sub|code|nowiki)>", re.IGNORECASE)
_CLOSING_TAG_RES = {name: re.compile(rf"</{name}\s*>", re.IGNORECASE) for name in ("sup", "sub", "code", "nowiki")}
_TEMPLATE_DELIM_RE = re.compile(r"\{\{|\}\}")

# Parameter names {{code}} takes besides the code itself.
_CODE_TEMPLATE_PARAMS = frozenset({"1", "lang", "class", "id", "style", "inline"})

# encodeURIComponent leaves these unescaped.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def wiki_href(target: str, link_base: str = WIKI_LINK_BASE) -> str:
    return f"{link_base}{quote(target, safe=_URI_COMPONENT_SAFE)}"


class InlineTokenizer:
    """Tokenize a block-delimited text run into an inline token sequence."""

    def __init__(self, math_table: MathTable | None = None) -> None:
        self.math_table = math_table or MathTable()

    def tokenize(self, text: str) -> InlineRun:
        return self._tokenize(text)

    def _tokenize(self, text: str) -> InlineRun:
        run = _RunBuilder()
        scan = _Scanner(text)
        pos = 0
        n = len(text)

        while pos < n:
            ch = text[pos]

            if ch == "\x00":
                match = PLACEHOLDER_RE.match(text, pos)
                if match:
                    entry = self.math_table.get(match.group(0))
                    # Display math belongs to paragraph level; drop it here.
                    if entry is not None and not entry.display:
                        run.push(InlineMath(latex=entry.latex))
                    pos = match.end()
                    continue
                pos += 1
                continue

            if ch == "'":
                token, pos = self._emphasis(scan, pos)
                run.push(token)
                continue

            elif ch == "[":
                if text.startswith("[[", pos):
                    token, end = self._wiki_link(scan, pos)
                    if token is not None:
                        run.push(token)
                        pos = end
                        continue
                    run.text("[[")
                    pos += 2
                    continue
                token, end = self._external_link(scan, pos)
                if token is not None:
                    run.push(token)
                    pos = end
                    continue

            elif ch == "`":
                close = scan.find("`", pos + 1)
                if close > pos + 1:
                    run.push(Code(text=text[pos + 1 : close]))
                    pos = close + 1
                    continue

            elif ch == "<":
                token, end = self._tag(scan, pos)
                if end > pos:
                    if token is not None:
                        run.push(token)
                    pos = end
                    continue

            elif ch == "{":
                if text.startswith("{{", pos):
                    end = scan.template_end(pos)
                    if end == -1:
                        run.text("{{")
                        pos += 2
                        continue
                    token = _inline_template(text[pos + 2 : end - 2])
                    if token is None:
                        run.text(text[pos:end])
                    else:
                        run.push(token)
                    pos = end
                    continue

            match = _PLAIN_RE.match(text, pos)
            if match:
                run.text(match.group(0))
                pos = match.end()
            else:
                run.text(ch)
                pos += 1

        return run.build()

    # ------------------------------------------------------------------
    # Construct handlers. Each returns (token, end) or (None, pos).
    # ------------------------------------------------------------------

    def _emphasis(self, scan: _Scanner, pos: int) -> tuple[Token, int]:
        text = scan.text
        # Longest delimiter first so '''''x''''' is not read as italic-in-bold.
        for delim in ("'''''", "'''", "''"):
            if not text.startswith(delim, pos):
                continue
            start = pos + len(delim)
            close = scan.find(delim, start + 1)
            if close == -1:
                continue
            content = text[start:close]
            end = close + len(delim)
            if delim == "'''''":
                return BoldItalic(text=content), end
            if delim == "'''":
                return Bold(children=self._tokenize(content)), end
            return Italic(children=self._tokenize(content)), end

        # No closer for any run length: the quote run is literal.
        end = pos
        while end < len(text) and text[end] == "'":
            end += 1
        return Text(text=text[pos:end]), end

    def _wiki_link(self, scan: _Scanner, pos: int) -> tuple[WikiLink | None, int]:
        text = scan.text
        close = scan.find("]]", pos + 2)
        if close == -1:
            return None, pos
        # Brackets or a line break before the closer: not a link.
        if _LINK_BREAK_RE.search(text, pos + 2, close):
            return None, pos

        target, sep, label = text[pos + 2 : close].partition("|")
        target = target.strip().lstrip(":").strip()
        if not target:
            return None, pos
        label = label.strip() if sep else ""
        label = label or target

        end = close + 2
        trail = _LINK_TRAIL_RE.match(text, end)
        if trail:
            label += trail.group(0)
            end = trail.end()
        return WikiLink(target=target, label=label), end

    def _external_link(self, scan: _Scanner, pos: int) -> tuple[Link | None, int]:
        if scan.find("]", pos + 1) == -1:
            return None, pos
        match = _EXTERNAL_LINK_RE.match(scan.text, pos)
        if not match:
            return None, pos
        url = match.group(1)
        label = (match.group(2) or "").strip() or url
        return Link(url=url, label=label), match.end()

    def _tag(self, scan: _Scanner, pos: int) -> tuple[Token | None, int]:
        text = scan.text
        br = _BR_RE.match(text, pos)
        if br:
            return Text(text=" "), br.end()

        match = _TAG_RE.match(text, pos)
        if not match:
            return None, pos
        name = match.group(1).lower()
        closer = scan.search(_CLOSING_TAG_RES[name], match.end())
        if closer is None:
            return None, pos
        content = text[match.end() : closer.start()]
        end = closer.end()

        if name == "sup":
            return Superscript(children=self._tokenize(content)), end
        if name == "sub":
            return Subscript(children=self._tokenize(content)), end
        if name == "code":
            return Code(text=content), end
        return (Text(text=content) if content else None), end


class _Scanner:
    """Closer lookups over one string.

    Lookups only move forward: a search from offset k that found f, or found
    nothing, answers every later search starting between k and f.
    """

    __slots__ = ("text", "_found", "_matched", "_template_ends")

    def __init__(self, text: str) -> None:
        self.text = text
        self._found: dict[str, tuple[int, int]] = {}
        self._matched: dict[re.Pattern[str], tuple[int, re.Match[str] | None]] = {}
        self._template_ends: dict[int, int] | None = None

    def find(self, needle: str, start: int) -> int:
        cached = self._found.get(needle)
        if cached is not None:
            begin, found = cached
            if begin <= start and (found == -1 or start <= found):
                return found
        found = self.text.find(needle, start)
        self._found[needle] = (start, found)
        return found

    def search(self, pattern: re.Pattern[str], start: int) -> re.Match[str] | None:
        cached = self._matched.get(pattern)
        if cached is not None:
            begin, match = cached
            if begin <= start and (match is None or start <= match.start()):
                return match
        match = pattern.search(self.text, start)
        self._matched[pattern] = (start, match)
        return match

    def template_end(self, pos: int) -> int:
        """Index just past the ``}}`` balancing the ``{{`` at *pos*, or -1."""
        if self._template_ends is None:
            self._template_ends = _pair_templates(self.text)
        return self._template_ends.get(pos, -1)


class _RunBuilder:
    """Collects tokens, merging adjacent text into one Text token."""

    __slots__ = ("tokens", "_pending")

    def __init__(self) -> None:
        self.tokens: list[Token] = []
        self._pending: list[str] = []

    def text(self, text: str) -> None:
        self._pending.append(text)

    def push(self, token: Token) -> None:
        if isinstance(token, Text):
            self._pending.append(token.text)
            return
        self._flush()
        self.tokens.append(token)

    def build(self) -> InlineRun:
        self._flush()
        return tuple(self.tokens)

    def _flush(self) -> None:
        if self._pending:
            self.tokens.append(Text(text="".join(self._pending)))
            self._pending.clear()


# ---------------------------------------------------------------------------
# Inline templates
# ---------------------------------------------------------------------------

def _pair_templates(text: str) -> dict[int, int]:
    """Map each balanced ``{{`` offset to the index just past its ``}}``."""
    ends: dict[int, int] = {}
    stack: list[int] = []
    for match in _TEMPLATE_DELIM_RE.finditer(text):
        if match.group(0) == "{{":
            stack.append(match.start())
        elif stack:
            ends[stack.pop()] = match.end()
    return ends


def _inline_template(inner: str) -> Token | None:
    parts = [p.strip() for p in inner.split("|")]
    name = parts[0].lower()
    args = parts[1:]
    positional = [a for a in args if "=" not in a]
    named = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep:
            named[key.strip().lower()] = value.strip()

    if name in ("ipac-en", "ipa"):
        if not positional:
            return None
        return Text(text="/" + "".join(positional) + "/")

    if name == "respell":
        if not positional:
            return None
        return Italic(children=(Text(text="-".join(positional)),))

    if name in ("lisp2", "code"):
        value = positional[0] if positional else named.get("1")
        if not value and len(args) == 1 and args[0].partition("=")[0].strip().lower() not in _CODE_TEMPLATE_PARAMS:
            # "=" inside the code itself, as in {{code|x = 1}}.
            value = args[0]
        if not value:
            return None
        return Code(text=value)

    if name == "webarchive":
        url = named.get("url")
        if not url or not _WEB_URL_RE.match(url):
            return None
        label = named.get("title") or "Archived"
        if not named.get("title") and named.get("date"):
            label = f"Archived {named['date']}"
        return Link(url=url, label=label)

    if name == "annotated link":
        if not positional:
            return None
        return WikiLink(target=positional[0], label=positional[0])

    return None
