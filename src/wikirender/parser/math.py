"""Math extraction: LaTeX fallback suppression and placeholder substitution."""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass, field

from wikirender.config import ParserOptions

from .spans import match_braces, paired_spans

logger = logging.getLogger(__name__)

# NUL never survives into the processed text except inside placeholders.
_SENTINEL = "\x00"
PLACEHOLDER_RE = re.compile(r"\x00MATH(\d+)\x00")

_MATH_OPEN_RE = re.compile(r"<math(?P<attrs>\s[^<>]{0,500})?(?<!/)>", re.IGNORECASE)
_MATH_CLOSE_RE = re.compile(r"</math\s*>", re.IGNORECASE)
_DISPLAY_ATTR_RE = re.compile(r"display\s*=\s*[\"']?block", re.IGNORECASE)
_MARKER_RE = re.compile(r"\{\s*\\(displaystyle|textstyle)(?![A-Za-z])")
_STYLE_PREFIX_RE = re.compile(r"^\s*\\(displaystyle|textstyle)(?![A-Za-z])")
_BOUNDARY_RE = re.compile(r"\n[ \t]*\n|[.!?:;](?=\s|$)")


def make_placeholder(index: int) -> str:
    return f"{_SENTINEL}MATH{index}{_SENTINEL}"


@dataclass(frozen=True, slots=True)
class MathEntry:
    latex: str
    display: bool
    source: str = ""


@dataclass(slots=True)
class MathTable:
    """Placeholder → formula mapping built by one extraction pass."""

    entries: dict[str, MathEntry] = field(default_factory=dict)

    def add(self, latex: str, display: bool, source: str = "") -> str:
        placeholder = make_placeholder(len(self.entries))
        self.entries[placeholder] = MathEntry(latex=latex, display=display, source=source)
        return placeholder

    def get(self, placeholder: str) -> MathEntry | None:
        return self.entries.get(placeholder)

    def is_display(self, placeholder: str) -> bool:
        entry = self.entries.get(placeholder)
        return entry is not None and entry.display

    def restore(self, text: str) -> str:
        """Put the original source back in place of every placeholder in *text*."""
        def _replace(match: re.Match[str]) -> str:
            entry = self.entries.get(match.group(0))
            return entry.source if entry is not None else ""

        return PLACEHOLDER_RE.sub(_replace, text)

    def __contains__(self, placeholder: object) -> bool:
        return placeholder in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


@dataclass(frozen=True, slots=True)
class MathExtraction:
    processed: str
    math_table: MathTable


def extract(text: str, options: ParserOptions | None = None) -> MathExtraction:
    """Replace formula markup in *text* with placeholders.

    ``<math>`` tags are handled first. LaTeX fallback prose in front of bare
    ``{\\displaystyle …}``/``{\\textstyle …}`` markers is then removed, and the
    markers themselves are swapped for placeholders.
    """
    options = options or ParserOptions()
    table = MathTable()

    text = text.replace(_SENTINEL, "")
    text = _extract_math_tags(text, table)
    text = _suppress_fallbacks(text, options)
    text = _extract_bare_markers(text, table)

    if table:
        logger.debug("Extracted %d math span(s)", len(table))
    return MathExtraction(processed=text, math_table=table)


# ---------------------------------------------------------------------------
# <math> tags
# ---------------------------------------------------------------------------

def _extract_math_tags(text: str, table: MathTable) -> str:
    out: list[str] = []
    cur = 0
    # Self-closing <math/> never matches the opener.
    for opening, closing in paired_spans(text, _MATH_OPEN_RE, _MATH_CLOSE_RE):
        attrs = opening.group("attrs") or ""
        style, latex = unwrap_latex(text[opening.end() : closing.start()])
        display = bool(_DISPLAY_ATTR_RE.search(attrs)) or style == "displaystyle"
        out.append(text[cur : opening.start()])
        out.append(table.add(latex, display, text[opening.start() : closing.end()]))
        cur = closing.end()
    out.append(text[cur:])
    return "".join(out)


def unwrap_latex(body: str) -> tuple[str | None, str]:
    """Strip a ``{\\displaystyle …}`` / ``{\\textstyle …}`` shell from *body*.

    Returns the style name (or None when there was no shell) and the
    whitespace-normalised LaTeX.
    """
    stripped = body.strip()
    style = None

    if _MARKER_RE.match(stripped):
        found = read_balanced_braces(stripped, 0)
        if found is not None and not stripped[found[1]:].strip():
            stripped = found[0]

    prefix = _STYLE_PREFIX_RE.match(stripped)
    if prefix:
        style = prefix.group(1)
        stripped = stripped[prefix.end():]

    return style, normalize_latex(stripped)


def normalize_latex(latex: str) -> str:
    latex = re.sub(r"\s+", " ", latex).strip()
    latex = re.sub(r"(?<!\\)\{ ", "{", latex)
    latex = re.sub(r" \}", "}", latex)
    return latex


def read_balanced_braces(text: str, brace_start: int) -> tuple[str, int] | None:
    """Return the text inside the brace group opening at *brace_start* and the index after it.

    Escaped braces (``\\{``, ``\\}``) do not count. None when the group never closes.
    """
    if brace_start >= len(text) or text[brace_start] != "{":
        return None
    depth = 0
    i = brace_start
    while i < len(text):
        ch = text[i]
        if ch == "{" and (i == 0 or text[i - 1] != "\\"):
            depth += 1
        elif ch == "}" and (i == 0 or text[i - 1] != "\\"):
            depth -= 1
            if depth == 0:
                return text[brace_start + 1 : i], i + 1
        i += 1
    return None


# ---------------------------------------------------------------------------
# Fallback suppression
# ---------------------------------------------------------------------------

def _suppress_fallbacks(text: str, options: ParserOptions) -> str:
    closes = match_braces(text)
    markers: list[tuple[int, int]] = []
    for match in _MARKER_RE.finditer(text):
        end = closes.get(match.start())
        if end is None or (markers and match.start() < markers[-1][1]):
            continue
        markers.append((match.start(), end))

    if not markers:
        return text

    placeholder_ends = [m.end() for m in PLACEHOLDER_RE.finditer(text)]

    # Every candidate span lies between the previous marker and this one, so
    # the cuts never overlap and are applied in one pass at the end.
    cuts: list[tuple[int, int]] = []
    for idx, (start, _) in enumerate(markers):
        floor = markers[idx - 1][1] if idx else 0
        pos = bisect.bisect_right(placeholder_ends, start)
        if pos:
            floor = max(floor, placeholder_ends[pos - 1])
        windowed = start - options.fallback_window
        if windowed > floor:
            # Do not start the candidate span in the middle of a word.
            while windowed < start and not text[windowed - 1].isspace():
                windowed += 1
            floor = windowed
        cut = _fallback_span(text, floor, start, options)
        if cut is not None:
            cuts.append(cut)

    if not cuts:
        return text
    out: list[str] = []
    cur = 0
    for begin, end in cuts:
        out.append(text[cur:begin])
        cur = end
    out.append(text[cur:])
    return "".join(out)


def _fallback_span(text: str, floor: int, marker: int, options: ParserOptions) -> tuple[int, int] | None:
    end = marker
    while end > floor and text[end - 1].isspace():
        end -= 1
    if end <= floor:
        return None

    begin = floor
    for boundary in _BOUNDARY_RE.finditer(text, floor, end):
        begin = boundary.end()
    while begin < end and text[begin].isspace():
        begin += 1

    span = text[begin:end]
    if not span or span.endswith("="):
        return None
    if count_real_words(span, options.fallback_word_length) >= options.fallback_min_words:
        return None

    logger.debug("Dropping math fallback text %r", span)
    return begin, end


def count_real_words(text: str, min_length: int = 4) -> int:
    return len(re.findall(rf"[^\W\d_]{{{min_length},}}", text))


# ---------------------------------------------------------------------------
# Bare {\displaystyle} / {\textstyle} markers
# ---------------------------------------------------------------------------

def _extract_bare_markers(text: str, table: MathTable) -> str:
    closes = match_braces(text)
    out: list[str] = []
    cur = 0
    for match in _MARKER_RE.finditer(text):
        end = closes.get(match.start())
        # Unterminated markers stay verbatim; nested ones belong to the outer formula.
        if end is None or match.start() < cur:
            continue
        _, latex = unwrap_latex(text[match.start() : end])
        out.append(text[cur : match.start()])
        out.append(table.add(latex, match.group(1) == "displaystyle", text[match.start() : end]))
        cur = end
    out.append(text[cur:])
    return "".join(out)
