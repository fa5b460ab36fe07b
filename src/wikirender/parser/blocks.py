"""Line-oriented block parser for wikitext."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from wikirender.config import ParserOptions

from .base import (
    Block,
    Blockquote,
    Cell,
    CodeBlock,
    DisplayMath,
    Heading,
    HorizontalRule,
    ListBlock,
    Paragraph,
    Row,
    Table,
)
from .inline import InlineTokenizer
from .math import PLACEHOLDER_RE, MathTable, normalize_latex
from .spans import paired_spans

logger = logging.getLogger(__name__)

BLANK = "blank"
FENCE = "fence"
SYNTAX_TAG = "syntaxhighlight"
HEADING = "heading"
TABLE = "table"
BLOCK_MATH = "block_math"
RULE = "rule"
UNORDERED = "unordered"
ORDERED = "ordered"
QUOTE = "quote"
INDENTED_CODE = "indented_code"
PARAGRAPH = "paragraph"

_RULE_RE = re.compile(r"^-{4,}$")
_UNORDERED_RE = re.compile(r"^(?:\*+|-)\s+")
_ORDERED_RE = re.compile(r"^(?:#+|\d+\.)\s+")
_SYNTAX_OPEN_RE = re.compile(r"<(syntaxhighlight|source)\b([^>]*)>", re.IGNORECASE)
_LANG_ATTR_RE = re.compile(r"\blang\s*=\s*[\"']?([^\"'\s>]+)", re.IGNORECASE)
_BLOCKQUOTE_OPEN_RE = re.compile(r"<blockquote\b[^<>]{0,500}>", re.IGNORECASE)
_BLOCKQUOTE_CLOSE_RE = re.compile(r"</blockquote\s*>", re.IGNORECASE)
_BR_SPLIT_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_HEADER_CELL_SPLIT_RE = re.compile(r"\|\||!!")
_ASSIGNMENT_RE = re.compile(r"(?:^|(?<=\s))([^\s=\x00]{1,40})\s*=\s*$")
_ALNUM_RE = re.compile(r"[^\W_]")


def classify(line: str) -> str:
    """Return the block kind a line opens."""
    trimmed = line.strip()
    if not trimmed:
        return BLANK
    if trimmed.startswith("```"):
        return FENCE
    if _SYNTAX_OPEN_RE.match(trimmed):
        return SYNTAX_TAG
    if trimmed.startswith("==") and trimmed.endswith("=="):
        return HEADING
    if trimmed.startswith("{|"):
        return TABLE
    if trimmed.startswith("$$"):
        return BLOCK_MATH
    if _RULE_RE.match(trimmed):
        return RULE
    if _UNORDERED_RE.match(trimmed):
        return UNORDERED
    if _ORDERED_RE.match(trimmed):
        return ORDERED
    if trimmed.startswith(">"):
        return QUOTE
    if line.startswith(" ") and not trimmed.startswith(("*", "#")) and not PLACEHOLDER_RE.match(trimmed):
        return INDENTED_CODE
    return PARAGRAPH


@dataclass(slots=True)
class BlockState:
    """Cursor over the input lines, shared by every block handler."""

    lines: list[str]
    math_table: MathTable
    options: ParserOptions
    pos: int = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.lines)

    @property
    def line(self) -> str:
        return self.lines[self.pos]

    @property
    def trimmed(self) -> str:
        return self.lines[self.pos].strip()


class BlockParser:
    """Turn placeholder-bearing wikitext into an ordered list of blocks."""

    def __init__(self, math_table: MathTable | None = None, options: ParserOptions | None = None) -> None:
        self.math_table = math_table or MathTable()
        self.options = options or ParserOptions()
        self.inline = InlineTokenizer(self.math_table)
        self._handlers = {
            FENCE: self.parse_fence,
            SYNTAX_TAG: self.parse_syntaxhighlight,
            HEADING: self.parse_heading,
            TABLE: self.parse_table,
            BLOCK_MATH: self.parse_block_math,
            RULE: self.parse_rule,
            UNORDERED: self.parse_list,
            ORDERED: self.parse_list,
            QUOTE: self.parse_blockquote,
            INDENTED_CODE: self.parse_indented_code,
            PARAGRAPH: self.parse_paragraph,
        }

    def parse(self, text: str) -> list[Block]:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = _quote_blockquotes(text)
        state = BlockState(lines=text.split("\n"), math_table=self.math_table, options=self.options)

        blocks: list[Block] = []
        while not state.at_end:
            kind = classify(state.line)
            if kind == BLANK:
                state.pos += 1
                continue
            before = state.pos
            blocks.extend(self._handlers[kind](state))
            if state.pos <= before:
                state.pos = before + 1
        return blocks

    # ------------------------------------------------------------------
    # Handlers. Each consumes at least one line from *state*.
    # ------------------------------------------------------------------

    def parse_heading(self, state: BlockState) -> list[Block]:
        trimmed = state.trimmed
        state.pos += 1

        lead = len(trimmed) - len(trimmed.lstrip("="))
        trail = len(trimmed) - len(trimmed.rstrip("="))
        if lead == len(trimmed) or lead < 2 or trail < 2:
            return self.paragraph_blocks(trimmed)
        inner = trimmed[lead : len(trimmed) - trail].strip()
        if not inner:
            return self.paragraph_blocks(trimmed)

        level = min(lead, trail, 6)
        return [Heading(level=level, text=self.inline.tokenize(inner))]

    def parse_list(self, state: BlockState) -> list[Block]:
        ordered = classify(state.line) == ORDERED
        pattern = _ORDERED_RE if ordered else _UNORDERED_RE

        items = []
        while not state.at_end:
            trimmed = state.trimmed
            if not trimmed:
                break
            match = pattern.match(trimmed)
            if not match:
                break
            items.append(self.inline.tokenize(trimmed[match.end():]))
            state.pos += 1

        return [ListBlock(ordered=ordered, items=tuple(items))]

    def parse_fence(self, state: BlockState) -> list[Block]:
        language = state.trimmed[3:].strip() or None
        state.pos += 1

        collected: list[str] = []
        while not state.at_end:
            if state.trimmed.startswith("```"):
                state.pos += 1
                break
            collected.append(state.line)
            state.pos += 1

        return [CodeBlock(language=language, text=self.math_table.restore("\n".join(collected)))]

    def parse_syntaxhighlight(self, state: BlockState) -> list[Block]:
        trimmed = state.trimmed
        opening = _SYNTAX_OPEN_RE.match(trimmed)
        if opening is None:
            state.pos += 1
            return self.paragraph_blocks(trimmed)

        tag = opening.group(1).lower()
        lang = _LANG_ATTR_RE.search(opening.group(2))
        language = lang.group(1) if lang else None
        closer = re.compile(rf"</{tag}\s*>", re.IGNORECASE)

        rest = trimmed[opening.end():]
        state.pos += 1
        close = closer.search(rest)
        if close:
            body = rest[: close.start()]
        else:
            collected = [rest] if rest.strip() else []
            while not state.at_end:
                line = state.line
                state.pos += 1
                close = closer.search(line)
                if close:
                    if line[: close.start()].strip():
                        collected.append(line[: close.start()])
                    break
                collected.append(line)
            body = "\n".join(collected)

        return [CodeBlock(language=language, text=self.math_table.restore(body).strip("\n"))]

    def parse_indented_code(self, state: BlockState) -> list[Block]:
        collected: list[str] = []
        while not state.at_end:
            line = state.line
            if not line.strip():
                collected.append("")
            elif line.startswith(" ") and not PLACEHOLDER_RE.match(line.strip()):
                collected.append(line[1:])
            else:
                break
            state.pos += 1

        while collected and not collected[-1]:
            collected.pop()
        return [CodeBlock(language=None, text=self.math_table.restore("\n".join(collected)))]

    def parse_block_math(self, state: BlockState) -> list[Block]:
        trimmed = state.trimmed
        state.pos += 1

        if len(trimmed) > 2 and trimmed.endswith("$$"):
            parts = [trimmed[2:-2]]
        else:
            parts = [trimmed[2:]]
            while not state.at_end:
                line = state.trimmed
                state.pos += 1
                if line.endswith("$$"):
                    parts.append(line[:-2])
                    break
                parts.append(line)

        latex = normalize_latex(self.math_table.restore(" ".join(parts)))
        if not latex:
            return []
        return [DisplayMath(latex=latex)]

    def parse_rule(self, state: BlockState) -> list[Block]:
        state.pos += 1
        return [HorizontalRule()]

    def parse_blockquote(self, state: BlockState) -> list[Block]:
        parts: list[str] = []
        while not state.at_end and state.trimmed.startswith(">"):
            parts.append(state.trimmed.lstrip(">").strip())
            state.pos += 1
        return [Blockquote(content=self.inline.tokenize(" ".join(p for p in parts if p)))]

    def parse_table(self, state: BlockState) -> list[Block]:
        state.pos += 1

        rows: list[Row] = []
        caption = ()
        pending: list[list] = []  # [header, raw text] pairs of the open row
        nested = 0

        def flush() -> None:
            if pending:
                # The first cell decides: a row opened with "!" is a header row.
                header = pending[0][0]
                rows.append(Row(cells=tuple(Cell(header=header, content=self.inline.tokenize(t.strip())) for _, t in pending)))
                pending.clear()

        while not state.at_end:
            trimmed = state.trimmed
            state.pos += 1

            if nested:
                if trimmed.startswith("{|"):
                    nested += 1
                elif trimmed.startswith("|}"):
                    nested -= 1
                continue
            if trimmed.startswith("{|"):
                logger.debug("Skipping nested table")
                nested = 1
                continue
            if trimmed.startswith("|}"):
                break
            if trimmed.startswith("|+"):
                caption = self.inline.tokenize(_drop_cell_attributes(trimmed[2:]).strip())
                continue
            if trimmed.startswith("|-"):
                flush()
                continue
            if trimmed.startswith("!"):
                pending.extend([True, _drop_cell_attributes(c)] for c in _HEADER_CELL_SPLIT_RE.split(trimmed[1:]))
                continue
            if trimmed.startswith("|"):
                pending.extend([False, _drop_cell_attributes(c)] for c in trimmed[1:].split("||"))
                continue
            if trimmed and pending:
                pending[-1][1] += " " + trimmed

        flush()
        return [Table(rows=tuple(rows), caption=caption)]

    def parse_paragraph(self, state: BlockState) -> list[Block]:
        collected: list[str] = []
        while not state.at_end and classify(state.line) == PARAGRAPH:
            text = state.trimmed.lstrip(":").strip()
            if text:
                collected.append(text)
            state.pos += 1
        return self.paragraph_blocks(" ".join(collected))

    # ------------------------------------------------------------------
    # Paragraph splitting around display math
    # ------------------------------------------------------------------

    def paragraph_blocks(self, text: str) -> list[Block]:
        """Split joined paragraph text so display math never sits inside a paragraph."""
        blocks: list[Block] = []
        cur = 0
        for match in PLACEHOLDER_RE.finditer(text):
            if not self.math_table.is_display(match.group(0)):
                continue
            before = text[cur : match.start()]
            latex = self.math_table.get(match.group(0)).latex

            # "x = <formula>" renders as one formula.
            lhs = _ASSIGNMENT_RE.search(before)
            if lhs:
                latex = f"{lhs.group(1)}={latex}"
                before = before[: lhs.start()]

            blocks.extend(self._prose(before, fragment=True))
            blocks.append(DisplayMath(latex=latex))
            cur = match.end()

        blocks.extend(self._prose(text[cur:], fragment=bool(blocks)))
        return blocks

    def _prose(self, text: str, fragment: bool = False) -> list[Block]:
        # Leftovers around display math that carry no letters or digits (a stray
        # comma or full stop) are dropped.
        if fragment and not _ALNUM_RE.search(text):
            return []
        runs = tuple(self.inline.tokenize(seg.strip()) for seg in _BR_SPLIT_RE.split(text) if seg.strip())
        runs = tuple(run for run in runs if run)
        if not runs:
            return []
        return [Paragraph(runs=runs)]


def _drop_cell_attributes(cell: str) -> str:
    """Remove a leading ``attr="…" |`` from a table cell, ignoring pipes inside links and templates."""
    depth = 0
    i = 0
    while i < len(cell):
        pair = cell[i : i + 2]
        if pair in ("[[", "{{"):
            depth += 1
            i += 2
            continue
        if pair in ("]]", "}}"):
            depth = max(0, depth - 1)
            i += 2
            continue
        if cell[i] == "|" and depth == 0:
            attrs = cell[:i]
            if "=" in attrs:
                return cell[i + 1 :]
            return cell
        i += 1
    return cell


def _quote_blockquotes(text: str) -> str:
    """Rewrite each <blockquote>…</blockquote> as "> " lines."""
    out: list[str] = []
    cur = 0
    for opening, closing in paired_spans(text, _BLOCKQUOTE_OPEN_RE, _BLOCKQUOTE_CLOSE_RE):
        content = text[opening.end() : closing.start()]
        out.append(text[cur : opening.start()])
        out.append("\n" + "\n".join(f"> {line.strip()}" for line in content.splitlines() if line.strip()) + "\n")
        cur = closing.end()
    out.append(text[cur:])
    return "".join(out)
