"""Render the Document IR into a self-contained HTML page."""

from __future__ import annotations

import html
from dataclasses import asdict, dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from wikirender.config import WIKI_LINK_BASE
from wikirender.parser.base import (
    Block,
    Blockquote,
    Bold,
    BoldItalic,
    Code,
    CodeBlock,
    DisplayMath,
    Document,
    Heading,
    HorizontalRule,
    InlineMath,
    InlineRun,
    Italic,
    Link,
    ListBlock,
    Paragraph,
    Subscript,
    Superscript,
    Table,
    Text,
    WikiLink,
    plain_text,
)
from wikirender.parser.inline import wiki_href
from wikirender.renderer.math_renderer import render_math

_MAX_DEPTH = 5


@dataclass(slots=True)
class RenderedSection:
    level: int
    heading_tag: int
    title: str
    number: str
    anchor: str
    html: str


class HTMLRenderer:
    """Render parsed wikitext into the page template."""

    def __init__(self, template_path: Path | None = None, link_base: str = WIKI_LINK_BASE) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent.parent / "template" / "wikipage.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name
        self.link_base = link_base

    def render(
        self,
        document: Document,
        *,
        title: str = "Untitled",
        dark_mode: bool = False,
        math_engine: str = "mathml",
        max_blocks: int | None = None,
    ) -> str:
        blocks = document.blocks
        hidden = 0
        if max_blocks is not None and len(blocks) > max_blocks:
            hidden = len(blocks) - max_blocks
            blocks = blocks[:max_blocks]

        lead_html, sections = self._render_sections(blocks, math_engine=math_engine)
        toc_items = [
            {
                "level": section.level,
                "title": section.title,
                "number": section.number,
                "anchor": section.anchor,
            }
            for section in sections
        ]

        template = self._env.get_template(self._template_name)
        return template.render(
            page_title=title or "Untitled",
            lead_html=lead_html,
            toc_items=toc_items,
            sections=[asdict(s) for s in sections],
            hidden_blocks=hidden,
            dark_mode=dark_mode,
            math_engine=math_engine,
        )

    def _render_sections(self, blocks: tuple[Block, ...], *, math_engine: str) -> tuple[str, list[RenderedSection]]:
        counters = [0] * _MAX_DEPTH
        used_anchors: set[str] = set()
        lead_parts: list[str] = []
        sections: list[RenderedSection] = []
        body_parts = lead_parts

        for block in blocks:
            if not isinstance(block, Heading):
                body_parts.append(self.render_block(block, math_engine=math_engine))
                continue

            if sections:
                sections[-1].html = "\n".join(part for part in body_parts if part)

            depth = max(1, min(_MAX_DEPTH, block.level - 1))
            counters[depth - 1] += 1
            for idx in range(depth, len(counters)):
                counters[idx] = 0

            number = ".".join(str(n) for n in counters[:depth] if n > 0)
            anchor = _dedupe_anchor(f"s-{number}" if number else "s", used_anchors)
            body_parts = []
            sections.append(
                RenderedSection(
                    level=depth,
                    heading_tag=block.level,
                    title=plain_text(block.text),
                    number=number,
                    anchor=anchor,
                    html="",
                )
            )

        if sections:
            sections[-1].html = "\n".join(part for part in body_parts if part)
        return "\n".join(part for part in lead_parts if part), sections

    def render_block(self, block: Block, *, math_engine: str = "mathml") -> str:
        if isinstance(block, Paragraph):
            runs = "<br>".join(self.render_inline(run, math_engine=math_engine) for run in block.runs)
            return f'<div class="wiki-paragraph">{runs}</div>'

        if isinstance(block, Heading):
            tag = f"h{block.level}"
            return f"<{tag}>{self.render_inline(block.text, math_engine=math_engine)}</{tag}>"

        if isinstance(block, ListBlock):
            tag = "ol" if block.ordered else "ul"
            items = "".join(f"<li>{self.render_inline(item, math_engine=math_engine)}</li>" for item in block.items)
            return f'<{tag} class="wiki-list">{items}</{tag}>'

        if isinstance(block, Table):
            return self._render_table(block, math_engine=math_engine)

        if isinstance(block, CodeBlock):
            lang_attr = f' data-language="{html.escape(block.language)}"' if block.language else ""
            return f'<pre class="wiki-code"{lang_attr}><code>{html.escape(block.text)}</code></pre>'

        if isinstance(block, DisplayMath):
            return f'<div class="wiki-math-display">{render_math(block.latex, True, math_engine)}</div>'

        if isinstance(block, Blockquote):
            return f'<blockquote class="wiki-quote">{self.render_inline(block.content, math_engine=math_engine)}</blockquote>'

        if isinstance(block, HorizontalRule):
            return '<hr class="wiki-hr">'

        return ""

    def _render_table(self, block: Table, *, math_engine: str) -> str:
        rows = []
        for row in block.rows:
            cells = []
            for cell in row.cells:
                tag = "th" if cell.header else "td"
                cells.append(f"<{tag}>{self.render_inline(cell.content, math_engine=math_engine)}</{tag}>")
            rows.append(f"<tr>{''.join(cells)}</tr>")

        caption_html = ""
        if block.caption:
            caption_html = f'<caption class="wiki-caption">{self.render_inline(block.caption, math_engine=math_engine)}</caption>'
        return f'<div class="wiki-table-wrap"><table class="wiki-table">{caption_html}<tbody>{"".join(rows)}</tbody></table></div>'

    def render_inline(self, run: InlineRun, *, math_engine: str = "mathml") -> str:
        parts: list[str] = []
        for token in run:
            if isinstance(token, Text):
                parts.append(html.escape(token.text))
            elif isinstance(token, Bold):
                parts.append(f"<strong>{self.render_inline(token.children, math_engine=math_engine)}</strong>")
            elif isinstance(token, Italic):
                parts.append(f"<em>{self.render_inline(token.children, math_engine=math_engine)}</em>")
            elif isinstance(token, BoldItalic):
                parts.append(f"<strong><em>{html.escape(token.text)}</em></strong>")
            elif isinstance(token, Code):
                parts.append(f'<code class="wiki-code-inline">{html.escape(token.text)}</code>')
            elif isinstance(token, Link):
                parts.append(
                    f'<a class="wiki-link-external" href="{html.escape(token.url)}" target="_blank" '
                    f'rel="noopener noreferrer">{html.escape(token.label)}</a>'
                )
            elif isinstance(token, WikiLink):
                href = wiki_href(token.target, self.link_base)
                parts.append(f'<a class="wiki-link-internal" href="{html.escape(href)}">{html.escape(token.label)}</a>')
            elif isinstance(token, InlineMath):
                parts.append(render_math(token.latex, False, math_engine))
            elif isinstance(token, Superscript):
                parts.append(f"<sup>{self.render_inline(token.children, math_engine=math_engine)}</sup>")
            elif isinstance(token, Subscript):
                parts.append(f"<sub>{self.render_inline(token.children, math_engine=math_engine)}</sub>")
        return "".join(parts)


def _dedupe_anchor(anchor: str, used: set[str]) -> str:
    if anchor not in used:
        used.add(anchor)
        return anchor

    idx = 2
    while True:
        candidate = f"{anchor}-{idx}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        idx += 1
