"""Core intermediate representation (IR) for parsed wikitext."""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from pathlib import Path
from typing import Any, Protocol


# ---------------------------------------------------------------------------
# Inline tokens
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class Bold:
    children: tuple[Token, ...]


@dataclass(frozen=True, slots=True)
class Italic:
    children: tuple[Token, ...]


@dataclass(frozen=True, slots=True)
class BoldItalic:
    text: str


@dataclass(frozen=True, slots=True)
class Code:
    text: str


@dataclass(frozen=True, slots=True)
class Link:
    url: str
    label: str


@dataclass(frozen=True, slots=True)
class WikiLink:
    target: str
    label: str


@dataclass(frozen=True, slots=True)
class InlineMath:
    latex: str


@dataclass(frozen=True, slots=True)
class Superscript:
    children: tuple[Token, ...]


@dataclass(frozen=True, slots=True)
class Subscript:
    children: tuple[Token, ...]


Token = Text | Bold | Italic | BoldItalic | Code | Link | WikiLink | InlineMath | Superscript | Subscript
InlineRun = tuple[Token, ...]


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Heading:
    level: int
    text: InlineRun


@dataclass(frozen=True, slots=True)
class Paragraph:
    runs: tuple[InlineRun, ...]


@dataclass(frozen=True, slots=True)
class ListBlock:
    ordered: bool
    items: tuple[InlineRun, ...]


@dataclass(frozen=True, slots=True)
class Cell:
    header: bool
    content: InlineRun


@dataclass(frozen=True, slots=True)
class Row:
    cells: tuple[Cell, ...]


@dataclass(frozen=True, slots=True)
class Table:
    rows: tuple[Row, ...]
    caption: InlineRun = ()


@dataclass(frozen=True, slots=True)
class CodeBlock:
    language: str | None
    text: str


@dataclass(frozen=True, slots=True)
class DisplayMath:
    latex: str


@dataclass(frozen=True, slots=True)
class Blockquote:
    content: InlineRun


@dataclass(frozen=True, slots=True)
class HorizontalRule:
    pass


Block = Heading | Paragraph | ListBlock | Table | CodeBlock | DisplayMath | Blockquote | HorizontalRule


@dataclass(frozen=True, slots=True)
class Document:
    blocks: tuple[Block, ...] = ()

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self):
        return iter(self.blocks)


class Parser(Protocol):
    def parse(self, input_path: Path) -> Document:  # pragma: no cover - structural protocol
        """Parse an input file into a Document."""


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

_TYPE_NAMES = {
    Text: "text",
    Bold: "bold",
    Italic: "italic",
    BoldItalic: "bold_italic",
    Code: "code",
    Link: "link",
    WikiLink: "wiki_link",
    InlineMath: "inline_math",
    Superscript: "superscript",
    Subscript: "subscript",
    Heading: "heading",
    Paragraph: "paragraph",
    ListBlock: "list",
    Table: "table",
    Row: "row",
    Cell: "cell",
    CodeBlock: "code_block",
    DisplayMath: "display_math",
    Blockquote: "blockquote",
    HorizontalRule: "horizontal_rule",
    Document: "document",
}


def document_to_dict(node: Any) -> Any:
    """Convert any IR node (or tuple of nodes) into JSON-friendly dicts and lists.

    Every dataclass node becomes a dict carrying a ``"type"`` tag followed by its
    fields; tuples become lists; scalars pass through unchanged.
    """
    if isinstance(node, tuple):
        return [document_to_dict(item) for item in node]
    if is_dataclass(node) and not isinstance(node, type):
        data: dict[str, Any] = {"type": _TYPE_NAMES.get(type(node), type(node).__name__.lower())}
        for f in fields(node):
            data[f.name] = document_to_dict(getattr(node, f.name))
        return data
    return node


def plain_text(run: InlineRun) -> str:
    """Flatten an inline run into its visible text."""
    parts: list[str] = []
    for token in run:
        if isinstance(token, (Bold, Italic, Superscript, Subscript)):
            parts.append(plain_text(token.children))
        elif isinstance(token, (Text, BoldItalic, Code)):
            parts.append(token.text)
        elif isinstance(token, (Link, WikiLink)):
            parts.append(token.label)
        elif isinstance(token, InlineMath):
            parts.append(token.latex)
    return "".join(parts)
