"""Parser package."""

from .base import (
    Block,
    Blockquote,
    Bold,
    BoldItalic,
    Cell,
    Code,
    CodeBlock,
    DisplayMath,
    Document,
    Heading,
    HorizontalRule,
    InlineMath,
    Italic,
    Link,
    ListBlock,
    Paragraph,
    Row,
    Subscript,
    Superscript,
    Table,
    Text,
    WikiLink,
    document_to_dict,
)
from .source import WikiSource
from .wiki_parser import WikiParser

__all__ = [
    "Block",
    "Blockquote",
    "Bold",
    "BoldItalic",
    "Cell",
    "Code",
    "CodeBlock",
    "DisplayMath",
    "Document",
    "Heading",
    "HorizontalRule",
    "InlineMath",
    "Italic",
    "Link",
    "ListBlock",
    "Paragraph",
    "Row",
    "Subscript",
    "Superscript",
    "Table",
    "Text",
    "WikiLink",
    "WikiParser",
    "WikiSource",
    "document_to_dict",
]
