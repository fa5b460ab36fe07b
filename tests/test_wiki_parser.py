"""End-to-end tests for WikiParser.

Covers:
- Noise removal flowing into blocks
- Headings, lists and display math through the full pipeline
- Malformed and adversarial input never raising
- Plain-paragraph fallback when a stage fails
- Reading .wiki and .json files
- JSON serialisation of the document tree
"""

from __future__ import annotations

import json
import time
from pathlib import Path

import pytest

from wikirender.parser import (
    Bold,
    DisplayMath,
    Document,
    Heading,
    InlineMath,
    ListBlock,
    Paragraph,
    Table,
    Text,
    WikiLink,
    WikiParser,
    document_to_dict,
)
from wikirender.parser import wiki_parser


def parse_text(text: str) -> Document:
    return WikiParser().parse_text(text)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def test_noise_removed_before_blocks() -> None:
    text = (
        "{{Infobox settlement | name = Paris}}\n"
        "Paris is the capital.{{cite web|url=http://example.org}} See [[Paris]].\n"
        "[[File:Eiffel.jpg|thumb]]"
    )
    doc = parse_text(text)

    assert doc.blocks == (
        Paragraph(runs=((Text(text="Paris is the capital. See "), WikiLink(target="Paris", label="Paris"), Text(text=".")),)),
    )


def test_heading_round_trip() -> None:
    assert parse_text("== Title ==").blocks == (Heading(level=2, text=(Text(text="Title"),)),)


def test_list_ends_at_blank_line() -> None:
    doc = parse_text("* a\n* b\n\nNot a list")
    assert isinstance(doc.blocks[0], ListBlock)
    assert len(doc.blocks[0].items) == 2
    assert doc.blocks[1] == Paragraph(runs=((Text(text="Not a list"),),))


def test_display_math_assignment_on_own_line() -> None:
    doc = parse_text("Some intro prose here.\nx = {\\displaystyle y^2}\nMore prose follows.")
    assert doc.blocks == (
        Paragraph(runs=((Text(text="Some intro prose here."),),)),
        DisplayMath(latex="x=y^2"),
        Paragraph(runs=((Text(text="More prose follows."),),)),
    )


def test_display_math_assignment_mid_sentence() -> None:
    doc = parse_text("Some intro prose here. x = {\\displaystyle y^2} and more prose follows.")
    assert doc.blocks == (
        Paragraph(runs=((Text(text="Some intro prose here."),),)),
        DisplayMath(latex="x=y^2"),
        Paragraph(runs=((Text(text="and more prose follows."),),)),
    )


def test_math_tag_inline() -> None:
    doc = parse_text("Energy <math>E = mc^2</math> is conserved.")
    assert doc.blocks == (
        Paragraph(runs=((Text(text="Energy "), InlineMath(latex="E = mc^2"), Text(text=" is conserved.")),)),
    )


def test_no_display_math_inside_paragraphs() -> None:
    text = "Lead prose text that is long enough {\\displaystyle a} tail words here.\n\n<math display=\"block\">b</math>"
    for block in parse_text(text).blocks:
        if isinstance(block, Paragraph):
            for run in block.runs:
                assert not any(isinstance(token, DisplayMath) for token in run)
    assert sum(isinstance(b, DisplayMath) for b in parse_text(text).blocks) == 2


def test_article() -> None:
    text = """\
{{Short description|Capital of France}}
{{Infobox settlement
| name = Paris
| population = {{formatnum:2102650}}
}}
'''Paris''' is the capital of [[France]].<ref>Source</ref>

== Geography ==
The city covers an area given by the formula.

A = πr2

{\\displaystyle A=\\pi r^{2}}

=== Districts ===
* [[Le Marais]]
* [[Montmartre]]

{| class="wikitable"
! Year !! Population
|-
| 2020 || 2,145,906
|}
"""
    blocks = parse_text(text).blocks
    kinds = [type(b).__name__ for b in blocks]

    assert kinds == ["Paragraph", "Heading", "Paragraph", "DisplayMath", "Heading", "ListBlock", "Table"]
    assert blocks[0].runs[0][0] == Bold(children=(Text(text="Paris"),))
    assert blocks[3] == DisplayMath(latex=r"A=\pi r^{2}")
    assert isinstance(blocks[6], Table)
    assert "πr2" not in json.dumps(document_to_dict(parse_text(text)), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text", ["{{{{{{", "'''''''''''", "[[[[", "<math>", "{|\n|}", "]]}}"])
def test_malformed_input_yields_blocks(text: str) -> None:
    doc = parse_text(text)
    assert len(doc) >= 1


def test_adversarial_input_terminates() -> None:
    text = "'''" * 2000 + "[[" * 2000 + "{{" * 200 + "<sup>" * 500 + "{\\displaystyle" * 200
    assert isinstance(parse_text(text), Document)


@pytest.mark.parametrize(
    "unit",
    [
        "{{a ",
        "<sup>a ",
        "<code>a ",
        "<nowiki>a ",
        "[[a ",
        "'''a ",
        "[http://a ",
        "<math>a ",
        "<!-- a ",
        "<ref>a ",
        "<blockquote>a ",
        "{\\displaystyle a ",
        "x {\\displaystyle a} ",
    ],
)
def test_large_unterminated_input_is_fast(unit: str) -> None:
    text = unit * (100_000 // len(unit))
    started = time.perf_counter()
    doc = parse_text(text)
    elapsed = time.perf_counter() - started
    assert len(doc) >= 1
    assert elapsed < 5.0


def test_stage_failure_falls_back_to_plain_paragraphs(monkeypatch: pytest.MonkeyPatch) -> None:
    class Exploding:
        def __init__(self, *args, **kwargs) -> None:
            pass

        def parse(self, text: str):
            raise RuntimeError("boom")

    monkeypatch.setattr(wiki_parser, "BlockParser", Exploding)
    doc = parse_text("Hello\nworld\n\n'''Second'''")

    assert doc.blocks == (
        Paragraph(runs=((Text(text="Hello world"),),)),
        Paragraph(runs=((Text(text="'''Second'''"),),)),
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def test_parse_wiki_file(tmp_path: Path) -> None:
    p = tmp_path / "page.wiki"
    p.write_text("== Intro ==\nHello.", encoding="utf-8")

    doc = WikiParser().parse(p)
    assert doc.blocks[0] == Heading(level=2, text=(Text(text="Intro"),))


def test_parse_json_file(tmp_path: Path) -> None:
    p = tmp_path / "page.json"
    p.write_text(json.dumps({"parse": {"title": "Paris", "wikitext": {"*": "'''Paris'''"}}}), encoding="utf-8")

    doc = WikiParser().parse(p)
    assert doc.blocks == (Paragraph(runs=((Bold(children=(Text(text="Paris"),)),),)),)


def test_parse_payload_sections() -> None:
    doc = WikiParser().parse_payload({"History": "Old.", "Geography": "Big."})
    assert [type(b).__name__ for b in doc.blocks] == ["Heading", "Paragraph", "Heading", "Paragraph"]


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def test_document_to_dict() -> None:
    data = document_to_dict(parse_text("== A ==\n[[B|c]]"))
    assert data == {
        "type": "document",
        "blocks": [
            {"type": "heading", "level": 2, "text": [{"type": "text", "text": "A"}]},
            {"type": "paragraph", "runs": [[{"type": "wiki_link", "target": "B", "label": "c"}]]},
        ],
    }
