"""Tests for math extraction.

Covers:
- <math> tags (inline, display="block", inner displaystyle shell)
- Bare {\\displaystyle} / {\\textstyle} markers
- LaTeX fallback suppression heuristic, including its known false positive
- Unterminated markers left verbatim
- Placeholder uniqueness and NUL scrubbing
- Brace reader, delimiter pairing and LaTeX normalisation helpers
"""

from __future__ import annotations

import re

from wikirender.config import ParserOptions
from wikirender.parser.math import (
    PLACEHOLDER_RE,
    MathTable,
    count_real_words,
    extract,
    make_placeholder,
    normalize_latex,
    read_balanced_braces,
    unwrap_latex,
)
from wikirender.parser.spans import match_braces, paired_spans


# ---------------------------------------------------------------------------
# <math> tags
# ---------------------------------------------------------------------------

def test_inline_math_tag() -> None:
    result = extract("The value <math>x^2</math> grows.")
    key = make_placeholder(0)

    assert result.processed == f"The value {key} grows."
    entry = result.math_table.get(key)
    assert entry.latex == "x^2"
    assert entry.display is False
    assert entry.source == "<math>x^2</math>"


def test_display_attribute() -> None:
    result = extract('<math display="block">a + b</math>')
    entry = result.math_table.get(make_placeholder(0))
    assert entry.display is True
    assert entry.latex == "a + b"


def test_inner_displaystyle_shell_unwrapped() -> None:
    result = extract(r"<math>{\displaystyle \frac{a}{b}}</math>")
    entry = result.math_table.get(make_placeholder(0))
    assert entry.display is True
    assert entry.latex == r"\frac{a}{b}"


def test_restore_gives_back_source() -> None:
    original = "The value <math>x^2</math> grows."
    result = extract(original)
    assert result.math_table.restore(result.processed) == original


# ---------------------------------------------------------------------------
# Bare markers
# ---------------------------------------------------------------------------

def test_bare_displaystyle_is_display() -> None:
    result = extract("Intro text.\nx = {\\displaystyle y^2}\nMore text.")
    key = make_placeholder(0)

    assert result.processed == f"Intro text.\nx = {key}\nMore text."
    assert result.math_table.get(key).latex == "y^2"
    assert result.math_table.is_display(key)


def test_bare_textstyle_is_inline() -> None:
    result = extract("Let every positive integer be {\\textstyle n} here.")
    key = make_placeholder(0)

    assert "Let every positive integer be" in result.processed
    assert result.math_table.get(key).latex == "n"
    assert not result.math_table.is_display(key)


def test_unterminated_marker_left_verbatim() -> None:
    text = "Broken {\\displaystyle x^{2} text"
    result = extract(text)
    assert result.processed == text
    assert len(result.math_table) == 0


# ---------------------------------------------------------------------------
# Fallback suppression
# ---------------------------------------------------------------------------

def test_fallback_rendering_removed() -> None:
    text = (
        "The area of a circle is given by the formula.\n\n"
        "A = πr2\n\n"
        "{\\displaystyle A=\\pi r^{2}}\n\n"
        "It grows quickly."
    )
    result = extract(text)

    assert "πr2" not in result.processed
    assert "given by the formula." in result.processed
    assert "It grows quickly." in result.processed
    assert result.math_table.get(make_placeholder(0)).latex == r"A=\pi r^{2}"


def test_prose_before_marker_kept() -> None:
    result = extract("Einstein showed that energy and mass are equivalent {\\displaystyle E=mc^2}")
    assert result.processed.startswith("Einstein showed that energy and mass are equivalent")


def test_assignment_lhs_kept() -> None:
    result = extract("Some prose here.\nx = {\\displaystyle y^2}")
    assert "x = " in result.processed


def test_short_prose_is_a_known_false_positive() -> None:
    # Only one word of four or more letters: the heuristic reads it as fallback text.
    result = extract("The radius is r {\\displaystyle r}")
    assert result.processed.strip() == make_placeholder(0)


def test_threshold_is_configurable() -> None:
    options = ParserOptions(fallback_min_words=1)
    result = extract("The radius is r {\\displaystyle r}", options)
    assert result.processed.startswith("The radius is r")


def test_fallback_stops_at_previous_formula() -> None:
    text = "Mass <math>m</math> xy {\\displaystyle m}"
    result = extract(text)
    first, second = make_placeholder(0), make_placeholder(1)

    assert result.processed.startswith(f"Mass {first}")
    assert "xy" not in result.processed
    assert result.processed.endswith(second)


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

def test_placeholders_unique() -> None:
    text = "<math>a</math> and <math>b</math>, also {\\displaystyle c} plus {\\textstyle d}"
    result = extract(text)
    keys = [m.group(0) for m in PLACEHOLDER_RE.finditer(result.processed)]

    assert len(result.math_table) == 4
    assert len(keys) == len(set(keys)) == 4
    assert set(keys) == set(result.math_table)


def test_nul_in_input_cannot_forge_placeholder() -> None:
    result = extract("a\x00MATH0\x00 b")
    assert PLACEHOLDER_RE.search(result.processed) is None
    assert len(result.math_table) == 0


def test_math_table_add_and_lookup() -> None:
    table = MathTable()
    key = table.add("x", True, "<math>x</math>")
    assert key in table
    assert table.is_display(key)
    assert not table.is_display(make_placeholder(5))
    assert table.restore(f"[{key}]") == "[<math>x</math>]"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_read_balanced_braces() -> None:
    assert read_balanced_braces("{a{b}c} tail", 0) == ("a{b}c", 7)
    assert read_balanced_braces(r"{a\}b}", 0) == (r"a\}b", 6)
    assert read_balanced_braces("{open", 0) is None
    assert read_balanced_braces("x", 0) is None


def test_unwrap_latex() -> None:
    assert unwrap_latex(r"{\textstyle  a +  b }") == ("textstyle", "a + b")
    assert unwrap_latex(r"\displaystyle x") == ("displaystyle", "x")
    assert unwrap_latex("x^2") == (None, "x^2")


def test_normalize_latex() -> None:
    assert normalize_latex("{ a +\n b }") == "{a + b}"
    assert normalize_latex(r"\{ x \}") == r"\{ x \}"


def test_count_real_words() -> None:
    assert count_real_words("A = πr2 area circle") == 2
    assert count_real_words("x = 12345") == 0


def test_match_braces() -> None:
    assert match_braces("{a{b}}\\{") == {0: 6, 2: 5}
    assert match_braces("}{") == {}


def test_paired_spans_stop_at_unclosed_opener() -> None:
    spans = paired_spans("<b>1</b><b><b>2</b><b>3", re.compile("<b>"), re.compile("</b>"))
    assert [(o.start(), c.end()) for o, c in spans] == [(0, 8), (8, 19)]
