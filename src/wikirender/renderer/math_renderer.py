"""LaTeX to presentation markup. Never raises."""

from __future__ import annotations

import html
import logging

from latex2mathml.converter import convert as latex2mathml_convert

logger = logging.getLogger(__name__)

MATH_ENGINES = ("mathml", "katex", "none")


def render_math(latex: str, display_mode: bool = False, engine: str = "mathml") -> str:
    """Render *latex* for the given engine.

    ``mathml`` converts server-side with latex2mathml; ``katex`` emits TeX
    delimiters for a client-side renderer; ``none`` shows the source in a code
    span. Conversion failures fall back to a flagged literal.
    """
    if engine == "mathml":
        try:
            return latex2mathml_convert(latex, display="block" if display_mode else "inline")
        except Exception as exc:
            logger.warning("Could not convert formula %r: %s", latex, exc)
            return fallback_math(latex, display_mode)

    if engine == "katex":
        open_delim, close_delim = (r"\[", r"\]") if display_mode else (r"\(", r"\)")
        return f'<span class="wiki-math" data-display="{"true" if display_mode else "false"}">{open_delim}{html.escape(latex)}{close_delim}</span>'

    return f'<code class="wiki-math">{html.escape(latex)}</code>'


def fallback_math(latex: str, display_mode: bool = False) -> str:
    return (
        f'<code class="wiki-math-error" data-display="{"true" if display_mode else "false"}" '
        f'title="Formula could not be rendered">{html.escape(latex)}</code>'
    )
