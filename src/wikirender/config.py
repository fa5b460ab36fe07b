"""Configuration for the wikitext parser."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

# Below this many real words, text in front of a bare {\displaystyle} marker is
# treated as LaTeX fallback output rather than prose. Heuristic threshold.
FALLBACK_MIN_WORDS = 3
FALLBACK_WORD_LENGTH = 4
FALLBACK_WINDOW = 300

WIKI_LINK_BASE = "/wiki/"
SEARCH_LINK_BASE = "/search/"


@dataclass(frozen=True, slots=True)
class ParserOptions:
    link_base: str = WIKI_LINK_BASE
    fallback_window: int = FALLBACK_WINDOW
    fallback_min_words: int = FALLBACK_MIN_WORDS
    fallback_word_length: int = FALLBACK_WORD_LENGTH

    @classmethod
    def from_env(cls) -> ParserOptions:
        """Build options from ``WIKIRENDER_*`` environment variables."""
        defaults = cls()
        return cls(
            link_base=os.getenv("WIKIRENDER_LINK_BASE", defaults.link_base),
            fallback_window=_env_int("WIKIRENDER_FALLBACK_WINDOW", defaults.fallback_window),
            fallback_min_words=_env_int("WIKIRENDER_FALLBACK_MIN_WORDS", defaults.fallback_min_words),
            fallback_word_length=_env_int("WIKIRENDER_FALLBACK_WORD_LENGTH", defaults.fallback_word_length),
        )

    def with_overrides(self, **changes) -> ParserOptions:
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default
