"""Resolution of caller payloads into a single wikitext string."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from wikirender.errors import UnsupportedSourceError

SourceKind = Literal["raw", "field", "sections"]

# Checked in this order; the first string value wins.
WIKITEXT_FIELDS = ("wikitext", "*", "content")


@dataclass(frozen=True, slots=True)
class WikiSource:
    """Wikitext plus a record of how it was obtained from the caller's payload."""

    kind: SourceKind
    text: str
    field: str | None = None
    title: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> WikiSource:
        """Resolve *payload* into wikitext.

        A string is used as-is. A mapping yields its first string-valued field
        among ``wikitext``, ``*`` and ``content`` (a MediaWiki ``{"*": …}``
        wrapper and a top-level ``parse`` object are unwrapped). A mapping with
        none of those fields is treated as ``heading -> body`` pairs and
        rendered as ``== heading ==`` sections.
        """
        if isinstance(payload, str):
            return cls(kind="raw", text=payload)

        if not isinstance(payload, Mapping):
            raise UnsupportedSourceError(
                f"Unsupported payload type: {type(payload).__name__}",
                {"type": type(payload).__name__},
            )

        if isinstance(payload.get("parse"), Mapping):
            payload = payload["parse"]

        title = payload.get("title") if isinstance(payload.get("title"), str) else None
        for key in WIKITEXT_FIELDS:
            if key not in payload:
                continue
            value = payload[key]
            if isinstance(value, Mapping):
                value = value.get("*")
            if isinstance(value, str):
                return cls(kind="field", text=value, field=key, title=title)

        sections = [(str(key), value) for key, value in payload.items() if isinstance(value, str)]
        if not sections:
            raise UnsupportedSourceError(
                "Payload has no wikitext field and no string sections",
                {"keys": [str(key) for key in payload]},
            )
        return cls(kind="sections", text=_synthesize_sections(sections))

    @classmethod
    def from_path(cls, input_path: Path) -> WikiSource:
        """Read *input_path*; ``.json`` files go through :meth:`from_payload`."""
        input_path = Path(input_path)
        raw = input_path.read_text(encoding="utf-8", errors="ignore")
        if input_path.suffix.lower() != ".json":
            return cls(kind="raw", text=raw)
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise UnsupportedSourceError(f"Invalid JSON in {input_path.name}: {exc.msg}") from exc
        return cls.from_payload(payload)


def _synthesize_sections(sections: list[tuple[str, str]]) -> str:
    return "\n\n".join(f"== {key} ==\n{value.strip()}" for key, value in sections)
