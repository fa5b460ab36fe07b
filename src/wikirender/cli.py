"""wikirender CLI entrypoint."""

from __future__ import annotations

import json
from pathlib import Path

import click

from wikirender.config import ParserOptions
from wikirender.errors import WikiRenderError
from wikirender.logger import init_logging, logger
from wikirender.parser.base import document_to_dict
from wikirender.parser.source import WikiSource
from wikirender.parser.wiki_parser import WikiParser
from wikirender.renderer.html_renderer import HTMLRenderer
from wikirender.renderer.math_renderer import MATH_ENGINES


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output file path")
@click.option("--title", type=str, default=None, help="Override document title")
@click.option("--dark-mode", is_flag=True, help="Enable dark mode stylesheet")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["html", "json"], case_sensitive=False),
    default="html",
    show_default=True,
    help="Write a rendered page or the parsed document tree",
)
@click.option(
    "--math-engine",
    type=click.Choice(MATH_ENGINES, case_sensitive=False),
    default="mathml",
    show_default=True,
    help="Math rendering mode",
)
@click.option("--link-base", type=str, default=None, help="Prefix for wiki links, e.g. /wiki/ or /search/")
@click.option("--max-chars", type=click.IntRange(min=1), default=None, help="Truncate input before parsing")
@click.option("--max-blocks", type=click.IntRange(min=1), default=None, help="Render only the first N blocks")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="WIKIRENDER_LOG_LEVEL",
)
def main(
    input_path: Path,
    output: Path,
    title: str | None,
    dark_mode: bool,
    output_format: str,
    math_engine: str,
    link_base: str | None,
    max_chars: int | None,
    max_blocks: int | None,
    log_level: str,
) -> None:
    """Render a wikitext file (or a JSON payload holding wikitext) as HTML or JSON."""
    init_logging(log_level)
    options = ParserOptions.from_env().with_overrides(link_base=link_base)

    try:
        source = WikiSource.from_path(input_path)
    except WikiRenderError as exc:
        raise click.ClickException(exc.message) from exc

    text = source.text
    if max_chars is not None and len(text) > max_chars:
        logger.warning("Input truncated from %d to %d characters", len(text), max_chars)
        text = text[:max_chars]

    document = WikiParser(options).parse_text(text)

    if output_format.lower() == "json":
        rendered = json.dumps(document_to_dict(document), ensure_ascii=False, indent=2)
    else:
        renderer = HTMLRenderer(link_base=options.link_base)
        rendered = renderer.render(
            document,
            title=title or source.title or input_path.stem,
            dark_mode=dark_mode,
            math_engine=math_engine.lower(),
            max_blocks=max_blocks,
        )

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(rendered, encoding="utf-8")

    click.echo(f"Rendered: {output}")


if __name__ == "__main__":  # pragma: no cover
    main()
