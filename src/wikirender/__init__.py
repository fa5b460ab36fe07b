"""Render Wikipedia-style wikitext into a document tree and HTML."""
