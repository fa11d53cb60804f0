"""File-level helpers: front matter extraction and format classification."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any

import frontmatter  # type: ignore[import-untyped]

from .logging import log
from .models import DocumentFormat

MARKDOC_SUFFIXES = {".mdoc"}
HTML_SUFFIXES = {".html", ".htm"}


def get_file_type(filename: str) -> DocumentFormat:
    """Classify a file by extension.

    Everything that is not explicitly Markdoc or HTML is treated as MDX; the
    normalizer falls back to Markdoc when MDX parsing fails.
    """
    suffix = PurePosixPath(filename).suffix.lower()
    if suffix in MARKDOC_SUFFIXES:
        return DocumentFormat.MARKDOC
    if suffix in HTML_SUFFIXES:
        return DocumentFormat.HTML
    return DocumentFormat.MDX


def extract_frontmatter(content: str) -> dict[str, Any]:
    """Return the YAML front matter of a document as a dict (empty if none)."""
    try:
        post = frontmatter.loads(content)
    except Exception as e:
        # Malformed front matter is metadata loss, not an ingestion failure
        log.debug("files.frontmatter_unparsed", error=str(e))
        return {}
    return dict(post.metadata)
