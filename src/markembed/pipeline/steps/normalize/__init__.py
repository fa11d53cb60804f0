"""Normalization step: MDX, Markdoc and HTML to canonical Markdown."""

from .html_to_md import html_to_markdown
from .normalizer import (
    FallbackRequired,
    NormalizeResult,
    Parsed,
    UnparseableDocumentError,
    normalize,
    normalize_document,
)

__all__ = [
    "FallbackRequired",
    "NormalizeResult",
    "Parsed",
    "UnparseableDocumentError",
    "html_to_markdown",
    "normalize",
    "normalize_document",
]
