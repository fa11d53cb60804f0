"""
Format normalization.

Every supported source format is reduced to one canonical Markdown tree:

- MDX is parsed directly with MDX support; ESM, expressions and JSX are then
  removed from the tree (they cannot be rendered back as plain Markdown).
- Markdoc is rendered to HTML (``{% img %}``/``{% image %}`` become images),
  converted to Markdown and re-parsed as plain Markdown.
- HTML is converted to Markdown and re-parsed as plain Markdown.

MDX parsing reports failure as a FallbackRequired result rather than raising;
documents with an ambiguous extension (``.md`` holding Markdoc) are then
parsed as Markdoc before being declared unparseable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ....core.logging import log
from ....core.models import DocumentFormat, SourceDocument
from ....markup.markdoc import render_markdoc_html
from ....markup.mdx import MdxSyntaxError, mdx_parser
from ....markup.tree import (
    MarkupTree,
    SourceMapError,
    filter_tree,
    is_plain_markdown,
    normalize_source,
    parse_markdown,
    tree_from_tokens,
)
from .html_to_md import html_to_markdown


class UnparseableDocumentError(Exception):
    """No normalization path produced a tree for the document."""


@dataclass(frozen=True)
class Parsed:
    tree: MarkupTree


@dataclass(frozen=True)
class FallbackRequired:
    reason: str


NormalizeResult = Union[Parsed, FallbackRequired]


def parse_mdx(content: str) -> NormalizeResult:
    src = normalize_source(content)
    try:
        tokens = mdx_parser().parse(src)
        tree = filter_tree(tree_from_tokens(src, tokens), is_plain_markdown)
    except (MdxSyntaxError, SourceMapError) as e:
        return FallbackRequired(reason=str(e))
    return Parsed(tree)


def parse_markdoc(content: str) -> MarkupTree:
    html = render_markdoc_html(content)
    return parse_html(html)


def parse_html(content: str) -> MarkupTree:
    tree = parse_markdown(html_to_markdown(content))
    return filter_tree(tree, is_plain_markdown)


def normalize(content: str, fmt: DocumentFormat) -> NormalizeResult:
    """Normalize content of the given format to a canonical tree."""
    if fmt is DocumentFormat.MDX:
        return parse_mdx(content)

    converter = parse_markdoc if fmt is DocumentFormat.MARKDOC else parse_html
    try:
        return Parsed(converter(content))
    except Exception as e:
        # Converters have no expected failure modes; report rather than crash the batch
        log.warning("normalize.conversion_failed", format=fmt.value, error=str(e))
        return FallbackRequired(reason=f"{fmt.value} conversion failed: {e}")


def normalize_document(doc: SourceDocument) -> MarkupTree:
    """Normalize a document, falling back from MDX to Markdoc.

    Raises:
        UnparseableDocumentError: if no path produced a tree.
    """
    result = normalize(doc.content, doc.declared_format)
    if isinstance(result, FallbackRequired) and doc.declared_format is DocumentFormat.MDX:
        log.info("normalize.fallback_markdoc", path=doc.path, reason=result.reason)
        result = normalize(doc.content, DocumentFormat.MARKDOC)

    if isinstance(result, FallbackRequired):
        raise UnparseableDocumentError(f"Unable to parse {doc.path}: {result.reason}")
    return result.tree
