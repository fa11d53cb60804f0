"""Canonical Markdown tree and the MDX/Markdoc parser extensions."""

from .markdoc import render_markdoc_html
from .mdx import MdxSyntaxError, mdx_parser
from .tree import (
    EXPRESSION_KINDS,
    MarkupNode,
    MarkupTree,
    NodeKind,
    SourceMapError,
    filter_tree,
    is_heading,
    is_plain_markdown,
    parse_markdown,
    serialize,
    tree_from_tokens,
)

__all__ = [
    "EXPRESSION_KINDS",
    "MarkupNode",
    "MarkupTree",
    "MdxSyntaxError",
    "NodeKind",
    "SourceMapError",
    "filter_tree",
    "is_heading",
    "is_plain_markdown",
    "mdx_parser",
    "parse_markdown",
    "render_markdoc_html",
    "serialize",
    "tree_from_tokens",
]
