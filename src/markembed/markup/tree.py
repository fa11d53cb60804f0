"""
Canonical Markdown tree.

A document is reduced to an ordered tuple of top-level MarkupNodes, each
carrying the Markdown source it was parsed from. Nodes are tagged by a closed
NodeKind enum so that filtering (dropping MDX expressions, front matter) is a
pure predicate over the tag. Descendants that may need to be removed from
inside a block (inline expressions, nested JSX) are kept as children so the
parent's source can be rewritten without them. Each child records the span
it occupies in the parent's source, taken from the offsets recorded by the
parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, Optional

from markdown_it import MarkdownIt
from markdown_it.token import Token
from markdown_it.tree import SyntaxTreeNode


class NodeKind(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    BLOCKQUOTE = "blockquote"
    CODE = "code"
    HTML = "html"
    TABLE = "table"
    THEMATIC_BREAK = "thematic_break"
    FRONT_MATTER = "front_matter"
    MDXJS_ESM = "mdxjs_esm"
    MDX_FLOW_EXPRESSION = "mdx_flow_expression"
    MDX_TEXT_EXPRESSION = "mdx_text_expression"
    MDX_JSX_FLOW_ELEMENT = "mdx_jsx_flow_element"
    MDX_JSX_TEXT_ELEMENT = "mdx_jsx_text_element"


EXPRESSION_KINDS = frozenset(
    {
        NodeKind.MDXJS_ESM,
        NodeKind.MDX_FLOW_EXPRESSION,
        NodeKind.MDX_TEXT_EXPRESSION,
        NodeKind.MDX_JSX_FLOW_ELEMENT,
        NodeKind.MDX_JSX_TEXT_ELEMENT,
    }
)

# markdown-it node type -> kind
_KINDS: dict[str, NodeKind] = {
    "heading": NodeKind.HEADING,
    "paragraph": NodeKind.PARAGRAPH,
    "bullet_list": NodeKind.LIST,
    "ordered_list": NodeKind.LIST,
    "blockquote": NodeKind.BLOCKQUOTE,
    "fence": NodeKind.CODE,
    "code_block": NodeKind.CODE,
    "html_block": NodeKind.HTML,
    "table": NodeKind.TABLE,
    "hr": NodeKind.THEMATIC_BREAK,
    "front_matter": NodeKind.FRONT_MATTER,
    "mdxjs_esm": NodeKind.MDXJS_ESM,
    "mdx_flow_expression": NodeKind.MDX_FLOW_EXPRESSION,
    "mdx_text_expression": NodeKind.MDX_TEXT_EXPRESSION,
    "mdx_jsx_flow_element": NodeKind.MDX_JSX_FLOW_ELEMENT,
    "mdx_jsx_text_element": NodeKind.MDX_JSX_TEXT_ELEMENT,
}


class SourceMapError(ValueError):
    """An expression node could not be located in its block's source."""


@dataclass(frozen=True)
class MarkupNode:
    kind: NodeKind
    source: str
    depth: int = 0  # heading level, 0 for everything else
    children: tuple["MarkupNode", ...] = ()
    span: Optional[tuple[int, int]] = None  # [start, end) within the parent's source


@dataclass(frozen=True)
class MarkupTree:
    children: tuple[MarkupNode, ...] = ()

    def to_markdown(self) -> str:
        return serialize(self.children)

    def kinds(self) -> list[NodeKind]:
        return [node.kind for node in self.children]


def serialize(nodes: Iterable[MarkupNode]) -> str:
    """Render nodes back to Markdown, one blank line between blocks."""
    parts = [node.source for node in nodes]
    if not parts:
        return ""
    return "\n\n".join(parts) + "\n"


def normalize_source(src: str) -> str:
    """Apply the same line-ending normalization markdown-it applies before parsing."""
    return re.sub(r"\r\n?", "\n", src).replace("\0", "�")


def is_heading(node: MarkupNode) -> bool:
    return node.kind is NodeKind.HEADING


def is_plain_markdown(node: MarkupNode) -> bool:
    """Keep predicate for the canonical tree: no expressions, no front matter."""
    return node.kind not in EXPRESSION_KINDS and node.kind is not NodeKind.FRONT_MATTER


def markdown_parser(html: bool = True) -> MarkdownIt:
    """CommonMark parser used for canonical Markdown."""
    return MarkdownIt("commonmark", {"html": html})


def parse_markdown(src: str, md: Optional[MarkdownIt] = None) -> MarkupTree:
    """Parse plain Markdown into a tree."""
    src = normalize_source(src)
    parser = md or markdown_parser()
    return tree_from_tokens(src, parser.parse(src))


def tree_from_tokens(src: str, tokens: list[Token]) -> MarkupTree:
    """
    Build a MarkupTree from a markdown-it token stream.

    Each top-level node owns the source lines from its first line up to the
    next node's first line, so reference definitions and other lines that
    markdown-it does not emit as tokens stay with the block they follow.

    Expression descendants are located by the offsets the MDX rules record
    on their tokens, never by searching for their text.

    Raises:
        SourceMapError: if an expression cannot be located in the source.
    """
    lines = src.split("\n")
    line_starts = _line_starts(lines)
    top = SyntaxTreeNode(tokens).children
    nodes: list[MarkupNode] = []
    prev_end = 0
    for i, node in enumerate(top):
        start = 0 if i == 0 else (node.map[0] if node.map else prev_end)
        nxt = top[i + 1] if i + 1 < len(top) else None
        if nxt is not None and nxt.map:
            end = nxt.map[0]
        elif nxt is None:
            end = len(lines)
        else:
            end = node.map[1] if node.map else start
        prev_end = end

        children: list[MarkupNode] = []
        if node.map:
            raw = "\n".join(lines[start:end])
            source = raw.strip("\n").rstrip()
            base = line_starts[start] + len(raw) - len(raw.lstrip("\n"))
            children = _expression_descendants(node, src, lines, line_starts, base)
        else:
            source = node.content.strip("\n")

        kind = _KINDS[node.type]
        depth = int(node.tag[1:]) if kind is NodeKind.HEADING else 0
        nodes.append(MarkupNode(kind=kind, source=source, depth=depth, children=tuple(children)))
    return MarkupTree(tuple(nodes))


def _line_starts(lines: list[str]) -> list[int]:
    starts = []
    offset = 0
    for line in lines:
        starts.append(offset)
        offset += len(line) + 1
    return starts


def _expression_descendants(
    node: SyntaxTreeNode,
    src: str,
    lines: list[str],
    line_starts: list[int],
    base: int,
) -> list[MarkupNode]:
    found = []
    inline_maps: dict[int, list[tuple[int, int, int]]] = {}
    for child in node.walk(include_self=False):
        kind = _KINDS.get(child.type)
        if kind not in EXPRESSION_KINDS:
            continue
        meta = child.meta or {}
        if "start" in meta:
            start, end = meta["start"], meta["end"]
        elif "offset" in meta:
            inline = _inline_ancestor(child)
            if id(inline) not in inline_maps:
                inline_maps[id(inline)] = _inline_line_map(inline, lines, line_starts)
            line_map = inline_maps[id(inline)]
            start = _to_document_offset(line_map, meta["offset"])
            end = _to_document_offset(line_map, meta["offset"] + len(child.content))
        else:
            raise SourceMapError(f"{child.type} token carries no source position")

        first_line = child.content.split("\n", 1)[0]
        if not src.startswith(first_line, start):
            raise SourceMapError(f"Could not locate `{first_line}` in the document source")
        found.append(MarkupNode(kind=kind, source=child.content, span=(start - base, end - base)))
    return found


def _inline_ancestor(node: SyntaxTreeNode) -> SyntaxTreeNode:
    parent = node.parent
    while parent is not None and parent.type != "inline":
        parent = parent.parent
    if parent is None or not parent.map:
        raise SourceMapError(f"{node.type} token is not inside a mapped inline block")
    return parent


def _inline_line_map(inline: SyntaxTreeNode, lines: list[str], line_starts: list[int]) -> list[tuple[int, int, int]]:
    """
    Align each line of an inline token's content with its source line.

    Container markers (``> ``, list indentation) are stripped from inline
    content, so every content line is the tail of its source line. Returns
    ``(content_offset, leading_whitespace, document_offset)`` per line.
    """
    content_lines = inline.content.split("\n")
    first = inline.map[0]
    line_map = []
    content_offset = 0
    for j, text in enumerate(content_lines):
        line = lines[first + j] if first + j < len(lines) else ""
        stripped = text.lstrip()
        tail = line.rstrip() if j == len(content_lines) - 1 else line
        if tail.endswith(stripped):
            col = len(tail) - len(stripped)
        else:
            # ATX headings drop their closing sequence
            col = line.find(stripped)
        if col < 0:
            raise SourceMapError(f"Inline content line {j + 1} not found on source line {first + j + 1}")
        line_map.append((content_offset, len(text) - len(stripped), line_starts[first + j] + col))
        content_offset += len(text) + 1
    return line_map


def _to_document_offset(line_map: list[tuple[int, int, int]], offset: int) -> int:
    for content_offset, lead, document_offset in reversed(line_map):
        if offset >= content_offset:
            return document_offset + max(0, offset - content_offset - lead)
    raise SourceMapError(f"Offset {offset} precedes the inline content")


def filter_tree(tree: MarkupTree, keep: Callable[[MarkupNode], bool]) -> MarkupTree:
    """
    Drop every node (top-level or descendant) for which ``keep`` is false.

    A block whose content is entirely removed is dropped as well.
    """
    kept = []
    for node in tree.children:
        pruned = _prune(node, keep)
        if pruned is not None:
            kept.append(pruned)
    return MarkupTree(tuple(kept))


def _prune(node: MarkupNode, keep: Callable[[MarkupNode], bool]) -> Optional[MarkupNode]:
    if not keep(node):
        return None
    removed = [child for child in node.children if not keep(child)]
    if not removed:
        return node

    source = node.source
    cuts = []
    # Right to left, so earlier spans stay valid
    for child in sorted(removed, key=_span_start, reverse=True):
        source, cut = _cut(source, child)
        cuts.append(cut)

    if _is_blank(node.kind, source):
        return None
    children = tuple(
        replace(child, span=_shift(child.span, cuts)) for child in node.children if keep(child)
    )
    return replace(node, source=source, children=children)


def _span_start(node: MarkupNode) -> int:
    if node.span is None:
        raise SourceMapError(f"{node.kind.value} node has no source span")
    return node.span[0]


def _cut(source: str, child: MarkupNode) -> tuple[str, tuple[int, int]]:
    """Remove ``child``'s span from ``source``.

    A line left empty by the removal is removed with it.
    """
    if child.span is None or not 0 <= child.span[0] <= child.span[1] <= len(source):
        raise SourceMapError(f"{child.kind.value} span {child.span} is outside its block")
    start, end = child.span

    line_start = source.rfind("\n", 0, start) + 1
    line_end = source.find("\n", end)
    if line_end < 0:
        line_end = len(source)
    if not source[line_start:start].strip() and not source[end:line_end].strip():
        if line_end < len(source):
            start, end = line_start, line_end + 1
        elif line_start > 0:
            start, end = line_start - 1, line_end
        else:
            start, end = line_start, line_end
    return source[:start] + source[end:], (start, end)


def _shift(span: Optional[tuple[int, int]], cuts: list[tuple[int, int]]) -> Optional[tuple[int, int]]:
    if span is None:
        return None
    removed = sum(end - start for start, end in cuts if end <= span[0])
    return span[0] - removed, span[1] - removed


_CONTAINER_MARKERS = re.compile(r"^(?:\s*(?:>|[*+-]|\d{1,9}[.)])(?=\s|$))*")


def _is_blank(kind: NodeKind, source: str) -> bool:
    if kind is NodeKind.HEADING:
        return not source.strip().lstrip("#").strip()
    if kind in (NodeKind.BLOCKQUOTE, NodeKind.LIST):
        return not any(_CONTAINER_MARKERS.sub("", line).strip() for line in source.split("\n"))
    return not source.strip()
