"""Tests for the canonical Markdown tree and node filtering."""

import pytest

from markembed.markup.mdx import mdx_parser
from markembed.markup.tree import (
    MarkupNode,
    MarkupTree,
    NodeKind,
    SourceMapError,
    filter_tree,
    is_plain_markdown,
    parse_markdown,
    serialize,
    tree_from_tokens,
)


def test_parse_markdown_tags_top_level_blocks():
    """Test that top-level blocks get closed NodeKind tags in document order."""
    src = "# Title\n\nIntro text.\n\n* one\n* two\n\n```python\nx = 1\n```\n\n---\n"
    tree = parse_markdown(src)

    assert tree.kinds() == [
        NodeKind.HEADING,
        NodeKind.PARAGRAPH,
        NodeKind.LIST,
        NodeKind.CODE,
        NodeKind.THEMATIC_BREAK,
    ]
    assert tree.children[0].depth == 1
    assert tree.children[0].source == "# Title"


def test_heading_depth_recorded():
    tree = parse_markdown("### Deep\n\ntext\n")
    assert tree.children[0].depth == 3
    assert tree.children[1].depth == 0


def test_reference_definitions_stay_with_preceding_block():
    """Test that lines markdown-it emits no token for are not lost."""
    src = "See [docs][d].\n\n[d]: https://example.com\n\n# Next\n"
    tree = parse_markdown(src)

    assert "[d]: https://example.com" in tree.children[0].source
    assert tree.children[-1].source == "# Next"


def test_crlf_normalized():
    tree = parse_markdown("# A\r\n\r\nbody\r\n")
    assert tree.to_markdown() == "# A\n\nbody\n"


def test_serialize_joins_blocks_with_blank_line():
    nodes = (
        MarkupNode(kind=NodeKind.HEADING, source="# A", depth=1),
        MarkupNode(kind=NodeKind.PARAGRAPH, source="text"),
    )
    assert serialize(nodes) == "# A\n\ntext\n"
    assert serialize(()) == ""


def test_serialize_then_parse_is_stable():
    src = "# Title\n\nSome *text* here.\n\n> quoted\n\n1. first\n2. second\n"
    once = parse_markdown(src).to_markdown()
    twice = parse_markdown(once).to_markdown()
    assert once == twice


@pytest.mark.parametrize(
    "src",
    [
        "Use `{x}` and {x} here.\n",
        "> Quote {a +\n> b} end\n",
        "# Intro\n\n* one\n  <Note />\n* two\n",
    ],
)
def test_expression_spans_point_into_block_source(src):
    """Test that each expression child's span selects its own text in the parent block."""
    tree = tree_from_tokens(src, mdx_parser().parse(src))

    children = [child for node in tree.children for child in node.children]
    assert children
    for node in tree.children:
        for child in node.children:
            start, end = child.span
            assert node.source[start:end].replace("> ", "") == child.source


class TestFilterTree:
    """Test the pure filter over node kinds."""

    def test_drops_top_level_nodes(self):
        tree = MarkupTree(
            (
                MarkupNode(kind=NodeKind.FRONT_MATTER, source="---\na: 1\n---"),
                MarkupNode(kind=NodeKind.HEADING, source="# A", depth=1),
                MarkupNode(kind=NodeKind.MDXJS_ESM, source="import X from 'x'"),
            )
        )
        filtered = filter_tree(tree, is_plain_markdown)
        assert filtered.kinds() == [NodeKind.HEADING]

    def test_cuts_inline_expression_from_parent_source(self):
        expr = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{name}", span=(6, 12))
        para = MarkupNode(kind=NodeKind.PARAGRAPH, source="Hello {name}!", children=(expr,))

        filtered = filter_tree(MarkupTree((para,)), is_plain_markdown)

        assert filtered.children[0].source == "Hello !"
        assert filtered.children[0].children == ()

    def test_removes_line_left_empty(self):
        expr = MarkupNode(kind=NodeKind.MDX_JSX_FLOW_ELEMENT, source="<Note />", span=(8, 16))
        item = MarkupNode(kind=NodeKind.LIST, source="* one\n  <Note />\n* two", children=(expr,))

        filtered = filter_tree(MarkupTree((item,)), is_plain_markdown)

        assert filtered.children[0].source == "* one\n* two"

    def test_drops_block_emptied_by_removal(self):
        expr = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{title}", span=(3, 10))
        heading = MarkupNode(kind=NodeKind.HEADING, source="## {title}", depth=2, children=(expr,))
        para = MarkupNode(kind=NodeKind.PARAGRAPH, source="body")

        filtered = filter_tree(MarkupTree((heading, para)), is_plain_markdown)

        assert filtered.kinds() == [NodeKind.PARAGRAPH]

    def test_keeps_everything_with_permissive_predicate(self):
        tree = parse_markdown("# A\n\nb\n")
        assert filter_tree(tree, lambda node: True) == tree

    def test_cuts_by_span_not_by_matching_text(self):
        """Test that an identical copy of the expression text earlier in the block survives."""
        src = "Use `{x}` or {x} here."
        expr = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{x}", span=(13, 16))
        para = MarkupNode(kind=NodeKind.PARAGRAPH, source=src, children=(expr,))

        filtered = filter_tree(MarkupTree((para,)), is_plain_markdown)

        assert filtered.children[0].source == "Use `{x}` or  here."

    def test_kept_children_spans_follow_earlier_cuts(self):
        first = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{a}", span=(0, 3))
        second = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{b}", span=(6, 9))
        para = MarkupNode(kind=NodeKind.PARAGRAPH, source="{a} x {b}", children=(first, second))

        filtered = filter_tree(
            MarkupTree((para,)), lambda node: node.source != "{a}"
        )

        kept = filtered.children[0]
        assert kept.source == " x {b}"
        start, end = kept.children[0].span
        assert kept.source[start:end] == "{b}"

    def test_missing_span_raises(self):
        expr = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{name}")
        para = MarkupNode(kind=NodeKind.PARAGRAPH, source="Hello {name}!", children=(expr,))

        with pytest.raises(SourceMapError):
            filter_tree(MarkupTree((para,)), is_plain_markdown)

    def test_span_outside_block_raises(self):
        expr = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{name}", span=(40, 46))
        para = MarkupNode(kind=NodeKind.PARAGRAPH, source="Hello {name}!", children=(expr,))

        with pytest.raises(SourceMapError):
            filter_tree(MarkupTree((para,)), is_plain_markdown)

    def test_blockquote_left_with_only_markers_is_dropped(self):
        expr = MarkupNode(kind=NodeKind.MDX_TEXT_EXPRESSION, source="{a}", span=(2, 5))
        quote = MarkupNode(kind=NodeKind.BLOCKQUOTE, source="> {a}", children=(expr,))

        assert filter_tree(MarkupTree((quote,)), is_plain_markdown).children == ()
