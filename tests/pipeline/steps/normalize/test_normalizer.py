"""Tests for format normalization and the MDX -> Markdoc fallback."""

import pytest

from markembed.core.models import DocumentFormat, SourceDocument
from markembed.markup.tree import NodeKind, parse_markdown
from markembed.pipeline.steps.normalize import normalizer
from markembed.pipeline.steps.normalize.html_to_md import html_to_markdown
from markembed.pipeline.steps.normalize.normalizer import (
    FallbackRequired,
    Parsed,
    UnparseableDocumentError,
    normalize,
    normalize_document,
)

MDX_DOC = (
    'import { Chart } from "./chart"\n'
    "\n"
    "# Title\n"
    "\n"
    "Hello {props.name} world.\n"
    "\n"
    "<Chart data={[1, 2]} />\n"
    "\n"
    "{/* a comment */}\n"
    "\n"
    "Bye <Badge>new</Badge> now.\n"
)

MARKDOC_DOC = (
    "---\n"
    "title: Guide\n"
    "---\n"
    "\n"
    "# Install\n"
    "\n"
    '{% callout type="note" %}\n'
    "Run the installer.\n"
    "{% /callout %}\n"
    "\n"
    '{% image src="/img/setup.png" /%}\n'
    "\n"
    "Inline {% $version %} value.\n"
)


def _doc(content, fmt, path="docs/page"):
    return SourceDocument(path=path, content=content, declared_format=fmt)


class TestMdx:
    def test_expressions_leave_no_trace(self):
        """Test that ESM, expressions and JSX are removed from the output."""
        result = normalize(MDX_DOC, DocumentFormat.MDX)
        assert isinstance(result, Parsed)
        markdown = result.tree.to_markdown()

        for fragment in ("import", "Chart", "props.name", "comment", "<Badge>", "</Badge>"):
            assert fragment not in markdown
        assert "# Title" in markdown
        assert "Hello" in markdown and "world." in markdown
        assert "Bye" in markdown and "now." in markdown

    def test_expression_kinds_absent_from_tree(self):
        result = normalize(MDX_DOC, DocumentFormat.MDX)
        assert result.tree.kinds() == [NodeKind.HEADING, NodeKind.PARAGRAPH, NodeKind.PARAGRAPH]
        assert all(node.children == () for node in result.tree.children)

    def test_front_matter_dropped(self):
        result = normalize("---\ntitle: T\n---\n\n# A\n\nbody text\n", DocumentFormat.MDX)
        assert result.tree.kinds() == [NodeKind.HEADING, NodeKind.PARAGRAPH]

    def test_invalid_mdx_requires_fallback(self):
        result = normalize("Value {HI\\_THERE} here.\n", DocumentFormat.MDX)
        assert isinstance(result, FallbackRequired)
        assert result.reason

    def test_plain_markdown_unchanged(self):
        src = "# Title\n\nSome text.\n\n## Sub\n\n* a\n* b\n"
        result = normalize(src, DocumentFormat.MDX)
        assert result.tree.to_markdown() == src

    def test_code_span_copy_of_expression_kept(self):
        """Test that only the expression is removed, not identical text inside a code span."""
        result = normalize("Use `{props.name}` to read {props.name} here.\n", DocumentFormat.MDX)
        assert result.tree.to_markdown() == "Use `{props.name}` to read  here.\n"

    @pytest.mark.parametrize(
        "src, expected",
        [
            ("> Quote {a +\n> b} end\n", "> Quote  end\n"),
            ("- item {a +\n  b} end\n", "- item  end\n"),
            ('- item <Badge\n  label="secret" /> end\n', "- item  end\n"),
        ],
    )
    def test_multi_line_inline_expressions_removed_inside_containers(self, src, expected):
        result = normalize(src, DocumentFormat.MDX)
        assert isinstance(result, Parsed)
        assert result.tree.to_markdown() == expected

    def test_unlocatable_expression_requires_fallback(self, monkeypatch):
        def unlocatable(src, tokens):
            raise normalizer.SourceMapError("Could not locate `{x}` in the document source")

        monkeypatch.setattr(normalizer, "tree_from_tokens", unlocatable)
        result = normalize("Hello {x}.\n", DocumentFormat.MDX)
        assert isinstance(result, FallbackRequired)
        assert "Could not locate" in result.reason


class TestMarkdoc:
    def test_markdoc_document(self):
        result = normalize(MARKDOC_DOC, DocumentFormat.MARKDOC)
        assert isinstance(result, Parsed)
        markdown = result.tree.to_markdown()

        assert markdown.startswith("# Install")
        assert "Run the installer." in markdown
        assert "![](/img/setup.png)" in markdown
        assert "callout" not in markdown
        assert "$version" not in markdown
        assert "title: Guide" not in markdown

    def test_conversion_failure_reported(self, monkeypatch):
        def boom(content):
            raise RuntimeError("renderer exploded")

        monkeypatch.setattr(normalizer, "render_markdoc_html", boom)
        result = normalize("# A\n", DocumentFormat.MARKDOC)
        assert isinstance(result, FallbackRequired)
        assert "renderer exploded" in result.reason


class TestHtml:
    def test_html_converted_to_markdown(self):
        html = (
            "<html><head><style>p { color: red }</style></head><body>"
            "<h1>Title</h1><p>Hello <b>world</b></p>"
            "<script>alert(1)</script>"
            '<h2>Next</h2><pre data-language="python"><code>print(1)</code></pre>'
            "</body></html>"
        )
        result = normalize(html, DocumentFormat.HTML)
        markdown = result.tree.to_markdown()

        assert "# Title" in markdown
        assert "**world**" in markdown
        assert "## Next" in markdown
        assert "```python" in markdown
        assert "alert" not in markdown
        assert "color" not in markdown

    def test_code_language_from_class(self):
        markdown = html_to_markdown('<pre><code class="language-bash">ls -la</code></pre>')
        assert "```bash" in markdown


class TestNormalizeDocument:
    def test_mdx_failure_falls_back_to_markdoc(self):
        doc = _doc("# Heading\n\nValue {HI\\_THERE} here.\n", DocumentFormat.MDX)
        tree = normalize_document(doc)
        markdown = tree.to_markdown()
        assert "# Heading" in markdown
        assert "HI" in markdown

    def test_markdoc_in_md_file(self):
        """Test that a .md file holding Markdoc tags is parsed via fallback."""
        tree = normalize_document(_doc(MARKDOC_DOC, DocumentFormat.MDX, "docs/install.md"))
        markdown = tree.to_markdown()
        assert "Run the installer." in markdown
        assert "{%" not in markdown

    def test_unparseable_when_fallback_fails(self, monkeypatch):
        def boom(content):
            raise RuntimeError("renderer exploded")

        monkeypatch.setattr(normalizer, "render_markdoc_html", boom)
        with pytest.raises(UnparseableDocumentError, match="docs/page"):
            normalize_document(_doc("{broken\n", DocumentFormat.MDX))

    @pytest.mark.parametrize(
        "content, fmt",
        [
            (MDX_DOC, DocumentFormat.MDX),
            (MARKDOC_DOC, DocumentFormat.MARKDOC),
            ("<h1>T</h1><p>one <i>two</i></p><ul><li>a</li><li>b</li></ul>", DocumentFormat.HTML),
        ],
    )
    def test_normalization_is_idempotent(self, content, fmt):
        """Test that re-normalizing canonical Markdown yields the same Markdown."""
        once = normalize_document(_doc(content, fmt)).to_markdown()
        again = normalize_document(_doc(once, DocumentFormat.MDX)).to_markdown()
        assert again == once
        assert parse_markdown(once).to_markdown() == once
