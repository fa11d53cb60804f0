"""
Markdoc support for markdown-it.

Markdoc documents are Markdown plus ``{% ... %}`` tags. Rendering follows the
Markdoc HTML renderer with a minimal schema: ``{% img %}`` and ``{% image %}``
tags with a ``src`` attribute become ``<img>`` elements, every other tag is
unwrapped (its content renders, the tag itself does not), and variables,
functions and annotations render as nothing.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml
from markdown_it.rules_block import StateBlock
from markdown_it.rules_inline import StateInline
from mdit_py_plugins.front_matter import front_matter_plugin

IMAGE_TAGS = frozenset({"img", "image"})

_ATTRIBUTE = re.compile(
    r"""([A-Za-z_][\w-]*)\s*=\s*("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^\s"']+)"""
)
_PRIMARY = re.compile(r"""^("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')""")


@dataclass(frozen=True)
class MarkdocTag:
    name: str
    kind: str = "tag"  # tag|variable|function|annotation
    attributes: dict[str, Any] = field(default_factory=dict)
    closing: bool = False
    self_closing: bool = False


def _parse_value(raw: str) -> Any:
    if raw.startswith('"'):
        return json.loads(raw)
    if raw.startswith("'"):
        return raw[1:-1].replace("\\'", "'")
    if raw in ("true", "false"):
        return raw == "true"
    if raw == "null":
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def parse_tag(inner: str) -> MarkdocTag:
    """Parse the text between ``{%`` and ``%}``."""
    inner = inner.strip()
    if inner.startswith("/"):
        return MarkdocTag(name=inner[1:].strip(), closing=True)

    self_closing = inner.endswith("/")
    if self_closing:
        inner = inner[:-1].rstrip()

    if inner.startswith("$"):
        return MarkdocTag(name=inner[1:], kind="variable", self_closing=True)
    if inner[:1] in (".", "#"):
        return MarkdocTag(name=inner, kind="annotation", self_closing=True)

    parts = inner.split(None, 1)
    name = parts[0] if parts else ""
    rest = parts[1] if len(parts) > 1 else ""
    if "(" in name:
        return MarkdocTag(name=name.split("(", 1)[0], kind="function", self_closing=True)

    attributes: dict[str, Any] = {}
    primary = _PRIMARY.match(rest)
    if primary:
        attributes["primary"] = _parse_value(primary.group(1))
        rest = rest[primary.end() :]
    for key, raw in _ATTRIBUTE.findall(rest):
        attributes[key] = _parse_value(raw)
    return MarkdocTag(name=name, attributes=attributes, self_closing=self_closing)


def _markdoc_block(state: StateBlock, startLine: int, endLine: int, silent: bool) -> bool:
    if state.sCount[startLine] - state.blkIndent >= 4:
        return False
    pos = state.bMarks[startLine] + state.tShift[startLine]
    if not state.src.startswith("{%", pos):
        return False
    close = state.src.find("%}", pos + 2)
    if close < 0:
        return False
    end = close + 2

    last = startLine
    while last < endLine and state.eMarks[last] < end - 1:
        last += 1
    if last >= endLine or state.src[end : state.eMarks[last]].strip():
        # Tag shares its line with text: handled inline
        return False
    if silent:
        return True

    token = state.push("markdoc_tag", "", 0)
    token.block = True
    token.map = [startLine, last + 1]
    token.meta = {"tag": parse_tag(state.src[pos + 2 : close])}
    state.line = last + 1
    return True


def _markdoc_inline(state: StateInline, silent: bool) -> bool:
    if not state.src.startswith("{%", state.pos):
        return False
    close = state.src.find("%}", state.pos + 2, state.posMax)
    if close < 0:
        return False
    if not silent:
        token = state.push("markdoc_tag", "", 0)
        token.meta = {"tag": parse_tag(state.src[state.pos + 2 : close])}
    state.pos = close + 2
    return True


def _render_markdoc_tag(self, tokens, idx, options, env) -> str:
    token = tokens[idx]
    tag: MarkdocTag = token.meta["tag"]
    if tag.kind != "tag" or tag.closing or tag.name not in IMAGE_TAGS:
        return ""
    src = tag.attributes.get("src")
    if not isinstance(src, str) or not src:
        return ""
    html = f'<img src="{escapeHtml(src)}">'
    return html + "\n" if token.block else html


def _render_nothing(self, tokens, idx, options, env) -> str:
    return ""


def markdoc_plugin(md: MarkdownIt) -> None:
    md.block.ruler.before(
        "html_block",
        "markdoc_tag",
        _markdoc_block,
        {"alt": ["paragraph", "reference", "blockquote", "list"]},
    )
    md.inline.ruler.before("emphasis", "markdoc_tag", _markdoc_inline)
    md.add_render_rule("markdoc_tag", _render_markdoc_tag)


def markdoc_parser() -> MarkdownIt:
    """Markdoc does not pass raw HTML through, so neither does this parser."""
    md = MarkdownIt("commonmark", {"html": False})
    md.use(front_matter_plugin)
    md.use(markdoc_plugin)
    md.add_render_rule("front_matter", _render_nothing)
    return md


def render_markdoc_html(content: str) -> str:
    """Render a Markdoc document to HTML."""
    return markdoc_parser().render(content)
