"""
MDX support for markdown-it.

Recognizes the MDX constructs that are not Markdown: ESM statements
(``import``/``export`` at the top level), flow and text expressions
(``{...}``) and JSX elements, both as blocks and inline. Each construct is
emitted as a single token whose content is the exact source text, so the
canonical tree can remove it without leaving fragments behind.

Text that MDX rejects raises MdxSyntaxError: unbalanced or unterminated
expressions, backslashes outside string literals (``{HI\\_THERE}``), and a
``<`` that does not start a valid tag (``<10``, ``a < b``, ``<https://...>``).
Callers treat that as a signal to parse the document as Markdoc instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_inline import StateInline
from mdit_py_plugins.front_matter import front_matter_plugin

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = set(_PAIRS.values())

_NAME_START = re.compile(r"[A-Za-z_$]")
_NAME = re.compile(r"[A-Za-z_$][\w$-]*(?:[.:][A-Za-z_$][\w$-]*)*")
_ATTR_NAME = re.compile(r"[A-Za-z_$][\w$-]*(?::[A-Za-z_$][\w$-]*)?")
_ESM_START = re.compile(r"(?:import|export)(?=[\s{*])")

# An expression may not begin or end with these (binary operators, separators)
_BAD_LEADING = set("%*=,;:?|&^)]}")
_BAD_TRAILING = set("%=,;:?|&^*")
_JS_WORD_OPERATORS = {
    "async",
    "await",
    "delete",
    "function",
    "in",
    "instanceof",
    "new",
    "of",
    "typeof",
    "void",
    "yield",
}
_ADJACENT_WORDS = re.compile(r"([A-Za-z_$][\w$]*)\s+([A-Za-z_$][\w$]*)")


class MdxSyntaxError(ValueError):
    """Source text is not valid MDX."""


# ---------- expressions ----------


def _skip_string(src: str, i: int) -> int:
    quote = src[i]
    j = i + 1
    n = len(src)
    while j < n:
        ch = src[j]
        if ch == "\\":
            j += 2
            continue
        if ch == quote:
            return j + 1
        if ch == "\n" and quote != "`":
            break
        j += 1
    raise MdxSyntaxError(f"Unterminated string literal in expression at offset {i}")


def scan_expression(src: str, start: int) -> int:
    """Return the offset just past the ``}`` matching the ``{`` at ``start``."""
    stack: list[str] = []
    i = start
    n = len(src)
    while i < n:
        ch = src[i]
        if ch in "\"'`":
            i = _skip_string(src, i)
            continue
        if src.startswith("//", i):
            newline = src.find("\n", i)
            i = n if newline < 0 else newline
            continue
        if src.startswith("/*", i):
            close = src.find("*/", i + 2)
            if close < 0:
                raise MdxSyntaxError(f"Unterminated comment in expression at offset {i}")
            i = close + 2
            continue
        if ch == "\\":
            raise MdxSyntaxError(f"Unexpected character `\\` in expression at offset {i}")
        if ch in _PAIRS:
            stack.append(ch)
        elif ch in _CLOSERS:
            if not stack or _PAIRS[stack[-1]] != ch:
                raise MdxSyntaxError(f"Unexpected `{ch}` in expression at offset {i}")
            stack.pop()
            if not stack:
                return i + 1
        i += 1
    raise MdxSyntaxError(
        f"Unexpected end of file in expression, expected a closing brace for `{{` at offset {start}"
    )


def _strip_literals(body: str) -> str:
    """Blank out string literals and comments so only code remains."""
    out = []
    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if ch in "\"'`":
            end = _skip_string(body, i)
            out.append('""')
            i = end
        elif body.startswith("//", i):
            newline = body.find("\n", i)
            i = n if newline < 0 else newline
        elif body.startswith("/*", i):
            close = body.find("*/", i + 2)
            i = n if close < 0 else close + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def validate_expression(expression: str) -> None:
    """Reject expression bodies that cannot be JavaScript expressions."""
    code = _strip_literals(expression[1:-1]).strip()
    if not code:
        # Empty and comment-only expressions are allowed
        return
    if code[0] in _BAD_LEADING or code[-1] in _BAD_TRAILING:
        raise MdxSyntaxError(f"Could not parse expression `{expression}`")
    if "<" in code:
        # JSX inside an expression has space-separated attribute names
        return
    for first, second in _ADJACENT_WORDS.findall(code):
        if first not in _JS_WORD_OPERATORS and second not in _JS_WORD_OPERATORS:
            raise MdxSyntaxError(f"Could not parse expression `{expression}`")


def read_expression(src: str, start: int) -> int:
    end = scan_expression(src, start)
    validate_expression(src[start:end])
    return end


# ---------- JSX ----------


@dataclass(frozen=True)
class JsxTag:
    name: str  # "" for fragments
    start: int
    end: int
    closing: bool = False
    self_closing: bool = False


def _skip_ws(src: str, i: int) -> int:
    n = len(src)
    while i < n and src[i].isspace():
        i += 1
    return i


def _describe(src: str, i: int) -> str:
    return "end of file" if i >= len(src) else f"character `{src[i]}`"


def scan_tag(src: str, start: int) -> JsxTag:
    """Parse the JSX tag that starts with ``<`` at ``start``."""
    n = len(src)
    i = start + 1
    closing = False
    if i < n and src[i] == "/":
        closing = True
        i += 1
    if i < n and src[i] == ">":
        return JsxTag(name="", start=start, end=i + 1, closing=closing)
    if i >= n or not _NAME_START.match(src[i]):
        raise MdxSyntaxError(
            f"Unexpected {_describe(src, i)} before name, expected a letter, `$` or `_` "
            f"at offset {i} (use `\\<` for a literal less-than sign)"
        )
    match = _NAME.match(src, i)
    assert match is not None
    name = match.group()
    i = match.end()

    if closing:
        i = _skip_ws(src, i)
        if i >= n or src[i] != ">":
            raise MdxSyntaxError(f"Unexpected {_describe(src, i)} in closing tag `</{name}`")
        return JsxTag(name=name, start=start, end=i + 1, closing=True)

    while True:
        i = _skip_ws(src, i)
        if i >= n:
            raise MdxSyntaxError(f"Unexpected end of file in tag `<{name}`")
        ch = src[i]
        if ch == ">":
            return JsxTag(name=name, start=start, end=i + 1)
        if ch == "/":
            i = _skip_ws(src, i + 1)
            if i < n and src[i] == ">":
                return JsxTag(name=name, start=start, end=i + 1, self_closing=True)
            raise MdxSyntaxError(f"Unexpected {_describe(src, i)} after `/` in tag `<{name}`")
        if ch == "{":
            i = read_expression(src, i)
            continue
        attr = _ATTR_NAME.match(src, i)
        if attr is None:
            raise MdxSyntaxError(f"Unexpected {_describe(src, i)} in attributes of `<{name}`")
        i = _skip_ws(src, attr.end())
        if i < n and src[i] == "=":
            i = _skip_ws(src, i + 1)
            if i < n and src[i] in "\"'":
                close = src.find(src[i], i + 1)
                if close < 0:
                    raise MdxSyntaxError(f"Unterminated attribute value in `<{name}`")
                i = close + 1
            elif i < n and src[i] == "{":
                i = read_expression(src, i)
            else:
                raise MdxSyntaxError(f"Unexpected {_describe(src, i)} as attribute value in `<{name}`")


def find_element_end(src: str, tag: JsxTag, limit: int | None = None) -> int:
    """Return the offset just past the closing tag matching ``tag``."""
    if tag.self_closing:
        return tag.end
    limit = len(src) if limit is None else limit
    if tag.name:
        pattern = re.compile(r"<(/?)\s*" + re.escape(tag.name) + r"(?=[\s/>])")
    else:
        pattern = re.compile(r"<(/?)>")

    depth = 1
    pos = tag.end
    while True:
        match = pattern.search(src, pos, limit)
        if match is None:
            label = tag.name or ""
            raise MdxSyntaxError(f"Expected a closing tag for `<{label}>` at offset {tag.start}")
        try:
            inner = scan_tag(src, match.start())
        except MdxSyntaxError:
            # Children are Markdown; only well-formed tags count for nesting
            pos = match.end()
            continue
        pos = inner.end
        if inner.self_closing:
            continue
        depth += -1 if inner.closing else 1
        if depth == 0:
            return inner.end


# ---------- block rules ----------


def _line_of(state: StateBlock, offset: int, start_line: int, end_line: int) -> int:
    line = start_line
    while line < end_line and state.eMarks[line] < offset:
        line += 1
    if line >= end_line:
        raise MdxSyntaxError(f"Unexpected end of block for construct starting on line {start_line + 1}")
    return line


def _push_block(state: StateBlock, kind: str, start_line: int, last_line: int, start: int, content: str) -> None:
    token = state.push(kind, "", 0)
    token.block = True
    token.map = [start_line, last_line + 1]
    token.content = content
    # Block state shares the document source, so these offsets are absolute
    token.meta = {"start": start, "end": start + len(content)}
    state.line = last_line + 1


def _esm(state: StateBlock, startLine: int, endLine: int, silent: bool) -> bool:
    if state.sCount[startLine] != 0 or state.blkIndent != 0 or state.parentType != "root":
        return False
    pos = state.bMarks[startLine] + state.tShift[startLine]
    if not _ESM_START.match(state.src, pos):
        return False
    if silent:
        return True

    next_line = startLine + 1
    while next_line < endLine:
        text = state.src[state.bMarks[startLine] : state.eMarks[next_line - 1]]
        balanced = sum(text.count(c) for c in _PAIRS) <= sum(text.count(c) for c in _CLOSERS)
        if state.isEmpty(next_line) and balanced:
            break
        next_line += 1
    last = next_line - 1
    content = state.src[state.bMarks[startLine] : state.eMarks[last]].rstrip()
    _push_block(state, "mdxjs_esm", startLine, last, state.bMarks[startLine], content)
    return True


def _flow_expression(state: StateBlock, startLine: int, endLine: int, silent: bool) -> bool:
    if state.sCount[startLine] - state.blkIndent >= 4:
        return False
    pos = state.bMarks[startLine] + state.tShift[startLine]
    if pos >= state.eMarks[startLine] or state.src[pos] != "{":
        return False

    end = read_expression(state.src, pos)
    last = _line_of(state, end - 1, startLine, endLine)
    if state.src[end : state.eMarks[last]].strip():
        # Text follows on the same line: an inline expression inside a paragraph
        return False
    if silent:
        return True
    _push_block(state, "mdx_flow_expression", startLine, last, pos, state.src[pos:end])
    return True


def _jsx_flow(state: StateBlock, startLine: int, endLine: int, silent: bool) -> bool:
    if state.sCount[startLine] - state.blkIndent >= 4:
        return False
    pos = state.bMarks[startLine] + state.tShift[startLine]
    if pos >= state.eMarks[startLine] or state.src[pos] != "<":
        return False

    tag = scan_tag(state.src, pos)
    if tag.closing:
        raise MdxSyntaxError(f"Unexpected closing tag `</{tag.name}>` on line {startLine + 1}")
    end = find_element_end(state.src, tag)
    last = _line_of(state, end - 1, startLine, endLine)
    if state.src[end : state.eMarks[last]].strip():
        return False
    if silent:
        return True
    _push_block(state, "mdx_jsx_flow_element", startLine, last, pos, state.src[pos:end])
    return True


# ---------- inline rules ----------


def _text_expression(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != "{":
        return False
    end = read_expression(state.src, state.pos)
    if not silent:
        token = state.push("mdx_text_expression", "", 0)
        token.content = state.src[state.pos : end]
        token.meta = {"offset": state.pos}  # into the inline content, not the document
    state.pos = end
    return True


def _jsx_text(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != "<":
        return False
    tag = scan_tag(state.src, state.pos)
    if tag.closing:
        raise MdxSyntaxError(f"Unexpected closing tag `</{tag.name}>`")
    end = find_element_end(state.src, tag, state.posMax)
    if not silent:
        token = state.push("mdx_jsx_text_element", "", 0)
        token.content = state.src[state.pos : end]
        token.meta = {"offset": state.pos}
    state.pos = end
    return True


def mdx_plugin(md: MarkdownIt) -> None:
    """Register the MDX block and inline rules on a parser."""
    md.block.ruler.before("html_block", "mdxjs_esm", _esm)
    md.block.ruler.before("html_block", "mdx_flow_expression", _flow_expression)
    md.block.ruler.before("html_block", "mdx_jsx_flow_element", _jsx_flow)
    md.inline.ruler.before("autolink", "mdx_jsx_text_element", _jsx_text)
    md.inline.ruler.before("autolink", "mdx_text_expression", _text_expression)


def mdx_parser() -> MarkdownIt:
    """CommonMark + MDX parser. Raw HTML is JSX here, so the HTML rules are off."""
    md = MarkdownIt("commonmark", {"html": False})
    md.use(front_matter_plugin)
    md.use(mdx_plugin)
    return md
