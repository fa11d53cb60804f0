from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup
from markdownify import markdownify as md  # type: ignore


def _code_language(el) -> Optional[str]:
    """Language for a <pre> block: Markdoc's data-language, else a language-* class."""
    lang = el.get("data-language")
    if lang:
        return lang
    code = el.find("code")
    if code is not None:
        for cls in code.get("class") or []:
            if cls.startswith("language-"):
                return cls[len("language-") :]
    return None


def html_to_markdown(html: Optional[str]) -> str:
    """Convert HTML to Markdown with ATX headings and fenced code blocks."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    # Drop non-content tags before conversion
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = md(
        str(soup),
        heading_style="ATX",
        bullets="*",
        code_language_callback=_code_language,
    )
    # normalize whitespace deterministically
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text).strip()
    return text
