"""
Token budget enforcement for sections.

Token counts are estimated at four characters per token instead of running a
tokenizer; the budget sits at 80% of the provider's context cutoff to absorb
the estimation error.
"""

from __future__ import annotations

from typing import Iterable, Optional

CHARS_PER_TOKEN = 4
BUDGET_RATIO = 0.8


def estimate_tokens(text: str) -> float:
    return len(text) / CHARS_PER_TOKEN


def token_budget(context_tokens_cutoff: Optional[int] = None) -> float:
    if context_tokens_cutoff is None:
        from ....core.config import SETTINGS

        context_tokens_cutoff = SETTINGS.CONTEXT_TOKENS_CUTOFF
    return context_tokens_cutoff * BUDGET_RATIO


def bound(section: str, budget: Optional[float] = None) -> list[str]:
    """
    Split a section into pieces whose estimated token count stays under budget.

    Lines are accumulated greedily. When the next line would bring the running
    count to the budget, the buffer is emitted and the line starts a new
    buffer whose running count restarts at zero (the line itself is not
    counted). A single line longer than the budget always starts a new piece.
    """
    if budget is None:
        budget = token_budget()
    if estimate_tokens(section) < budget:
        return [section]

    pieces: list[str] = []
    buffer: list[str] = []
    acc_tokens = 0.0
    for line in section.split("\n"):
        line_tokens = estimate_tokens(line)
        if acc_tokens + line_tokens < budget:
            buffer.append(line)
            acc_tokens += line_tokens
        else:
            if buffer:
                pieces.append("\n".join(buffer))
            buffer = [line]
            acc_tokens = 0.0

    if buffer:
        pieces.append("\n".join(buffer))
    return pieces


def bound_all(sections: Iterable[str], budget: Optional[float] = None) -> list[str]:
    """Flatten sections into budget-bounded chunks, preserving order."""
    if budget is None:
        budget = token_budget()
    chunks: list[str] = []
    for section in sections:
        chunks.extend(bound(section, budget))
    return chunks
