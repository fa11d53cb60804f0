"""
Chunking step.

Sections are split at headings over the canonical Markdown tree, then any
section over the token budget is split further at line boundaries.
"""

from .budget import bound, bound_all, estimate_tokens, token_budget
from .sections import split_sections, split_tree_by

__all__ = [
    "bound",
    "bound_all",
    "estimate_tokens",
    "split_sections",
    "split_tree_by",
    "token_budget",
]
