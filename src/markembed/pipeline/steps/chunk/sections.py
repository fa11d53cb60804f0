"""Heading-delimited section splitting over the canonical tree."""

from __future__ import annotations

from typing import Callable

from ....markup.tree import MarkupNode, MarkupTree, is_heading


def split_tree_by(tree: MarkupTree, predicate: Callable[[MarkupNode], bool]) -> list[MarkupTree]:
    """Partition top-level nodes, starting a new group at every node matching ``predicate``.

    Nodes before the first match form their own leading group.
    """
    groups: list[list[MarkupNode]] = []
    for node in tree.children:
        if not groups or predicate(node):
            groups.append([node])
        else:
            groups[-1].append(node)
    return [MarkupTree(tuple(group)) for group in groups]


def split_sections(tree: MarkupTree) -> list[str]:
    """Split a tree at headings and serialize each section to Markdown."""
    return [section.to_markdown() for section in split_tree_by(tree, is_heading)]
