"""
Category & Group Parser
=======================
Reads the outline section (tab-indented category tree with question IDs)
and the group section (numbered blocks of ID buckets).

Outline example (depth is relative to the shallowest header)::

    \\t3.16. Wireless networks
    \\t\\t1
    \\t\\t2
    \\t4.15. X.25
    \\t\\t7
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .encoding import decode_text
from .models import Category, Group
from .tag_extractor import extract_tag, iter_numbered_blocks

logger = logging.getLogger(__name__)

QUESTION_ID_PATTERN = re.compile(r"\d+(?:_\d+)?")

SPACES_PER_LEVEL = 4

GROUP_BUCKETS = ("tv_i", "tv_p", "tv_d")


def is_question_id(token: str) -> bool:
    return QUESTION_ID_PATTERN.fullmatch(token) is not None


def indent_width(line: str) -> int:
    """Indentation depth: one per tab, one per run of four spaces."""
    indent = line[: len(line) - len(line.lstrip(" \t"))]
    return indent.count("\t") + indent.count(" ") // SPACES_PER_LEVEL


@dataclass
class _Node:
    """Mutable builder for a ``Category`` while the outline is read."""
    title: str
    level: int
    question_ids: list[str] = field(default_factory=list)
    children: list["_Node"] = field(default_factory=list)

    def freeze(self) -> Category:
        return Category(
            title=self.title,
            question_ids=tuple(self.question_ids),
            subcategories=tuple(c.freeze() for c in self.children),
            level=self.level,
        )


def _is_metadata_line(line: str, metadata_keys: Iterable[str]) -> bool:
    key, sep, _ = line.partition("=")
    return bool(sep) and key.strip() in metadata_keys


def _is_reference(line: str) -> bool:
    return indent_width(line) > 0 and is_question_id(line.strip())


def parse_categories(
    outline: str,
    warnings: Optional[list[str]] = None,
    metadata_keys: Iterable[str] = (),
) -> list[Category]:
    """
    Build the category tree from an outline section.

    Any indented line that looks like ``12`` or ``12_3`` is a question-ID
    reference attached to the most recent header; with no header before
    it, it is dropped with a warning. Other lines are headers: the
    shallowest ones start top-level categories, deeper ones become
    subcategories of the nearest shallower header.
    """
    metadata_keys = set(metadata_keys)
    lines = [
        line.rstrip()
        for line in outline.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        if line.strip()
    ]
    lines = [line for line in lines if not _is_metadata_line(line.strip(), metadata_keys)]
    if not lines:
        return []

    base = min(
        (indent_width(line) for line in lines if not _is_reference(line)),
        default=0,
    )
    roots: list[_Node] = []
    stack: list[_Node] = []

    for line in lines:
        token = line.strip()

        if _is_reference(line):
            if not stack:
                message = f"Outline: question ID {token} has no category"
                logger.warning(message)
                if warnings is not None:
                    warnings.append(message)
                continue
            stack[-1].question_ids.append(token)
            continue

        depth = indent_width(line) - base
        if depth == 0:
            node = _Node(title=decode_text(token), level=0)
            roots.append(node)
            stack = [node]
            continue

        # Subcategory header: attach to the nearest shallower header
        while stack and stack[-1].level >= depth:
            stack.pop()
        node = _Node(title=decode_text(token), level=depth)
        if stack:
            stack[-1].children.append(node)
        else:
            roots.append(node)
        stack.append(node)

    categories = [root.freeze() for root in roots]
    logger.debug(f"Parsed {len(categories)} top-level categories")
    return categories


def _bucket_ids(content: Optional[str]) -> tuple[str, ...]:
    if not content:
        return ()
    return tuple(t for t in content.split() if is_question_id(t))


def parse_groups(section: str) -> list[Group]:
    """
    Read the numbered group blocks and their ``tv_*`` ID buckets.

    A section holding bare ``tv_*`` tags without numbered blocks is read
    as a single group ``0``.
    """
    groups: list[Group] = []
    for group_id, content in iter_numbered_blocks(section):
        groups.append(_build_group(group_id, content))

    if not groups and any(extract_tag(section, name) is not None for name in GROUP_BUCKETS):
        groups.append(_build_group("0", section))

    logger.debug(f"Parsed {len(groups)} groups")
    return groups


def _build_group(group_id: str, content: str) -> Group:
    buckets = {name: _bucket_ids(extract_tag(content, name)) for name in GROUP_BUCKETS}
    return Group(id=group_id, **buckets)
