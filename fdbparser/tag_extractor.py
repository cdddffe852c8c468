"""
Tag Extractor
=============
Index-based scanning for the pseudo-XML tags of the test-bank format.

This is deliberately not a regex or XML parser: every lookup is a pair of
``str.find`` calls, so corrupted or hostile input cannot trigger
backtracking. Same-named tags do not nest in the format, so the first
closing marker after an opening marker ends the tag.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from typing import Iterator, NamedTuple, Optional

logger = logging.getLogger(__name__)

# Longest digit string accepted as a block ID
MAX_ID_LENGTH = 32


class TagSpan(NamedTuple):
    """Location of one tag occurrence inside a text."""
    name: str
    start: int          # index of '<' of the opening marker
    end: int            # index just past '>' of the closing marker
    content: str


def find_tag(text: str, tag: str, start: int = 0) -> Optional[TagSpan]:
    """Find the first ``<tag>...</tag>`` at or after ``start``."""
    open_marker = f"<{tag}>"
    close_marker = f"</{tag}>"

    open_at = text.find(open_marker, start)
    if open_at < 0:
        return None

    content_start = open_at + len(open_marker)
    close_at = text.find(close_marker, content_start)
    if close_at < 0:
        return None

    return TagSpan(
        name=tag,
        start=open_at,
        end=close_at + len(close_marker),
        content=text[content_start:close_at],
    )


def extract_tag(text: str, tag: str) -> Optional[str]:
    """
    Return the content between the first ``<tag>`` and its ``</tag>``.

    Returns None when the tag (or its closing marker) is absent; callers
    are expected to branch on that.
    """
    span = find_tag(text, tag)
    return span.content if span else None


def extract_tags(text: str, tags) -> dict[str, str]:
    """Extract several tags at once, skipping the absent ones."""
    found: dict[str, str] = {}
    for tag in tags:
        content = extract_tag(text, tag)
        if content is not None:
            found[tag] = content
    return found


def _read_numeric_open(text: str, lt: int) -> Optional[str]:
    """Digits of a ``<123>`` marker starting at ``lt``, or None."""
    gt = text.find(">", lt + 1, lt + MAX_ID_LENGTH + 2)
    if gt < 0:
        return None
    name = text[lt + 1:gt]
    if name and name.isascii() and name.isdigit():
        return name
    return None


def _closing_offsets(text: str) -> dict[str, list[int]]:
    """Offsets of every ``</N>`` marker, grouped by ID, in ascending order."""
    offsets: dict[str, list[int]] = {}
    pos = 0
    while True:
        lt = text.find("</", pos)
        if lt < 0:
            return offsets
        block_id = _read_numeric_open(text, lt + 1)
        if block_id is not None:
            offsets.setdefault(block_id, []).append(lt)
        pos = lt + 2


def iter_numbered_blocks(text: str) -> Iterator[tuple[str, str]]:
    """
    Yield ``(id, content)`` for every ``<N>...</N>`` block in document order.

    The ID is the digit string exactly as written (leading zeros kept).
    An opening marker without a matching ``</N>`` is skipped and scanning
    resumes right after it. Duplicated IDs are yielded as they occur.

    Closing markers are indexed in one pass up front, so unclosed openings
    cost a lookup each instead of a scan to the end of the text.
    """
    closings = _closing_offsets(text)
    pos = 0
    while True:
        lt = text.find("<", pos)
        if lt < 0:
            return

        block_id = _read_numeric_open(text, lt)
        if block_id is None:
            pos = lt + 1
            continue

        content_start = lt + len(block_id) + 2
        candidates = closings.get(block_id, ())
        i = bisect_left(candidates, content_start)
        if i == len(candidates):
            logger.debug(f"Unclosed block <{block_id}> at offset {lt}")
            pos = content_start
            continue

        close_at = candidates[i]
        yield block_id, text[content_start:close_at]
        pos = close_at + len(block_id) + 3


def extract_numbered_blocks(text: str) -> dict[str, str]:
    """
    Ordered mapping of block ID to block content.

    When an ID occurs more than once the first block is kept.
    """
    blocks: dict[str, str] = {}
    for block_id, content in iter_numbered_blocks(text):
        if block_id in blocks:
            logger.debug(f"Ignoring duplicate block <{block_id}>")
            continue
        blocks[block_id] = content
    return blocks
