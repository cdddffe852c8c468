"""
Text Export
===========
Re-serializes a raw test-bank file as readable text.

The tag wrapper syntax is kept (``<T_title>``, ``<T_body>``, ``<1>`` ...),
only the payloads are decoded. The result parses to the same test as
the original file.
"""

from __future__ import annotations

import logging
from typing import Optional

from .encoding import LEGACY_ENCODING, normalize_encoding_name, normalize_line_endings
from .engine import FDB_DIALECT, Dialect
from .errors import MalformedHexError
from .hex_decoder import (
    decode_hex_string,
    is_hex_encoded,
    is_purely_numeric,
    strip_binary_prefix,
)
from .tag_extractor import extract_tag, iter_numbered_blocks

logger = logging.getLogger(__name__)


def _wrap(tag: str, content: str) -> str:
    return f"<{tag}>\n{content}\n</{tag}>\n\n"


def _decode_payload(content: str, encoding: str) -> str:
    return strip_binary_prefix(
        normalize_line_endings(decode_hex_string(content, encoding))
    )


def _decode_header(tag: str, content: str, encoding: str, dialect: Dialect) -> str:
    if tag in dialect.numeric_tags and is_purely_numeric(content):
        logger.debug(f"Preserving numeric content for <{tag}>")
        return content
    if is_hex_encoded(content):
        logger.debug(f"Decoding hex content for <{tag}>")
        try:
            return _decode_payload(content, encoding)
        except MalformedHexError as e:
            logger.warning(f"<{tag}> kept as is: {e}")
            return content
    # Plain text read byte-for-byte: re-read it in the target code page
    logger.debug(f"Decoding text content for <{tag}>")
    return normalize_line_endings(
        content.encode("latin-1").decode(encoding, errors="replace")
    )


def fdb_to_text(
    raw: bytes,
    encoding: str = LEGACY_ENCODING,
    dialect: Optional[Dialect] = None,
) -> str:
    """
    Convert the bytes of a test-bank file to decoded, tag-wrapped text.

    Args:
        raw: File contents.
        encoding: Code page of hex payloads and plain-text sections.
        dialect: Tag vocabulary; defaults to the FDB dialect.
    """
    dialect = dialect or FDB_DIALECT
    encoding = normalize_encoding_name(encoding)

    # Latin-1 maps every byte to one char, so nothing is lost before decoding
    content = raw.decode("latin-1")
    parts: list[str] = []

    for tag in dialect.header_tags:
        tag_content = extract_tag(content, tag)
        if tag_content is not None:
            parts.append(_wrap(tag, _decode_header(tag, tag_content, encoding, dialect)))

    body = extract_tag(content, dialect.body_tag)
    if body is not None:
        parts.append(f"<{dialect.body_tag}>\n")
        for block_id, block in iter_numbered_blocks(body):
            if is_hex_encoded(block):
                logger.debug(f"Decoding hex content for question {block_id}")
                try:
                    block = _decode_payload(block, encoding)
                except MalformedHexError as e:
                    logger.warning(f"Question {block_id} kept as is: {e}")
            parts.append(_wrap(block_id, block))
        parts.append(f"</{dialect.body_tag}>\n\n")

    groups = extract_tag(content, dialect.group_tag)
    if groups is not None:
        if is_hex_encoded(groups):
            logger.debug(f"Decoding hex content for <{dialect.group_tag}>")
            try:
                groups = _decode_payload(groups, encoding)
            except MalformedHexError as e:
                logger.warning(f"<{dialect.group_tag}> kept as is: {e}")
        parts.append(_wrap(dialect.group_tag, normalize_line_endings(groups)))

    return "".join(parts)
