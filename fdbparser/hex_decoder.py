"""
Hex Payload Decoder
===================
Decodes tag contents stored as hexadecimal digit pairs.

Two flavours:
    - ``decode_hex_string``: strip whitespace, unhexlify, decode with one
      named encoding.
    - ``decode_hex_payload``: unhexlify, then try the detected encoding and a
      fixed list of candidates, accepting the first whose output still looks
      like tagged text (contains both ``<`` and ``>``).
"""

from __future__ import annotations

import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .encoding import (
    LEGACY_ENCODING,
    SECONDARY_LEGACY_ENCODING,
    decode_text,
    detect_encoding,
    normalize_encoding_name,
    normalize_line_endings,
)
from .errors import MalformedHexError

logger = logging.getLogger(__name__)

HEX_PATTERN = re.compile(r"[0-9A-Fa-f\s]+")
NUMERIC_PATTERN = re.compile(r"\s*\d+\s*")
WHITESPACE_PATTERN = re.compile(r"\s+")

# Order matters: first plausible decode wins
CANDIDATE_ENCODINGS = (
    LEGACY_ENCODING,
    "utf-8",
    "utf-16-le",
    "utf-16-be",
    SECONDARY_LEGACY_ENCODING,
)

# Question payloads start with a small binary length header before <options>
_BINARY_PREFIX = re.compile(r"^[\x00-\x08\x0b\x0c\x0e-\x1f]+")


@dataclass(frozen=True)
class HexDecodeResult:
    """Outcome of a plausibility-checked hex decode."""
    text: str
    encoding: str
    confident: bool = True
    rejected: tuple[str, ...] = field(default_factory=tuple)


def is_hex_encoded(content: str) -> bool:
    """True when content holds nothing but hex digits and whitespace."""
    return bool(content.strip()) and HEX_PATTERN.fullmatch(content) is not None


def is_purely_numeric(content: str) -> bool:
    """True for a bare (optionally padded) decimal number."""
    return NUMERIC_PATTERN.fullmatch(content) is not None


def hex_to_bytes(hex_string: str) -> bytes:
    """
    Convert a whitespace-tolerant hex string to bytes.

    Raises:
        MalformedHexError: On non-hex characters or an odd digit count.
    """
    clean = WHITESPACE_PATTERN.sub("", hex_string)
    if len(clean) % 2:
        raise MalformedHexError(
            f"hex payload has an odd number of digits ({len(clean)})"
        )
    try:
        return binascii.unhexlify(clean)
    except (binascii.Error, ValueError) as e:
        raise MalformedHexError(f"invalid hex payload: {e}") from e


def strip_binary_prefix(text: str) -> str:
    """Drop leading control characters (length headers) before the tags."""
    return _BINARY_PREFIX.sub("", text)


def decode_hex_string(hex_string: str, encoding: str = LEGACY_ENCODING) -> str:
    """Decode a hex string with a single, known encoding."""
    return hex_to_bytes(hex_string).decode(
        normalize_encoding_name(encoding), errors="replace"
    )


def _is_plausible(text: str) -> bool:
    return "<" in text and ">" in text


def _candidates(detected: str, extra: Iterable[str]) -> list[str]:
    ordered: list[str] = []
    for name in (detected, *extra):
        if name not in ordered:
            ordered.append(name)
    return ordered


def decode_hex_payload(
    hex_string: str,
    encoding: Optional[str] = None,
    candidates: Iterable[str] = CANDIDATE_ENCODINGS,
) -> HexDecodeResult:
    """
    Decode a hex payload whose encoding is unknown.

    Args:
        hex_string: Hex digits, whitespace allowed.
        encoding: Override; skips detection and the candidate loop.
        candidates: Encodings tried after the detected one.

    Returns:
        HexDecodeResult with line endings normalized and any binary length
        header removed. ``confident`` is False when no candidate passed the
        plausibility check and the legacy code page was used anyway.

    Raises:
        MalformedHexError: If the payload is not valid hex.
    """
    raw = hex_to_bytes(hex_string)

    if encoding:
        name = normalize_encoding_name(encoding)
        text = decode_text(raw, name)
        return HexDecodeResult(text=strip_binary_prefix(text), encoding=name)

    detected = detect_encoding(raw)
    rejected: list[str] = []

    for name in _candidates(detected, candidates):
        try:
            text = raw.decode(name)
        except UnicodeDecodeError:
            rejected.append(name)
            continue
        if _is_plausible(text):
            if rejected:
                logger.debug(
                    f"Hex payload decoded as {name} "
                    f"(rejected: {', '.join(rejected)})"
                )
            return HexDecodeResult(
                text=strip_binary_prefix(normalize_line_endings(text)),
                encoding=name,
                rejected=tuple(rejected),
            )
        rejected.append(name)

    logger.debug(
        f"No plausible encoding for hex payload "
        f"(rejected: {', '.join(rejected)}), falling back to {LEGACY_ENCODING}"
    )
    text = raw.decode(LEGACY_ENCODING, errors="replace")
    return HexDecodeResult(
        text=strip_binary_prefix(normalize_line_endings(text)),
        encoding=LEGACY_ENCODING,
        confident=False,
        rejected=tuple(rejected),
    )


def decode_tag_content(
    tag: str,
    content: str,
    encoding: str = LEGACY_ENCODING,
    numeric_tags: Iterable[str] = (),
) -> str:
    """
    Decode a header tag's content using the per-tag policy.

    Numeric-only tags holding a bare number pass through verbatim (a digit
    string is also valid hex and would be silently corrupted); hex payloads
    are decoded; anything else only gets its line endings normalized.
    """
    if tag in numeric_tags and is_purely_numeric(content):
        logger.debug(f"Preserving numeric content for <{tag}>")
        return content
    if is_hex_encoded(content):
        logger.debug(f"Decoding hex content for <{tag}>")
        return strip_binary_prefix(
            normalize_line_endings(decode_hex_string(content, encoding))
        )
    return normalize_line_endings(content)
