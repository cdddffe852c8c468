"""
Encoding Utilities
==================
Best-effort encoding detection and text normalization for test-bank files.

The detector is a heuristic: it sniffs byte-order marks, assumes UTF-16LE
when null bytes are present, and otherwise weighs high-range bytes against
printable ASCII to pick between the legacy Cyrillic code page and UTF-8.
It never raises; the worst case is ``utf-8``.
"""

from __future__ import annotations

import codecs
import logging
import re
from typing import Union

logger = logging.getLogger(__name__)

# ─── Codec names ──────────────────────────────────────────────────────────────

LEGACY_ENCODING = "cp1251"
SECONDARY_LEGACY_ENCODING = "cp866"
DEFAULT_ENCODING = "utf-8"

# Names used by older tooling (iconv-style) mapped to Python codec names
ENCODING_ALIASES = {
    "win1251": "cp1251",
    "windows1251": "cp1251",
    "utf8": "utf-8",
    "utf16le": "utf-16-le",
    "utf16be": "utf-16-be",
    "ucs2": "utf-16-le",
    "latin1": "latin-1",
    "binary": "latin-1",
    "dos866": "cp866",
    "koi8r": "koi8-r",
}

SAMPLE_SIZE = 1000
HIGH_RANGE_RATIO = 0.1

# Ё and ё in cp1251; they sit below 0xC0 but are plain Cyrillic letters
CYRILLIC_ALIAS_BYTES = frozenset({0xA8, 0xB8})

_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

_ESCAPES = (
    ("\\r\\n", "\n"),
    ("\\t", "\t"),
    ('\\"', '"'),
    ("\\'", "'"),
    ("\\\\", "\\"),
)

# Runs of Latin-1 upper-half letters are what cp1251 text looks like
# after being read with the wrong code page.
MOJIBAKE_PATTERNS = [
    re.compile(r"[ÀÁÂÃÄÅÆÇÈÉÊËÌÍÎÏÐÑÒÓÔÕÖ×ØÙÚÛÜÝÞß]"),
    re.compile(r"[àáâãäåæçèéêëìíîïðñòóôõö÷øùúûüýþÿ]"),
]


def normalize_encoding_name(name: str) -> str:
    """
    Map an encoding name to a Python codec name.

    Raises:
        LookupError: If the name is not a known codec.
    """
    key = name.strip().lower().replace("-", "").replace("_", "")
    resolved = ENCODING_ALIASES.get(key, name.strip())
    return codecs.lookup(resolved).name


# ─── Detection ────────────────────────────────────────────────────────────────


def detect_encoding(buffer: bytes) -> str:
    """
    Guess the text encoding of a raw buffer.

    Returns a Python codec name: ``utf-8``, ``utf-16-le``, ``utf-16-be``
    or ``cp1251``.
    """
    for bom, name in _BOMS:
        if buffer.startswith(bom):
            return name

    if b"\x00" in buffer:
        return "utf-16-le"

    sample = buffer[:SAMPLE_SIZE]
    high = sum(
        1 for b in sample
        if b >= 0xC0 or b in CYRILLIC_ALIAS_BYTES
    )
    ascii_count = sum(1 for b in sample if 0x20 <= b <= 0x7E)

    if high > ascii_count * HIGH_RANGE_RATIO:
        # Cyrillic UTF-8 also lands in the high range (lead bytes 0xD0/0xD1)
        if _is_valid_utf8(sample):
            return "utf-8"
        return LEGACY_ENCODING

    return DEFAULT_ENCODING


def _is_valid_utf8(sample: bytes) -> bool:
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # final=False tolerates a sequence cut off by the sample boundary
        decoder.decode(sample, final=False)
    except UnicodeDecodeError:
        return False
    return True


# ─── Decoding ─────────────────────────────────────────────────────────────────


def normalize_line_endings(text: str) -> str:
    """Collapse CRLF and lone CR into LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def unescape_text(text: str) -> str:
    """Undo the backslash escapes left behind by double-encoding tools."""
    for escaped, plain in _ESCAPES:
        text = text.replace(escaped, plain)
    return text


def decode_text(
    data: Union[bytes, str],
    encoding: str = LEGACY_ENCODING,
) -> str:
    """
    Turn bytes (or an already decoded string) into normalized text.

    Bytes are decoded with ``encoding``; an unknown codec or a decode
    failure falls back to permissive UTF-8. Strings only get their
    escape artifacts cleaned up.
    """
    if isinstance(data, str):
        return unescape_text(data)

    try:
        text = data.decode(normalize_encoding_name(encoding))
    except (LookupError, UnicodeDecodeError) as e:
        logger.debug(f"Decoding as {encoding} failed ({e}), using utf-8")
        text = data.decode("utf-8", errors="replace")

    return normalize_line_endings(text)


# ─── Mojibake repair ──────────────────────────────────────────────────────────


def looks_mojibaked(text: str) -> bool:
    """True when text looks like cp1251 that was read as Latin-1."""
    return any(p.search(text) for p in MOJIBAKE_PATTERNS)


def repair_mojibake(
    text: str,
    source: str = "latin-1",
    target: str = LEGACY_ENCODING,
) -> str:
    """
    Re-interpret text that was decoded with the wrong code page.

    The text is encoded back with ``source`` and decoded with ``target``.
    Text that cannot round-trip through ``source`` is returned unchanged.
    """
    try:
        raw = text.encode(normalize_encoding_name(source))
    except UnicodeEncodeError:
        return text
    return raw.decode(normalize_encoding_name(target), errors="replace")
