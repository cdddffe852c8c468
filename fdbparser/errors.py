"""
Errors
======
Exception taxonomy for the test-bank parser.

Only ``MissingSectionError`` escapes ``ParserEngine``; every per-question
failure is caught by the engine and turned into a warning string.
"""

from __future__ import annotations

from typing import Optional


class FdbParserError(Exception):
    """Base class for all parser errors."""


class MalformedHexError(FdbParserError, ValueError):
    """A hex payload is not an even-length string of hex digits."""


class MissingSectionError(FdbParserError):
    """A section the document cannot be parsed without is absent."""

    def __init__(self, section: str):
        self.section = section
        super().__init__(f"Invalid test file: no {section} section found")


class MissingFieldError(FdbParserError):
    """A required sub-tag or option of a question block is absent."""

    def __init__(self, question_id: Optional[str], field: str):
        self.question_id = question_id
        self.field = field
        super().__init__(f"missing required field '{field}'")


class UnsupportedQuestionTypeError(FdbParserError):
    """The ``type`` option holds a code outside the known range."""

    def __init__(self, code: int):
        self.code = code
        super().__init__(f"unsupported question type code {code}")


class EncodingAmbiguityWarning(UserWarning):
    """No candidate encoding produced tag-shaped text for a hex payload."""
