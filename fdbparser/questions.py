"""
Question Decoder
================
Turns one numbered body block into a ``Question``.

A block is either a hex payload (decoded with the multi-encoding
candidate loop) or already-decoded text. Either way the result is the
same sub-tag structure:

    <options>
    n=..
    type=..
    right=..
    max=..
    </options>
    <value>
    1
    0
    ...
    </value>               (one flag per line)
    <question>...</question>
    <Q_TITLE>...</Q_TITLE>          (optional)
    <description>...</description>  (optional)
    <a_1>...</a_1> .. <a_n>...</a_n>
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .encoding import decode_text, normalize_line_endings
from .errors import (
    EncodingAmbiguityWarning,
    MissingFieldError,
    UnsupportedQuestionTypeError,
)
from .hex_decoder import decode_hex_payload, is_hex_encoded, strip_binary_prefix
from .models import DELETED_TITLE, Answer, Question, QuestionType
from .points import calculate_points
from .tag_extractor import extract_tag

logger = logging.getLogger(__name__)

# ─── Patterns ─────────────────────────────────────────────────────────────────

OPTION_PATTERN = re.compile(r"\b(n|type|right|max)[ \t]*=[ \t]*(\d+)")

IMAGE_PATTERN = re.compile(r"<img\s+src\s*=\s*['\"]([^'\"<>]*)['\"]\s*/?>", re.IGNORECASE)

REQUIRED_OPTIONS = ("n", "type", "right")
DEFAULT_MAX = 1

ANSWER_MARKER = "<a_"
MAX_ANSWER_DIGITS = 9


@dataclass
class DecodedQuestion:
    """A decoded question plus the non-fatal notes produced on the way."""
    question: Question
    notes: list[str] = field(default_factory=list)
    encoding: Optional[str] = None


# ─── Field parsers ────────────────────────────────────────────────────────────


def parse_options(options_content: str) -> dict[str, int]:
    """Read ``key=value`` option pairs; the first occurrence of a key wins."""
    options: dict[str, int] = {}
    for key, value in OPTION_PATTERN.findall(options_content):
        options.setdefault(key, int(value))
    return options


def parse_value_flags(value_content: str) -> tuple[int, ...]:
    """0-based positions of the ``1`` flags in a ``<value>`` bitmap."""
    flags = [line.strip() for line in value_content.split("\n") if line.strip()]
    return tuple(i for i, flag in enumerate(flags) if flag == "1")


def extract_image_url(text: str) -> Optional[str]:
    """Path of the first embedded ``<img src='...'>``, with forward slashes."""
    match = IMAGE_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).replace("\\", "/")


def answer_numbers(text: str, n: int) -> list[int]:
    """Sorted numbers 1..n of the ``<a_i>`` markers present in a block."""
    found: set[int] = set()
    pos = 0
    while True:
        at = text.find(ANSWER_MARKER, pos)
        if at < 0:
            break
        pos = at + len(ANSWER_MARKER)
        gt = text.find(">", pos, pos + MAX_ANSWER_DIGITS + 1)
        digits = text[pos:gt] if gt >= 0 else ""
        if digits.isascii() and digits.isdigit() and 1 <= int(digits) <= n:
            found.add(int(digits))
    return sorted(found)


def _clean(text: str) -> str:
    return decode_text(text.strip())


# ─── Decoder ──────────────────────────────────────────────────────────────────


class QuestionDecoder:
    """
    Decodes numbered body blocks into questions.

    Raises (from ``decode``):
        MalformedHexError: The block looks like hex but is not valid hex.
        MissingFieldError: ``options``, ``value``, ``question`` or one of the
            ``n``/``type``/``right`` options is absent.
        UnsupportedQuestionTypeError: ``type`` is outside 1..7.
    """

    def __init__(
        self,
        encoding: Optional[str] = None,
        deleted_title: str = DELETED_TITLE,
    ):
        self.encoding = encoding
        self.deleted_title = deleted_title

    def decode_block(self, block_id: str, content: str) -> tuple[str, list[str], Optional[str]]:
        """Return the block's tag text, notes, and the encoding used (if hex)."""
        if not is_hex_encoded(content):
            return strip_binary_prefix(normalize_line_endings(content)), [], None

        result = decode_hex_payload(content, encoding=self.encoding)
        notes: list[str] = []
        if not result.confident:
            notes.append(
                f"Question {block_id}: {EncodingAmbiguityWarning.__name__}: "
                f"no candidate encoding produced tag-shaped text, "
                f"decoded as {result.encoding}"
            )
        return result.text, notes, result.encoding

    def decode(self, block_id: str, content: str) -> DecodedQuestion:
        text, notes, encoding = self.decode_block(block_id, content)

        # ── Options ──────────────────────────────────────────────────
        options_content = extract_tag(text, "options")
        if options_content is None:
            raise MissingFieldError(block_id, "options")

        options = parse_options(options_content)
        for key in REQUIRED_OPTIONS:
            if key not in options:
                raise MissingFieldError(block_id, f"options.{key}")

        try:
            question_type = QuestionType(options["type"])
        except ValueError:
            raise UnsupportedQuestionTypeError(options["type"]) from None

        n = options["n"]
        right = options["right"]
        max_attempts = options.get("max", DEFAULT_MAX)

        # ── Correct answers ──────────────────────────────────────────
        value_content = extract_tag(text, "value")
        if value_content is None:
            raise MissingFieldError(block_id, "value")
        correct = parse_value_flags(value_content)

        # ── Question text ────────────────────────────────────────────
        question_raw = extract_tag(text, "question")
        if question_raw is None:
            raise MissingFieldError(block_id, "question")
        image_url = extract_image_url(question_raw)
        question_text = _clean(question_raw)

        # ── Optional fields ──────────────────────────────────────────
        title_raw = extract_tag(text, "Q_TITLE")
        title = title_raw.strip() if title_raw and title_raw.strip() else None
        is_deleted = title == self.deleted_title

        description_raw = extract_tag(text, "description")
        description = _clean(description_raw) if description_raw else ""

        # ── Answers ──────────────────────────────────────────────────
        # Only numbers that have an <a_i> marker are looked up; n= may be corrupt
        answers: list[Answer] = []
        for i in answer_numbers(text, n):
            answer_raw = extract_tag(text, f"a_{i}")
            if answer_raw is None:
                continue
            answers.append(Answer(index=i - 1, text=_clean(answer_raw)))
        if len(answers) != n:
            logger.debug(
                f"Question {block_id}: {n - len(answers)} of {n} answers missing"
            )

        if len(correct) != right:
            logger.debug(
                f"Question {block_id}: value marks {len(correct)} correct "
                f"answers, right={right}"
            )

        question = Question(
            id=block_id,
            title=title,
            type=question_type,
            text=question_text,
            image_url=image_url,
            description=description,
            answers=tuple(answers),
            correct_answers=correct,
            answer_count=n,
            right_count=right,
            max_attempts=max_attempts,
            points=calculate_points(question_type, right),
            is_deleted=is_deleted,
        )
        return DecodedQuestion(question=question, notes=notes, encoding=encoding)
