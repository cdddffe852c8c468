"""
Data Models
===========
Pydantic models for the structured test produced by the parser.
Test content models are frozen: a parse builds them once and nothing
mutates them afterwards.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


DELETED_TITLE = "Deleted!"
UNTITLED_TEST = "Untitled Test"


# ─── Enums ────────────────────────────────────────────────────────────────────


class QuestionType(IntEnum):
    """Question kinds; the numeric codes are the file format's `type=` values."""
    SINGLE_CHOICE = 1
    MULTIPLE_CHOICE = 2
    RANKING = 3
    MATCHING_COLUMNS = 4
    MATCHING_PAIRS = 5
    MATCHING_VALUES = 6
    TEXT_INPUT = 7

    @property
    def label(self) -> str:
        return QUESTION_TYPE_LABELS[self]

    @property
    def is_matching(self) -> bool:
        return self in MATCHING_TYPES


QUESTION_TYPE_LABELS = {
    QuestionType.SINGLE_CHOICE: "Single Choice",
    QuestionType.MULTIPLE_CHOICE: "Multiple Choice",
    QuestionType.RANKING: "Ranking",
    QuestionType.MATCHING_COLUMNS: "Matching Columns",
    QuestionType.MATCHING_PAIRS: "Matching Pairs",
    QuestionType.MATCHING_VALUES: "Matching Values",
    QuestionType.TEXT_INPUT: "Text Input",
}

MATCHING_TYPES = frozenset({
    QuestionType.MATCHING_COLUMNS,
    QuestionType.MATCHING_PAIRS,
    QuestionType.MATCHING_VALUES,
})


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ─── Question Models ──────────────────────────────────────────────────────────


class Answer(_Frozen):
    """One answer option. ``index`` is 0-based; ``number`` is the a_N tag."""
    index: int = Field(ge=0)
    text: str

    @computed_field
    @property
    def number(self) -> int:
        return self.index + 1


class Question(_Frozen):
    """
    A fully decoded question block.

    Correctness is stored once, as the sorted 0-based positions flagged
    ``1`` in the ``<value>`` bitmap. The bitmap itself and the older
    "first ``right`` answers are correct" view can both be regenerated.
    """
    id: str
    title: Optional[str] = None
    type: QuestionType
    text: str
    image_url: Optional[str] = None
    description: str = ""
    answers: tuple[Answer, ...] = ()
    correct_answers: tuple[int, ...] = ()
    answer_count: int = Field(ge=0, description="Declared n= option")
    right_count: int = Field(ge=0, description="Declared right= option")
    max_attempts: int = Field(default=1, description="Declared max= option")
    points: int = 1
    is_deleted: bool = False

    def is_correct(self, answer: Answer) -> bool:
        return answer.index in self.correct_answers

    def correct_answer_texts(self) -> list[str]:
        return [a.text for a in self.answers if self.is_correct(a)]

    def value_bitmap(self) -> list[int]:
        """The ``<value>`` form: one 0/1 flag per declared answer."""
        size = max(
            self.answer_count,
            max(self.correct_answers, default=-1) + 1,
        )
        return [1 if i in self.correct_answers else 0 for i in range(size)]

    def first_right_correct(self) -> list[int]:
        """1-based numbers of the first ``right`` answers."""
        return [a.number for a in self.answers[: self.right_count]]


# ─── Structure Models ─────────────────────────────────────────────────────────


class Category(_Frozen):
    """An outline node; question IDs are lookup-only references."""
    title: str
    question_ids: tuple[str, ...] = ()
    subcategories: tuple[Category, ...] = ()
    level: int = 0

    def all_question_ids(self) -> list[str]:
        """IDs of this node and its whole subtree, in document order."""
        ids = list(self.question_ids)
        for sub in self.subcategories:
            ids.extend(sub.all_question_ids())
        return ids


class Group(_Frozen):
    """A ``gr-id`` block with its three ID buckets."""
    id: str
    tv_i: tuple[str, ...] = ()
    tv_p: tuple[str, ...] = ()
    tv_d: tuple[str, ...] = ()


class TestData(_Frozen):
    """The complete parsed test."""
    __test__: ClassVar[bool] = False  # not a pytest test class

    title: str = UNTITLED_TEST
    author: Optional[str] = None
    copyright: Optional[str] = None
    date: Optional[str] = None
    questions: tuple[Question, ...] = ()
    categories: tuple[Category, ...] = ()
    groups: Optional[tuple[Group, ...]] = None

    def get_question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    @computed_field
    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)


# ─── Parse Result Models ──────────────────────────────────────────────────────


class SourceInfo(BaseModel):
    """Where the parsed content came from."""
    file_name: str = ""
    encoding: str = ""
    file_size_bytes: int = 0
    file_hash: str = ""
    parser_version: str = "1.0.0"
    parse_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class ValidationReport(BaseModel):
    """Post-parse validation report."""
    total_blocks_detected: int = 0
    parsed_successfully: int = 0
    skipped_question_ids: list[str] = Field(default_factory=list)
    deleted_question_ids: list[str] = Field(default_factory=list)
    duplicate_question_ids: list[str] = Field(default_factory=list)
    questions_without_answers: list[str] = Field(default_factory=list)
    questions_without_correct_answers: list[str] = Field(default_factory=list)
    uncategorized_question_ids: list[str] = Field(default_factory=list)
    unknown_category_references: list[str] = Field(default_factory=list)
    warning_count: int = 0

    @computed_field
    @property
    def success_rate(self) -> float:
        if self.total_blocks_detected == 0:
            return 0.0
        return round(
            self.parsed_successfully / self.total_blocks_detected * 100,
            2
        )


class ParseResult(BaseModel):
    """Complete output of a parse run."""
    data: TestData
    warnings: list[str] = Field(default_factory=list)
    validation: ValidationReport = Field(default_factory=ValidationReport)
    source: SourceInfo = Field(default_factory=SourceInfo)
    raw_tags: Optional[dict[str, str]] = None
