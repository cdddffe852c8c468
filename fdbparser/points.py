"""Point values for questions."""

from __future__ import annotations

from .models import QuestionType


def calculate_points(question_type, right_count: int) -> int:
    """
    Score a question from its type and required-correct count.

    Single choice is worth 1, multiple choice one point per required
    answer (at least 1), text input 2, the matching family one point per
    required pairing. Anything else, including unknown codes, is worth 1.
    """
    try:
        question_type = QuestionType(question_type)
    except ValueError:
        return 1

    if question_type == QuestionType.SINGLE_CHOICE:
        return 1
    if question_type == QuestionType.MULTIPLE_CHOICE:
        return max(right_count, 1)
    if question_type == QuestionType.TEXT_INPUT:
        return 2
    if question_type.is_matching:
        return right_count
    return 1
