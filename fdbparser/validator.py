"""
Validation Engine
=================
Post-parse validation and reporting.

After parsing each test, generates a report:
    - Body blocks detected vs. questions parsed
    - Skipped, soft-deleted and duplicate question IDs
    - Questions without answers / without a correct answer
    - Questions not referenced by any category
    - Category references to unknown questions

Also validates the structure of exported JSON documents.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from .models import Category, TestData, ValidationReport

logger = logging.getLogger(__name__)


def _walk(categories: Iterable[Category]) -> list[str]:
    ids: list[str] = []
    for category in categories:
        ids.extend(category.all_question_ids())
    return ids


class ValidationEngine:
    """
    Validates parsed test data and produces a report.
    """

    def validate(
        self,
        data: TestData,
        total_blocks: int = 0,
        skipped_ids: Iterable[str] = (),
        deleted_ids: Iterable[str] = (),
        duplicate_ids: Iterable[str] = (),
        warning_count: int = 0,
    ) -> ValidationReport:
        """
        Run full validation on a parsed test.

        Args:
            data: The parsed test.
            total_blocks: Numbered blocks found in the body.
            skipped_ids: Blocks dropped because they failed to parse.
            deleted_ids: Soft-deleted questions (kept or filtered).
            duplicate_ids: Block IDs seen more than once.
            warning_count: Number of warnings the parse produced.

        Returns:
            ValidationReport with all detected issues.
        """
        report = ValidationReport(
            total_blocks_detected=total_blocks,
            skipped_question_ids=list(skipped_ids),
            deleted_question_ids=list(deleted_ids),
            duplicate_question_ids=sorted(set(duplicate_ids)),
            warning_count=warning_count,
        )
        report.parsed_successfully = max(
            total_blocks - len(report.skipped_question_ids), 0
        )

        if not data.questions:
            logger.warning("No questions to validate")

        for q in data.questions:
            if not q.answers:
                report.questions_without_answers.append(q.id)
            if not q.correct_answers:
                report.questions_without_correct_answers.append(q.id)

        referenced = _walk(data.categories)
        referenced_set = set(referenced)
        known = {q.id for q in data.questions}

        if data.categories:
            report.uncategorized_question_ids = [
                q.id for q in data.questions if q.id not in referenced_set
            ]

        # Deleted questions are legitimately absent when filtered out
        absent_ok = known | set(report.deleted_question_ids)
        report.unknown_category_references = sorted(
            {ref for ref in referenced if ref not in absent_ok}
        )

        # Log summary
        logger.info("=" * 60)
        logger.info("VALIDATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Blocks Detected: {report.total_blocks_detected}")
        logger.info(
            f"Parsed Successfully: {report.parsed_successfully} "
            f"({report.success_rate}%)"
        )
        logger.info(f"Skipped Questions: {len(report.skipped_question_ids)}")
        logger.info(f"Soft-Deleted Questions: {len(report.deleted_question_ids)}")
        logger.info(f"Duplicate IDs: {len(report.duplicate_question_ids)}")
        logger.info(
            f"Questions Without Answers: {len(report.questions_without_answers)}"
        )
        logger.info(
            f"Questions Without Correct Answer: "
            f"{len(report.questions_without_correct_answers)}"
        )
        logger.info(f"Warnings: {report.warning_count}")
        logger.info("=" * 60)

        return report


def validate_test_data(data: dict[str, Any]) -> list[str]:
    """
    Check the structure of an exported test document.

    Accepts the canonical JSON shape (``questions`` with ``answers`` and
    ``correct_answers``). Returns a list of errors, empty if valid.
    """
    errors: list[str] = []

    if not data.get("title"):
        errors.append("Missing test title")

    questions = data.get("questions")
    if not isinstance(questions, list):
        errors.append("Missing or invalid questions array")
    else:
        for index, question in enumerate(questions):
            label = question.get("id") or index
            if not question.get("id"):
                errors.append(f"Question at index {index} is missing an id")
            if not question.get("text"):
                errors.append(f"Question {label} is missing text")
            if not question.get("type"):
                errors.append(f"Question {label} is missing a type")

            answers = question.get("answers")
            if not isinstance(answers, list):
                errors.append(f"Question {label} is missing answers array")
            elif not answers:
                errors.append(f"Question {label} has an empty answers array")

            if not isinstance(question.get("correct_answers"), list):
                errors.append(f"Question {label} is missing correct_answers array")

    categories = data.get("categories")
    if not isinstance(categories, list):
        errors.append("Missing or invalid categories array")
    else:
        for index, category in enumerate(categories):
            if not category.get("title"):
                errors.append(f"Category at index {index} is missing a title")
            if not isinstance(category.get("question_ids"), list):
                errors.append(
                    f"Category {category.get('title') or index} "
                    f"is missing question_ids array"
                )

    return errors
