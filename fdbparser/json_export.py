"""
JSON Export
===========
Serializes parsed tests in one of two shapes:

    - ``canonical``: the model dump (0-based answer ``index``,
      ``correct_answers`` as bitmap positions)
    - ``task``: the older 1-based shape (``answers: [{idx, text}]``,
      ``options: {n, type, right, max}``, ``question: {title, text, imgUrl}``)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .models import ParseResult, Question, TestData

logger = logging.getLogger(__name__)

SHAPES = ("canonical", "task")


def clean_test_data(data: TestData) -> dict[str, Any]:
    """Canonical dump with text trimmed and empty optional fields dropped."""
    dumped = data.model_dump(mode="json")

    for question in dumped["questions"]:
        question["text"] = question["text"].strip()
        for key in ("description", "title", "image_url"):
            value = question.get(key)
            if not value or not str(value).strip():
                question.pop(key, None)
            else:
                question[key] = str(value).strip()
        for answer in question["answers"]:
            answer["text"] = answer["text"].strip()

    for key in ("author", "copyright", "date", "groups"):
        if dumped.get(key) is None:
            dumped.pop(key, None)

    dumped["title"] = (dumped.get("title") or "").strip() or "Untitled Test"
    return dumped


def question_to_task(question: Question) -> dict[str, Any]:
    """Map a question onto the 1-based task shape."""
    task: dict[str, Any] = {
        "id": question.id,
        "options": {
            "n": question.answer_count,
            "type": int(question.type),
            "right": question.right_count,
            "max": question.max_attempts,
        },
        "question": {"text": question.text.strip()},
        "description": {"text": question.description.strip()},
        "answers": [
            {"idx": a.number, "text": a.text.strip()} for a in question.answers
        ],
        "value": question.value_bitmap(),
        "maxAttempts": question.max_attempts,
        "isDeleted": question.is_deleted,
    }
    if question.title:
        task["question"]["title"] = question.title
    if question.image_url:
        task["question"]["imgUrl"] = question.image_url
    return task


def to_task_shape(data: TestData) -> dict[str, Any]:
    """The whole test in the task shape."""
    shaped: dict[str, Any] = {
        "title": data.title,
        "tasks": [question_to_task(q) for q in data.questions],
        "categories": [
            c.model_dump(mode="json") for c in data.categories
        ],
    }
    for key in ("author", "copyright", "date"):
        value = getattr(data, key)
        if value:
            shaped[key] = value
    if data.groups is not None:
        shaped["groups"] = [
            {"id": g.id, "taskIds": {"tv_i": list(g.tv_i), "tv_p": list(g.tv_p), "tv_d": list(g.tv_d)}}
            for g in data.groups
        ]
    return shaped


def format_as_json(data: TestData, shape: str = "canonical", pretty: bool = True) -> str:
    """Serialize a test in the requested shape."""
    if shape not in SHAPES:
        raise ValueError(f"Unknown JSON shape '{shape}', expected one of {SHAPES}")
    payload = clean_test_data(data) if shape == "canonical" else to_task_shape(data)
    return json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False)


def result_to_dict(result: ParseResult, shape: str = "canonical") -> dict[str, Any]:
    """Full parse result: data, warnings, validation and source info."""
    return {
        "data": json.loads(format_as_json(result.data, shape=shape, pretty=False)),
        "warnings": list(result.warnings),
        "validation": result.validation.model_dump(),
        "source": result.source.model_dump(),
    }


def save_json(payload: dict[str, Any], filepath: Path):
    """Write a dict as UTF-8 JSON, creating parent directories."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
    logger.info(f"Saved JSON output: {filepath}")
