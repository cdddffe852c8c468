"""
Markdown Export
===============
Renders a parsed test as Markdown: one section per question, correct
answers in bold with a check mark, metadata and question types in italics.
"""

from __future__ import annotations

import os
import re
from typing import Optional

from .models import Question, QuestionType, TestData
from .questions import IMAGE_PATTERN

BREAK_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
# An image marker swallows the period that may follow it
IMAGE_MARKER = re.compile(IMAGE_PATTERN.pattern + r"\.?", re.IGNORECASE)
IMAGE_DIR_PREFIXES = ("pics\\", "pics/")


def normalize_image_name(image_url: str) -> str:
    """``pics\\Foo Bar.JPG`` → ``Foo%20Bar.jpg``."""
    name = image_url
    for prefix in IMAGE_DIR_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
    if name.lower().endswith(".jpg"):
        name = name[:-4] + ".jpg"
    return name.replace(" ", "%20")


def relative_image_path(output_path: str, image_base_path: str) -> str:
    """Image directory as seen from the directory of the output file."""
    output_dir = os.path.dirname(os.path.abspath(output_path))
    return os.path.relpath(os.path.abspath(image_base_path), output_dir)


def _answer_prefix(question: Question, number: int) -> str:
    if question.type == QuestionType.MATCHING_VALUES and question.image_url:
        return chr(96 + number)
    return str(number)


def render_question(question: Question, image_base_path: Optional[str] = None) -> str:
    """Render one question section, ending with a blank line."""
    parts = [f"## Question {question.id} ({question.points} points)\n\n"]

    text = question.text
    if question.image_url and image_base_path is not None:
        image_path = "/".join(
            p for p in (image_base_path.replace("\\", "/"), normalize_image_name(question.image_url)) if p
        )
        image_md = f"\n\n![Question {question.id} Image]({image_path})\n\n"
        text = IMAGE_MARKER.sub(lambda _: image_md, text, count=1)
    text = BREAK_PATTERN.sub("\n\n", text)
    parts.append(f"{text}\n\n")

    if question.description:
        parts.append(f"{question.description}\n\n")

    plural = "s" if question.right_count != 1 else ""
    parts.append(
        f"*Type: {question.type.label} "
        f"({question.right_count} correct answer{plural})*\n\n"
    )

    for answer in question.answers:
        prefix = _answer_prefix(question, answer.number)
        if question.is_correct(answer):
            parts.append(f"**✓ {prefix}. {answer.text}**\n\n")
        else:
            parts.append(f"   {prefix}. {answer.text}\n\n")

    return "".join(parts)


def render_markdown(data: TestData, image_base_path: Optional[str] = None) -> str:
    """Render a whole test; ``image_base_path`` is relative to the output."""
    parts = [f"# {data.title}\n\n"]

    if data.author:
        parts.append(f"*Author: {data.author}*\n\n")
    if data.date:
        parts.append(f"*Date: {data.date}*\n\n")
    if data.copyright:
        parts.append(f"*Copyright: {data.copyright}*\n\n")

    parts.append(f"Total questions: {len(data.questions)}\n\n")
    parts.append("---\n\n")

    for question in data.questions:
        parts.append(render_question(question, image_base_path))
        parts.append("---\n\n")

    return "".join(parts)
