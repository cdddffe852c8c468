"""
Converters
==========
File-to-file conversions built on the parser and the exporters:

    .fdb → .txt    (decoded, tag-wrapped text)
    .fdb/.txt → .md
    .md → .pdf
    .fdb/.txt → .pdf   (through an intermediate Markdown file)
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from .encoding import LEGACY_ENCODING, looks_mojibaked, repair_mojibake
from .engine import ParserConfig, ParserEngine
from .images import normalize_image_extensions
from .markdown_export import relative_image_path, render_markdown
from .models import ParseResult
from .pdf_export import load_css, markdown_to_pdf
from .txt_export import fdb_to_text

logger = logging.getLogger(__name__)


def _require(path: str):
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file {path} does not exist")


def convert_fdb_to_txt(
    input_path: str,
    output_path: Optional[str] = None,
    encoding: str = LEGACY_ENCODING,
) -> str:
    """Write the decoded text form of a test-bank file; returns its path."""
    _require(input_path)
    output_path = output_path or f"{input_path}.txt"

    raw = Path(input_path).read_bytes()
    text = fdb_to_text(raw, encoding=encoding)
    Path(output_path).write_text(text, encoding="utf-8")

    logger.info(f"Converted {input_path} to {output_path}")
    return output_path


def convert_to_markdown(
    input_path: str,
    output_path: str,
    image_base_path: Optional[str] = None,
    config: Optional[ParserConfig] = None,
) -> ParseResult:
    """
    Parse a test (raw or text form) and write it as Markdown.

    Image paths in the Markdown are made relative to the output file;
    ``*.JPG`` files in the image folder get ``*.jpg`` copies first.
    """
    _require(input_path)
    result = ParserEngine(config).parse_file(input_path)

    relative_images = None
    if image_base_path:
        relative_images = relative_image_path(output_path, image_base_path)
        if os.path.isdir(image_base_path):
            normalize_image_extensions(image_base_path)

    markdown_text = render_markdown(result.data, relative_images)
    Path(output_path).write_text(markdown_text, encoding="utf-8")

    logger.info(
        f"Converted {input_path} to {output_path} "
        f"({len(result.warnings)} warnings)"
    )
    return result


def convert_markdown_to_pdf(
    input_path: str,
    output_path: str,
    css_path: Optional[str] = None,
    base_dir: Optional[str] = None,
) -> str:
    """Render a Markdown file to PDF; images resolve against ``base_dir``."""
    _require(input_path)
    markdown_text = Path(input_path).read_text(encoding="utf-8")

    pdf_bytes = markdown_to_pdf(
        markdown_text,
        css=load_css(css_path),
        base_dir=base_dir or os.path.dirname(os.path.abspath(input_path)),
    )
    if not pdf_bytes:
        raise RuntimeError("PDF conversion failed with no content")

    Path(output_path).write_bytes(pdf_bytes)
    logger.info(f"Converted {input_path} to {output_path}")
    return output_path


def convert_to_pdf(
    input_path: str,
    output_path: str,
    image_base_path: Optional[str] = None,
    css_path: Optional[str] = None,
    keep_markdown: bool = False,
    config: Optional[ParserConfig] = None,
) -> ParseResult:
    """Parse a test and render it to PDF via a Markdown file."""
    output_dir = os.path.dirname(os.path.abspath(output_path))
    if keep_markdown:
        markdown_path = os.path.splitext(output_path)[0] + ".md"
    else:
        markdown_path = os.path.join(output_dir, f"temp-{int(time.time() * 1000)}.md")

    result = convert_to_markdown(input_path, markdown_path, image_base_path, config)
    try:
        convert_markdown_to_pdf(
            markdown_path,
            output_path,
            css_path=css_path,
            base_dir=os.path.dirname(os.path.abspath(markdown_path)),
        )
    finally:
        if not keep_markdown and os.path.exists(markdown_path):
            os.remove(markdown_path)
            logger.debug(f"Temporary Markdown file deleted: {markdown_path}")

    if keep_markdown:
        logger.info(f"Intermediate Markdown file preserved: {markdown_path}")
    return result


def fix_text_encoding(
    input_path: str,
    output_path: Optional[str] = None,
    source: str = "latin-1",
    target: str = LEGACY_ENCODING,
    force: bool = False,
) -> bool:
    """
    Repair a text file whose Cyrillic was decoded with the wrong code page.

    The file is read as UTF-8 (undecodable bytes as Latin-1). Returns True
    when a repair was applied; otherwise the content is copied unchanged.
    """
    _require(input_path)
    output_path = output_path or f"{input_path}.fixed.txt"

    raw = Path(input_path).read_bytes()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")

    repaired = force or looks_mojibaked(content)
    if repaired:
        logger.debug("Detected encoding issues, attempting to fix")
        content = repair_mojibake(content, source=source, target=target)
    else:
        logger.debug("No encoding issues detected, saving original content")

    Path(output_path).write_text(content, encoding="utf-8")
    return repaired
