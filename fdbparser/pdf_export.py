"""
PDF Export
==========
Markdown → HTML (``markdown``) → PDF (PyMuPDF ``Story``).

Images referenced by the Markdown are resolved relative to a base
directory handed to PyMuPDF as an archive.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import fitz  # PyMuPDF
import markdown

logger = logging.getLogger(__name__)

PAGE_FORMAT = "a4"
PAGE_MARGIN = 36  # points

SRC_PATTERN = re.compile(r'src="([^"]*)"')

DEFAULT_CSS = """
body {
  font-family: sans-serif;
  font-size: 11pt;
  line-height: 1.4;
  color: #1e1e2e;
}

h1 {
  color: #1e66f5;
  font-size: 18pt;
  margin-bottom: 12pt;
}

h2 {
  color: #04a5e5;
  font-size: 13pt;
  margin-top: 14pt;
  margin-bottom: 6pt;
}

img {
  max-width: 95%;
  margin: 10pt auto;
}

strong {
  color: #40a02b;
  font-weight: bold;
}

em {
  color: #5c5f77;
  font-style: italic;
}

hr {
  margin: 10pt 0;
}
"""


def markdown_to_html(markdown_text: str) -> str:
    """Convert Markdown to an HTML body fragment."""
    return markdown.markdown(markdown_text, extensions=["extra"])


def html_to_pdf(
    html: str,
    css: Optional[str] = None,
    base_dir: Optional[str] = None,
) -> bytes:
    """
    Lay out HTML on A4 pages and return the PDF bytes.

    Args:
        html: HTML body content.
        css: Stylesheet; the default theme when None.
        base_dir: Directory that relative image paths are resolved against.
    """
    # Archive lookups use plain file names, not URL escapes
    html = SRC_PATTERN.sub(lambda m: f'src="{unquote(m.group(1))}"', html)

    archive = fitz.Archive(base_dir) if base_dir else None
    story = fitz.Story(html=html, user_css=css or DEFAULT_CSS, archive=archive)

    buffer = io.BytesIO()
    writer = fitz.DocumentWriter(buffer)
    mediabox = fitz.paper_rect(PAGE_FORMAT)
    where = mediabox + (PAGE_MARGIN, PAGE_MARGIN, -PAGE_MARGIN, -PAGE_MARGIN)

    pages = 0
    more = True
    while more:
        device = writer.begin_page(mediabox)
        more, _ = story.place(where)
        story.draw(device)
        writer.end_page()
        pages += 1
    writer.close()

    logger.debug(f"Rendered {pages} PDF pages")
    return buffer.getvalue()


def markdown_to_pdf(
    markdown_text: str,
    css: Optional[str] = None,
    base_dir: Optional[str] = None,
) -> bytes:
    """Render Markdown straight to PDF bytes."""
    return html_to_pdf(markdown_to_html(markdown_text), css=css, base_dir=base_dir)


def load_css(css_path: Optional[str]) -> Optional[str]:
    """Read a user stylesheet; a missing file falls back to the default."""
    if not css_path:
        return None
    path = Path(css_path)
    if not path.exists():
        logger.warning(f"Stylesheet not found, using default: {css_path}")
        return None
    return path.read_text(encoding="utf-8")
