"""
Parser Engine
=============
Main orchestrator that combines encoding detection, tag extraction,
question decoding, category parsing and validation into one parse.

Usage:
    engine = ParserEngine(config)
    result = engine.parse_file("path/to/test.fdb")
    # result is a ParseResult: TestData + warnings + validation report

Architecture:
    bytes → detect/decode → text → T_body blocks → QuestionDecoder →
    Questions (+ outline, groups, metadata) → ValidationEngine → ParseResult

A parse has no shared state: one engine may parse many documents, and
independent documents can be parsed concurrently.
"""

from __future__ import annotations

import hashlib
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import __version__
from .categories import parse_categories, parse_groups
from .encoding import decode_text, detect_encoding, normalize_encoding_name
from .errors import FdbParserError, MalformedHexError, MissingSectionError
from .hex_decoder import decode_tag_content
from .models import (
    DELETED_TITLE,
    UNTITLED_TEST,
    ParseResult,
    Question,
    SourceInfo,
    TestData,
)
from .questions import QuestionDecoder
from .tag_extractor import extract_tag, extract_tags, iter_numbered_blocks
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _mojibake(key: str) -> str:
    """How a cp1251 key looks when the file was read as Latin-1."""
    return key.encode("cp1251").decode("latin-1")


@dataclass(frozen=True)
class Dialect:
    """Tag vocabulary of a test-bank file flavour."""

    body_tag: str = "T_body"
    outline_tag: str = "tv_i"
    metadata_tag: str = "info-id"
    title_tag: str = "T_title"
    group_tag: str = "gr-id"
    numeric_tags: tuple[str, ...] = ("T_id", "tv_p", "tv_d")
    header_tags: tuple[str, ...] = (
        "T_head", "T_id", "T_title", "tv_i", "tv_p", "tv_d",
        "info-id", "intro-id",
    )
    # Source-language keys of the metadata section → TestData field
    metadata_keys: tuple[tuple[str, str], ...] = (
        ("Название", "title"),
        ("Авторы", "author"),
        ("Копирайт", "copyright"),
        ("Дата", "date"),
    )
    deleted_title: str = DELETED_TITLE

    def metadata_key_map(self) -> dict[str, str]:
        """Keys in both their proper and Latin-1-misread forms."""
        mapping: dict[str, str] = {}
        for key, name in self.metadata_keys:
            mapping[key] = name
            try:
                mapping[_mojibake(key)] = name
            except UnicodeEncodeError:
                pass
        return mapping


FDB_DIALECT = Dialect()


@dataclass
class ParserConfig:
    """Configuration for the parser engine."""

    # Decoding
    encoding: Optional[str] = None
    dialect: Dialect = field(default_factory=Dialect)

    # Filtering
    include_deleted: bool = False

    # Output
    keep_raw: bool = False

    # Logging
    debug: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None


class ParserEngine:
    """
    Main test-bank parsing engine.

    Orchestrates the full pipeline:
        1. Encoding detection and document decoding
        2. Header and metadata extraction
        3. Per-question decoding (failures become warnings)
        4. Outline and group parsing
        5. Validation
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        if self.config.encoding:
            # Fail fast on unknown codecs
            self.config.encoding = normalize_encoding_name(self.config.encoding)
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        level_name = "DEBUG" if self.config.debug else self.config.log_level
        log_level = getattr(logging, level_name.upper(), logging.INFO)

        # Configure root logger for the package
        package_logger = logging.getLogger("fdbparser")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(console)
        else:
            for handler in package_logger.handlers:
                handler.setLevel(log_level)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(file_handler)

    # ─── Entry points ────────────────────────────────────────────────────

    def parse_file(self, path: str) -> ParseResult:
        """
        Read a test-bank file and parse it.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            MissingSectionError: If the document has no body section.
        """
        path = os.path.abspath(path)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Test file not found: {path}")

        with open(path, "rb") as f:
            raw = f.read()
        return self.parse_bytes(raw, file_name=os.path.basename(path))

    def parse_bytes(self, raw: bytes, file_name: str = "") -> ParseResult:
        """Detect the encoding of a raw buffer, decode it and parse it."""
        encoding = self.config.encoding or detect_encoding(raw)
        logger.debug(f"Document encoding: {encoding}")
        content = decode_text(raw, encoding)

        source = SourceInfo(
            file_name=file_name,
            encoding=encoding,
            file_size_bytes=len(raw),
            file_hash=hashlib.sha256(raw).hexdigest(),
            parser_version=__version__,
        )
        return self.parse_content(content, source=source)

    def parse_content(
        self,
        content: str,
        source: Optional[SourceInfo] = None,
    ) -> ParseResult:
        """
        Parse an already decoded document.

        Raises:
            MissingSectionError: If the document has no body section.
        """
        dialect = self.config.dialect
        start_time = time.time()
        warnings: list[str] = []

        logger.debug(f"Parsing test content ({len(content)} chars)")

        body = extract_tag(content, dialect.body_tag)
        if body is None:
            raise MissingSectionError(dialect.body_tag)

        # ── Step 1: Header tags ───────────────────────────────────────
        raw_tags = self._decode_headers(content)
        metadata = self._parse_metadata(raw_tags.get(dialect.metadata_tag, ""))
        title = (
            metadata.pop("title", None)
            or raw_tags.get(dialect.title_tag, "").strip()
            or UNTITLED_TEST
        )

        # ── Step 2: Questions ─────────────────────────────────────────
        questions, stats = self._parse_questions(body, warnings)

        # ── Step 3: Outline and groups ────────────────────────────────
        outline = raw_tags.get(dialect.outline_tag)
        categories = (
            parse_categories(
                outline,
                warnings,
                metadata_keys=dialect.metadata_key_map().keys(),
            )
            if outline is not None else []
        )

        groups = None
        group_section = raw_tags.get(dialect.group_tag)
        if group_section is not None:
            groups = tuple(parse_groups(group_section))

        data = TestData(
            title=title,
            author=metadata.get("author"),
            copyright=metadata.get("copyright"),
            date=metadata.get("date"),
            questions=tuple(questions),
            categories=tuple(categories),
            groups=groups,
        )

        # ── Step 4: Validation ────────────────────────────────────────
        validation = ValidationEngine().validate(
            data,
            total_blocks=stats["total"],
            skipped_ids=stats["skipped"],
            deleted_ids=stats["deleted"],
            duplicate_ids=stats["duplicates"],
            warning_count=len(warnings),
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Parse complete in {elapsed:.2f}s — "
            f"{len(questions)} questions, {len(warnings)} warnings"
        )

        return ParseResult(
            data=data,
            warnings=warnings,
            validation=validation,
            source=source or SourceInfo(parser_version=__version__),
            raw_tags=raw_tags if self.config.keep_raw else None,
        )

    # ─── Steps ───────────────────────────────────────────────────────────

    def _decode_headers(self, content: str) -> dict[str, str]:
        """Decode every non-body section the dialect knows about."""
        dialect = self.config.dialect
        names = list(dict.fromkeys(
            (*dialect.header_tags, dialect.metadata_tag,
             dialect.title_tag, dialect.outline_tag, dialect.group_tag)
        ))
        decoded: dict[str, str] = {}
        for tag, raw in extract_tags(content, names).items():
            try:
                decoded[tag] = decode_tag_content(
                    tag,
                    raw,
                    encoding=self.config.encoding or "cp1251",
                    numeric_tags=dialect.numeric_tags,
                )
            except MalformedHexError as e:
                logger.warning(f"Section <{tag}> kept undecoded: {e}")
                decoded[tag] = raw
        return decoded

    def _parse_metadata(self, section: str) -> dict[str, str]:
        """Read ``Key=Value`` lines using the dialect's fixed keys."""
        key_map = self.config.dialect.metadata_key_map()
        metadata: dict[str, str] = {}
        for line in section.split("\n"):
            key, sep, value = line.partition("=")
            name = key_map.get(key.strip())
            if sep and name and value.strip() and name not in metadata:
                metadata[name] = decode_text(value.strip())
        return metadata

    def _parse_questions(
        self,
        body: str,
        warnings: list[str],
    ) -> tuple[list[Question], dict]:
        """Decode every numbered block; failures are isolated per block."""
        dialect = self.config.dialect
        decoder = QuestionDecoder(
            encoding=self.config.encoding,
            deleted_title=dialect.deleted_title,
        )

        questions: list[Question] = []
        seen: set[str] = set()
        stats = {"total": 0, "skipped": [], "deleted": [], "duplicates": []}

        for block_id, block in iter_numbered_blocks(body):
            if block_id in seen:
                stats["duplicates"].append(block_id)
                self._warn(warnings, f"Question {block_id}: duplicate block ignored")
                continue
            seen.add(block_id)
            stats["total"] += 1

            try:
                decoded = decoder.decode(block_id, block)
            except FdbParserError as e:
                stats["skipped"].append(block_id)
                self._warn(warnings, f"Question {block_id}: {e}")
                continue

            for note in decoded.notes:
                self._warn(warnings, note)

            question = decoded.question
            if question.is_deleted:
                stats["deleted"].append(block_id)
                if not self.config.include_deleted:
                    logger.debug(f"Question {block_id}: soft-deleted, excluded")
                    continue

            questions.append(question)

        return questions, stats

    @staticmethod
    def _warn(warnings: list[str], message: str):
        logger.warning(message)
        warnings.append(message)


# ─── Convenience functions ────────────────────────────────────────────────────


def parse_test_content(content: str, **options) -> ParseResult:
    """Parse decoded text; keyword arguments are ``ParserConfig`` fields."""
    return ParserEngine(ParserConfig(**options)).parse_content(content)


def parse_test_bytes(raw: bytes, **options) -> ParseResult:
    """Parse a raw buffer; keyword arguments are ``ParserConfig`` fields."""
    return ParserEngine(ParserConfig(**options)).parse_bytes(raw)


def parse_test_file(path: str, **options) -> ParseResult:
    """Parse a file; keyword arguments are ``ParserConfig`` fields."""
    return ParserEngine(ParserConfig(**options)).parse_file(path)
