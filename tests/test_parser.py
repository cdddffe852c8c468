"""
Test Suite for the Test-Bank Parser
===================================
Unit and integration tests for decoding, scanning, question parsing,
categories and the parser engine.
"""

from __future__ import annotations

import codecs
import hashlib
import time

import pytest

from fdbparser.categories import indent_width, is_question_id, parse_categories, parse_groups
from fdbparser.encoding import (
    decode_text,
    detect_encoding,
    looks_mojibaked,
    normalize_encoding_name,
    repair_mojibake,
)
from fdbparser.engine import (
    Dialect,
    ParserConfig,
    ParserEngine,
    parse_test_bytes,
    parse_test_content,
    parse_test_file,
)
from fdbparser.errors import (
    FdbParserError,
    MalformedHexError,
    MissingFieldError,
    MissingSectionError,
    UnsupportedQuestionTypeError,
)
from fdbparser.hex_decoder import (
    decode_hex_payload,
    decode_hex_string,
    decode_tag_content,
    hex_to_bytes,
    is_hex_encoded,
    is_purely_numeric,
)
from fdbparser.models import Answer, Category, Group, Question, QuestionType, TestData
from fdbparser.points import calculate_points
from fdbparser.questions import (
    QuestionDecoder,
    answer_numbers,
    extract_image_url,
    parse_options,
    parse_value_flags,
)
from fdbparser.tag_extractor import (
    extract_numbered_blocks,
    extract_tag,
    extract_tags,
    find_tag,
    iter_numbered_blocks,
)
from fdbparser.validator import ValidationEngine


PICK_ONE = (
    "<options>n=2\ntype=1\nright=1</options>"
    "<value>1\n0</value>"
    "<question>Pick one</question>"
    "<a_1>Yes</a_1><a_2>No</a_2>"
)

PICK_ONE_RU = (
    "<options>n=2\ntype=1\nright=1</options>"
    "<value>1\n0</value>"
    "<question>Выберите один вариант</question>"
    "<a_1>Да</a_1><a_2>Нет</a_2>"
)


def make_block(
    n: int = 2,
    qtype: int = 1,
    right: int = 1,
    value: str = "1\n0",
    question: str = "Pick one",
    answers=("Yes", "No"),
    title: str = None,
    description: str = None,
) -> str:
    parts = [
        f"<options>n={n}\ntype={qtype}\nright={right}</options>",
        f"<value>{value}</value>",
        f"<question>{question}</question>",
    ]
    if title is not None:
        parts.append(f"<Q_TITLE>{title}</Q_TITLE>")
    if description is not None:
        parts.append(f"<description>{description}</description>")
    for i, text in enumerate(answers, 1):
        parts.append(f"<a_{i}>{text}</a_{i}>")
    return "".join(parts)


def make_document(*blocks, header: str = "") -> str:
    body = "".join(f"<{block_id}>{content}</{block_id}>" for block_id, content in blocks)
    return f"{header}<T_body>{body}</T_body>"


def to_hex(text: str, prefix: bytes = b"") -> str:
    return (prefix + text.encode("cp1251")).hex()


# ═══════════════════════════════════════════════════════════════════════════════
# ENCODING TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestDetectEncoding:
    """Test the byte-level encoding heuristic."""

    def test_boms(self):
        assert detect_encoding(codecs.BOM_UTF8 + b"abc") == "utf-8"
        assert detect_encoding(codecs.BOM_UTF16_LE + b"a\x00") == "utf-16-le"
        assert detect_encoding(codecs.BOM_UTF16_BE + b"\x00a") == "utf-16-be"

    def test_null_bytes_mean_utf16le(self):
        assert detect_encoding("<T_body>".encode("utf-16-le")) == "utf-16-le"

    def test_legacy_cyrillic(self):
        raw = "Привет мир, это тест".encode("cp1251")
        assert detect_encoding(raw) == "cp1251"

    def test_utf8_cyrillic_is_not_mistaken_for_legacy(self):
        raw = "Привет мир, это тест".encode("utf-8")
        assert detect_encoding(raw) == "utf-8"

    def test_plain_ascii(self):
        assert detect_encoding(b"<T_body><1>abc</1></T_body>") == "utf-8"

    def test_empty_buffer(self):
        assert detect_encoding(b"") == "utf-8"


class TestDecodeText:
    """Test text decoding and normalization."""

    def test_decodes_legacy_bytes(self):
        assert decode_text("Тест".encode("cp1251")) == "Тест"

    def test_normalizes_line_endings(self):
        assert decode_text(b"a\r\nb\rc", "utf-8") == "a\nb\nc"

    def test_invalid_bytes_fall_back_to_utf8(self):
        assert decode_text(b"abc\xff", "utf-8") == "abc\ufffd"

    def test_unknown_codec_falls_back_to_utf8(self):
        assert decode_text(b"plain", "no-such-codec") == "plain"

    def test_strings_are_unescaped(self):
        assert decode_text("line\\r\\nnext\\tcol") == "line\nnext\tcol"
        assert decode_text('say \\"hi\\"') == 'say "hi"'


class TestEncodingNames:
    """Test codec alias resolution."""

    def test_aliases(self):
        assert normalize_encoding_name("win1251") == "cp1251"
        assert normalize_encoding_name("UTF8") == "utf-8"
        assert normalize_encoding_name("utf16le") == "utf-16-le"

    def test_unknown_name_raises(self):
        with pytest.raises(LookupError):
            normalize_encoding_name("klingon-8")


class TestMojibake:
    """Test detection and repair of wrongly decoded Cyrillic."""

    def test_repair(self):
        broken = "Тест".encode("cp1251").decode("latin-1")
        assert looks_mojibaked(broken)
        assert repair_mojibake(broken) == "Тест"

    def test_clean_text(self):
        assert not looks_mojibaked("plain text")
        assert not looks_mojibaked("Тест")

    def test_unencodable_text_is_unchanged(self):
        assert repair_mojibake("Тест") == "Тест"


# ═══════════════════════════════════════════════════════════════════════════════
# HEX DECODER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestHexDecoder:
    """Test hex payload decoding."""

    def test_hex_detection(self):
        assert is_hex_encoded("0a FF\n12")
        assert not is_hex_encoded("")
        assert not is_hex_encoded("   ")
        assert not is_hex_encoded("<options>")

    def test_numeric_detection(self):
        assert is_purely_numeric("12345")
        assert is_purely_numeric(" 42\n")
        assert not is_purely_numeric("12a")

    def test_hex_to_bytes_ignores_whitespace(self):
        assert hex_to_bytes("4 1\n4 2") == b"AB"

    def test_odd_length_is_malformed(self):
        with pytest.raises(MalformedHexError):
            hex_to_bytes("abc")

    def test_invalid_digits_are_malformed(self):
        with pytest.raises(MalformedHexError) as exc_info:
            hex_to_bytes("zz")
        assert isinstance(exc_info.value, ValueError)
        assert isinstance(exc_info.value, FdbParserError)

    def test_decode_hex_string(self):
        assert decode_hex_string(to_hex("Сети")) == "Сети"

    def test_candidate_loop_skips_implausible_encodings(self):
        payload = to_hex("<question>Тест</question>", prefix=b"\x05\x00\x00\x00")
        result = decode_hex_payload(payload)
        assert result.text == "<question>Тест</question>"
        assert result.encoding == "cp1251"
        assert result.confident
        # NUL bytes in the length header make UTF-16LE the first guess
        assert result.rejected[0] == "utf-16-le"

    def test_fallback_when_nothing_is_plausible(self):
        result = decode_hex_payload(b"plain words".hex())
        assert result.text == "plain words"
        assert result.encoding == "cp1251"
        assert not result.confident
        assert "cp1251" in result.rejected

    def test_encoding_override(self):
        payload = "<a>Тест</a>".encode("cp866").hex()
        result = decode_hex_payload(payload, encoding="cp866")
        assert result.text == "<a>Тест</a>"
        assert result.encoding == "cp866"


class TestDecodeTagContent:
    """Test the per-tag decoding policy."""

    def test_numeric_tag_is_preserved(self):
        assert decode_tag_content("T_id", "12345", numeric_tags=("T_id",)) == "12345"

    def test_numeric_content_of_other_tags_is_hex(self):
        assert decode_tag_content("T_title", "3132") == "12"

    def test_hex_content(self):
        assert decode_tag_content("T_title", to_hex("Сети")) == "Сети"

    def test_plain_text(self):
        assert decode_tag_content("T_title", "Hello\r\nWorld") == "Hello\nWorld"


# ═══════════════════════════════════════════════════════════════════════════════
# TAG EXTRACTOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestTagExtractor:
    """Test index-based tag scanning."""

    def test_extract_tag(self):
        assert extract_tag("<a>x</a>", "a") == "x"

    def test_absent_tag(self):
        assert extract_tag("<a>x</a>", "b") is None

    def test_unclosed_tag(self):
        assert extract_tag("<a>x", "a") is None

    def test_first_occurrence_wins(self):
        assert extract_tag("<a>1</a><a>2</a>", "a") == "1"

    def test_empty_content(self):
        assert extract_tag("<a></a>", "a") == ""

    def test_find_tag_span(self):
        span = find_tag("ab<x>cd</x>", "x")
        assert span.start == 2
        assert span.end == 11
        assert span.content == "cd"

    def test_extract_tags(self):
        found = extract_tags("<a>1</a><c>3</c>", ["a", "b", "c"])
        assert found == {"a": "1", "c": "3"}


class TestNumberedBlocks:
    """Test numbered block scanning."""

    def test_document_order(self):
        blocks = list(iter_numbered_blocks("<2>b</2><1>a</1>"))
        assert blocks == [("2", "b"), ("1", "a")]

    def test_leading_zeros_kept(self):
        assert list(iter_numbered_blocks("<007>x</007>")) == [("007", "x")]

    def test_non_numeric_tags_ignored(self):
        text = "<options>x</options><3><a_1>y</a_1></3>"
        assert list(iter_numbered_blocks(text)) == [("3", "<a_1>y</a_1>")]

    def test_unclosed_block_is_skipped(self):
        assert list(iter_numbered_blocks("<1>a<2>b</2>")) == [("2", "b")]

    def test_duplicates(self):
        text = "<1>first</1><1>second</1>"
        assert len(list(iter_numbered_blocks(text))) == 2
        assert extract_numbered_blocks(text) == {"1": "first"}

    def test_many_unclosed_openings_scan_quickly(self):
        text = "<1>" * 40000 + "x" * 200000
        started = time.perf_counter()
        assert extract_numbered_blocks(text) == {}
        assert time.perf_counter() - started < 2.0

    def test_many_distinct_unclosed_ids(self):
        text = "".join(f"<{i}>" for i in range(20000)) + "<99999>five</99999>"
        started = time.perf_counter()
        blocks = extract_numbered_blocks(text)
        assert time.perf_counter() - started < 2.0
        assert blocks == {"99999": "five"}

    def test_closing_before_opening_is_not_paired(self):
        assert list(iter_numbered_blocks("</1><1>a</1>")) == [("1", "a")]


# ═══════════════════════════════════════════════════════════════════════════════
# POINTS TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestPoints:
    """Test the point table."""

    @pytest.mark.parametrize("qtype,right,expected", [
        (1, 3, 1),
        (2, 3, 3),
        (2, 0, 1),
        (3, 5, 1),
        (4, 3, 3),
        (5, 2, 2),
        (6, 0, 0),
        (7, 1, 2),
        (99, 4, 1),
        (QuestionType.RANKING, 2, 1),
    ])
    def test_point_table(self, qtype, right, expected):
        assert calculate_points(qtype, right) == expected


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestModels:
    """Test the data models."""

    def _question(self, **overrides) -> Question:
        fields = dict(
            id="1",
            type=QuestionType.MULTIPLE_CHOICE,
            text="Pick two",
            answers=tuple(Answer(index=i, text=t) for i, t in enumerate("ABC")),
            correct_answers=(0, 2),
            answer_count=3,
            right_count=2,
            points=2,
        )
        fields.update(overrides)
        return Question(**fields)

    def test_answer_number(self):
        assert Answer(index=0, text="x").number == 1

    def test_correct_answers(self):
        q = self._question()
        assert q.correct_answer_texts() == ["A", "C"]
        assert q.is_correct(q.answers[2])
        assert not q.is_correct(q.answers[1])

    def test_regenerated_forms(self):
        q = self._question()
        assert q.value_bitmap() == [1, 0, 1]
        assert q.first_right_correct() == [1, 2]

    def test_frozen(self):
        q = self._question()
        with pytest.raises(Exception):
            q.text = "changed"

    def test_type_labels(self):
        assert QuestionType.TEXT_INPUT.label == "Text Input"
        assert QuestionType.MATCHING_PAIRS.is_matching
        assert not QuestionType.RANKING.is_matching

    def test_total_points(self):
        data = TestData(questions=(self._question(), self._question(id="2", points=1)))
        assert data.total_points == 3
        assert data.get_question("2").points == 1
        assert data.get_question("9") is None

    def test_category_flatten(self):
        category = Category(
            title="Root",
            question_ids=("1",),
            subcategories=(Category(title="Sub", question_ids=("2", "3"), level=1),),
        )
        assert category.all_question_ids() == ["1", "2", "3"]


# ═══════════════════════════════════════════════════════════════════════════════
# QUESTION DECODER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestionFields:
    """Test the per-field helpers."""

    def test_parse_options(self):
        assert parse_options("n=4\ntype=2\nright = 2\nmax=3") == {
            "n": 4, "type": 2, "right": 2, "max": 3,
        }

    def test_first_option_wins(self):
        assert parse_options("n=4 n=5")["n"] == 4

    def test_value_flags(self):
        assert parse_value_flags("1\n0\n1\n") == (0, 2)
        assert parse_value_flags("") == ()

    def test_value_flags_one_per_line(self):
        assert parse_value_flags("1 0") == ()
        assert parse_value_flags("0\n1") == (1,)

    def test_image_url(self):
        text = "Look <img src='pics\\Net Map.JPG'> here"
        assert extract_image_url(text) == "pics/Net Map.JPG"
        assert extract_image_url("no image") is None


class TestQuestionDecoder:
    """Test decoding of single question blocks."""

    def test_plain_block(self):
        q = QuestionDecoder().decode("1", PICK_ONE).question
        assert q.id == "1"
        assert q.type == QuestionType.SINGLE_CHOICE
        assert [a.text for a in q.answers] == ["Yes", "No"]
        assert q.correct_answers == (0,)
        assert q.points == 1
        assert q.max_attempts == 1

    def test_hex_block_matches_plain_block(self):
        decoder = QuestionDecoder()
        plain = decoder.decode("1", PICK_ONE_RU)
        hexed = decoder.decode("1", to_hex(PICK_ONE_RU, prefix=b"\x05\x00\x00\x00"))
        assert hexed.question == plain.question
        assert hexed.encoding == "cp1251"
        assert plain.encoding is None

    def test_missing_answer_is_skipped(self):
        block = make_block(n=3, value="1\n0\n0").replace("<a_2>No</a_2>", "")
        block += "<a_3>Maybe</a_3>"
        q = QuestionDecoder().decode("1", block).question
        assert [a.index for a in q.answers] == [0, 2]
        assert [a.number for a in q.answers] == [1, 3]
        assert q.answer_count == 3

    def test_huge_answer_count_with_one_answer(self):
        block = make_block(n=3000000, value="1", answers=("Only",))
        started = time.perf_counter()
        q = QuestionDecoder().decode("1", block).question
        assert time.perf_counter() - started < 2.0
        assert [a.text for a in q.answers] == ["Only"]
        assert q.answer_count == 3000000

    def test_answer_numbers(self):
        text = "<a_1>x</a_1><a_3>y</a_3><a_99>z</a_99><a_x>w</a_x><a_3>again</a_3>"
        assert answer_numbers(text, 3) == [1, 3]
        assert answer_numbers("", 5) == []

    def test_empty_value(self):
        q = QuestionDecoder().decode("1", make_block(value="")).question
        assert q.correct_answers == ()

    def test_missing_value(self):
        block = make_block().replace("<value>1\n0</value>", "")
        with pytest.raises(MissingFieldError) as exc_info:
            QuestionDecoder().decode("5", block)
        assert exc_info.value.field == "value"
        assert exc_info.value.question_id == "5"

    def test_missing_required_option(self):
        block = make_block().replace("right=1", "")
        with pytest.raises(MissingFieldError, match="options.right"):
            QuestionDecoder().decode("1", block)

    def test_unknown_type(self):
        with pytest.raises(UnsupportedQuestionTypeError):
            QuestionDecoder().decode("1", make_block(qtype=9))

    def test_title_description_and_image(self):
        block = make_block(
            question="See <img src='pics\\map.jpg'>",
            title="Routing",
            description="Hint",
        )
        q = QuestionDecoder().decode("1", block).question
        assert q.title == "Routing"
        assert q.description == "Hint"
        assert q.image_url == "pics/map.jpg"
        assert not q.is_deleted

    def test_low_confidence_note(self):
        _, notes, encoding = QuestionDecoder().decode_block("7", b"no tags".hex())
        assert encoding == "cp1251"
        assert len(notes) == 1
        assert notes[0].startswith("Question 7: EncodingAmbiguityWarning")


# ═══════════════════════════════════════════════════════════════════════════════
# CATEGORY & GROUP TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestCategories:
    """Test outline parsing."""

    OUTLINE = (
        "\t3.16. Wireless\n"
        "\t\t1\n"
        "\t\t2\n"
        "\t\tSecurity\n"
        "\t\t\t5_1\n"
        "\t4.15. X.25\n"
        "\t\t7\n"
    )

    def test_question_ids(self):
        assert is_question_id("12")
        assert is_question_id("12_3")
        assert not is_question_id("3.16.")

    def test_indent_width(self):
        assert indent_width("\t\tx") == 2
        assert indent_width("        x") == 2
        assert indent_width("x") == 0

    def test_nested_tree(self):
        categories = parse_categories(self.OUTLINE)
        assert [c.title for c in categories] == ["3.16. Wireless", "4.15. X.25"]

        wireless = categories[0]
        assert wireless.question_ids == ("1", "2")
        assert wireless.level == 0
        assert wireless.subcategories[0].title == "Security"
        assert wireless.subcategories[0].level == 1
        assert wireless.subcategories[0].question_ids == ("5_1",)
        assert wireless.all_question_ids() == ["1", "2", "5_1"]
        assert categories[1].question_ids == ("7",)

    def test_depth_is_relative(self):
        shifted = "\n".join("\t\t" + line for line in self.OUTLINE.splitlines())
        assert parse_categories(shifted) == parse_categories(self.OUTLINE)

    def test_orphan_id(self):
        warnings = []
        categories = parse_categories("\t\t9\n\tNetworks\n\t\t1\n", warnings)
        assert warnings == ["Outline: question ID 9 has no category"]
        assert categories[0].question_ids == ("1",)

    def test_ids_without_any_header(self):
        warnings = []
        assert parse_categories("\t1\n\t2\n", warnings) == []
        assert warnings == [
            "Outline: question ID 1 has no category",
            "Outline: question ID 2 has no category",
        ]

    def test_id_at_header_depth_is_a_reference(self):
        categories = parse_categories("\t\tNetworks\n\t1\n\t\t2\n")
        assert [c.title for c in categories] == ["Networks"]
        assert categories[0].question_ids == ("1", "2")
        assert categories[0].subcategories == ()

    def test_metadata_lines_ignored(self):
        outline = "\tНазвание=Сети\n\tNetworks\n\t\t1\n"
        categories = parse_categories(outline, metadata_keys={"Название"})
        assert len(categories) == 1
        assert categories[0].title == "Networks"

    def test_empty_outline(self):
        assert parse_categories("\n  \n") == []


class TestGroups:
    """Test group section parsing."""

    def test_numbered_groups(self):
        section = "<1><tv_i>1 2</tv_i><tv_p>3</tv_p></1><2><tv_d>4_1</tv_d></2>"
        assert parse_groups(section) == [
            Group(id="1", tv_i=("1", "2"), tv_p=("3",)),
            Group(id="2", tv_d=("4_1",)),
        ]

    def test_bare_buckets(self):
        assert parse_groups("<tv_i>5 x 6</tv_i>") == [Group(id="0", tv_i=("5", "6"))]

    def test_empty_section(self):
        assert parse_groups("") == []


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestParserEngine:
    """End-to-end parsing."""

    def test_single_plain_question(self):
        content = (
            "<T_body><1><options>n=2\ntype=1\nright=1</options><value>1\n0</value>"
            "<question>Pick one</question><a_1>Yes</a_1><a_2>No</a_2></1></T_body>"
        )
        result = parse_test_content(content)

        assert len(result.data.questions) == 1
        q = result.data.questions[0]
        assert q.id == "1"
        assert q.type == QuestionType.SINGLE_CHOICE
        assert len(q.answers) == 2
        assert q.correct_answers == (0,)
        assert q.points == 1
        assert result.warnings == []
        assert result.data.title == "Untitled Test"

    def test_hex_and_plain_paths_converge(self):
        plain = parse_test_content(make_document(("1", PICK_ONE_RU)))
        hexed = parse_test_content(make_document(("1", to_hex(PICK_ONE_RU))))
        assert hexed.data.questions == plain.data.questions

    def test_broken_question_is_isolated(self):
        broken = make_block().replace("<options>n=2\ntype=1\nright=1</options>", "")
        content = make_document(("1", PICK_ONE), ("2", broken), ("3", PICK_ONE))
        result = parse_test_content(content)

        assert [q.id for q in result.data.questions] == ["1", "3"]
        assert result.warnings == ["Question 2: missing required field 'options'"]
        assert result.validation.skipped_question_ids == ["2"]
        assert result.validation.total_blocks_detected == 3
        assert result.validation.parsed_successfully == 2

    def test_deleted_question_excluded_by_default(self):
        content = make_document(("1", make_block(title="Deleted!")), ("2", PICK_ONE))
        result = parse_test_content(content)
        assert [q.id for q in result.data.questions] == ["2"]
        assert result.validation.deleted_question_ids == ["1"]

    def test_deleted_question_included_on_request(self):
        content = make_document(("1", make_block(title="Deleted!")), ("2", PICK_ONE))
        result = parse_test_content(content, include_deleted=True)
        assert [q.id for q in result.data.questions] == ["1", "2"]
        assert result.data.questions[0].is_deleted

    def test_missing_body(self):
        with pytest.raises(MissingSectionError, match="no T_body section"):
            parse_test_content("<T_title>Networks</T_title>")

    def test_empty_body(self):
        result = parse_test_content("<T_body></T_body>")
        assert result.data.questions == ()
        assert result.validation.success_rate == 0.0

    def test_duplicate_block(self):
        content = make_document(("1", PICK_ONE), ("1", make_block(question="Other")))
        result = parse_test_content(content)
        assert len(result.data.questions) == 1
        assert result.data.questions[0].text == "Pick one"
        assert result.warnings == ["Question 1: duplicate block ignored"]
        assert result.validation.duplicate_question_ids == ["1"]

    def test_malformed_hex_block(self):
        result = parse_test_content(make_document(("1", "abc"), ("2", PICK_ONE)))
        assert [q.id for q in result.data.questions] == ["2"]
        assert result.warnings[0].startswith("Question 1: hex payload has an odd number")

    def test_unknown_type_is_skipped(self):
        result = parse_test_content(make_document(("1", make_block(qtype=9))))
        assert result.data.questions == ()
        assert result.warnings == ["Question 1: unsupported question type code 9"]

    def test_metadata(self):
        header = (
            "<info-id>Название=Мой тест\nАвторы=Иванов\nДата=2020</info-id>"
            "<T_title>Networks</T_title>"
        )
        result = parse_test_content(make_document(("1", PICK_ONE), header=header))
        assert result.data.title == "Мой тест"
        assert result.data.author == "Иванов"
        assert result.data.date == "2020"
        assert result.data.copyright is None

    def test_misread_metadata_keys(self):
        key = "Название".encode("cp1251").decode("latin-1")
        header = f"<info-id>{key}=Networks</info-id>"
        result = parse_test_content(make_document(("1", PICK_ONE), header=header))
        assert result.data.title == "Networks"

    def test_title_fallback(self):
        header = "<T_title>Networks</T_title>"
        result = parse_test_content(make_document(("1", PICK_ONE), header=header))
        assert result.data.title == "Networks"

    def test_hex_title(self):
        header = f"<T_title>{to_hex('Сети')}</T_title><T_id>12345</T_id>"
        result = parse_test_content(
            make_document(("1", PICK_ONE), header=header), keep_raw=True
        )
        assert result.data.title == "Сети"
        assert result.raw_tags["T_id"] == "12345"

    def test_categories_and_groups(self):
        header = (
            "<tv_i>\tNetworks\n\t\t1\n\t\t9\n</tv_i>"
            f"<gr-id>{to_hex('<1><tv_i>1 2</tv_i></1>')}</gr-id>"
        )
        content = make_document(("1", PICK_ONE), ("2", PICK_ONE), header=header)
        result = parse_test_content(content)

        assert result.data.categories[0].title == "Networks"
        assert result.data.categories[0].question_ids == ("1", "9")
        assert result.data.groups == (Group(id="1", tv_i=("1", "2")),)
        assert result.validation.uncategorized_question_ids == ["2"]
        assert result.validation.unknown_category_references == ["9"]

    def test_groups_absent(self):
        result = parse_test_content(make_document(("1", PICK_ONE)))
        assert result.data.groups is None
        assert result.data.categories == ()

    def test_custom_dialect(self):
        dialect = Dialect(body_tag="BODY")
        engine = ParserEngine(ParserConfig(dialect=dialect))
        result = engine.parse_content(f"<BODY><1>{PICK_ONE}</1></BODY>")
        assert len(result.data.questions) == 1

    def test_parse_bytes(self):
        raw = make_document(("1", PICK_ONE_RU)).encode("cp1251")
        result = parse_test_bytes(raw)
        assert result.source.encoding == "cp1251"
        assert result.source.file_hash == hashlib.sha256(raw).hexdigest()
        assert result.data.questions[0].answers[0].text == "Да"

    def test_parse_file(self, tmp_path):
        path = tmp_path / "net.fdb"
        path.write_bytes(make_document(("1", to_hex(PICK_ONE_RU))).encode("ascii"))
        result = parse_test_file(str(path))
        assert result.source.file_name == "net.fdb"
        assert result.data.questions[0].text == "Выберите один вариант"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_test_file(str(tmp_path / "missing.fdb"))

    def test_encoding_override(self):
        engine = ParserEngine(ParserConfig(encoding="win1251"))
        assert engine.config.encoding == "cp1251"
        with pytest.raises(LookupError):
            ParserEngine(ParserConfig(encoding="klingon-8"))

    def test_engine_is_reusable(self):
        engine = ParserEngine()
        first = engine.parse_content(make_document(("1", PICK_ONE)))
        second = engine.parse_content(make_document(("1", PICK_ONE)))
        assert first.data == second.data


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestValidationEngine:
    """Test the validation engine."""

    def test_report(self):
        no_answers = Question(
            id="2", type=QuestionType.SINGLE_CHOICE, text="?",
            answer_count=0, right_count=0,
        )
        good = QuestionDecoder().decode("1", PICK_ONE).question
        data = TestData(
            questions=(good, no_answers),
            categories=(Category(title="Cat", question_ids=("1", "99")),),
        )

        report = ValidationEngine().validate(data, total_blocks=4, skipped_ids=["3"])

        assert report.success_rate == 75.0
        assert report.questions_without_answers == ["2"]
        assert report.questions_without_correct_answers == ["2"]
        assert report.uncategorized_question_ids == ["2"]
        assert report.unknown_category_references == ["99"]

    def test_deleted_references_are_known(self):
        data = TestData(categories=(Category(title="Cat", question_ids=("1",)),))
        report = ValidationEngine().validate(data, total_blocks=1, deleted_ids=["1"])
        assert report.unknown_category_references == []
