"""Tests for the multipart response parser."""

from __future__ import annotations

import pytest

from querydeck.io.multipart import find_boundary, parse_multipart, parse_response, parse_segment, split_segments
from querydeck.io.records import Record

TWO_PARTS = "--B\nContent-Type: application/xml\nX-URI: a/1\n\n<a/>\n--B\nContent-Type: text/plain\n\nhi\n--B--"


# ─────────────────────────────────────────────────────────────────────────────
# Well-formed responses
# ─────────────────────────────────────────────────────────────────────────────


def test_two_part_response() -> None:
    first, second = parse_multipart(TWO_PARTS)

    assert first.content_type == "application/xml"
    assert first.uri == "a/1"
    assert first.content == "<a/>"
    assert second.content_type == "text/plain"
    assert second.content == "hi"
    assert second.uri is None


def test_parse_response_reports_boundary() -> None:
    parsed = parse_response(TWO_PARTS)

    assert parsed.boundary == "B"
    assert not parsed.degraded
    assert parsed.count == 2


def test_records_keep_source_order() -> None:
    body = "".join(f"--xyz\nContent-Type: text/plain\n\nrow {i}\n" for i in range(10)) + "--xyz--\n"

    assert [r.content for r in parse_multipart(body)] == [f"row {i}" for i in range(10)]


@pytest.mark.parametrize("header", ["content-type", "CONTENT-TYPE", "Content-Type", "cOnTeNt-TyPe"])
def test_header_names_are_case_insensitive(header: str) -> None:
    (record,) = parse_multipart(f"--B\n{header}: application/json\n\n{{}}\n--B--")

    assert record.content_type == "application/json"


def test_all_metadata_headers() -> None:
    text = ("--B\nContent-Type: element()\nX-Primitive: element\nX-URI: /docs/1.xml\n"
            "X-Path: /root/child[2]\n\n<child/>\n--B--")

    (record,) = parse_multipart(text)

    assert record.primitive == "element"
    assert record.uri == "/docs/1.xml"
    assert record.path == "/root/child[2]"


def test_repeated_header_last_value_wins() -> None:
    (record,) = parse_multipart("--B\nX-URI: first\nX-URI: second\n\nbody\n--B--")

    assert record.uri == "second"


def test_unknown_headers_ignored() -> None:
    (record,) = parse_multipart("--B\nX-Other: 1\nContent-Length: 4\n\nbody\n--B--")

    assert record.content_type is None
    assert record.content == "body"


def test_empty_header_value_is_kept_as_empty_string() -> None:
    (record,) = parse_multipart("--B\nX-Path:\n\nbody\n--B--")

    assert record.path == ""
    assert not record.has("path")
    assert record.uri is None


def test_empty_segments_discarded() -> None:
    text = "--B\nContent-Type: text/plain\n\n   \n--B\n\n--B\nContent-Type: text/plain\n\nkept\n--B--"

    assert [r.content for r in parse_multipart(text)] == ["kept"]


def test_multiline_body_trimmed() -> None:
    (record,) = parse_multipart("--B\nContent-Type: text/plain\n\n\n  line 1\nline 2  \n\n--B--")

    assert record.content == "line 1\nline 2"


def test_crlf_line_endings() -> None:
    text = "--B\r\nContent-Type: application/json\r\nX-URI: /a.json\r\n\r\n{\"a\": 1}\r\n--B--\r\n"

    (record,) = parse_multipart(text)

    assert record.content_type == "application/json"
    assert record.uri == "/a.json"
    assert record.content == '{"a": 1}'


def test_byte_order_mark_is_ignored() -> None:
    (record,) = parse_multipart("\ufeff--B\nContent-Type: text/plain\n\nhi\n--B--")

    assert record.content == "hi"


def test_segment_without_blank_line_is_all_body() -> None:
    assert parse_segment("just text") == Record(content="just text")


# ─────────────────────────────────────────────────────────────────────────────
# Degraded and empty input
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize("text", ["plain text result", "  42  ", "<xml>no boundary</xml>", "- not a boundary"])
def test_no_boundary_degrades_to_single_record(text: str) -> None:
    parsed = parse_response(text)

    assert parsed.degraded
    assert parsed.boundary is None
    assert parsed.records == (Record(content=text.strip()),)


@pytest.mark.parametrize("text", ["", "   \n\t", None])
def test_empty_input_yields_nothing(text: str | None) -> None:
    parsed = parse_response(text)

    assert parsed.records == ()
    assert not parsed.degraded


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def test_find_boundary() -> None:
    assert find_boundary("preamble\n--abc123\nrest") == "abc123"
    assert find_boundary("--abc123--\n") == "abc123"
    assert find_boundary("no marker here") is None


def test_split_segments_covers_terminal_marker() -> None:
    segments = split_segments("--B\none\n--B\ntwo\n--B--\n", "B")

    assert [s.strip() for s in segments if s.strip()] == ["one", "two"]


def test_header_only_segment_is_discarded() -> None:
    assert parse_segment("Content-Type: text/plain\nX-URI: /a") is None
    assert parse_segment("Content-Type: text/plain\nnot a header") is not None
