"""Multipart response handling: parsing, display formatting and buffered envelopes."""

from .envelope import NO_RESULTS_TEXT, ResultEnvelope, build_envelope
from .formatting import format_json_pretty, format_record_content, format_xml_pretty
from .parser import (
    ParsedResponse,
    find_boundary,
    iter_records,
    parse_multipart,
    parse_response,
    parse_segment,
    split_segments,
)

__all__ = [
    "NO_RESULTS_TEXT",
    "ParsedResponse",
    "ResultEnvelope",
    "build_envelope",
    "find_boundary",
    "format_json_pretty",
    "format_record_content",
    "format_xml_pretty",
    "iter_records",
    "parse_multipart",
    "parse_response",
    "parse_segment",
    "split_segments",
]
