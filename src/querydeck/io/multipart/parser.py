"""Multipart response parser.

Turns the multipart text returned by the query service into an ordered list of
:class:`~querydeck.io.records.Record`. The framing is::

    --<token>
    Content-Type: application/xml
    X-URI: /docs/1.xml

    <doc/>
    --<token>--

Parsing never raises. Input without a boundary line degrades to a single
record holding the whole (trimmed) text, and the ``degraded`` flag on
:class:`ParsedResponse` says so explicitly.

Example:
    >>> parse_multipart("--B\\nContent-Type: text/plain\\n\\nhi\\n--B--")[0].content
    'hi'
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, computed_field

from querydeck.io.records import Record
from querydeck.runtime.observability import get_logger

log = get_logger("querydeck.parser")

_BOM = "\ufeff"
# Token may not contain '-' or line breaks; optional terminal '--'
_BOUNDARY_LINE = re.compile(r"^--([^\r\n-]+)(?:--)?[ \t]*\r?$", re.MULTILINE)

# Header name (lowercased) -> Record field
_HEADER_FIELDS: dict[str, str] = {
    "content-type": "content_type",
    "x-primitive": "primitive",
    "x-uri": "uri",
    "x-path": "path",
}


class ParsedResponse(BaseModel):
    """Parser output with an explicit fidelity flag."""

    model_config = ConfigDict(frozen=True)

    records: tuple[Record, ...] = ()
    degraded: bool = False
    boundary: str | None = None

    @computed_field
    @property
    def count(self) -> int:
        return len(self.records)


def find_boundary(text: str) -> str | None:
    """Return the boundary token from the first ``--<token>`` line, if any."""
    m = _BOUNDARY_LINE.search(text)
    return m.group(1) if m else None


@lru_cache(maxsize=32)
def boundary_marker(boundary: str) -> re.Pattern[str]:
    """``--<token>`` or ``--<token>--`` anywhere in the text, plus the whitespace after it."""
    return re.compile(rf"--{re.escape(boundary)}(?:--)?\s*")


def split_segments(text: str, boundary: str) -> list[str]:
    """Split on every boundary marker. Markers need not start a line."""
    return boundary_marker(boundary).split(text)


def _is_known_header(line: str) -> bool:
    name, sep, _ = line.partition(":")
    return bool(sep) and name.strip().lower() in _HEADER_FIELDS


def _parse_headers(lines: Iterable[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in lines:
        name, sep, value = line.partition(":")
        if not sep:
            continue
        if (key := _HEADER_FIELDS.get(name.strip().lower())) is not None:
            fields[key] = value.strip()  # last value wins
    return fields


def parse_segment(segment: str) -> Record | None:
    """Parse one part: headers up to the first blank line, then the body.

    A part with no blank line is a bare header block when every line is a
    known header, and all body otherwise. Returns None when the trimmed body
    is empty.
    """
    lines = segment.strip().splitlines()
    blank = next((i for i, line in enumerate(lines) if not line.strip()), None)
    if blank is None:
        if lines and all(_is_known_header(line) for line in lines):
            return None
        headers, body = {}, lines
    else:
        headers, body = _parse_headers(lines[:blank]), lines[blank + 1:]
    content = "\n".join(body).strip()
    return Record(content=content, **headers) if content else None


def iter_records(text: str, boundary: str) -> Iterator[Record]:
    """Yield records in source order for an already-discovered boundary."""
    for segment in split_segments(text, boundary):
        if (record := parse_segment(segment)) is not None:
            yield record


def parse_response(raw_text: str | None) -> ParsedResponse:
    """Parse multipart text into records, reporting whether parsing degraded."""
    text = (raw_text or "").removeprefix(_BOM)
    if not text.strip():
        return ParsedResponse()
    if (boundary := find_boundary(text)) is None:
        log.debug("no multipart boundary, using raw text", chars=len(text))
        return ParsedResponse(records=(Record(content=text.strip()),), degraded=True)
    records = tuple(iter_records(text, boundary))
    log.debug("multipart parsed", boundary=boundary, records=len(records))
    return ParsedResponse(records=records, boundary=boundary)


def parse_multipart(raw_text: str | None) -> list[Record]:
    """Parse multipart text into an ordered list of records. Never raises."""
    return list(parse_response(raw_text).records)
