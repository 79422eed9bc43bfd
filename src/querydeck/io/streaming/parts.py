"""Disk-backed parts directory for streamed results.

A streamed result is a directory holding one file per record plus an
``index.json`` describing every part::

    stream-3f2a.../
        index.json        {"parts": [{"contentType": ..., "uri": ..., "bytes": 120, "file": "part-00000.txt"}, ...]}
        part-00000.txt
        part-00001.txt

:class:`MultipartSplitter` turns a multipart body fed line by line into
records, so a response can be written to disk while it arrives without ever
holding more than one part in memory. :class:`PartWriter` persists them, and
:func:`read_parts` reads a contiguous window back.

Example:
    >>> with PartWriter.create(root) as writer:
    ...     splitter = MultipartSplitter(writer.write)
    ...     for line in body.splitlines():
    ...         splitter.feed(line)
    ...     splitter.close()
    >>> index = writer.index
    >>> read_parts(index.directory, start=0, limit=50)
"""

from __future__ import annotations

import re
import shutil
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt

from querydeck.io.multipart.parser import boundary_marker, parse_segment
from querydeck.io.records import Record, StreamIndex
from querydeck.runtime.observability import get_logger

if TYPE_CHECKING:
    from types import TracebackType

log = get_logger("querydeck.parts")

INDEX_FILE = "index.json"
_LEADING_BOUNDARY = re.compile(r"^--([^\r\n-]+)(?:--)?\s*$")


class PartEntry(BaseModel):
    """Metadata for one stored part, as written to ``index.json``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content_type: str | None = Field(default=None, alias="contentType")
    primitive: str | None = None
    uri: str | None = None
    path: str | None = None
    bytes: NonNegativeInt = 0
    file: str

    def to_record(self, content: str, index: int) -> Record:
        return Record(
            content_type=self.content_type, primitive=self.primitive,
            uri=self.uri, path=self.path, content=content, index=index,
        )


class PartsIndex(BaseModel):
    """Parsed ``index.json``."""

    model_config = ConfigDict(frozen=True)

    parts: tuple[PartEntry, ...] = ()


# ─────────────────────────────────────────────────────────────────────────────
# Incremental splitting
# ─────────────────────────────────────────────────────────────────────────────


class MultipartSplitter:
    """Line-fed multipart splitter emitting each record as soon as its part ends.

    The boundary is taken from the first ``--<token>`` line unless given up
    front (e.g. from a ``multipart/mixed; boundary=...`` header). Once known,
    markers are matched anywhere in a line, exactly as ``split_segments``
    does, so a body splits the same whether it was buffered or streamed. If no
    boundary ever appears, ``close()`` emits the whole body as one record, the
    same degradation the in-memory parser applies.
    """

    __slots__ = ("_emit", "_boundary", "_lines", "_emitted")

    def __init__(self, emit: Callable[[Record], object], boundary: str | None = None) -> None:
        self._emit = emit
        self._boundary = boundary
        self._lines: list[str] = []
        self._emitted = 0

    @property
    def boundary(self) -> str | None:
        return self._boundary

    @property
    def emitted(self) -> int:
        return self._emitted

    def _flush(self) -> None:
        if self._lines and (record := parse_segment("\n".join(self._lines))) is not None:
            self._emit(record)
            self._emitted += 1
        self._lines.clear()

    def feed(self, line: str) -> None:
        line = line.rstrip("\r\n")
        if self._boundary is None and (m := _LEADING_BOUNDARY.match(line)):
            self._boundary = m.group(1)
        if self._boundary is None:
            self._lines.append(line)
            return
        head, *tail = boundary_marker(self._boundary).split(line)
        if head or not tail:
            self._lines.append(head)
        for piece in tail:
            self._flush()
            if piece:
                self._lines.append(piece)

    def close(self) -> None:
        """Flush the trailing part (or the whole body when no boundary was seen)."""
        if self._boundary is None and self._lines:
            content = "\n".join(self._lines).strip()
            self._lines.clear()
            if content:
                log.debug("no multipart boundary in stream, storing raw body")
                self._emit(Record(content=content))
                self._emitted += 1
            return
        self._flush()


# ─────────────────────────────────────────────────────────────────────────────
# Writing
# ─────────────────────────────────────────────────────────────────────────────


class PartWriter:
    """Writes records as part files into a fresh directory, then the index.

    Use as a context manager: the index is written on clean exit only, so a
    failed stream never looks like a complete one. Whoever created the writer
    calls ``discard`` to remove an incomplete directory.
    """

    __slots__ = ("_directory", "_entries", "_index")

    def __init__(self, directory: Path) -> None:
        directory.mkdir(parents=True, exist_ok=False)
        self._directory = directory
        self._entries: list[PartEntry] = []
        self._index: StreamIndex | None = None

    @classmethod
    def create(cls, root: Path | str, name: str | None = None) -> PartWriter:
        """Create a writer for a new ``stream-<id>`` directory under root."""
        return cls(Path(root) / (name or f"stream-{uuid.uuid4().hex}"))

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> StreamIndex:
        if self._index is None:
            raise RuntimeError("PartWriter not closed; index.json not written yet")
        return self._index

    def write(self, record: Record) -> PartEntry:
        data = record.content.encode("utf-8")
        entry = PartEntry(
            content_type=record.content_type, primitive=record.primitive,
            uri=record.uri, path=record.path,
            bytes=len(data), file=f"part-{len(self._entries):05d}.txt",
        )
        (self._directory / entry.file).write_bytes(data)
        self._entries.append(entry)
        return entry

    def close(self) -> StreamIndex:
        payload = PartsIndex(parts=tuple(self._entries)).model_dump(mode="json", by_alias=True)
        (self._directory / INDEX_FILE).write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        self._index = StreamIndex(directory=str(self._directory), part_count=len(self._entries))
        log.debug("parts index written", directory=str(self._directory), parts=len(self._entries))
        return self._index

    def discard(self) -> None:
        """Remove the directory and every part written so far."""
        shutil.rmtree(self._directory, ignore_errors=True)
        self._index = None
        log.debug("parts directory discarded", directory=str(self._directory), parts=len(self._entries))

    def __enter__(self) -> PartWriter:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                 exc_tb: TracebackType | None) -> None:
        if exc_type is None:
            self.close()


# ─────────────────────────────────────────────────────────────────────────────
# Reading
# ─────────────────────────────────────────────────────────────────────────────


def load_index(directory: Path | str) -> PartsIndex:
    """Read and validate ``index.json``. Raises OSError or ValidationError."""
    return PartsIndex.model_validate(orjson.loads((Path(directory) / INDEX_FILE).read_bytes()))


def open_stream(directory: Path | str) -> StreamIndex:
    """Build a StreamIndex for an existing parts directory."""
    return StreamIndex(directory=str(directory), part_count=len(load_index(directory).parts))


def read_parts(directory: Path | str, start: int = 0, limit: int = 50) -> list[Record]:
    """Read up to ``limit`` parts starting at ``start``, in positional order.

    Each record is stamped with its absolute position. A window past the end
    returns an empty list.
    """
    if start < 0 or limit < 0:
        raise ValueError(f"Invalid window start={start} limit={limit}")
    base = Path(directory)
    entries = load_index(base).parts[start:start + limit]
    return [e.to_record((base / e.file).read_text(encoding="utf-8"), start + i) for i, e in enumerate(entries)]
