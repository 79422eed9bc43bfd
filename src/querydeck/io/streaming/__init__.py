"""Disk-backed streaming: parts directory storage and paged reading."""

from .parts import (
    INDEX_FILE,
    MultipartSplitter,
    PartEntry,
    PartsIndex,
    PartWriter,
    load_index,
    open_stream,
    read_parts,
)
from .reader import StreamedPartsReader

__all__ = [
    "INDEX_FILE",
    "MultipartSplitter",
    "PartEntry",
    "PartWriter",
    "PartsIndex",
    "StreamedPartsReader",
    "load_index",
    "open_stream",
    "read_parts",
]
