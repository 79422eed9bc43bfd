"""I/O: record models, multipart parsing and disk-backed streaming."""

from .records import Record, StreamIndex

__all__ = ["Record", "StreamIndex"]
