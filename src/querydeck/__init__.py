"""Querydeck - Query result pipeline for document database consoles.

Turns the multipart responses of a database eval endpoint into records a
results view can page through. Small results are parsed in memory; large ones
are split to a parts directory on disk as they arrive and read back one page
at a time.

Quick Start:
    >>> import httpx
    >>> from querydeck import ConnectionParams, HttpTransport, QueryGateway, QueryRequest
    >>>
    >>> conn = ConnectionParams(server_url="http://localhost:8000", database_id="Documents")
    >>> async with HttpTransport(auth=httpx.DigestAuth("admin", "admin")) as transport:
    ...     gateway = QueryGateway(transport)
    ...     outcome = await gateway.execute(QueryRequest(query="fn:doc()[1 to 200]", connection=conn))
    ...     state = gateway.results.state
    ...     state.mode, state.pagination.total_pages
    ('stream', 4)
    ...     await gateway.results.next_page()
    1

Parsing Only:
    >>> from querydeck import build_envelope
    >>> envelope = build_envelope(raw_multipart_text)
    >>> [r.content_type for r in envelope.rows]
    ['application/json', 'text/plain']

Configuration:
    Settings come from ``QUERYDECK_*`` environment variables (or a ``.env`` file):
    ``QUERYDECK_RESULTS_PAGE_SIZE=100``, ``QUERYDECK_HTTP_MAX_BUFFER_SIZE=20MB``,
    ``QUERYDECK_LOG_FORMAT=json``.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Foundation
from .foundation import (
    Err,
    ErrorCode,
    Ok,
    QueryError,
    QueryException,
    QuerydeckSettings,
    Result,
    classify_exception,
    clear_settings_cache,
    get_settings,
)

# Records and parsing
from .io import Record, StreamIndex
from .io.multipart import (
    NO_RESULTS_TEXT,
    ParsedResponse,
    ResultEnvelope,
    build_envelope,
    format_record_content,
    parse_multipart,
    parse_response,
)

# Streaming storage
from .io.streaming import MultipartSplitter, PartWriter, StreamedPartsReader, read_parts

# Results
from .results import (
    ExecutionOutcome,
    PaginationWindow,
    QueryGateway,
    QueryRequest,
    ResultMode,
    ResultState,
    StreamingResults,
    StreamStatus,
)

# Transports
from .transport import BufferResponse, ConnectionParams, HttpTransport, QueryTransport, StreamResponse

# Logging
from .runtime.observability import configure_from_settings, configure_logging, get_logger

__all__ = [
    # Version
    "__version__",
    # Errors
    "ErrorCode",
    "QueryError",
    "QueryException",
    "classify_exception",
    "Result",
    "Ok",
    "Err",
    # Config
    "QuerydeckSettings",
    "get_settings",
    "clear_settings_cache",
    # Records and parsing
    "Record",
    "StreamIndex",
    "ParsedResponse",
    "ResultEnvelope",
    "NO_RESULTS_TEXT",
    "build_envelope",
    "format_record_content",
    "parse_multipart",
    "parse_response",
    # Streaming storage
    "MultipartSplitter",
    "PartWriter",
    "StreamedPartsReader",
    "read_parts",
    # Results
    "ExecutionOutcome",
    "PaginationWindow",
    "QueryGateway",
    "QueryRequest",
    "ResultMode",
    "ResultState",
    "StreamStatus",
    "StreamingResults",
    # Transports
    "BufferResponse",
    "ConnectionParams",
    "HttpTransport",
    "QueryTransport",
    "StreamResponse",
    # Logging
    "configure_logging",
    "configure_from_settings",
    "get_logger",
]
