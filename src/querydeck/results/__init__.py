"""Result view: state, pagination orchestration and query execution."""

from .gateway import ExecutionOutcome, QueryGateway, QueryRequest, validate_request
from .machine import PageLoaded, StreamingResults
from .state import (
    PaginationWindow,
    ResultMode,
    ResultState,
    StreamStatus,
    clamp,
    count_pages,
)

__all__ = [
    "ExecutionOutcome",
    "PageLoaded",
    "PaginationWindow",
    "QueryGateway",
    "QueryRequest",
    "ResultMode",
    "ResultState",
    "StreamStatus",
    "StreamingResults",
    "clamp",
    "count_pages",
    "validate_request",
]
