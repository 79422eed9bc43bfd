"""Transports: the host capabilities the pipeline consumes, plus an httpx implementation."""

from .base import (
    QUERY_TYPES,
    BufferResponse,
    ConnectionParams,
    QueryTransport,
    QueryType,
    SendResult,
    StreamResponse,
    validate_send_result,
)
from .http import EvalRequest, HttpTransport, boundary_from_content_type, build_eval_request

__all__ = [
    "QUERY_TYPES",
    "BufferResponse",
    "ConnectionParams",
    "EvalRequest",
    "HttpTransport",
    "QueryTransport",
    "QueryType",
    "SendResult",
    "StreamResponse",
    "boundary_from_content_type",
    "build_eval_request",
    "validate_send_result",
]
