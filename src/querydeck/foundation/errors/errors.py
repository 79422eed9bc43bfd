"""Standardized error handling for the result pipeline.

Provides error codes and structured error values for presenting failures in
the console. Uses Pydantic for validation and serialization.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


class ErrorCode(StrEnum):
    """Standard error codes for query and page failures.

    Used for programmatic error handling and to decide what guidance to show.
    """
    RESULT_TOO_LARGE = "RESULT_TOO_LARGE"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    QUERY_FAILED = "QUERY_FAILED"
    INVALID_QUERY = "INVALID_QUERY"
    NO_STREAM_INDEX = "NO_STREAM_INDEX"
    CANCELLED = "CANCELLED"
    PARSE_DEGRADED = "PARSE_DEGRADED"
    UNKNOWN = "UNKNOWN"


# First hint found in "<ExceptionType> <message>" wins; anything else is a transport failure
_CODE_HINTS: tuple[tuple[str, ErrorCode], ...] = (
    ("cancel", ErrorCode.CANCELLED),
    ("timeout", ErrorCode.TIMEOUT),
    ("timed out", ErrorCode.TIMEOUT),
    ("too large", ErrorCode.RESULT_TOO_LARGE),
    ("connect", ErrorCode.NETWORK_ERROR),
    ("network", ErrorCode.NETWORK_ERROR),
    ("filenotfound", ErrorCode.TRANSPORT_FAILURE),
    ("permission", ErrorCode.TRANSPORT_FAILURE),
    ("oserror", ErrorCode.TRANSPORT_FAILURE),
    ("ioerror", ErrorCode.TRANSPORT_FAILURE),
    ("decode", ErrorCode.TRANSPORT_FAILURE),
)


@lru_cache(maxsize=256)
def _code_for(signature: str) -> ErrorCode:
    lowered = signature.lower()
    return next((code for hint, code in _CODE_HINTS if hint in lowered), ErrorCode.TRANSPORT_FAILURE)


def classify_exception(exc: Exception) -> ErrorCode:
    """Best-effort error code for an exception raised by a reader or transport.

    A ``QueryException`` keeps the code it was raised with.
    """
    if isinstance(exc, QueryException):
        return exc.error.code
    return _code_for(f"{type(exc).__name__} {exc}")


class QueryError(BaseModel):
    """Structured error for a failed query or page read.

    ``message`` is what the console shows; ``code`` drives the guidance next
    to it. ``recoverable`` says whether re-issuing the same query or page
    read might succeed, ``operation`` names the failing step (``load_page``,
    ``send_query``) and ``details`` holds anything too long for the banner.
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Query Error",
            "examples": [{
                "message": "Result payload exceeds safe buffering threshold",
                "code": "RESULT_TOO_LARGE",
                "recoverable": True,
                "operation": "send_query",
            }],
        },
    )

    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = True
    operation: str = ""
    details: str | None = Field(default=None, repr=False)

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Accept Exception objects and fall back to the exception type for blank messages."""
        if isinstance(v, Exception):
            return str(v) or type(v).__name__
        return v

    @computed_field
    @property
    def suggests_streaming(self) -> bool:
        """Whether the caller should offer switching to streaming mode."""
        return self.code is ErrorCode.RESULT_TOO_LARGE

    @computed_field
    @property
    def is_cancelled(self) -> bool:
        return self.code is ErrorCode.CANCELLED

    @classmethod
    def create(
        cls,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        recoverable: bool = True,
        operation: str = "",
        details: str | None = None,
    ) -> Self:
        """Keyword-light constructor used throughout the pipeline."""
        return cls(message=message, code=code, recoverable=recoverable, operation=operation, details=details)

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        operation: str = "",
        *,
        code: ErrorCode | None = None,
        include_trace: bool = False,
    ) -> Self:
        """Wrap any exception, deriving the code from its type and message.

        A wrapped ``QueryException`` is unwrapped so its code and message survive.
        """
        if isinstance(exc, QueryException):
            err = exc.error
            return cls(
                message=err.message,
                code=code or err.code,
                recoverable=err.recoverable,
                operation=err.operation or operation,
                details=err.details,
            )
        return cls(
            message=str(exc) or type(exc).__name__,
            code=code or classify_exception(exc),
            operation=operation,
            details=traceback.format_exc() if include_trace else None,
        )

    def render(self) -> str:
        """Banner text for the console: the failure line plus one line of advice."""
        where = f" during {self.operation}" if self.operation else ""
        banner = f"Error [{self.code}]{where}: {self.message}"
        if self.suggests_streaming:
            return f"{banner}\nTry streaming mode or refine the query."
        if self.recoverable and not self.is_cancelled:
            return f"{banner}\nRetrying may succeed."
        return banner

    __str__ = render


class QueryException(Exception):
    """Raised by transports and parsers; carries the QueryError to surface."""

    __slots__ = ("error",)

    def __init__(self, error: QueryError) -> None:
        super().__init__(error.message)
        self.error = error

    @classmethod
    def create(
        cls,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        recoverable: bool = True,
        operation: str = "",
    ) -> Self:
        return cls(QueryError(message=message, code=code, recoverable=recoverable, operation=operation))

    @classmethod
    def too_large(cls, size: int, limit: int) -> Self:
        """Buffered response exceeded the in-memory threshold."""
        return cls.create(
            f"Result payload of {size} bytes exceeds safe buffering threshold of {limit} bytes",
            ErrorCode.RESULT_TOO_LARGE,
            operation="send_query",
        )

    @classmethod
    def cancelled(cls, request_id: str) -> Self:
        return cls.create(f"Request {request_id} was cancelled", ErrorCode.CANCELLED, operation="send_query")
