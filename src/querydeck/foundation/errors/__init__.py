"""Unified error handling for querydeck.

- ErrorCode: Standard error codes for query and page failures
- QueryError/QueryException: Structured errors and exceptions
- Result/Ok/Err: Failures carried as values
- JSON aliases: JsonValue, JsonDict, JsonMapping
"""

from .errors import ErrorCode, QueryError, QueryException, classify_exception
from .result import Err, Ok, Result
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    # Core errors
    "ErrorCode", "QueryError", "QueryException", "classify_exception",
    # Result
    "Result", "Ok", "Err",
    # JSON aliases
    "JsonDict", "JsonMapping", "JsonPrimitive", "JsonValue",
]
