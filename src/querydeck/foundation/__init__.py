"""Foundation: errors, Result values and configuration."""

from .config import QuerydeckSettings, clear_settings_cache, get_settings
from .errors import Err, ErrorCode, Ok, QueryError, QueryException, Result, classify_exception

__all__ = [
    "ErrorCode", "QueryError", "QueryException", "classify_exception",
    "Result", "Ok", "Err",
    "QuerydeckSettings", "get_settings", "clear_settings_cache",
]
