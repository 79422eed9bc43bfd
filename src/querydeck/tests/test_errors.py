"""Tests for QueryError classification and the Result type.

Validates:
- Functor and monad laws for Result
- Exception classification into error codes
- QueryException unwrapping
"""

from __future__ import annotations

from typing import Callable

import pytest

from querydeck.foundation.errors import Err, ErrorCode, Ok, QueryError, QueryException, Result, classify_exception


# ═════════════════════════════════════════════════════════════════════════════
# Property Tests - Result laws
# ═════════════════════════════════════════════════════════════════════════════


def test_functor_identity() -> None:
    """Functor law: fmap id = id"""
    assert Ok(42).map(lambda x: x) == Ok(42)
    assert Err("fail").map(lambda x: x) == Err("fail")


def test_functor_composition() -> None:
    """Functor law: fmap (f . g) = fmap f . fmap g"""
    f: Callable[[int], int] = lambda x: x + 1
    g: Callable[[int], int] = lambda x: x * 2

    assert Ok(5).map(lambda x: f(g(x))) == Ok(5).map(g).map(f)


def test_monad_left_identity() -> None:
    """Monad law: return a >>= f = f a"""
    f: Callable[[int], Result[int, str]] = lambda x: Ok(x * 2)

    assert Ok(42).flat_map(f) == f(42)


def test_monad_right_identity() -> None:
    """Monad law: m >>= return = m"""
    m: Result[int, str] = Ok(42)

    assert m.flat_map(Ok) == m


# ═════════════════════════════════════════════════════════════════════════════
# Operational Tests - Result
# ═════════════════════════════════════════════════════════════════════════════


def test_ok_accessors() -> None:
    result: Result[list[int], str] = Ok([1, 2])

    assert result.is_ok() and not result.is_err()
    assert result.unwrap() == [1, 2]
    assert result.ok() == [1, 2]
    assert result.err() is None
    assert bool(result)
    assert list(result) == [[1, 2]]


def test_err_accessors() -> None:
    result: Result[int, str] = Err("failed")

    assert result.is_err()
    assert result.unwrap_err() == "failed"
    assert result.unwrap_or(0) == 0
    assert not result
    assert list(result) == []
    with pytest.raises(RuntimeError):
        result.unwrap()


def test_map_err_and_inspect_err() -> None:
    seen: list[str] = []

    result = Err("boom").inspect_err(seen.append).map_err(str.upper)

    assert result == Err("BOOM")
    assert seen == ["boom"]
    assert Ok(1).map_err(str.upper) == Ok(1)


def test_match() -> None:
    assert Ok(3).match(ok=lambda v: v * 2, err=lambda e: -1) == 6
    assert Err("x").match(ok=lambda v: v * 2, err=lambda e: -1) == -1


# ═════════════════════════════════════════════════════════════════════════════
# Operational Tests - Errors
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (TimeoutError("read timed out"), ErrorCode.TIMEOUT),
        (ConnectionRefusedError("connect failed"), ErrorCode.NETWORK_ERROR),
        (FileNotFoundError("index.json"), ErrorCode.TRANSPORT_FAILURE),
        (UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"), ErrorCode.TRANSPORT_FAILURE),
        (RuntimeError("something odd"), ErrorCode.TRANSPORT_FAILURE),
    ],
)
def test_classify_exception(exc: Exception, code: ErrorCode) -> None:
    assert classify_exception(exc) is code


def test_query_exception_keeps_its_code() -> None:
    exc = QueryException.create("network is down but this is a query failure", ErrorCode.QUERY_FAILED)

    assert classify_exception(exc) is ErrorCode.QUERY_FAILED
    assert QueryError.from_exception(exc, "send_query").code is ErrorCode.QUERY_FAILED


def test_from_exception_unwraps_query_exception() -> None:
    exc = QueryException.too_large(200, 100)

    err = QueryError.from_exception(exc, "execute")

    assert err.code is ErrorCode.RESULT_TOO_LARGE
    assert err.operation == "send_query"
    assert err.suggests_streaming
    assert err.message == exc.error.message


def test_from_exception_code_override_and_trace() -> None:
    try:
        raise ValueError("bad page")
    except ValueError as e:
        err = QueryError.from_exception(e, "load_page", code=ErrorCode.UNKNOWN, include_trace=True)

    assert err.code is ErrorCode.UNKNOWN
    assert "ValueError" in err.details


def test_blank_message_falls_back_to_type_name() -> None:
    assert QueryError.from_exception(OSError()).message == "OSError"
    assert QueryError(message=KeyError()).message == "KeyError"


def test_render() -> None:
    too_large = QueryError.create("payload too big", ErrorCode.RESULT_TOO_LARGE, operation="send_query")
    cancelled = QueryException.cancelled("r-9").error

    assert str(too_large).startswith("Error [RESULT_TOO_LARGE] during send_query: payload too big")
    assert "streaming" in too_large.render()
    assert cancelled.is_cancelled
    assert "Retrying" not in cancelled.render()


def test_serializes_computed_fields() -> None:
    dumped = QueryError.create("x", ErrorCode.CANCELLED).model_dump()

    assert dumped["code"] == "CANCELLED"
    assert dumped["is_cancelled"] is True
    assert dumped["suggests_streaming"] is False
