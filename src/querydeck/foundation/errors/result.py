"""Success-or-failure values for page reads and query executions.

Both the streamed parts reader and the gateway hand back a ``Result`` rather
than raising, and the state machine decides what to record:

    >>> Ok([1, 2]).map(len).unwrap()
    2
    >>> Err("boom").unwrap_or([])
    []
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Generic, TypeVar, final

if TYPE_CHECKING:
    from collections.abc import Iterator

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")


@final
class Result(Generic[T, E]):
    """Either an Ok payload or an Err payload. Build with ``Ok``/``Err``."""

    __slots__ = ("_payload", "_success")
    __match_args__ = ("_payload",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, payload: T | E, success: bool) -> None:
        self._payload = payload
        self._success = success

    def is_ok(self) -> bool:
        return self._success

    def is_err(self) -> bool:
        return not self._success

    def ok(self) -> T | None:
        return self._payload if self._success else None  # type: ignore[return-value]

    def err(self) -> E | None:
        return None if self._success else self._payload  # type: ignore[return-value]

    def unwrap(self) -> T:
        if not self._success:
            raise RuntimeError(f"called unwrap() on {self!r}")
        return self._payload  # type: ignore[return-value]

    def unwrap_err(self) -> E:
        if self._success:
            raise RuntimeError(f"called unwrap_err() on {self!r}")
        return self._payload  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        return self._payload if self._success else default  # type: ignore[return-value]

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        if self._success:
            return Result(f(self._payload), True)  # type: ignore[arg-type]
        return self  # type: ignore[return-value]

    def map_err(self, f: Callable[[E], F]) -> Result[T, F]:
        if self._success:
            return self  # type: ignore[return-value]
        return Result(f(self._payload), False)  # type: ignore[arg-type]

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return f(self._payload) if self._success else self  # type: ignore[arg-type, return-value]

    def inspect_err(self, f: Callable[[E], None]) -> Result[T, E]:
        """Run ``f`` on a failure payload and hand back the same value."""
        if not self._success:
            f(self._payload)  # type: ignore[arg-type]
        return self

    def match(self, *, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        return ok(self._payload) if self._success else err(self._payload)  # type: ignore[arg-type]

    def __bool__(self) -> bool:
        return self._success

    def __iter__(self) -> Iterator[T]:
        if self._success:
            yield self._payload  # type: ignore[misc]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return (self._success, self._payload) == (other._success, other._payload)

    def __repr__(self) -> str:
        return f"{'Ok' if self._success else 'Err'}({self._payload!r})"


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    return Result(value, True)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    return Result(error, False)
