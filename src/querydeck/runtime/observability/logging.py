"""Structured, context-carrying logging for the query and paging pipeline.

Every component logs through a ``BoundLogger``: a small value holding fields
such as ``component`` or ``directory`` that are attached to each entry. Fields
set with ``log_context`` (the gateway binds ``request_id`` there) live in a
ContextVar, so they follow a query across awaits without being threaded
through call signatures.

Output goes to a renderer chosen once by ``configure_logging``:

    >>> from querydeck.runtime.observability import configure_logging, get_logger
    >>> configure_logging("console", level="DEBUG")
    >>> log = get_logger("querydeck.reader", component="reader")
    >>> log.bind(directory="/tmp/qd-1").debug("page read", start=50, count=50)
"""

from __future__ import annotations

import inspect
import logging
import sys
import time
import traceback
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import wraps
from typing import TYPE_CHECKING, Callable, ParamSpec, Protocol, TextIO, TypeVar, runtime_checkable

import orjson

from querydeck.foundation.errors import JsonDict, JsonValue

if TYPE_CHECKING:
    from querydeck.foundation.config import LoggingSettings

P = ParamSpec("P")
T = TypeVar("T")

_scoped_fields: ContextVar[JsonDict] = ContextVar("querydeck_log_fields", default={})
_active_renderer: ContextVar[LogRenderer | None] = ContextVar("querydeck_log_renderer", default=None)
_threshold: ContextVar[int] = ContextVar("querydeck_log_threshold", default=logging.INFO)
_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


# ─────────────────────────────────────────────────────────────────────────────
# Entries and renderers
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    def when(self, *, clock: bool = False) -> str:
        """ISO-8601 time, or ``HH:MM:SS.mmm`` when ``clock`` is set."""
        moment = datetime.fromtimestamp(self.timestamp, tz=UTC)
        return moment.strftime("%H:%M:%S.%f")[:-3] if clock else moment.isoformat()


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


_ANSI = {
    "off": "\033[0m", "strong": "\033[1m", "faint": "\033[2m", "key": "\033[36m",
    "text": "\033[33m", "number": "\033[34m", "other": "\033[37m", "failure": "\033[31m",
}
_LEVEL_ANSI = {"debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m"}


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per entry: ``time [level] event key=value ...`` with keys sorted.

    Colors default to on only when ``output`` is a terminal. A captured
    traceback (``exc_info``) is printed on its own lines below the entry.
    """

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None
    show_timestamp: bool = True

    def __post_init__(self) -> None:
        if self.colors is None:
            isatty = getattr(self.output, "isatty", None)
            self.colors = bool(isatty and isatty())

    def _paint(self, role: str, text: str) -> str:
        return f"{_ANSI[role]}{text}{_ANSI['off']}" if self.colors else text

    def _value(self, value: object) -> str:
        if isinstance(value, str):
            return self._paint("text", f'"{value}"')
        if isinstance(value, bool):
            return self._paint("number", "true" if value else "false")
        if isinstance(value, (int, float)):
            return self._paint("number", str(value))
        if isinstance(value, dict):
            return self._paint("faint", f"{{{len(value)} items}}")
        if isinstance(value, (list, tuple)):
            return self._paint("faint", f"[{len(value)} items]")
        return self._paint("other", repr(value))

    def render(self, entry: LogEntry) -> None:
        head = f"[{entry.level}]"
        if self.colors:
            head = f"{_LEVEL_ANSI.get(entry.level, _ANSI['faint'])}{head}{_ANSI['off']}"
        pieces = [self._paint("faint", entry.when(clock=True))] if self.show_timestamp else []
        pieces.append(head)
        pieces.append(self._paint("strong", entry.event))
        for key in sorted(entry.context):
            if key != "exc_info":
                pieces.append(f"{self._paint('key', key)}={self._value(entry.context[key])}")
        self.output.write(" ".join(pieces) + "\n")
        if trace := entry.context.get("exc_info"):
            self.output.write(self._paint("failure", str(trace)) + "\n")


@dataclass(slots=True)
class JsonRenderer:
    """Newline-delimited JSON, one object per entry, for shipping to a collector."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        payload = {"timestamp": entry.when(), "level": entry.level, "event": entry.event}
        payload.update(entry.context)
        self.output.write(orjson.dumps(payload, option=orjson.OPT_NON_STR_KEYS, default=str).decode() + "\n")


@dataclass(slots=True)
class NoOpRenderer:
    """Drops every entry. Used by the test suite."""

    def render(self, entry: LogEntry) -> None:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying a fixed set of fields. ``bind``/``unbind`` return copies.

    ``_renderer`` and ``_level`` pin a logger to its own output and threshold;
    left as None it follows whatever ``configure_logging`` last installed.
    """

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int | None = None

    def _with(self, context: JsonDict) -> BoundLogger:
        return BoundLogger(context=context, _renderer=self._renderer, _level=self._level)

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return self._with({**self.context, **kw})

    def unbind(self, *keys: str) -> BoundLogger:
        dropped = set(keys)
        return self._with({k: v for k, v in self.context.items() if k not in dropped})

    def _emit(self, level: int, event: str, fields: JsonDict) -> None:
        floor = _threshold.get() if self._level is None else self._level
        if level < floor:
            return
        renderer = self._renderer or _current_renderer()
        context = {**_scoped_fields.get(), **self.context, **fields}
        renderer.render(LogEntry(time.time(), logging.getLevelName(level).lower(), event, context))

    def debug(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.DEBUG, event, kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.INFO, event, kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.WARNING, event, kw)

    def error(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.ERROR, event, kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Error entry with the traceback of the exception being handled."""
        self._emit(logging.ERROR, event, {"exc_info": traceback.format_exc(), **kw})


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Install the renderer and threshold used by every unpinned logger.

    ``format`` is ``console`` (humans), ``json`` (collectors) or ``none``.
    """
    factories: dict[str, Callable[[], LogRenderer]] = {
        "console": lambda: ConsoleRenderer(output=output or sys.stderr, colors=colors),
        "json": lambda: JsonRenderer(output=output or sys.stdout),
        "none": NoOpRenderer,
    }
    if format not in factories:
        raise ValueError(f"Unknown log format {format!r}; expected one of {', '.join(factories)}")
    renderer = factories[format]()
    _threshold.set(logging.getLevelName(level.upper()) if level.upper() in _LEVELS else logging.INFO)
    _active_renderer.set(renderer)
    return renderer


def configure_from_settings(settings: LoggingSettings, *, level: str | None = None) -> LogRenderer:
    """Apply a ``LoggingSettings`` block; ``level`` overrides the configured one."""
    return configure_logging(format=settings.format, level=level or settings.level)


def get_logger(name: str | None = None, **initial_context: JsonValue) -> BoundLogger:
    """Logger pre-bound with ``initial_context``, plus ``logger=name`` when named."""
    if name:
        initial_context["logger"] = name
    return BoundLogger(context=dict(initial_context))


def _current_renderer() -> LogRenderer:
    renderer = _active_renderer.get()
    if renderer is None:
        renderer = ConsoleRenderer()
        _active_renderer.set(renderer)
    return renderer


# ─────────────────────────────────────────────────────────────────────────────
# Scoped fields and timing
# ─────────────────────────────────────────────────────────────────────────────


class log_context:
    """Attach fields to every entry logged inside a ``with`` block.

    Nested blocks merge, with inner values winning; leaving a block restores
    exactly what was visible before it.
    """

    __slots__ = ("_fields", "_reset")

    def __init__(self, **fields: JsonValue) -> None:
        self._fields = fields
        self._reset: Token[JsonDict] | None = None

    def __enter__(self) -> log_context:
        self._reset = _scoped_fields.set({**_scoped_fields.get(), **self._fields})
        return self

    def __exit__(self, *exc: object) -> None:
        if self._reset is not None:
            _scoped_fields.reset(self._reset)
            self._reset = None


def timed(
    log: BoundLogger | None = None,
    *,
    level: str = "debug",
    event: str = "operation completed",
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Log how long the wrapped call took, as ``duration_ms``.

    A raising call is logged at error level as ``"<event> failed"`` with the
    error text, then re-raised. Coroutine functions are timed until awaited.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = func.__name__

        def report(started: float, failure: Exception | None) -> None:
            target = log or get_logger()
            elapsed = round((time.perf_counter() - started) * 1000, 2)
            if failure is None:
                getattr(target, level)(event, function=name, duration_ms=elapsed)
            else:
                target.error(f"{event} failed", function=name, duration_ms=elapsed, error=str(failure))

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def timed_coroutine(*args: P.args, **kwargs: P.kwargs) -> T:
                started = time.perf_counter()
                try:
                    value = await func(*args, **kwargs)  # type: ignore[misc]
                except Exception as exc:
                    report(started, exc)
                    raise
                report(started, None)
                return value

            return timed_coroutine  # type: ignore[return-value]

        @wraps(func)
        def timed_call(*args: P.args, **kwargs: P.kwargs) -> T:
            started = time.perf_counter()
            try:
                value = func(*args, **kwargs)
            except Exception as exc:
                report(started, exc)
                raise
            report(started, None)
            return value

        return timed_call

    return decorator
