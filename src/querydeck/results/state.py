"""Result view state and its pure transitions.

``ResultState`` is an immutable snapshot. Every change goes through one of the
module-level transition functions, each returning a new state, so transitions
can be tested without any I/O:

    >>> s = load_static(ResultState.initial(page_size=50), records)
    >>> s.mode, s.pagination.total_pages
    (<ResultMode.STATIC: 'static'>, 1)

Async orchestration (page reads, stale-response handling) lives in
:mod:`querydeck.results.machine`.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, computed_field

from querydeck.foundation.errors import QueryError
from querydeck.io.records import Record, StreamIndex


class ResultMode(StrEnum):
    """Backing store of the current result."""
    IDLE = "idle"
    STATIC = "static"  # full result in memory
    STREAM = "stream"  # disk-backed, one page in memory


class StreamStatus(StrEnum):
    """Load status shown by the results view."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    COMPLETE = "complete"
    ERROR = "error"
    STATIC = "static"


def count_pages(total_records: int, page_size: int) -> int:
    """ceil(total / size), with an empty result having zero pages."""
    return 0 if total_records <= 0 else math.ceil(total_records / page_size)


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


class PaginationWindow(BaseModel):
    """Page window over the result. ``start`` is derived, so it always agrees with the page."""

    model_config = ConfigDict(frozen=True)

    page_size: PositiveInt = 50
    current_page: NonNegativeInt = 0
    total_pages: NonNegativeInt = 0

    @computed_field
    @property
    def start(self) -> int:
        return self.current_page * self.page_size

    @property
    def last_page(self) -> int:
        return max(self.total_pages - 1, 0)

    def at(self, page: int) -> PaginationWindow:
        return self.model_copy(update={"current_page": page})

    def for_total(self, total_records: int) -> PaginationWindow:
        """Back to page 0 with totals recomputed."""
        return self.model_copy(update={"current_page": 0, "total_pages": count_pages(total_records, self.page_size)})


class ResultState(BaseModel):
    """Everything the results view renders. Owned by one StreamingResults instance."""

    model_config = ConfigDict(frozen=True)

    mode: ResultMode = ResultMode.IDLE
    stream_status: StreamStatus = StreamStatus.IDLE
    index: StreamIndex | None = None
    records: tuple[Record, ...] = ()
    active_record_index: NonNegativeInt = 0
    total_records: NonNegativeInt = 0
    pagination: PaginationWindow = Field(default_factory=PaginationWindow)
    error: QueryError | None = None

    @classmethod
    def initial(cls, page_size: int = 50) -> ResultState:
        return cls(pagination=PaginationWindow(page_size=page_size))

    @property
    def page_size(self) -> int:
        return self.pagination.page_size

    @property
    def active_record(self) -> Record | None:
        return self.records[self.active_record_index] if self.records else None

    @property
    def has_next_page(self) -> bool:
        return (self.pagination.current_page + 1) * self.page_size < self.total_records

    @property
    def has_prev_page(self) -> bool:
        return self.pagination.current_page > 0

    @property
    def page_records(self) -> tuple[Record, ...]:
        """Records of the current page: the loaded page when streaming, a slice of everything when static."""
        if self.mode is ResultMode.STATIC:
            start = self.pagination.start
            return self.records[start:start + self.page_size]
        return self.records


# ─────────────────────────────────────────────────────────────────────────────
# Transitions
# ─────────────────────────────────────────────────────────────────────────────


def _max_record_index(records: Sequence[Record]) -> int:
    return max(len(records) - 1, 0)


def reset(state: ResultState) -> ResultState:
    """Back to idle and empty; only the page size survives."""
    return ResultState.initial(state.page_size)


def load_static(state: ResultState, records: Sequence[Record]) -> ResultState:
    rows = tuple(records)
    return state.model_copy(update={
        "mode": ResultMode.STATIC,
        "stream_status": StreamStatus.STATIC,
        "index": None,
        "records": rows,
        "total_records": len(rows),
        "pagination": state.pagination.for_total(len(rows)),
        "active_record_index": 0,
        "error": None,
    })


def initialize_stream(state: ResultState, index: StreamIndex) -> ResultState:
    """Switch to a streamed result. Must be followed by loading page 0."""
    return state.model_copy(update={
        "mode": ResultMode.STREAM,
        "stream_status": StreamStatus.LOADING,
        "index": index,
        "records": (),
        "total_records": index.part_count,
        "pagination": state.pagination.for_total(index.part_count),
        "active_record_index": 0,
        "error": None,
    })


def set_page(state: ResultState, records: Sequence[Record], page: int) -> ResultState:
    """Install a freshly read page of a streamed result.

    Raises:
        ValueError: no stream index, or page outside ``[0, last_page]``
    """
    if state.index is None:
        raise ValueError("No stream index available for pagination")
    if not 0 <= page <= state.pagination.last_page:
        raise ValueError(f"Page {page} out of range [0, {state.pagination.last_page}]")
    return state.model_copy(update={
        "stream_status": StreamStatus.READY,
        "records": tuple(records),
        "pagination": state.pagination.at(page),
        "active_record_index": 0,
        "error": None,
    })


def move_window(state: ResultState, page: int) -> ResultState:
    """Move the page window over an in-memory result; the active record follows to the page start.

    Raises:
        ValueError: state is not static
    """
    if state.mode is not ResultMode.STATIC:
        raise ValueError(f"move_window requires static mode, not {state.mode}")
    page = clamp(page, 0, state.pagination.last_page)
    window = state.pagination.at(page)
    return state.model_copy(update={
        "pagination": window,
        "active_record_index": clamp(window.start, 0, _max_record_index(state.records)),
    })


def complete_stream(state: ResultState) -> ResultState:
    return state.model_copy(update={"stream_status": StreamStatus.COMPLETE})


def set_error(state: ResultState, error: QueryError) -> ResultState:
    return state.model_copy(update={"stream_status": StreamStatus.ERROR, "error": error})


def _record_bounds(state: ResultState) -> tuple[int, int]:
    """Lowest and highest selectable record index: the page window when static, the loaded page otherwise."""
    if state.mode is ResultMode.STATIC and state.records:
        start = state.pagination.start
        return start, min(start + state.page_size, len(state.records)) - 1
    return 0, _max_record_index(state.records)


def set_active_record(state: ResultState, index: int) -> tuple[ResultState, int]:
    """Clamp to the current page and store. Returns the new state and the stored index."""
    clamped = clamp(index, *_record_bounds(state))
    return state.model_copy(update={"active_record_index": clamped}), clamped
