"""Streaming results state machine: pure transitions driven by async page reads.

``StreamingResults`` owns one :class:`~querydeck.results.state.ResultState`
and is the only thing that replaces it. Page reads go through a
:class:`~querydeck.io.streaming.StreamedPartsReader`; their failures land in
``state.error`` instead of being raised.

Overlapping page loads (fast next/next clicks) are resolved by a generation
counter: each load, stream initialization, static load and reset takes a new
generation, and a read that resolves after a newer one started is dropped. The
page shown is therefore always the one requested last.

Example:
    >>> results = StreamingResults(StreamedPartsReader(transport), page_size=50)
    >>> await results.initialize_stream(index)   # loads page 0
    >>> await results.next_page()
    1
    >>> results.go_to_next_record()
    1
    >>> results.state.active_record.index
    51
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Callable, Protocol

from querydeck.foundation.config import get_settings
from querydeck.foundation.errors import ErrorCode, QueryError
from querydeck.runtime.observability import get_logger

from . import state as transitions
from .state import ResultMode, ResultState, clamp

if TYPE_CHECKING:
    from querydeck.io.records import Record, StreamIndex
    from querydeck.io.streaming.reader import StreamedPartsReader

log = get_logger("querydeck.results")


class PageLoaded(Protocol):
    def __call__(self, page: int, start: int, records: Sequence[Record]) -> None: ...


class StreamingResults:
    """Owner of the result view state.

    Args:
        reader: Page reader for streamed results
        page_size: Records per page (default: settings.results.page_size); fixed for the instance
        on_start: Called with the StreamIndex when a stream is initialized
        on_page: Called after a page is installed
        on_complete: Called with the mode and records on static load and mark_complete
        on_error: Called with the QueryError whenever an error is recorded
    """

    def __init__(
        self,
        reader: StreamedPartsReader,
        *,
        page_size: int | None = None,
        on_start: Callable[[StreamIndex], None] | None = None,
        on_page: PageLoaded | None = None,
        on_complete: Callable[[ResultMode, Sequence[Record]], None] | None = None,
        on_error: Callable[[QueryError], None] | None = None,
    ) -> None:
        size = page_size if page_size is not None else get_settings().results.page_size
        if size <= 0:
            raise ValueError(f"page_size must be positive, got {size}")
        self._reader = reader
        self._state = ResultState.initial(size)
        self._generation = 0
        self._on_start = on_start
        self._on_page = on_page
        self._on_complete = on_complete
        self._on_error = on_error

    @property
    def state(self) -> ResultState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def _bump(self) -> int:
        self._generation += 1
        return self._generation

    # ─────────────────────────────────────────────────────────────────
    # Synchronous transitions
    # ─────────────────────────────────────────────────────────────────

    def reset(self) -> None:
        self._bump()
        self._state = transitions.reset(self._state)

    def load_static(self, records: Sequence[Record]) -> None:
        """Install a fully buffered result."""
        self._bump()
        self._state = transitions.load_static(self._state, records)
        log.debug("static result loaded", records=self._state.total_records,
                  pages=self._state.pagination.total_pages)
        if self._on_complete:
            self._on_complete(ResultMode.STATIC, self._state.records)

    def set_error(self, error: QueryError) -> None:
        self._state = transitions.set_error(self._state, error)
        if self._on_error:
            self._on_error(error)

    def mark_complete(self) -> None:
        self._state = transitions.complete_stream(self._state)
        if self._on_complete:
            self._on_complete(self._state.mode, self._state.records)

    def set_active_record(self, index: int) -> int:
        self._state, clamped = transitions.set_active_record(self._state, index)
        return clamped

    def go_to_next_record(self) -> int:
        """Move down one record; stops at the last record of the loaded page."""
        return self.set_active_record(self._state.active_record_index + 1)

    def go_to_prev_record(self) -> int:
        """Move up one record; stops at the first record of the loaded page."""
        return self.set_active_record(self._state.active_record_index - 1)

    # ─────────────────────────────────────────────────────────────────
    # Page loading
    # ─────────────────────────────────────────────────────────────────

    async def initialize_stream(self, index: StreamIndex) -> int:
        """Switch to a streamed result and load its first page. Returns the current page."""
        self._bump()
        self._state = transitions.initialize_stream(self._state, index)
        log.info("stream initialized", directory=index.directory, parts=index.part_count,
                 pages=self._state.pagination.total_pages)
        if self._on_start:
            self._on_start(index)
        return await self.load_page(0)

    async def load_page(self, page: int) -> int:
        """Load ``page`` and return the current page afterwards.

        Static results move the in-memory window. Streamed results read the
        page through the reader; a read failure is recorded with set_error and
        leaves the current page unchanged. A read superseded by a newer
        request is dropped.
        """
        current = self._state
        if current.mode is ResultMode.STATIC:
            self._state = transitions.move_window(current, page)
            return self._state.pagination.current_page
        if current.index is None:
            log.warning("page requested without a stream", page=page, mode=str(current.mode))
            self.set_error(QueryError.create("No stream index available for pagination",
                                             ErrorCode.NO_STREAM_INDEX, recoverable=False, operation="load_page"))
            return current.pagination.current_page

        page = clamp(page, 0, current.pagination.last_page)
        generation = self._bump()
        result = await self._reader.load_page(current.index, page, current.page_size)
        if generation != self._generation:
            log.debug("stale page discarded", page=page, generation=generation, latest=self._generation)
            return self._state.pagination.current_page
        if result.is_err():
            self.set_error(result.unwrap_err())
            return self._state.pagination.current_page

        records = result.unwrap()
        self._state = transitions.set_page(self._state, records, page)
        if self._on_page:
            self._on_page(page, self._state.pagination.start, self._state.records)
        return page

    async def next_page(self) -> int:
        """Load the following page; a no-op returning the current page on the last one."""
        target = self._state.pagination.current_page + 1
        if target * self._state.page_size >= self._state.total_records:
            return self._state.pagination.current_page
        return await self.load_page(target)

    async def prev_page(self) -> int:
        """Load the preceding page; a no-op on page 0."""
        current = self._state.pagination.current_page
        target = max(current - 1, 0)
        if target == current:
            return current
        return await self.load_page(target)

    async def jump_to_page(self, page: int) -> int:
        """Load ``page`` clamped to the valid range."""
        if self._state.mode is ResultMode.IDLE:
            return self._state.pagination.current_page
        return await self.load_page(clamp(page, 0, self._state.pagination.last_page))
