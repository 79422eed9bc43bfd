"""Streamed parts reader: one page of records from a disk-backed result set."""

from __future__ import annotations

from typing import TYPE_CHECKING

from querydeck.foundation.errors import Err, ErrorCode, Ok, QueryError, Result
from querydeck.runtime.observability import get_logger

if TYPE_CHECKING:
    from querydeck.io.records import Record, StreamIndex
    from querydeck.transport.base import QueryTransport

log = get_logger("querydeck.reader")


class StreamedPartsReader:
    """Reads fixed-size pages through the transport's ``read_stream_parts``.

    Records are stamped with ``index = page * page_size + position`` so a
    position in the loaded page always maps back to the same absolute record.
    Transport failures come back as ``Err(QueryError)``; nothing is raised.
    """

    __slots__ = ("_transport",)

    def __init__(self, transport: QueryTransport) -> None:
        self._transport = transport

    async def load_page(self, index: StreamIndex, page: int, page_size: int) -> Result[list[Record], QueryError]:
        start = page * page_size
        try:
            parts = await self._transport.read_stream_parts(index.directory, start, page_size)
        except Exception as e:  # noqa: BLE001 - any transport failure becomes a page error
            err = QueryError.from_exception(e, "load_page")
            if err.code not in (ErrorCode.TIMEOUT, ErrorCode.NETWORK_ERROR, ErrorCode.CANCELLED):
                err = err.model_copy(update={"code": ErrorCode.TRANSPORT_FAILURE})
            log.warning("page read failed", directory=index.directory, page=page, code=str(err.code), error=err.message)
            return Err(err)
        records = [r.at(start + i) for i, r in enumerate(parts[:page_size])]
        log.debug("page read", directory=index.directory, page=page, start=start, records=len(records))
        return Ok(records)
