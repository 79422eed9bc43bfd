"""Shared fixtures: quiet logging, fresh settings and an in-memory transport."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence

import pytest

from querydeck.foundation.config import clear_settings_cache
from querydeck.io.records import Record, StreamIndex
from querydeck.runtime.observability import configure_logging
from querydeck.transport.base import BufferResponse, ConnectionParams, StreamResponse

STREAM_DIR = "/var/tmp/querydeck/stream-test"


class FakeTransport:
    """In-memory QueryTransport.

    ``parts`` backs read_stream_parts. ``gates`` holds events keyed by window
    start that a read waits on before answering, so tests can resolve
    overlapping reads in any order. ``send_gate`` does the same for send_query
    and is released by cancel_query. ``responses`` and ``query_gates`` override
    ``response`` and ``send_gate`` for one query text.
    """

    def __init__(self, parts: Sequence[Record] = (), *, response: StreamResponse | BufferResponse | Exception | None = None) -> None:
        self.parts = list(parts)
        self.response = response
        self.read_error: Exception | None = None
        self.cancel_error: Exception | None = None
        self.gates: dict[int, asyncio.Event] = {}
        self.send_gate: asyncio.Event | None = None
        self.responses: dict[str, StreamResponse | BufferResponse | Exception] = {}
        self.query_gates: dict[str, asyncio.Event] = {}
        self.reads: list[tuple[str, int, int]] = []
        self.sent: list[dict[str, object]] = []
        self.cancelled: list[str] = []

    async def send_query(self, query, query_type, connection, *, prefer_stream=True, request_id=None):
        self.sent.append({"query": query, "query_type": query_type, "connection": connection,
                          "prefer_stream": prefer_stream, "request_id": request_id})
        if (gate := self.query_gates.get(query, self.send_gate)) is not None:
            await gate.wait()
        response = self.responses.get(query, self.response)
        if isinstance(response, Exception):
            raise response
        return response

    async def read_stream_parts(self, directory: str, start: int, limit: int) -> list[Record]:
        self.reads.append((directory, start, limit))
        if (gate := self.gates.get(start)) is not None:
            await gate.wait()
        if self.read_error is not None:
            raise self.read_error
        return self.parts[start:start + limit]

    async def cancel_query(self, request_id: str) -> bool:
        self.cancelled.append(request_id)
        if self.cancel_error is not None:
            raise self.cancel_error
        if self.send_gate is not None:
            self.send_gate.set()
        return True


def make_records(count: int, prefix: str = "item") -> list[Record]:
    return [Record(content=f"{prefix}-{i}", content_type="text/plain", uri=f"/docs/{i}.txt") for i in range(count)]


@pytest.fixture(autouse=True)
def quiet_logs() -> Iterator[None]:
    """Silence log output and start every test from environment-fresh settings."""
    configure_logging("none")
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def records() -> Callable[..., list[Record]]:
    return make_records


@pytest.fixture
def transport() -> FakeTransport:
    """Transport holding three stored parts."""
    return FakeTransport(make_records(3))


@pytest.fixture
def make_transport() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest.fixture
def stream_index() -> StreamIndex:
    return StreamIndex(directory=STREAM_DIR, part_count=3)


@pytest.fixture
def connection() -> ConnectionParams:
    return ConnectionParams(server_url="http://localhost:8000/", database_id="Documents", modules_database_id="0")
