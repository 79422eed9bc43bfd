"""Transport contract consumed by the result pipeline.

The pipeline never talks to the network or the disk directly. It issues
queries, reads stored parts and cancels requests through a
:class:`QueryTransport`. The transport decides the result mode before the
body is materialized and reports it as a :data:`SendResult`.
"""

from __future__ import annotations

from typing import Annotated, Literal, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from querydeck.io.records import Record, StreamIndex

QueryType = Literal["xquery", "javascript", "sparql"]
QUERY_TYPES: frozenset[str] = frozenset(("xquery", "javascript", "sparql"))


class ConnectionParams(BaseModel):
    """Where a query runs. Credentials are the transport's concern, not part of this model."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    server_url: str = ""
    database_id: str = ""
    modules_database_id: str | None = None

    @field_validator("server_url")
    @classmethod
    def _strip_trailing_slashes(cls, v: str) -> str:
        return v.rstrip("/")


class StreamResponse(BaseModel):
    """Result was written to a parts directory."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["stream"] = "stream"
    stream_index: StreamIndex


class BufferResponse(BaseModel):
    """Result fits in memory; the raw multipart text is returned."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["buffer"] = "buffer"
    raw_response_text: str = ""


SendResult = Annotated[Union[StreamResponse, BufferResponse], Field(discriminator="mode")]
_SendResultAdapter: TypeAdapter[StreamResponse | BufferResponse] = TypeAdapter(SendResult)


def validate_send_result(data: object) -> StreamResponse | BufferResponse:
    """Validate a dict (or model) from a host environment into a SendResult."""
    return _SendResultAdapter.validate_python(data)


@runtime_checkable
class QueryTransport(Protocol):
    """Capabilities the pipeline needs from its host environment.

    ``send_query`` may raise ``QueryException`` with code ``RESULT_TOO_LARGE``
    or ``CANCELLED``; any other exception is treated as a transport failure.
    """

    async def send_query(
        self,
        query: str,
        query_type: QueryType,
        connection: ConnectionParams,
        *,
        prefer_stream: bool = True,
        request_id: str | None = None,
    ) -> StreamResponse | BufferResponse: ...

    async def read_stream_parts(self, directory: str, start: int, limit: int) -> list[Record]: ...

    async def cancel_query(self, request_id: str) -> bool: ...
