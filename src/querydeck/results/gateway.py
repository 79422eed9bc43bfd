"""Query execution gateway: runs a query and routes its result into the state machine.

The result mode is chosen by the transport before the body is materialized:
a ``StreamResponse`` initializes a streamed result (page 0 is loaded right
away), a ``BufferResponse`` is parsed into an envelope and loaded statically.

Failures never escape ``execute``. They are recorded in the results state and
returned as ``Err(QueryError)``. ``RESULT_TOO_LARGE`` keeps its own code so
the console can suggest streaming. A cancelled query returns
``Ok(outcome)`` with ``mode == "cancelled"`` and leaves the state untouched.

A failed execution clears the previous result before recording its error,
so a stale stream directory can never be paged afterwards. When executions
overlap, the one started last owns the view: an older one that finishes later
returns ``mode == "superseded"`` and its response or failure is dropped.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, field_validator

from querydeck.foundation.config import get_settings
from querydeck.foundation.errors import Err, ErrorCode, Ok, QueryError, QueryException, Result
from querydeck.io.multipart import ResultEnvelope, build_envelope
from querydeck.io.records import StreamIndex
from querydeck.io.streaming import StreamedPartsReader
from querydeck.runtime.observability import get_logger, log_context
from querydeck.transport.base import QUERY_TYPES, BufferResponse, ConnectionParams, QueryType, StreamResponse

from .machine import StreamingResults

if TYPE_CHECKING:
    from querydeck.transport.base import QueryTransport

log = get_logger("querydeck.gateway")

TOO_LARGE_GUIDANCE = ("Result payload exceeds safe concatenation threshold. "
                      "Try streaming mode or refine the query.")


class QueryRequest(BaseModel):
    """One query to execute."""

    model_config = ConfigDict(frozen=True)

    query: str
    query_type: QueryType = "xquery"
    connection: ConnectionParams = Field(default_factory=ConnectionParams)

    @field_validator("query_type", mode="before")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


class ExecutionOutcome(BaseModel):
    """What an execution did to the results view."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["stream", "static", "cancelled", "superseded"]
    request_id: str
    elapsed_ms: NonNegativeFloat = 0.0
    stream_index: StreamIndex | None = None
    envelope: ResultEnvelope | None = None

    @property
    def cancelled(self) -> bool:
        return self.mode == "cancelled"

    @property
    def superseded(self) -> bool:
        return self.mode == "superseded"


def validate_request(request: QueryRequest) -> QueryError | None:
    """Cheap checks done before anything is sent."""
    if not request.query.strip():
        return QueryError.create("Please enter a query", ErrorCode.INVALID_QUERY,
                                 recoverable=False, operation="validate")
    if request.query_type not in QUERY_TYPES:
        return QueryError.create(f"Unsupported query type: {request.query_type}", ErrorCode.INVALID_QUERY,
                                 recoverable=False, operation="validate")
    if not request.connection.database_id:
        return QueryError.create("Please select a database. Check your server connection and credentials.",
                                 ErrorCode.INVALID_QUERY, recoverable=False, operation="validate")
    return None


class QueryGateway:
    """Runs queries through a transport and feeds the results into a StreamingResults.

    Args:
        transport: Host transport
        results: State machine to drive (default: a new one reading through ``transport``)
        prefer_stream: Default streaming preference (default: settings.stream.prefer_stream)
    """

    def __init__(
        self,
        transport: QueryTransport,
        results: StreamingResults | None = None,
        *,
        prefer_stream: bool | None = None,
    ) -> None:
        self._transport = transport
        self._results = results or StreamingResults(StreamedPartsReader(transport))
        self._prefer_stream = get_settings().stream.prefer_stream if prefer_stream is None else prefer_stream
        self._active_request: str | None = None
        self._inflight: set[str] = set()
        self._cancelled: set[str] = set()

    @property
    def results(self) -> StreamingResults:
        return self._results

    @property
    def active_request(self) -> str | None:
        """Id of the most recently started execution while it is still running."""
        return self._active_request

    @property
    def is_running(self) -> bool:
        return bool(self._inflight)

    async def execute(
        self,
        request: QueryRequest,
        *,
        prefer_stream: bool | None = None,
    ) -> Result[ExecutionOutcome, QueryError]:
        """Run ``request`` and load its result. Never raises for query failures."""
        if (invalid := validate_request(request)) is not None:
            return self._fail(invalid)

        rid = uuid.uuid4().hex
        stream = self._prefer_stream if prefer_stream is None else prefer_stream
        self._active_request = rid
        self._inflight.add(rid)
        started = time.perf_counter()
        with log_context(request_id=rid):
            try:
                log.info("executing query", query_type=request.query_type, prefer_stream=stream)
                response = await self._transport.send_query(
                    request.query, request.query_type, request.connection,
                    prefer_stream=stream, request_id=rid,
                )
                if rid in self._cancelled:
                    return Ok(self._cancelled_outcome(rid, started))
                if rid != self._active_request:
                    return Ok(self._superseded_outcome(rid, started))
                return Ok(await self._apply(response, rid, started))
            except QueryException as e:
                if e.error.is_cancelled or rid in self._cancelled:
                    return Ok(self._cancelled_outcome(rid, started))
                if rid != self._active_request:
                    return Ok(self._superseded_outcome(rid, started))
                return self._fail(self._with_guidance(e.error))
            except Exception as e:  # noqa: BLE001 - transport failures become state errors
                if rid != self._active_request:
                    return Ok(self._superseded_outcome(rid, started))
                return self._fail(QueryError.from_exception(e, "send_query"))
            finally:
                self._cancelled.discard(rid)
                self._inflight.discard(rid)
                if self._active_request == rid:
                    self._active_request = None

    async def cancel(self) -> bool:
        """Best-effort cancellation of the running query. Non-fatal when unsupported."""
        rid = self._active_request
        if rid is None:
            return False
        self._cancelled.add(rid)
        try:
            accepted = await self._transport.cancel_query(rid)
        except Exception as e:  # noqa: BLE001 - cancellation support is optional
            log.warning("cancel not supported by transport", request_id=rid, error=str(e))
            accepted = False
        log.info("cancel requested", request_id=rid, accepted=accepted)
        return True

    async def _apply(
        self,
        response: StreamResponse | BufferResponse,
        rid: str,
        started: float,
    ) -> ExecutionOutcome:
        if isinstance(response, StreamResponse):
            await self._results.initialize_stream(response.stream_index)
            return ExecutionOutcome(mode="stream", request_id=rid, elapsed_ms=_elapsed(started),
                                    stream_index=response.stream_index)
        envelope = build_envelope(response.raw_response_text)
        self._results.load_static(envelope.rows)
        log.info("buffered result loaded", rows=len(envelope.rows), degraded=envelope.degraded)
        return ExecutionOutcome(mode="static", request_id=rid, elapsed_ms=_elapsed(started), envelope=envelope)

    @staticmethod
    def _with_guidance(error: QueryError) -> QueryError:
        if error.code is ErrorCode.RESULT_TOO_LARGE:
            return error.model_copy(update={"message": TOO_LARGE_GUIDANCE, "details": error.message})
        return error

    def _fail(self, error: QueryError) -> Result[ExecutionOutcome, QueryError]:
        log.error("query failed", code=str(error.code), error=error.message)
        self._results.reset()
        self._results.set_error(error)
        return Err(error)

    def _cancelled_outcome(self, rid: str, started: float) -> ExecutionOutcome:
        log.info("query cancelled", request_id=rid)
        return ExecutionOutcome(mode="cancelled", request_id=rid, elapsed_ms=_elapsed(started))

    def _superseded_outcome(self, rid: str, started: float) -> ExecutionOutcome:
        log.info("result dropped, a newer query was started", request_id=rid, latest=self._active_request)
        return ExecutionOutcome(mode="superseded", request_id=rid, elapsed_ms=_elapsed(started))


def _elapsed(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
