"""HTTP transport for the document database eval endpoint.

Sends queries as form-encoded POSTs to ``<server><eval_path>`` with httpx and
decides the result mode before the body is read:

- streaming: the multipart body is split line by line and each part is written
  to a fresh parts directory as it arrives; only the index handle is returned
- buffered: the body is read into memory up to ``max_buffer_size``; a larger
  body raises ``RESULT_TOO_LARGE`` so the caller can suggest streaming

Example:
    >>> async with HttpTransport(auth=httpx.DigestAuth("admin", "admin")) as transport:
    ...     gateway = QueryGateway(transport)
    ...     outcome = await gateway.execute(QueryRequest(query="fn:doc()[1 to 10]", connection=conn))
"""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel, ConfigDict

from querydeck.foundation.config import QuerydeckSettings, get_settings
from querydeck.foundation.errors import ErrorCode, QueryException
from querydeck.io.streaming.parts import MultipartSplitter, PartWriter, read_parts
from querydeck.runtime.observability import get_logger

from .base import QUERY_TYPES, BufferResponse, ConnectionParams, QueryType, StreamResponse

if TYPE_CHECKING:
    from types import TracebackType

    from querydeck.io.records import Record

log = get_logger("querydeck.transport.http")

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}
_BOUNDARY_PARAM = re.compile(r'boundary="?([^";]+)"?', re.IGNORECASE)


class EvalRequest(BaseModel):
    """A fully built eval request."""

    model_config = ConfigDict(frozen=True)

    url: str
    body: str
    headers: dict[str, str] = dict(_FORM_HEADERS)


def build_eval_request(
    query: str,
    query_type: QueryType | str,
    connection: ConnectionParams,
    *,
    eval_path: str = "/v1/eval",
) -> EvalRequest:
    """Validate and encode a query as eval endpoint form parameters.

    Query text is passed as a parameter, never spliced into a wrapper query.
    JavaScript goes in ``javascript=``; every other type goes in ``xquery=``.
    A modules database of ``"0"`` means the filesystem and is omitted.

    Raises:
        QueryException: code INVALID_QUERY for empty text, no database or an unknown type
    """
    if not query or not query.strip():
        raise QueryException.create("Query text is required", ErrorCode.INVALID_QUERY,
                                    recoverable=False, operation="build_request")
    if not connection.database_id:
        raise QueryException.create("A database must be selected before executing queries",
                                    ErrorCode.INVALID_QUERY, recoverable=False, operation="build_request")
    if query_type not in QUERY_TYPES:
        raise QueryException.create(f"Unsupported query type: {query_type}", ErrorCode.INVALID_QUERY,
                                    recoverable=False, operation="build_request")

    fields = [("javascript" if query_type == "javascript" else "xquery", query),
              ("database", connection.database_id)]
    if connection.modules_database_id and connection.modules_database_id != "0":
        fields.append(("modules", connection.modules_database_id))
    return EvalRequest(url=f"{connection.server_url}{eval_path}", body=urlencode(fields, quote_via=quote))


def boundary_from_content_type(content_type: str | None) -> str | None:
    """Extract ``boundary=`` from a multipart Content-Type header."""
    if content_type and (m := _BOUNDARY_PARAM.search(content_type)):
        return m.group(1).strip()
    return None


class HttpTransport:
    """httpx-backed :class:`~querydeck.transport.base.QueryTransport`.

    Args:
        client: Existing AsyncClient (not closed by the transport)
        auth: httpx auth for a client the transport creates itself
        settings: Settings (default: global settings)
        stream_root: Directory for parts directories (default: settings.stream.root)
    """

    __slots__ = ("_settings", "_client", "_owns_client", "_auth", "_stream_root", "_inflight", "_cancelled")

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        auth: httpx.Auth | None = None,
        settings: QuerydeckSettings | None = None,
        stream_root: Path | str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._auth = auth
        self._stream_root = Path(stream_root) if stream_root else self._settings.stream.root
        self._inflight: dict[str, asyncio.Task[StreamResponse | BufferResponse]] = {}
        self._cancelled: set[str] = set()

    # ─────────────────────────────────────────────────────────────────
    # Client lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            http = self._settings.http
            self._client = httpx.AsyncClient(timeout=http.timeout, verify=http.verify_ssl, auth=self._auth)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                        exc_tb: TracebackType | None) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────────
    # QueryTransport
    # ─────────────────────────────────────────────────────────────────

    async def send_query(
        self,
        query: str,
        query_type: QueryType,
        connection: ConnectionParams,
        *,
        prefer_stream: bool = True,
        request_id: str | None = None,
    ) -> StreamResponse | BufferResponse:
        request = build_eval_request(query, query_type, connection, eval_path=self._settings.http.eval_path)
        rid = request_id or uuid.uuid4().hex
        task = asyncio.create_task(self._send(request, prefer_stream, rid))
        self._inflight[rid] = task
        try:
            return await task
        except asyncio.CancelledError:
            if rid in self._cancelled:
                raise QueryException.cancelled(rid) from None
            task.cancel()
            raise
        finally:
            self._inflight.pop(rid, None)
            self._cancelled.discard(rid)

    async def read_stream_parts(self, directory: str, start: int, limit: int) -> list[Record]:
        return await asyncio.to_thread(read_parts, directory, start, limit)

    async def cancel_query(self, request_id: str) -> bool:
        """Cancel the in-flight request task. False when nothing is running under that id."""
        task = self._inflight.get(request_id)
        if task is None or task.done():
            return False
        self._cancelled.add(request_id)
        task.cancel()
        log.info("request cancelled", request_id=request_id)
        return True

    # ─────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────

    async def _send(self, request: EvalRequest, prefer_stream: bool, rid: str) -> StreamResponse | BufferResponse:
        client = await self._get_client()
        log.debug("sending eval request", url=request.url, request_id=rid, prefer_stream=prefer_stream)
        try:
            async with client.stream("POST", request.url, headers=request.headers, content=request.body) as response:
                await self._check_status(response)
                if prefer_stream:
                    return await self._write_parts(response, rid)
                return await self._read_buffer(response)
        except httpx.TimeoutException as e:
            raise QueryException.create(f"Request timed out: {e}", ErrorCode.TIMEOUT, operation="send_query") from e
        except httpx.NetworkError as e:
            raise QueryException.create(f"Network error: {e}", ErrorCode.NETWORK_ERROR, operation="send_query") from e
        except httpx.HTTPError as e:
            raise QueryException.create(f"HTTP error: {e}", ErrorCode.TRANSPORT_FAILURE, operation="send_query") from e

    @staticmethod
    async def _check_status(response: httpx.Response) -> None:
        if 200 <= response.status_code < 300:
            return
        body = (await response.aread()).decode("utf-8", errors="replace").strip()
        raise QueryException.create(body or f"HTTP {response.status_code}", ErrorCode.QUERY_FAILED,
                                    recoverable=False, operation="send_query")

    async def _read_buffer(self, response: httpx.Response) -> BufferResponse:
        limit = int(self._settings.http.max_buffer_size)
        if (length := response.headers.get("content-length")) and length.isdigit() and int(length) > limit:
            raise QueryException.too_large(int(length), limit)
        body = bytearray()
        async for chunk in response.aiter_bytes():
            body += chunk
            if len(body) > limit:
                raise QueryException.too_large(len(body), limit)
        return BufferResponse(raw_response_text=body.decode(response.encoding or "utf-8", errors="replace"))

    async def _write_parts(self, response: httpx.Response, rid: str) -> StreamResponse:
        boundary = boundary_from_content_type(response.headers.get("content-type"))
        writer = PartWriter.create(self._stream_root)
        try:
            with writer:
                splitter = MultipartSplitter(writer.write, boundary=boundary)
                async for line in response.aiter_lines():
                    splitter.feed(line)
                splitter.close()
        except BaseException:
            # Failed or cancelled mid-stream: nothing may read a partial directory
            log.warning("stream aborted, removing parts", request_id=rid, directory=str(writer.directory))
            writer.discard()
            raise
        log.info("response streamed to disk", request_id=rid, directory=str(writer.directory), parts=writer.count)
        return StreamResponse(stream_index=writer.index)
