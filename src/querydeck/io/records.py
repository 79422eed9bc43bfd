"""Record and stream-handle models shared by the parser, parts store and state machine.

Optional metadata distinguishes an absent header (``None``) from one that was
sent with an empty value (``""``). Code that only cares whether there is
something to show should use :meth:`Record.has` rather than comparing to either.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, computed_field

MetadataField = Literal["content_type", "primitive", "uri", "path"]


class Record(BaseModel):
    """One decoded unit of query output: body text plus provenance metadata.

    Attributes:
        content_type: MIME-like type from ``Content-Type``
        primitive: Source-reported node/scalar type from ``X-Primitive``
        uri: Originating document identifier from ``X-URI``
        path: Originating location expression from ``X-Path``
        content: Trimmed body text
        index: Absolute position in the full result, stamped when paging

    Example:
        >>> r = Record(content="<a/>", content_type="application/xml", uri="a/1")
        >>> r.has("uri"), r.has("path")
        (True, False)
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "title": "Record",
            "examples": [{"contentType": "application/xml", "uri": "a/1", "content": "<a/>"}],
        },
    )

    content_type: str | None = Field(default=None, alias="contentType")
    primitive: str | None = None
    uri: str | None = None
    path: str | None = None
    content: str
    index: NonNegativeInt | None = None

    def has(self, name: MetadataField) -> bool:
        """Whether a metadata field carries a non-empty value."""
        return bool(getattr(self, name))

    @computed_field
    @property
    def size(self) -> int:
        """Encoded body size in bytes."""
        return len(self.content.encode("utf-8"))

    def at(self, index: int) -> Record:
        """Copy stamped with an absolute position."""
        return self.model_copy(update={"index": index})


class StreamIndex(BaseModel):
    """Handle to a disk-backed result set.

    The directory is owned by the transport/storage layer; the pipeline only
    reads from it through the transport.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    directory: Annotated[str, Field(min_length=1, alias="dir")]
    part_count: NonNegativeInt = Field(default=0, alias="partCount")
