"""Result envelope for the buffered (in-memory) path."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, computed_field

from querydeck.io.records import Record

from .parser import parse_response

NO_RESULTS_TEXT = "Query executed successfully (no results)"


class ResultEnvelope(BaseModel):
    """Raw text, plain-text rendering and parsed rows of one buffered response."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    formatted_text: str
    rows: tuple[Record, ...] = ()
    degraded: bool = False

    @computed_field
    @property
    def is_empty(self) -> bool:
        return not self.rows


def build_envelope(raw_response_text: str | None) -> ResultEnvelope:
    """Parse a buffered response and join record bodies into a plain-text view."""
    raw = raw_response_text or ""
    parsed = parse_response(raw)
    formatted = "\n".join(r.content for r in parsed.records) or NO_RESULTS_TEXT
    return ResultEnvelope(raw_text=raw, formatted_text=formatted, rows=parsed.records, degraded=parsed.degraded)
