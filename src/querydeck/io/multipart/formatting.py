"""Display normalization for record bodies.

Picks a pretty-printer from the record's content type: JSON is re-serialized
with orjson at two-space indent, XML/HTML is re-indented tag by tag. Any
failure falls back to the raw body; formatting is a hint, never an error.
"""

from __future__ import annotations

import re

import orjson

from querydeck.io.records import Record

_INDENT = "  "
_TAG_SPLIT = re.compile(r"(<[^>]+>)")
_INTER_TAG_WS = re.compile(r">\s+<")


def format_json_pretty(raw_text: str) -> str:
    try:
        return orjson.dumps(orjson.loads(raw_text), option=orjson.OPT_INDENT_2).decode()
    except orjson.JSONDecodeError:
        return raw_text


def format_xml_pretty(raw_text: str) -> str:
    """Re-indent markup one tag per line.

    Closing tags dedent, opening tags indent; self-closing tags, processing
    instructions and declarations (``<?...?>``, ``<!...>``) leave the level alone.
    """
    level = 0
    lines: list[str] = []
    for token in filter(None, _TAG_SPLIT.split(_INTER_TAG_WS.sub("><", raw_text))):
        text = token.strip()
        if not text:
            continue
        if not (token.startswith("<") and token.endswith(">")):
            lines.append(f"{_INDENT * level}{text}")
            continue
        closing = text.startswith("</")
        if closing:
            level = max(level - 1, 0)
        lines.append(f"{_INDENT * level}{text}")
        if not closing and not (text.endswith("/>") or text.startswith(("<?", "<!"))):
            level += 1
    return "\n".join(lines)


def format_record_content(record: Record | None) -> str:
    """Return the record body formatted for display according to its content type."""
    if record is None:
        return ""
    content_type = (record.content_type or "").lower()
    if "json" in content_type:
        return format_json_pretty(record.content)
    if "xml" in content_type or "html" in content_type:
        return format_xml_pretty(record.content)
    return record.content
