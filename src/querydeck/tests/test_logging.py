"""Tests for structured logging."""

from __future__ import annotations

import io

import orjson
import pytest

from querydeck.foundation.config import LoggingSettings
from querydeck.runtime.observability import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    NoOpRenderer,
    configure_from_settings,
    configure_logging,
    get_logger,
    log_context,
    timed,
)


def json_lines(buf: io.StringIO) -> list[dict]:
    return [orjson.loads(line) for line in buf.getvalue().splitlines()]


def test_json_renderer_includes_context() -> None:
    buf = io.StringIO()
    configure_logging("json", output=buf)
    log = get_logger("querydeck.test", component="reader")

    log.bind(page=2).info("page read", records=50)

    (entry,) = json_lines(buf)
    assert entry["event"] == "page read"
    assert entry["level"] == "info"
    assert entry["logger"] == "querydeck.test"
    assert entry["component"] == "reader"
    assert entry["page"] == 2
    assert entry["records"] == 50


def test_level_filtering_follows_configuration() -> None:
    buf = io.StringIO()
    log = get_logger("querydeck.test")

    configure_logging("json", level="WARNING", output=buf)
    log.info("hidden")
    log.warning("shown")

    assert [e["event"] for e in json_lines(buf)] == ["shown"]


def test_log_context_scopes_fields() -> None:
    buf = io.StringIO()
    configure_logging("json", output=buf)
    log = get_logger()

    with log_context(request_id="r-1"):
        log.info("inside")
    log.info("outside")

    inside, outside = json_lines(buf)
    assert inside["request_id"] == "r-1"
    assert "request_id" not in outside


def test_unbind() -> None:
    log = BoundLogger(context={"a": 1, "b": 2}, _renderer=NoOpRenderer())

    assert log.unbind("a").context == {"b": 2}


def test_console_renderer_plain_text() -> None:
    buf = io.StringIO()
    log = BoundLogger(_renderer=ConsoleRenderer(output=buf, colors=False, show_timestamp=False))

    log.error("query failed", code="TIMEOUT", retry=False)

    assert buf.getvalue().strip() == '[error] query failed code="TIMEOUT" retry=false'


def test_configure_from_settings() -> None:
    renderer = configure_from_settings(LoggingSettings(format="json", level="debug"))

    assert isinstance(renderer, JsonRenderer)


def test_unknown_format_rejected() -> None:
    with pytest.raises(ValueError):
        configure_logging("xml")


def test_timed_logs_duration() -> None:
    buf = io.StringIO()
    configure_logging("json", level="DEBUG", output=buf)

    @timed(get_logger("querydeck.test"), event="parsed")
    def parse() -> int:
        return 3

    assert parse() == 3
    (entry,) = json_lines(buf)
    assert entry["event"] == "parsed"
    assert entry["function"] == "parse"
    assert entry["duration_ms"] >= 0


@pytest.mark.asyncio
async def test_timed_async_failure() -> None:
    buf = io.StringIO()
    log = BoundLogger(_renderer=JsonRenderer(output=buf))

    @timed(log, event="page load")
    async def load() -> None:
        raise OSError("disk gone")

    with pytest.raises(OSError):
        await load()

    (entry,) = json_lines(buf)
    assert entry["event"] == "page load failed"
    assert entry["error"] == "disk gone"
