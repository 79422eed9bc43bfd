"""Tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from querydeck.foundation.config import HttpSettings, LoggingSettings, QuerydeckSettings, clear_settings_cache, get_settings


def test_defaults() -> None:
    settings = QuerydeckSettings()

    assert settings.results.page_size == 50
    assert settings.stream.prefer_stream is True
    assert settings.stream.root.name == "querydeck-streams"
    assert settings.http.eval_path == "/v1/eval"
    assert int(settings.http.max_buffer_size) == 10 * 1024 * 1024
    assert settings.logging.format == "console"
    assert settings.effective_log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("QUERYDECK_RESULTS_PAGE_SIZE", "100")
    monkeypatch.setenv("QUERYDECK_STREAM_PREFER_STREAM", "false")
    monkeypatch.setenv("QUERYDECK_STREAM_ROOT", str(tmp_path))
    monkeypatch.setenv("QUERYDECK_HTTP_MAX_BUFFER_SIZE", "2MiB")
    monkeypatch.setenv("QUERYDECK_LOG_LEVEL", "warning")

    settings = QuerydeckSettings()

    assert settings.results.page_size == 100
    assert settings.stream.prefer_stream is False
    assert settings.stream.root == tmp_path
    assert int(settings.http.max_buffer_size) == 2 * 1024 * 1024
    assert settings.logging.level == "WARNING"


def test_debug_forces_debug_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUERYDECK_DEBUG", "true")

    assert QuerydeckSettings().effective_log_level == "DEBUG"


def test_invalid_values_rejected() -> None:
    with pytest.raises(ValidationError):
        LoggingSettings(format="xml")
    with pytest.raises(ValidationError):
        HttpSettings(timeout=0)


def test_eval_path_gets_leading_slash() -> None:
    assert HttpSettings(eval_path="v1/eval").eval_path == "/v1/eval"


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("QUERYDECK_RESULTS_PAGE_SIZE", "9")

    assert get_settings() is first

    clear_settings_cache()
    assert get_settings().results.page_size == 9
