"""querydeck configuration, read from the environment (and an optional .env).

Each block owns its own prefix, so a single variable tunes a single knob:

    >>> from querydeck.foundation.config import get_settings
    >>> cfg = get_settings()
    >>> cfg.results.page_size
    50
    >>> cfg.logging.level
    'INFO'

    # QUERYDECK_LOG_FORMAT=json
    # QUERYDECK_RESULTS_PAGE_SIZE=100
    # QUERYDECK_HTTP_MAX_BUFFER_SIZE=25MB
"""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import (
    ByteSize,
    Field,
    PositiveFloat,
    PositiveInt,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResultsSettings(BaseSettings):
    """Result view configuration."""

    model_config = SettingsConfigDict(
        env_prefix="QUERYDECK_RESULTS_",
        extra="ignore",
    )

    page_size: PositiveInt = Field(default=50, description="Records per page, fixed per result view")


class StreamSettings(BaseSettings):
    """Disk-backed streaming configuration."""

    model_config = SettingsConfigDict(
        env_prefix="QUERYDECK_STREAM_",
        extra="ignore",
    )

    prefer_stream: bool = Field(default=True, description="Ask the transport to stream results to disk")
    root: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "querydeck-streams",
        description="Directory under which streamed parts directories are created",
    )


class HttpSettings(BaseSettings):
    """HTTP transport defaults."""

    model_config = SettingsConfigDict(
        env_prefix="QUERYDECK_HTTP_",
        extra="ignore",
    )

    timeout: PositiveFloat = Field(default=60.0, description="Request timeout in seconds")
    max_buffer_size: ByteSize = Field(
        default=ByteSize(10 * 1024 * 1024),
        description="Largest response buffered in memory before RESULT_TOO_LARGE",
    )
    eval_path: str = "/v1/eval"
    verify_ssl: bool = Field(default=True, description="Verify the server certificate on https URLs")

    @field_validator("eval_path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"


class LoggingSettings(BaseSettings):
    """Renderer and threshold handed to configure_logging()."""

    model_config = SettingsConfigDict(
        env_prefix="QUERYDECK_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class QuerydeckSettings(BaseSettings):
    """Root settings for querydeck.

    Top-level fields use the QUERYDECK_ prefix; each nested block reads its
    own prefix, for instance:
        QUERYDECK_DEBUG=true
        QUERYDECK_RESULTS_PAGE_SIZE=100
        QUERYDECK_STREAM_PREFER_STREAM=false
        QUERYDECK_HTTP_TIMEOUT=120
        QUERYDECK_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="QUERYDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Force DEBUG logging regardless of QUERYDECK_LOG_LEVEL")

    results: ResultsSettings = Field(default_factory=ResultsSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @computed_field
    @property
    def effective_log_level(self) -> str:
        """DEBUG when debug mode is on, else the configured level."""
        return "DEBUG" if self.debug else self.logging.level


@lru_cache(maxsize=1)
def get_settings() -> QuerydeckSettings:
    """Process-wide settings, built on first use."""
    return QuerydeckSettings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() rereads the environment."""
    get_settings.cache_clear()
