"""Extractor configuration settings."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class BrowserConfig(BaseModel):
    """Browser layer configuration."""

    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str | None = None
    locale: str = "en-US"
    navigation_timeout_ms: int = 30000


class StorageConfig(BaseModel):
    """Session/template store configuration."""

    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("EXTRACTOR_DATA_DIR", "./data"))
    )


class HighlightConfig(BaseModel):
    """Decoration applied to the document while selection mode is armed."""

    outline: str = "2px solid #4DEAC7"
    tint: str = "rgba(77, 234, 199, 0.1)"
    overlay_color: str = "rgba(30, 41, 59, 0.1)"
    badge_color: str = "#4DEAC7"
    badge_text: str = "✓"
    cursor: str = "crosshair"


class APIConfig(BaseModel):
    """API/security controls from environment."""

    host: str = Field(default_factory=lambda: os.getenv("EXTRACTOR_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("EXTRACTOR_PORT", "8000")))
    api_token: str = Field(default_factory=lambda: os.getenv("EXTRACTOR_API_TOKEN", ""))
    allowed_origins: list[str] = Field(
        default_factory=lambda: APIConfig.parse_allowed_origins(
            os.getenv("EXTRACTOR_ALLOWED_ORIGINS", "")
        )
    )

    @staticmethod
    def parse_allowed_origins(value: str) -> list[str]:
        if not value.strip():
            return ["http://localhost", "http://127.0.0.1"]
        origins = [origin.strip() for origin in value.split(",") if origin.strip()]
        if "*" in origins:
            raise ValueError("EXTRACTOR_ALLOWED_ORIGINS cannot include '*'")
        return origins

    @field_validator("allowed_origins")
    @classmethod
    def _validate_allowed_origins(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("allowed_origins cannot be empty")
        for origin in value:
            if origin == "*":
                raise ValueError("allowed_origins cannot include '*'")
            parsed = urlparse(origin)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ValueError(f"Invalid CORS origin: {origin}")
        return value


class ExtractorConfig(BaseModel):
    """Root configuration for the extractor host."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    highlight: HighlightConfig = Field(default_factory=HighlightConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    signals_ledger: Path | None = None
    signal_history_limit: int = Field(default=1000, ge=1)
    log_level: str = Field(default_factory=lambda: os.getenv("EXTRACTOR_LOG_LEVEL", "INFO"))
