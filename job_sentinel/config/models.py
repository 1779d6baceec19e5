"""Pydantic models describing runtime configuration for Job Sentinel."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

DEFAULT_LINK_KEYWORDS = [
    "job",
    "career",
    "position",
    "opening",
    "vacanc",
    "role",
    "apply",
]


class FetchConfig(BaseModel):
    """Transport options shared by every source."""

    timeout_seconds: float = Field(default=20.0, gt=0)
    retry_on_fail: int = Field(default=0, ge=0)
    user_agent: str | None = DEFAULT_USER_AGENT
    # e.g. "https://api.allorigins.win/get?url={url}"; the relay answers with
    # JSON whose "contents" field holds the page.
    relay_url: str | None = None
    use_browser: bool = False
    headless: bool = True
    max_content_chars: int = Field(default=150_000, gt=0)

    @model_validator(mode="after")
    def _validate_relay(self) -> "FetchConfig":
        if self.relay_url is not None and "{url}" not in self.relay_url:
            raise ValueError("relay_url must contain a '{url}' placeholder")
        return self


class ExtractionConfig(BaseModel):
    """Heuristics used by the HTML extractor when no JSON-LD is present."""

    item_selector: str = "a[href]"
    link_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_LINK_KEYWORDS))

    @field_validator("link_keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip().lower() for item in value if str(item).strip()]


class GlobalConfig(BaseModel):
    """Process-wide controls loaded from ``global_config.yaml``."""

    state_path: Path = Field(default=Path("data/state.db"))
    inter_source_delay_seconds: float = Field(default=1.0, ge=0)
    max_records: int = Field(default=500, gt=0)
    max_log_entries: int = Field(default=50, gt=0)
    notify_workers: int = Field(default=4, gt=0)
    settings_poll_seconds: float = Field(default=5.0, gt=0)
    webhook_timeout_seconds: float = Field(default=10.0, gt=0)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)

    @field_validator("state_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        if isinstance(value, (str, Path)) and str(value).strip():
            return Path(value)
        raise ValueError("state_path must be a non-empty path")

    def resolved_state_path(self, base_dir: Path) -> Path:
        """Return the state database path relative to the project root."""

        if not self.state_path.is_absolute():
            return (base_dir / self.state_path).resolve()
        return self.state_path


__all__ = [
    "DEFAULT_LINK_KEYWORDS",
    "DEFAULT_USER_AGENT",
    "ExtractionConfig",
    "FetchConfig",
    "GlobalConfig",
]
