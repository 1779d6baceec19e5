"""Domain models for monitored sources, detected jobs and the activity log."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class SourceStatus(str, Enum):
    """Health of a monitored source after its latest scan."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class MonitorStatus(str, Enum):
    """Scan cycle state owned by the orchestrator."""

    IDLE = "idle"
    SCANNING = "scanning"


class _StateModel(BaseModel):
    """Immutable model persisted with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Source(_StateModel):
    """A career page being watched."""

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    last_checked: datetime | None = None
    status: SourceStatus = SourceStatus.ACTIVE
    job_count: int = 0
    last_error: str | None = None


class JobRecord(_StateModel):
    """A job posting detected on a source.

    ``id`` is the record fingerprint; ``is_new`` is only a presentation hint
    and never takes part in identity.
    """

    id: str
    title: str
    url: str
    location: str | None = None
    date: str | None = None
    source_name: str
    detected_at: datetime = Field(default_factory=utc_now)
    is_new: bool = False


class LogEntry(_StateModel):
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utc_now)
    message: str
    level: LogLevel = LogLevel.INFO


class Candidate(BaseModel):
    """One raw posting as produced by an extractor."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    date: str | None = None
    location: str | None = None

    @field_validator("date", "location", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class MonitorSettings(_StateModel):
    """User-facing settings, re-read at the start of every scan cycle."""

    check_interval_minutes: int = Field(default=30, gt=0)
    enable_browser_notifications: bool = False
    webhook_url: str | None = None

    @field_validator("webhook_url", mode="before")
    @classmethod
    def _empty_webhook(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


__all__ = [
    "Candidate",
    "JobRecord",
    "LogEntry",
    "LogLevel",
    "MonitorSettings",
    "MonitorStatus",
    "Source",
    "SourceStatus",
    "new_id",
    "utc_now",
]
