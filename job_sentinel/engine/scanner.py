"""Single-source fetch → extract → diff cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AbstractSet, Any, Mapping, Sequence
from urllib.parse import urljoin

from pydantic import ValidationError

from ..errors import ExtractionError, SentinelError
from ..logging_conf import source_logger
from ..models import Candidate, JobRecord, LogEntry, LogLevel, Source, SourceStatus
from .extractor import Extractor
from .fetcher import Fetcher
from .fingerprint import fingerprint


@dataclass(slots=True)
class ScanResult:
    """Outcome of scanning one source; failures are folded in, never raised."""

    updated_source: Source
    log_entry: LogEntry
    new_records: list[JobRecord] = field(default_factory=list)
    seen_records: list[JobRecord] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.updated_source.status is SourceStatus.ERROR


def resolve_url(base: str, candidate: str) -> str:
    """Resolve ``candidate`` against ``base``; unresolvable values pass through."""

    try:
        return urljoin(base, candidate)
    except ValueError:
        return candidate


class SourceScanner:
    """Run one scan of a source against a snapshot of known record ids."""

    def __init__(self, fetcher: Fetcher, extractor: Extractor) -> None:
        self.fetcher = fetcher
        self.extractor = extractor

    def scan(self, source: Source, known_ids: AbstractSet[str]) -> ScanResult:
        log = source_logger(source.name)
        now = datetime.now(timezone.utc)
        try:
            raw = self.fetcher.fetch(source.url)
            candidates = self._validate(self.extractor.extract(source.name, raw))
        except SentinelError as exc:
            log.warning("source_scan_failed", url=source.url, error=str(exc), kind=type(exc).__name__)
            return self._failure(source, now, exc)
        except Exception as exc:  # noqa: BLE001
            log.exception("source_scan_crashed", url=source.url)
            return self._failure(source, now, exc)

        new_records: list[JobRecord] = []
        seen_records: list[JobRecord] = []
        emitted: set[str] = set()
        for candidate in candidates:
            url = resolve_url(source.url, candidate.url)
            record_id = fingerprint(source.id, candidate.title, url)
            if record_id in emitted:
                continue
            emitted.add(record_id)
            is_new = record_id not in known_ids
            record = JobRecord(
                id=record_id,
                title=candidate.title,
                url=url,
                location=candidate.location,
                date=candidate.date,
                source_name=source.name,
                detected_at=now,
                is_new=is_new,
            )
            (new_records if is_new else seen_records).append(record)

        total = len(candidates)
        log.info("source_scanned", url=source.url, jobs=total, new=len(new_records))
        return ScanResult(
            updated_source=source.model_copy(
                update={
                    "last_checked": now,
                    "status": SourceStatus.ACTIVE,
                    "job_count": total,
                    "last_error": None,
                }
            ),
            log_entry=LogEntry(
                timestamp=now,
                message=f"Scanned {source.name}: Found {total} jobs ({len(new_records)} new).",
                level=LogLevel.SUCCESS if new_records else LogLevel.INFO,
            ),
            new_records=new_records,
            seen_records=seen_records,
        )

    @staticmethod
    def _failure(source: Source, now: datetime, exc: Exception) -> ScanResult:
        message = str(exc) or type(exc).__name__
        return ScanResult(
            updated_source=source.model_copy(
                update={
                    "last_checked": now,
                    "status": SourceStatus.ERROR,
                    "last_error": message,
                }
            ),
            log_entry=LogEntry(
                timestamp=now,
                message=f"Error scanning {source.name}: {message}",
                level=LogLevel.ERROR,
            ),
        )

    @staticmethod
    def _validate(raw: Sequence[Candidate | Mapping[str, Any]]) -> list[Candidate]:
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise ExtractionError("Extractor returned a non-sequence result")
        candidates: list[Candidate] = []
        for item in raw:
            if isinstance(item, Candidate):
                candidates.append(item)
                continue
            try:
                candidates.append(Candidate.model_validate(item))
            except ValidationError as exc:
                raise ExtractionError(
                    f"Failed to parse jobs from the page content: {exc.error_count()} invalid field(s)"
                ) from exc
        return candidates


__all__ = ["ScanResult", "SourceScanner", "resolve_url"]
