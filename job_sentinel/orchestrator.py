"""Scan cycle coordinator owning shared source, job and log state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from .config import GlobalConfig
from .engine import SourceScanner
from .infra import JOBS_KEY, SETTINGS_KEY, SOURCES_KEY, StateStore
from .logging_conf import configure_logging, release_source_logger
from .models import JobRecord, LogEntry, MonitorSettings, MonitorStatus, Source
from .notify import NotificationDispatcher
from .state import append_item, contains_id, prepend_capped, remove_by_id, replace_by_id

ModelT = TypeVar("ModelT", bound=BaseModel)
SettingsListener = Callable[[MonitorSettings], None]
Transform = Callable[[tuple[ModelT, ...]], tuple[ModelT, ...]]


@dataclass(slots=True)
class CycleSummary:
    """Counters and log entries produced by one completed scan cycle."""

    sources_scanned: int = 0
    new_records: int = 0
    errors: int = 0
    log_entries: list[LogEntry] = field(default_factory=list)


class ScanOrchestrator:
    """Drive scan cycles and merge their results into shared state.

    Sources, jobs and logs are immutable tuples swapped under ``_state_lock``
    using identity-keyed transforms, so external actors can add or remove
    sources while a cycle runs. When a ``StateStore`` is attached it is the
    source of truth: every change is applied to the stored list inside one
    store transaction, and the in-memory tuples are refreshed from it, so
    other processes sharing the store never lose their edits. ``_cycle_lock``
    is the re-entrancy guard: a second ``run_cycle`` call while one is in
    flight returns ``None``.
    """

    def __init__(
        self,
        scanner: SourceScanner,
        dispatcher: NotificationDispatcher,
        store: StateStore | None = None,
        global_config: GlobalConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.scanner = scanner
        self.dispatcher = dispatcher
        self.store = store
        self.global_config = global_config or GlobalConfig()
        self._sleep = sleep
        self.logger = configure_logging().bind(component="orchestrator")
        self._state_lock = Lock()
        self._cycle_lock = Lock()
        self._status = MonitorStatus.IDLE
        self._listeners: list[SettingsListener] = []
        self._sources: tuple[Source, ...] = ()
        self._jobs: tuple[JobRecord, ...] = ()
        self._logs: tuple[LogEntry, ...] = ()
        self.reload_state()
        self._settings = self._load_settings()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def status(self) -> MonitorStatus:
        return self._status

    @property
    def sources(self) -> tuple[Source, ...]:
        with self._state_lock:
            return self._sources

    @property
    def jobs(self) -> tuple[JobRecord, ...]:
        with self._state_lock:
            return self._jobs

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        with self._state_lock:
            return self._logs

    @property
    def settings(self) -> MonitorSettings:
        with self._state_lock:
            return self._settings

    def find_source(self, ref: str) -> Source | None:
        """Look a source up by id, case-insensitive name, then unique id prefix."""

        sources = self.sources
        for source in sources:
            if source.id == ref:
                return source
        lowered = ref.strip().lower()
        by_name = next((source for source in sources if source.name.lower() == lowered), None)
        if by_name is not None:
            return by_name
        prefixed = [source for source in sources if lowered and source.id.startswith(lowered)]
        return prefixed[0] if len(prefixed) == 1 else None

    # ------------------------------------------------------------------
    # External actor operations
    # ------------------------------------------------------------------
    def add_source(self, name: str, url: str) -> Source:
        source = Source(name=name.strip(), url=url.strip())
        with self._state_lock:
            self._sources = self._apply(
                SOURCES_KEY, Source, self._sources, lambda items: append_item(items, source)
            )
        self.logger.info("source_added", source=source.name, source_id=source.id, url=source.url)
        return source

    def remove_source(self, source_id: str) -> bool:
        removed: list[Source] = []

        def _remove(items: tuple[Source, ...]) -> tuple[Source, ...]:
            removed.extend(item for item in items if item.id == source_id)
            return remove_by_id(items, source_id)

        with self._state_lock:
            self._sources = self._apply(SOURCES_KEY, Source, self._sources, _remove)
        if not removed:
            return False
        for source in removed:
            release_source_logger(source.name)
        self.logger.info("source_removed", source_id=source_id)
        return True

    def update_settings(self, settings: MonitorSettings) -> None:
        with self._state_lock:
            self._settings = settings
            if self.store is not None:
                self.store.save(SETTINGS_KEY, settings.to_payload())
            listeners = list(self._listeners)
        self.logger.info(
            "settings_updated",
            interval_minutes=settings.check_interval_minutes,
            browser_notifications=settings.enable_browser_notifications,
            webhook_configured=settings.webhook_url is not None,
        )
        for listener in listeners:
            listener(settings)

    def reload_settings(self) -> bool:
        """Adopt settings persisted by another process; return whether they changed."""

        if self.store is None:
            return False
        latest = self._load_settings()
        if latest == self.settings:
            return False
        self.update_settings(latest)
        return True

    def reload_state(self) -> None:
        """Replace in-memory sources and jobs with what the store holds."""

        if self.store is None:
            return
        with self._state_lock:
            self._sources = tuple(self._load_models(SOURCES_KEY, Source))
            self._jobs = tuple(self._load_models(JOBS_KEY, JobRecord))[: self.global_config.max_records]

    def subscribe_settings(self, listener: SettingsListener) -> None:
        with self._state_lock:
            self._listeners.append(listener)

    def clear_jobs(self) -> None:
        with self._state_lock:
            self._jobs = self._apply(JOBS_KEY, JobRecord, self._jobs, lambda items: ())

    def mark_all_seen(self) -> int:
        fresh = 0

        def _mark(items: tuple[JobRecord, ...]) -> tuple[JobRecord, ...]:
            nonlocal fresh
            fresh = sum(1 for job in items if job.is_new)
            return tuple(job.model_copy(update={"is_new": False}) if job.is_new else job for job in items)

        with self._state_lock:
            self._jobs = self._apply(JOBS_KEY, JobRecord, self._jobs, _mark)
        return fresh

    # ------------------------------------------------------------------
    # Scan cycle
    # ------------------------------------------------------------------
    def run_cycle(self) -> CycleSummary | None:
        """Scan every configured source once, in configuration order."""

        if not self._cycle_lock.acquire(blocking=False):
            self.logger.info("scan_cycle_skipped", reason="already_scanning")
            return None
        try:
            self.reload_state()
            with self._state_lock:
                order = [source.id for source in self._sources]
                settings = self._settings
                known_ids = {job.id for job in self._jobs}
            if not order:
                self.logger.info("scan_cycle_skipped", reason="no_sources")
                return None

            self._status = MonitorStatus.SCANNING
            self.logger.info("scan_cycle_started", sources=len(order))
            summary = CycleSummary()
            for index, source_id in enumerate(order):
                source = self._current_source(source_id)
                if source is None:
                    self.logger.info("source_skipped_removed", source_id=source_id)
                    continue
                result = self.scanner.scan(source, frozenset(known_ids))
                self._merge(result.updated_source, result.log_entry, result.new_records)
                summary.sources_scanned += 1
                summary.log_entries.append(result.log_entry)
                if result.failed:
                    summary.errors += 1
                if result.new_records:
                    known_ids.update(record.id for record in result.new_records)
                    summary.new_records += len(result.new_records)
                    self.dispatcher.notify(len(result.new_records), source.name, settings)
                if index < len(order) - 1 and self.global_config.inter_source_delay_seconds:
                    self._sleep(self.global_config.inter_source_delay_seconds)
            self.logger.info(
                "scan_cycle_finished",
                scanned=summary.sources_scanned,
                new=summary.new_records,
                errors=summary.errors,
            )
            return summary
        finally:
            self._status = MonitorStatus.IDLE
            self._cycle_lock.release()

    def _current_source(self, source_id: str) -> Source | None:
        with self._state_lock:
            if self.store is not None:
                self._sources = tuple(self._load_models(SOURCES_KEY, Source))
            return next((source for source in self._sources if source.id == source_id), None)

    def _merge(self, updated: Source, entry: LogEntry, new_records: Iterable[JobRecord]) -> None:
        new_records = tuple(new_records)
        cap = self.global_config.max_records
        with self._state_lock:
            self._sources = self._apply(
                SOURCES_KEY, Source, self._sources, lambda items: replace_by_id(items, updated)
            )
            self._logs = prepend_capped(self._logs, [entry], self.global_config.max_log_entries)
            if new_records:
                known = {job.id for job in new_records}
                self._jobs = self._apply(
                    JOBS_KEY,
                    JobRecord,
                    self._jobs,
                    lambda items: prepend_capped(
                        tuple(job for job in items if job.id not in known), new_records, cap
                    ),
                )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _apply(
        self,
        key: str,
        model: type[ModelT],
        current: tuple[ModelT, ...],
        transform: Transform,
    ) -> tuple[ModelT, ...]:
        """Run ``transform`` against the stored list (or ``current`` without a store)."""

        if self.store is None:
            return transform(current)
        updated: tuple[ModelT, ...] = current

        def _write(raw: Any) -> list[dict]:
            nonlocal updated
            updated = transform(tuple(self._decode(key, raw, model)))
            return [item.to_payload() for item in updated]

        self.store.update(key, _write, [])
        return updated

    def _load_models(self, key: str, model: type[ModelT]) -> list[ModelT]:
        if self.store is None:
            return []
        return self._decode(key, self.store.load(key, []), model)

    def _decode(self, key: str, raw: Any, model: type[ModelT]) -> list[ModelT]:
        if not isinstance(raw, list):
            self.logger.warning("state_ignored", key=key, reason="not_a_list")
            return []
        items: list[ModelT] = []
        for payload in raw:
            try:
                items.append(model.model_validate(payload))
            except ValidationError as exc:
                self.logger.warning("state_item_dropped", key=key, error=str(exc))
        return items

    def _load_settings(self) -> MonitorSettings:
        if self.store is None:
            return MonitorSettings()
        raw = self.store.load(SETTINGS_KEY)
        if raw is None:
            return MonitorSettings()
        try:
            return MonitorSettings.model_validate(raw)
        except ValidationError as exc:
            self.logger.warning("settings_reset", error=str(exc))
            return MonitorSettings()


__all__ = ["CycleSummary", "ScanOrchestrator"]
