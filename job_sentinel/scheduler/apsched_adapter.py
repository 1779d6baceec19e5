"""APScheduler wrapper driving periodic and on-demand scan cycles."""

from __future__ import annotations

from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..logging_conf import configure_logging
from ..models import MonitorSettings

SCAN_JOB_ID = "sentinel::scan"
MANUAL_JOB_ID = "sentinel::manual"


class APSchedulerAdapter:
    """Arm the periodic scan job and queue manual scans.

    Jobs run with ``max_instances=1`` and ``coalesce=True``; overlapping
    requests that still reach the callback are rejected by the
    orchestrator's own guard.
    """

    def __init__(self, callback: Callable[[], object], scheduler: BackgroundScheduler | None = None) -> None:
        self.callback = callback
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False
        self.interval_minutes: int | None = None

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def apply_settings(self, settings: MonitorSettings) -> bool:
        """Re-arm the interval job when the interval changed; return whether it did."""

        minutes = settings.check_interval_minutes
        if minutes == self.interval_minutes:
            return False
        self.scheduler.add_job(
            self.callback,
            trigger=IntervalTrigger(minutes=minutes),
            id=SCAN_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        previous, self.interval_minutes = self.interval_minutes, minutes
        self.logger.info("scan_job_armed", interval_minutes=minutes, previous=previous)
        return True

    def request_scan(self) -> None:
        """Run a scan as soon as a worker is free."""

        self.scheduler.add_job(
            self.callback,
            id=MANUAL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("manual_scan_requested")

    def cancel(self) -> None:
        try:
            self.scheduler.remove_job(SCAN_JOB_ID)
        except JobLookupError:
            self.logger.warning("scan_job_missing")
        self.interval_minutes = None

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "MANUAL_JOB_ID", "SCAN_JOB_ID"]
