"""Periodic and manual scan triggering."""

from .apsched_adapter import MANUAL_JOB_ID, SCAN_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "MANUAL_JOB_ID", "SCAN_JOB_ID"]
