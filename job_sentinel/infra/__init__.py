"""Infra layer utilities (state persistence)."""

from .storage import JOBS_KEY, SETTINGS_KEY, SOURCES_KEY, SQLiteManager, StateStore

__all__ = ["JOBS_KEY", "SETTINGS_KEY", "SOURCES_KEY", "SQLiteManager", "StateStore"]
