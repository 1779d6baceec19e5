"""Error taxonomy shared by scanners and notification channels."""

from __future__ import annotations


class SentinelError(Exception):
    """Base class for source-scoped, non-fatal failures."""


class FetchError(SentinelError):
    """Raised when a document cannot be retrieved from a source endpoint."""


class ExtractionError(SentinelError):
    """Raised when fetched content cannot be turned into job candidates."""


class NotificationError(SentinelError):
    """Raised when an alert cannot be delivered to a channel."""


__all__ = ["ExtractionError", "FetchError", "NotificationError", "SentinelError"]
