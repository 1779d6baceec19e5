"""Best-effort fan-out of new-job alerts."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Any

import structlog

from ..errors import NotificationError
from ..models import MonitorSettings
from .channels import BrowserNotifier, WebhookSender

ALERT_COLOR = 1107217


def alert_summary(new_count: int, source_name: str) -> str:
    return f"Found {new_count} new jobs at {source_name}"


def build_webhook_payload(new_count: int, source_name: str) -> dict[str, Any]:
    """Discord-style payload: a ``content`` line plus a single embed."""

    return {
        "content": f"🚨 **Sentinel Alert**: {alert_summary(new_count, source_name)}",
        "embeds": [
            {
                "title": f"New Job Postings - {source_name}",
                "description": "New positions detected.",
                "color": ALERT_COLOR,
            }
        ],
    }


class NotificationDispatcher:
    """Deliver alerts on every enabled channel without blocking the caller.

    Webhook deliveries run on ``executor`` and are attempted exactly once; a
    failed delivery is logged and dropped.
    """

    def __init__(
        self,
        executor: Executor,
        notifier: BrowserNotifier | None = None,
        webhook_sender: WebhookSender | None = None,
    ) -> None:
        self.executor = executor
        self.notifier = notifier
        self.webhook_sender = webhook_sender
        self.logger = structlog.get_logger("job_sentinel.notify")

    def notify(
        self, new_count: int, source_name: str, settings: MonitorSettings
    ) -> Future[None] | None:
        summary = alert_summary(new_count, source_name)
        if settings.enable_browser_notifications:
            self._notify_local(summary, source_name)

        if not settings.webhook_url or self.webhook_sender is None:
            return None
        payload = build_webhook_payload(new_count, source_name)
        try:
            return self.executor.submit(self._deliver, settings.webhook_url, payload, source_name)
        except RuntimeError as exc:
            # executor already shut down
            self.logger.warning("webhook_not_scheduled", source=source_name, error=str(exc))
            return None

    def _notify_local(self, summary: str, source_name: str) -> None:
        if self.notifier is None or self.notifier.permission != "granted":
            self.logger.debug("local_notification_skipped", source=source_name)
            return
        try:
            self.notifier.notify(summary)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("local_notification_failed", source=source_name, error=str(exc))

    def _deliver(self, url: str, payload: dict[str, Any], source_name: str) -> None:
        try:
            self.webhook_sender.post(url, payload)
        except NotificationError as exc:
            self.logger.error("webhook_failed", source=source_name, error=str(exc))
            return
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("webhook_crashed", source=source_name, error=str(exc))
            return
        self.logger.info("webhook_delivered", source=source_name)


__all__ = ["ALERT_COLOR", "NotificationDispatcher", "alert_summary", "build_webhook_payload"]
