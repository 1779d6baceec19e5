"""Concrete alert channels: a desktop-style console notifier and a webhook sender."""

from __future__ import annotations

from typing import Any, Literal, Protocol

import httpx
from rich.console import Console
from rich.panel import Panel

from ..errors import NotificationError

Permission = Literal["default", "granted", "denied"]


class BrowserNotifier(Protocol):
    """Local notification surface; permission is granted outside the core."""

    permission: Permission

    def notify(self, summary: str) -> None: ...


class WebhookSender(Protocol):
    def post(self, url: str, payload: dict[str, Any]) -> None: ...


class ConsoleNotifier:
    """Render alerts as rich panels on the attached terminal."""

    def __init__(self, console: Console | None = None, permission: Permission = "default") -> None:
        self.console = console or Console(stderr=True)
        self.permission: Permission = permission

    def notify(self, summary: str) -> None:
        self.console.print(Panel(summary, title="Sentinel Alert", border_style="green"))


class HttpWebhookSender:
    """POST JSON payloads with httpx; any failure becomes ``NotificationError``."""

    def __init__(self, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def post(self, url: str, payload: dict[str, Any]) -> None:
        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Webhook delivery to {url} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()


__all__ = [
    "BrowserNotifier",
    "ConsoleNotifier",
    "HttpWebhookSender",
    "Permission",
    "WebhookSender",
]
