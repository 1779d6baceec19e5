"""Alert channels, the delivery pool and the notification dispatcher."""

from .channels import BrowserNotifier, ConsoleNotifier, HttpWebhookSender, WebhookSender
from .dispatcher import NotificationDispatcher, alert_summary, build_webhook_payload
from .pool import DeliveryPool

__all__ = [
    "BrowserNotifier",
    "ConsoleNotifier",
    "DeliveryPool",
    "HttpWebhookSender",
    "NotificationDispatcher",
    "WebhookSender",
    "alert_summary",
    "build_webhook_payload",
]
