"""
Notification sinks.

The checklist engine and the report exporter hand every alert and report
e-mail to a sink. Sinks never raise on delivery problems; they report them in
the returned NotificationResult.
"""

import asyncio
import time
import uuid
from typing import List, Optional

import requests

from src.schemas.models import NotificationPayload, NotificationResult
from utils.logger import setup_logger
from utils.config import config

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="NOTIFY"
)


class NotificationSink:
    """Base class for notification delivery."""

    name = "base"

    async def send(self, payload: NotificationPayload) -> NotificationResult:
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    """Logs each payload and keeps it in memory. Default when no webhook is set."""

    name = "logging"

    def __init__(self):
        self.sent: List[NotificationPayload] = []
        self.logger = logger

    async def send(self, payload: NotificationPayload) -> NotificationResult:
        self.sent.append(payload)
        self.logger.info(
            f"[{payload.urgency.upper()}] {payload.type} -> "
            f"{', '.join(payload.recipients)}: {payload.message}"
        )
        return NotificationResult(success=True, delivery_id=f"log_{uuid.uuid4().hex[:12]}")


class WebhookNotificationSink(NotificationSink):
    """POSTs payloads as JSON to a webhook with retry and exponential backoff."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        backoff: Optional[int] = None,
        headers: Optional[dict] = None
    ):
        self.url = url
        self.timeout = timeout or config.notification_timeout
        self.max_retries = max_retries or config.notification_max_retries
        self.backoff = config.notification_retry_backoff if backoff is None else backoff
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.logger = logger

    def _post(self, body: dict) -> NotificationResult:
        last_error = None

        for attempt in range(self.max_retries):
            try:
                self.logger.debug(f"Webhook attempt {attempt + 1}/{self.max_retries}")

                response = requests.post(
                    self.url,
                    json=body,
                    headers=self.headers,
                    timeout=self.timeout
                )

                if 200 <= response.status_code < 300:
                    delivery_id = None
                    if "application/json" in response.headers.get("Content-Type", ""):
                        delivery_id = response.json().get("delivery_id")
                    return NotificationResult(success=True, delivery_id=delivery_id)

                last_error = f"HTTP {response.status_code}: {response.text[:500]}"
                self.logger.warning(f"Webhook rejected payload: {last_error}")

                # client errors will not succeed on retry
                if 400 <= response.status_code < 500:
                    break

            except requests.exceptions.Timeout:
                last_error = "Request timeout"
                self.logger.warning("Webhook request timeout")

            except requests.exceptions.RequestException as e:
                last_error = str(e)
                self.logger.warning(f"Webhook request failed: {e}")

            if attempt < self.max_retries - 1 and self.backoff:
                time.sleep(self.backoff ** attempt)

        self.logger.error(f"Webhook delivery failed after {self.max_retries} attempt(s)")
        return NotificationResult(success=False, error=last_error or "Webhook delivery failed")

    async def send(self, payload: NotificationPayload) -> NotificationResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._post, payload.model_dump(mode="json"))


def get_notification_sink() -> NotificationSink:
    """Webhook sink when NOTIFICATION_WEBHOOK_URL is set, logging sink otherwise."""
    if config.notifications_enabled:
        return WebhookNotificationSink(config.notification_webhook_url)
    return LoggingNotificationSink()
