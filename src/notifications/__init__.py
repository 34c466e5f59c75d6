"""
Notification delivery for checklist alerts and report e-mails.
"""

from src.notifications.sink import (
    NotificationSink,
    LoggingNotificationSink,
    WebhookNotificationSink,
    get_notification_sink,
)
from src.notifications.email import ReportEmail, build_report_email

__all__ = [
    "NotificationSink",
    "LoggingNotificationSink",
    "WebhookNotificationSink",
    "get_notification_sink",
    "ReportEmail",
    "build_report_email",
]
