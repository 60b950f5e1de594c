"""Data models for alertfiles."""

from alertfiles.models.alert import Alert, AlertStatus, QueuedAlert, WebhookMessage, alert_key
from alertfiles.models.remote import CommitMetadata, RemoteFile, Repo

__all__ = [
    "Alert",
    "AlertStatus",
    "QueuedAlert",
    "WebhookMessage",
    "alert_key",
    "CommitMetadata",
    "RemoteFile",
    "Repo",
]
