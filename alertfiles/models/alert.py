"""Alertmanager webhook models and alert identity."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AlertStatus = Literal["firing", "resolved"]

# Alertmanager sends this for alerts that have not ended yet
ZERO_TIME = datetime.fromisoformat("0001-01-01T00:00:00+00:00")


def alert_key(labels: dict[str, str]) -> str:
    """Derive a stable identity from an alert's label set.

    Labels are serialized with sorted keys so that iteration order never
    changes the key.
    """
    canonical = json.dumps(labels, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class Alert(BaseModel):
    """A single alert as delivered by the Alertmanager webhook."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    status: AlertStatus
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: datetime = Field(default=ZERO_TIME, alias="startsAt")
    ends_at: datetime = Field(default=ZERO_TIME, alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""

    @property
    def key(self) -> str:
        return alert_key(self.labels)

    @property
    def name(self) -> str:
        return self.labels.get("alertname", "N/A")

    @property
    def is_firing(self) -> bool:
        return self.status == "firing"

    @property
    def is_resolved(self) -> bool:
        return self.status == "resolved"


class WebhookMessage(BaseModel):
    """Alertmanager webhook payload (version 4)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = ""
    group_key: str = Field(default="", alias="groupKey")
    truncated_alerts: int = Field(default=0, alias="truncatedAlerts")
    status: AlertStatus = "firing"
    receiver: str = ""
    group_labels: dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: str = Field(default="", alias="externalURL")
    alerts: list[Alert] = Field(default_factory=list)


@dataclass
class QueuedAlert:
    """A pending alert in the debounce queue.

    ``alert`` and the ``message`` it arrived in are replaced by every later
    arrival of the same key, ``fire_at`` stays anchored to the first arrival.
    """

    key: str
    alert: Alert
    fire_at: datetime
    arrivals: int = 1
    message: Optional[WebhookMessage] = field(default=None, repr=False)
    deferred: bool = field(default=False, repr=False)

    def replace(self, alert: Alert, message: Optional[WebhookMessage] = None) -> None:
        self.alert = alert
        self.message = message
        self.arrivals += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "alertname": self.alert.name,
            "status": self.alert.status,
            "fire_at": self.fire_at.isoformat(),
            "arrivals": self.arrivals,
        }
