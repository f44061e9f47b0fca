from __future__ import annotations

from collections import Counter
from datetime import datetime
from itertools import count

import structlog
from pydantic import Field

from neoalert.modules.alerts.bus import SubscriptionBus
from neoalert.modules.alerts.models import (
    Alert,
    AlertEventType,
    AlertType,
    Severity,
    utc_now,
)
from neoalert.shared.schemas import CamelModel

log = structlog.get_logger()


class TriggerCount(CamelModel):
    trigger: str
    count: int


class AlertStatistics(CamelModel):
    total_alerts: int = 0
    by_type: dict[AlertType, int] = Field(default_factory=dict)
    by_severity: dict[Severity, int] = Field(default_factory=dict)
    acknowledged_count: int = 0
    avg_acknowledgment_time: float = 0.0
    top_triggers: list[TriggerCount] = Field(default_factory=list)


class AlertLifecycleStore:
    """
    Active alert set and the raised -> acknowledged -> dismissed state machine.

    Dismissal removes an alert from the active set for good. Unknown, dismissed or
    already-acknowledged ids make ``acknowledge``/``dismiss`` quiet no-ops.
    """

    def __init__(self, bus: SubscriptionBus | None = None) -> None:
        self._bus = bus
        self._active: dict[str, Alert] = {}
        self._sequence: dict[str, int] = {}
        self._counter = count()
        # Latest known version of every alert ever added, dismissed ones included.
        self._history: dict[str, Alert] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._active

    def add(self, alert: Alert) -> bool:
        if alert.id in self._active or alert.id in self._history:
            log.debug("duplicate alert id suppressed", alert_id=alert.id)
            return False
        self._active[alert.id] = alert
        self._sequence[alert.id] = next(self._counter)
        self._history[alert.id] = alert
        return True

    def get(self, alert_id: str) -> Alert | None:
        return self._active.get(alert_id)

    def acknowledge(
        self,
        alert_id: str,
        actor_id: str,
        actor_name: str,
        at: datetime | None = None,
    ) -> Alert | None:
        """Record the first acknowledgement of an active alert; later calls change nothing."""
        alert = self._active.get(alert_id)
        if alert is None:
            log.debug("acknowledge ignored for inactive alert", alert_id=alert_id)
            return None
        if alert.acknowledged:
            return None

        updated = alert.model_copy(
            update={
                "acknowledged": True,
                "acknowledged_by": actor_id,
                "acknowledged_by_name": actor_name,
                "acknowledged_at": at or utc_now(),
            }
        )
        self._active[alert_id] = updated
        self._history[alert_id] = updated
        log.info("alert acknowledged", alert_id=alert_id, actor_id=actor_id)

        if self._bus is not None:
            self._bus.publish(updated, AlertEventType.ACKNOWLEDGED)
        return updated

    def dismiss(self, alert_id: str, at: datetime | None = None) -> Alert | None:
        alert = self._active.pop(alert_id, None)
        if alert is None:
            log.debug("dismiss ignored for inactive alert", alert_id=alert_id)
            return None
        self._sequence.pop(alert_id, None)
        dismissed = alert.model_copy(update={"dismissed": True, "dismissed_at": at or utc_now()})
        self._history[alert_id] = dismissed
        log.info("alert dismissed", alert_id=alert_id)
        return dismissed

    def list_active(self, patient_id: str | None = None) -> list[Alert]:
        """Active alerts, most recent first; ``patient_id`` is an exact-match filter."""
        alerts = [
            alert
            for alert in self._active.values()
            if patient_id is None or alert.patient_id == patient_id
        ]
        alerts.sort(
            key=lambda alert: (alert.timestamp, self._sequence[alert.id]),
            reverse=True,
        )
        return alerts

    def list_by_severity(self, patient_id: str | None = None) -> list[Alert]:
        """Active alerts ranked most severe first, newest first within a severity."""
        alerts = self.list_active(patient_id)
        alerts.sort(key=lambda alert: alert.severity.rank, reverse=True)
        return alerts

    def highest_severity(self, patient_id: str | None = None) -> Severity | None:
        return Severity.highest(alert.severity for alert in self.list_active(patient_id))

    def statistics(self) -> AlertStatistics:
        alerts = list(self._history.values())
        by_type = Counter(alert.type for alert in alerts)
        by_severity = Counter(alert.severity for alert in alerts)

        acknowledged = [alert for alert in alerts if alert.acknowledged]
        latencies = [
            (alert.acknowledged_at - alert.timestamp).total_seconds()
            for alert in acknowledged
            if alert.acknowledged_at is not None
        ]
        triggers = Counter(
            alert.trigger_vital.value for alert in alerts if alert.trigger_vital is not None
        )

        return AlertStatistics(
            total_alerts=len(alerts),
            by_type=dict(by_type),
            by_severity=dict(by_severity),
            acknowledged_count=len(acknowledged),
            avg_acknowledgment_time=sum(latencies) / len(latencies) if latencies else 0.0,
            top_triggers=[
                TriggerCount(trigger=trigger, count=total)
                for trigger, total in triggers.most_common(5)
            ],
        )

    def clear(self) -> None:
        self._active.clear()
        self._sequence.clear()
        self._history.clear()
