from datetime import datetime, timedelta, timezone
from typing import Any

from neoalert.modules.alerts.config import EscalationRule
from neoalert.modules.alerts.models import (
    Alert,
    AlertEvent,
    AlertType,
    Severity,
    VitalObservation,
)
from neoalert.modules.thresholds.models import AgeUnit, VitalKind

BASE_TIME = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def make_alert(
    alert_id: str = "alert_1",
    patient_id: str | None = "P1",
    severity: Severity = Severity.WARNING,
    minutes_ago: float = 0,
    now: datetime = BASE_TIME,
    **overrides: Any,
) -> Alert:
    """Build an alert directly, bypassing the factory."""
    fields: dict[str, Any] = {
        "id": alert_id,
        "type": AlertType.VITAL_ABNORMAL,
        "severity": severity,
        "title": "Abnormal Heart Rate",
        "message": "Heart Rate of 210bpm is critically outside normal range",
        "timestamp": now - timedelta(minutes=minutes_ago),
        "patient_id": patient_id,
    }
    fields.update(overrides)
    return Alert(**fields)


def make_observation(
    vital: VitalKind,
    value: float,
    age: float = 5,
    unit: AgeUnit = AgeUnit.DAYS,
    **overrides: Any,
) -> VitalObservation:
    fields: dict[str, Any] = {
        "vital_kind": vital,
        "value": value,
        "patient_age": age,
        "patient_age_unit": unit,
        "patient_id": "P1",
        "patient_name": "Baby A",
    }
    fields.update(overrides)
    return VitalObservation(**fields)


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[AlertEvent] = []

    def __call__(self, event: AlertEvent) -> None:
        self.events.append(event)

    @property
    def alert_ids(self) -> list[str]:
        return [event.alert.id for event in self.events]


class NotifierRecorder:
    def __init__(self) -> None:
        self.calls: list[tuple[Alert, EscalationRule]] = []

    def __call__(self, alert: Alert, rule: EscalationRule) -> None:
        self.calls.append((alert, rule))
