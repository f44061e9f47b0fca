from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog

from neoalert.modules.alerts.bus import SubscriptionBus
from neoalert.modules.alerts.evaluator import RuleEvaluator
from neoalert.modules.alerts.models import (
    Alert,
    AlertEventType,
    AlertType,
    ExpectedRange,
    ExternalSignal,
    Severity,
    VitalObservation,
    utc_now,
)
from neoalert.modules.alerts.store import AlertLifecycleStore
from neoalert.modules.thresholds.models import AgeBand, ThresholdRow, VitalKind
from neoalert.modules.thresholds.table import ThresholdTable
from neoalert.shared.exceptions import DuplicateAlertError

log = structlog.get_logger()


@dataclass(frozen=True)
class VitalLabel:
    label: str
    unit: str


VITAL_LABELS: dict[VitalKind, VitalLabel] = {
    VitalKind.TEMPERATURE: VitalLabel("Temperature", "°C"),
    VitalKind.HEART_RATE: VitalLabel("Heart Rate", "bpm"),
    VitalKind.RESP_RATE: VitalLabel("Respiratory Rate", "/min"),
    VitalKind.SPO2: VitalLabel("SpO2", "%"),
    VitalKind.BP_SYSTOLIC: VitalLabel("Systolic BP", "mmHg"),
    VitalKind.BP_DIASTOLIC: VitalLabel("Diastolic BP", "mmHg"),
    VitalKind.CRT: VitalLabel("CRT", "sec"),
}


@dataclass(frozen=True)
class Advice:
    high: str
    low: str
    critical: str


RECOMMENDATIONS: dict[VitalKind, Advice] = {
    VitalKind.TEMPERATURE: Advice(
        high="Consider antipyretics, ensure hydration, investigate source of fever",
        low="Warm baby, check for sepsis signs, ensure adequate clothing/incubator temperature",
        critical="Immediate intervention required. Possible sepsis workup if fever, active warming if hypothermic",
    ),
    VitalKind.HEART_RATE: Advice(
        high="Assess for pain, fever, dehydration, or sepsis. Consider cardiac evaluation if persistent",
        low="Check for apnea, assess circulation, consider cardiac monitoring",
        critical="Immediate cardiac assessment required. Consider resuscitation protocols",
    ),
    VitalKind.RESP_RATE: Advice(
        high="Assess respiratory effort, check for distress signs, consider chest X-ray",
        low="Stimulate baby, assess for apnea, consider respiratory support",
        critical="Immediate respiratory assessment. Consider oxygen/ventilation support",
    ),
    VitalKind.SPO2: Advice(
        high="Review oxygen delivery, may need to reduce FiO2",
        low="Increase oxygen support, assess airway, consider escalation of respiratory care",
        critical="Immediate respiratory intervention. Check airway, increase oxygen, consider intubation",
    ),
    VitalKind.CRT: Advice(
        high="Assess perfusion, check for dehydration or shock",
        low="Normal perfusion",
        critical="Signs of poor perfusion. Consider fluid bolus, assess for shock",
    ),
}

DEFAULT_RECOMMENDATION = "Monitor closely and reassess"


def new_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex}"


def format_value(value: float) -> str:
    return f"{value:g}"


class AlertFactory:
    """
    Build alerts and hand them to the lifecycle store, then to the bus.

    The store sees a new alert before any subscriber does, so a subscriber that queries
    the store from its callback always finds the alert it was told about.
    """

    def __init__(
        self,
        store: AlertLifecycleStore,
        bus: SubscriptionBus,
        table: ThresholdTable,
    ) -> None:
        self._store = store
        self._bus = bus
        self._table = table

    def from_vital_verdict(
        self,
        observation: VitalObservation,
        severity: Severity,
        band: AgeBand,
        row: ThresholdRow | None = None,
        alert_id: str | None = None,
    ) -> Alert:
        row = row or self._table.lookup(band, observation.vital_kind)
        names = VITAL_LABELS[observation.vital_kind]
        value_text = format_value(observation.value)
        qualifier = "critically " if severity >= Severity.CRITICAL else ""

        alert = Alert(
            id=alert_id or new_alert_id(),
            type=AlertType.VITAL_ABNORMAL,
            severity=severity,
            title=f"Abnormal {names.label}",
            message=(
                f"{names.label} of {value_text}{names.unit} is {qualifier}outside normal range "
                f"for {self._table.describe(band)}"
            ),
            recommendation=self.recommendation(observation.vital_kind, observation.value, severity, row),
            timestamp=utc_now(),
            patient_id=observation.patient_id,
            patient_name=observation.patient_name,
            institution_id=observation.institution_id,
            trigger_vital=observation.vital_kind,
            trigger_value=observation.value,
            expected_range=(
                ExpectedRange(min=row.normal_min, max=row.normal_max) if row is not None else None
            ),
            metadata={"ageBand": band.value, "observedAt": observation.timestamp.isoformat()},
        )
        return self._emit(alert)

    def from_external_signal(
        self,
        kind: AlertType,
        severity: Severity,
        payload: ExternalSignal,
        alert_id: str | None = None,
    ) -> Alert:
        alert = Alert(
            id=alert_id or new_alert_id(),
            type=kind,
            severity=severity,
            title=payload.title,
            message=payload.message,
            recommendation=payload.recommendation,
            timestamp=utc_now(),
            patient_id=payload.patient_id,
            patient_name=payload.patient_name,
            institution_id=payload.institution_id,
            related_medications=tuple(payload.related_medications),
            ai_generated=payload.ai_generated,
            ai_confidence=payload.ai_confidence,
            ai_model=payload.ai_model,
            metadata=dict(payload.metadata),
        )
        return self._emit(alert)

    @staticmethod
    def recommendation(
        vital: VitalKind,
        value: float,
        severity: Severity,
        row: ThresholdRow | None,
    ) -> str:
        advice = RECOMMENDATIONS.get(vital)
        if advice is None:
            return DEFAULT_RECOMMENDATION
        if severity >= Severity.CRITICAL:
            return advice.critical
        if row is None:
            return DEFAULT_RECOMMENDATION
        return advice.high if RuleEvaluator.direction(value, row) == "high" else advice.low

    def _emit(self, alert: Alert) -> Alert:
        existing = self._store.get(alert.id)
        if existing is not None:
            log.debug("alert already active, creation merged", alert_id=alert.id)
            return existing
        if not self._store.add(alert):
            raise DuplicateAlertError(alert.id)

        log.info(
            "alert raised",
            alert_id=alert.id,
            alert_type=alert.type.value,
            severity=alert.severity.value,
            patient_id=alert.patient_id,
        )
        self._bus.publish(alert, AlertEventType.CREATED)
        return alert
