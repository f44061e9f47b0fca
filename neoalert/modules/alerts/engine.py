from __future__ import annotations

from typing import Callable, Sequence

import structlog

from neoalert.modules.alerts.bus import AlertCallback, SubscriptionBus, Unsubscribe
from neoalert.modules.alerts.config import AlertConfigRegistry, EscalationRule
from neoalert.modules.alerts.escalation import EscalationNotifier, EscalationScheduler
from neoalert.modules.alerts.evaluator import RuleEvaluator
from neoalert.modules.alerts.factory import AlertFactory
from neoalert.modules.alerts.models import (
    AIFinding,
    Alert,
    AlertEvent,
    AlertEventType,
    AlertHistoryEntry,
    AlertType,
    AuditAction,
    ExternalSignal,
    PatientContext,
    Severity,
    VitalObservation,
    VitalPanel,
)
from neoalert.modules.alerts.screening import (
    Finding,
    as_float,
    check_basic_interactions,
    deterioration_findings,
    parse_blood_pressure,
    sepsis_finding,
    sepsis_indicators,
)
from neoalert.modules.alerts.store import AlertLifecycleStore, AlertStatistics
from neoalert.modules.thresholds.classifier import classify
from neoalert.modules.thresholds.models import AgeBand, ThresholdRow, VitalKind
from neoalert.modules.thresholds.table import ThresholdTable

log = structlog.get_logger()

AuditSink = Callable[[AlertHistoryEntry], None]

PANEL_VITALS: tuple[tuple[str, VitalKind], ...] = (
    ("temperature", VitalKind.TEMPERATURE),
    ("heart_rate", VitalKind.HEART_RATE),
    ("resp_rate", VitalKind.RESP_RATE),
    ("spo2", VitalKind.SPO2),
    ("crt", VitalKind.CRT),
)

AI_KIND_TYPES: dict[str, AlertType] = {alert_type.value: alert_type for alert_type in AlertType}


def _log_escalation(alert: Alert, rule: EscalationRule) -> None:
    log.info(
        "escalation notification pending delivery",
        alert_id=alert.id,
        escalate_to=rule.escalate_to,
        notify_method=rule.notify_method.value,
    )


class ClinicalAlertEngine:
    """
    Alert engine facade wiring the evaluator, factory, store, bus and escalation sweep.

    One instance is created at process start and shared by its collaborators; tests build
    their own isolated instances.
    """

    def __init__(
        self,
        table: ThresholdTable,
        configs: AlertConfigRegistry,
        notifier: EscalationNotifier | None = None,
        audit_sink: AuditSink | None = None,
        sweep_interval_seconds: float = 30.0,
    ) -> None:
        self._configs = configs
        self._audit_sink = audit_sink
        self.bus = SubscriptionBus()
        self.store = AlertLifecycleStore(bus=self.bus)
        self.evaluator = RuleEvaluator(table)
        self.factory = AlertFactory(store=self.store, bus=self.bus, table=table)
        self.scheduler = EscalationScheduler(
            store=self.store,
            configs=configs,
            notifier=notifier or _log_escalation,
            bus=self.bus,
            interval_seconds=sweep_interval_seconds,
        )
        if audit_sink is not None:
            self.bus.subscribe(self._audit_event)

    @property
    def configs(self) -> AlertConfigRegistry:
        return self._configs

    # ========== Inbound feeds ==========

    def process_observation(self, observation: VitalObservation) -> Alert | None:
        """Evaluate one reading and raise an alert when it falls outside its range."""
        config = self._configs.resolve(observation.institution_id)
        if not config.enabled:
            return None
        overrides = config.threshold_overrides()
        severity = self.evaluator.evaluate(observation, overrides)
        if severity is None:
            return None
        band = self.evaluator.band_for(observation)
        row = self.evaluator.resolve_row(band, observation.vital_kind, overrides)
        return self.factory.from_vital_verdict(observation, severity, band, row)

    def check_vitals(self, panel: VitalPanel, patient: PatientContext) -> list[Alert]:
        """Evaluate every charted vital on a panel; blank or unreadable entries are skipped."""
        observations: list[VitalObservation] = []
        for field_name, vital in PANEL_VITALS:
            value = as_float(getattr(panel, field_name))
            if value is None:
                continue
            observations.append(self._observation(patient, vital, value, panel))

        pressure = parse_blood_pressure(panel.bp)
        if pressure is not None:
            systolic, _diastolic = pressure
            observations.append(
                self._observation(patient, VitalKind.BP_SYSTOLIC, float(systolic), panel)
            )

        # Reject the whole panel before raising anything from it.
        for observation in observations:
            RuleEvaluator.validate(observation)

        alerts: list[Alert] = []
        for observation in observations:
            alert = self.process_observation(observation)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def check_medication_interactions(
        self, medications: Sequence[str], patient: PatientContext
    ) -> list[Alert]:
        if not self._enabled(patient.institution_id):
            return []
        findings = check_basic_interactions(medications)
        return [self._raise_finding(AlertType.DRUG_INTERACTION, finding, patient) for finding in findings]

    def check_sepsis_risk(
        self,
        panel: VitalPanel,
        patient: PatientContext,
        clinical_findings: str | None = None,
    ) -> list[Alert]:
        if not self._enabled(patient.institution_id):
            return []
        band = self._band(patient)
        overrides = self._configs.resolve(patient.institution_id).threshold_overrides()
        rows: dict[VitalKind, ThresholdRow] = {}
        for vital in VitalKind:
            row = self.evaluator.resolve_row(band, vital, overrides)
            if row is not None:
                rows[vital] = row
        finding = sepsis_finding(sepsis_indicators(panel, rows, clinical_findings))
        if finding is None:
            return []
        return [self._raise_finding(AlertType.SEPSIS_RISK, finding, patient)]

    def detect_deterioration(
        self, patient: PatientContext, panels: Sequence[VitalPanel]
    ) -> list[Alert]:
        if not panels or not self._enabled(patient.institution_id):
            return []
        band = self._band(patient)
        overrides = self._configs.resolve(patient.institution_id).threshold_overrides()
        hr_row = self.evaluator.resolve_row(band, VitalKind.HEART_RATE, overrides)
        return [
            self._raise_finding(AlertType.DETERIORATION, finding, patient)
            for finding in deterioration_findings(panels, hr_row)
        ]

    def raise_signal(
        self,
        kind: AlertType,
        severity: Severity,
        payload: ExternalSignal,
        alert_id: str | None = None,
    ) -> Alert | None:
        if not self._enabled(payload.institution_id):
            log.debug("signal ignored for disabled institution", institution_id=payload.institution_id)
            return None
        return self.factory.from_external_signal(kind, severity, payload, alert_id=alert_id)

    def raise_ai_finding(self, finding: AIFinding) -> Alert | None:
        if not self._enabled(finding.institution_id):
            log.debug("ai finding ignored for disabled institution", institution_id=finding.institution_id)
            return None
        kind = AI_KIND_TYPES.get(finding.kind.strip().lower(), AlertType.CRITICAL_FINDING)
        payload = ExternalSignal(
            title=finding.title,
            message=finding.message,
            recommendation=finding.recommendation,
            patient_id=finding.patient_id,
            patient_name=finding.patient_name,
            institution_id=finding.institution_id,
            related_medications=finding.related_medications,
            ai_generated=True,
            ai_confidence=finding.confidence,
            ai_model=finding.model,
        )
        return self.factory.from_external_signal(kind, Severity.from_hint(finding.severity), payload)

    # ========== Outbound surface ==========

    def subscribe(self, callback: AlertCallback) -> Unsubscribe:
        return self.bus.subscribe(callback)

    def acknowledge(self, alert_id: str, actor_id: str, actor_name: str) -> Alert | None:
        return self.store.acknowledge(alert_id, actor_id, actor_name)

    def dismiss(self, alert_id: str) -> Alert | None:
        dismissed = self.store.dismiss(alert_id)
        if dismissed is not None:
            self._audit(
                AlertHistoryEntry(
                    alert_id=alert_id,
                    action=AuditAction.DISMISSED,
                    timestamp=dismissed.dismissed_at,
                )
            )
        return dismissed

    def list_active(self, patient_id: str | None = None) -> list[Alert]:
        return self.store.list_active(patient_id)

    def highest_severity(self, patient_id: str | None = None) -> Severity | None:
        return self.store.highest_severity(patient_id)

    def statistics(self) -> AlertStatistics:
        return self.store.statistics()

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    # ========== Helpers ==========

    def _raise_finding(
        self, kind: AlertType, finding: Finding, patient: PatientContext
    ) -> Alert:
        payload = ExternalSignal(
            title=finding.title,
            message=finding.message,
            recommendation=finding.recommendation,
            patient_id=patient.patient_id,
            patient_name=patient.patient_name,
            institution_id=patient.institution_id,
            related_medications=list(finding.related_medications),
            metadata=dict(finding.metadata),
        )
        return self.factory.from_external_signal(kind, finding.severity, payload)

    def _enabled(self, institution_id: str | None) -> bool:
        return self._configs.resolve(institution_id).enabled

    @staticmethod
    def _band(patient: PatientContext) -> AgeBand:
        return classify(
            patient.age,
            patient.age_unit,
            corrected_gestational_weeks=patient.corrected_gestational_weeks,
        )

    @staticmethod
    def _observation(
        patient: PatientContext, vital: VitalKind, value: float, panel: VitalPanel
    ) -> VitalObservation:
        return VitalObservation(
            vital_kind=vital,
            value=value,
            patient_age=patient.age,
            patient_age_unit=patient.age_unit,
            timestamp=panel.timestamp,
            patient_id=patient.patient_id,
            patient_name=patient.patient_name,
            institution_id=patient.institution_id,
            corrected_gestational_weeks=patient.corrected_gestational_weeks,
        )

    def _audit_event(self, event: AlertEvent) -> None:
        alert = event.alert
        if event.event == AlertEventType.CREATED:
            entry = AlertHistoryEntry(
                alert_id=alert.id, action=AuditAction.CREATED, timestamp=alert.timestamp
            )
        elif event.event == AlertEventType.ACKNOWLEDGED:
            entry = AlertHistoryEntry(
                alert_id=alert.id,
                action=AuditAction.ACKNOWLEDGED,
                timestamp=alert.acknowledged_at,
                user_id=alert.acknowledged_by,
                user_name=alert.acknowledged_by_name,
            )
        else:
            entry = AlertHistoryEntry(
                alert_id=alert.id, action=AuditAction.ESCALATED, timestamp=event.timestamp
            )
        self._audit(entry)

    def _audit(self, entry: AlertHistoryEntry) -> None:
        if self._audit_sink is None:
            return
        try:
            self._audit_sink(entry)
        except Exception:
            log.exception("alert_audit_failed", alert_id=entry.alert_id, action=entry.action.value)
