from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from pydantic import Field

from neoalert.modules.thresholds.models import AgeUnit, VitalKind
from neoalert.shared.schemas import FrozenCamelModel, ReadOnlyMapping


class Severity(str, Enum):
    """Alert urgency; comparisons follow INFO < WARNING < CRITICAL < EMERGENCY."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    # the str mixin would otherwise order severities alphabetically
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def highest(cls, severities: Iterable["Severity"]) -> "Severity | None":
        return max(severities, key=lambda severity: severity.rank, default=None)

    @classmethod
    def from_hint(cls, hint: str | None) -> "Severity":
        """Map a free-form severity hint from an AI collaborator onto the taxonomy."""
        normalized = (hint or "").strip().lower()
        if normalized == "emergency":
            return cls.EMERGENCY
        if normalized == "critical":
            return cls.CRITICAL
        if normalized == "warning":
            return cls.WARNING
        return cls.INFO


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.CRITICAL: 2,
    Severity.EMERGENCY: 3,
}


class AlertType(str, Enum):
    VITAL_ABNORMAL = "vital_abnormal"
    DRUG_INTERACTION = "drug_interaction"
    DETERIORATION = "deterioration"
    DOSING_ERROR = "dosing_error"
    MISSING_FOLLOWUP = "missing_followup"
    PROTOCOL_DEVIATION = "protocol_deviation"
    CRITICAL_FINDING = "critical_finding"
    SEPSIS_RISK = "sepsis_risk"
    RESPIRATORY_DISTRESS = "respiratory_distress"


class AlertEventType(str, Enum):
    CREATED = "alert_created"
    ACKNOWLEDGED = "alert_acknowledged"
    ESCALATED = "alert_escalated"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpectedRange(FrozenCamelModel):
    min: float | None = None
    max: float | None = None


class VitalObservation(FrozenCamelModel):
    """A single vital reading handed over by the clinical-notes workflow."""

    vital_kind: VitalKind
    value: float
    patient_age: float
    patient_age_unit: AgeUnit
    timestamp: datetime = Field(default_factory=utc_now)
    patient_id: str | None = None
    patient_name: str | None = None
    institution_id: str | None = None
    corrected_gestational_weeks: float | None = None


class VitalPanel(FrozenCamelModel):
    """One charted set of vitals, as entered on a progress note."""

    temperature: float | str | None = None
    heart_rate: float | str | None = None
    resp_rate: float | str | None = None
    spo2: float | str | None = None
    crt: float | str | None = None
    bp: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class ExternalSignal(FrozenCamelModel):
    """Payload for alerts that do not come from a threshold verdict."""

    title: str
    message: str
    recommendation: str | None = None
    patient_id: str | None = None
    patient_name: str | None = None
    institution_id: str | None = None
    related_medications: list[str] = Field(default_factory=list)
    ai_generated: bool = False
    ai_confidence: float | None = Field(default=None, ge=0, le=1)
    ai_model: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Alert(FrozenCamelModel):
    """
    An alert raised by the engine.

    Only the lifecycle fields (acknowledgement and dismissal) ever change, and they change
    by producing an updated copy; ``severity`` is fixed at creation.
    """

    id: str
    type: AlertType
    severity: Severity
    title: str
    message: str
    recommendation: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    patient_id: str | None = None
    patient_name: str | None = None
    institution_id: str | None = None

    trigger_vital: VitalKind | None = None
    trigger_value: float | str | None = None
    expected_range: ExpectedRange | None = None
    related_medications: tuple[str, ...] = ()

    acknowledged: bool = False
    acknowledged_by: str | None = None
    acknowledged_by_name: str | None = None
    acknowledged_at: datetime | None = None
    dismissed: bool = False
    dismissed_at: datetime | None = None

    ai_generated: bool = False
    ai_confidence: float | None = Field(default=None, ge=0, le=1)
    ai_model: str | None = None

    metadata: ReadOnlyMapping = Field(default_factory=dict, validate_default=True)

    @property
    def is_system_wide(self) -> bool:
        return self.patient_id is None


class AlertEvent(FrozenCamelModel):
    """What subscribers receive from the bus."""

    event: AlertEventType
    alert: Alert
    timestamp: datetime = Field(default_factory=utc_now)


class PatientContext(FrozenCamelModel):
    """Who a panel or screen belongs to, and how old they are."""

    patient_id: str | None = None
    patient_name: str | None = None
    institution_id: str | None = None
    age: float
    age_unit: AgeUnit
    corrected_gestational_weeks: float | None = None


class AIFinding(FrozenCamelModel):
    """A finding reported by the AI-analysis collaborator."""

    kind: str
    severity: str | None = None
    title: str
    message: str
    recommendation: str | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)
    model: str | None = None
    patient_id: str | None = None
    patient_name: str | None = None
    institution_id: str | None = None
    related_medications: list[str] = Field(default_factory=list)


class AuditAction(str, Enum):
    CREATED = "created"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
    ESCALATED = "escalated"


class AlertHistoryEntry(FrozenCamelModel):
    alert_id: str
    action: AuditAction
    timestamp: datetime = Field(default_factory=utc_now)
    user_id: str | None = None
    user_name: str | None = None
    notes: str | None = None
