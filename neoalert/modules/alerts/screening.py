"""
Rule-based clinical screens that sit next to the threshold evaluator.

Each screen is a pure function returning findings; turning findings into alerts is the
engine's job.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Sequence

from neoalert.modules.alerts.models import Severity, VitalPanel
from neoalert.modules.thresholds.models import ThresholdRow, VitalKind

BP_PATTERN = re.compile(r"(\d+)\s*/\s*(\d+)")

SEPSIS_KEYWORDS = ("lethargy", "poor feeding", "apnea", "mottled", "irritable", "hypotonia")
FEVER_CELSIUS = 38.0
HYPOTHERMIA_CELSIUS = 36.0
PROLONGED_CRT_SECONDS = 3.0

DETERIORATION_WINDOW = 5
SPO2_TREND_MIN_READINGS = 3
SPO2_TREND_MIN_DROP = 3.0
TACHYCARDIA_READINGS = 3


@dataclass(frozen=True)
class KnownInteraction:
    drugs: tuple[str, str]
    severity: Severity
    message: str


KNOWN_INTERACTIONS: tuple[KnownInteraction, ...] = (
    KnownInteraction(
        ("aminophylline", "caffeine"),
        Severity.WARNING,
        "Both are methylxanthines - may cause additive CNS stimulation and tachycardia",
    ),
    KnownInteraction(
        ("gentamicin", "furosemide"),
        Severity.WARNING,
        "Increased risk of ototoxicity and nephrotoxicity",
    ),
    KnownInteraction(
        ("vancomycin", "gentamicin"),
        Severity.WARNING,
        "Increased risk of nephrotoxicity - monitor renal function closely",
    ),
    KnownInteraction(
        ("phenobarbital", "phenytoin"),
        Severity.WARNING,
        "Both CNS depressants - may cause excessive sedation",
    ),
    KnownInteraction(
        ("indomethacin", "ibuprofen"),
        Severity.CRITICAL,
        "Do not use together - both are NSAIDs for PDA closure",
    ),
)


@dataclass(frozen=True)
class Finding:
    title: str
    message: str
    severity: Severity
    recommendation: str | None = None
    related_medications: tuple[str, ...] = ()
    metadata: dict = field(default_factory=dict)


def as_float(value: float | str | None) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_blood_pressure(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    match = BP_PATTERN.search(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def check_basic_interactions(medications: Sequence[str]) -> list[Finding]:
    """Match medication names against the fixed neonatal interaction list."""
    if len(medications) < 2:
        return []
    names = [name.lower() for name in medications]
    findings: list[Finding] = []
    for interaction in KNOWN_INTERACTIONS:
        first, second = interaction.drugs
        if any(first in name for name in names) and any(second in name for name in names):
            findings.append(
                Finding(
                    title=f"Drug Interaction: {first} + {second}",
                    message=interaction.message,
                    severity=interaction.severity,
                    related_medications=interaction.drugs,
                )
            )
    return findings


def sepsis_indicators(
    panel: VitalPanel,
    rows: dict[VitalKind, ThresholdRow],
    clinical_findings: str | None = None,
) -> list[str]:
    indicators: list[str] = []

    temperature = as_float(panel.temperature)
    if temperature is not None:
        if temperature > FEVER_CELSIUS:
            indicators.append("Fever (>38°C)")
        if temperature < HYPOTHERMIA_CELSIUS:
            indicators.append("Hypothermia (<36°C)")

    heart_rate = as_float(panel.heart_rate)
    hr_row = rows.get(VitalKind.HEART_RATE)
    if heart_rate is not None:
        critical_max = hr_row.critical_max if hr_row and hr_row.critical_max is not None else 200
        critical_min = hr_row.critical_min if hr_row and hr_row.critical_min is not None else 80
        if heart_rate > critical_max:
            indicators.append("Severe tachycardia")
        if heart_rate < critical_min:
            indicators.append("Bradycardia")

    resp_rate = as_float(panel.resp_rate)
    rr_row = rows.get(VitalKind.RESP_RATE)
    rr_max = rr_row.normal_max if rr_row and rr_row.normal_max is not None else 60
    if resp_rate is not None and resp_rate > rr_max:
        indicators.append("Tachypnea")

    crt = as_float(panel.crt)
    if crt is not None and crt > PROLONGED_CRT_SECONDS:
        indicators.append("Prolonged CRT")

    spo2 = as_float(panel.spo2)
    spo2_row = rows.get(VitalKind.SPO2)
    spo2_min = spo2_row.normal_min if spo2_row and spo2_row.normal_min is not None else 92
    if spo2 is not None and spo2 < spo2_min:
        indicators.append("Hypoxemia")

    if clinical_findings:
        lowered = clinical_findings.lower()
        for keyword in SEPSIS_KEYWORDS:
            if keyword in lowered:
                indicators.append(keyword[0].upper() + keyword[1:])

    return indicators


def sepsis_finding(indicators: list[str]) -> Finding | None:
    if len(indicators) < 2:
        return None
    severity = Severity.CRITICAL if len(indicators) >= 4 else Severity.WARNING
    return Finding(
        title="Sepsis Risk Alert",
        message=f"Multiple sepsis indicators present: {', '.join(indicators)}",
        severity=severity,
        recommendation=(
            "Consider sepsis workup: CBC, CRP, blood culture, lumbar puncture if indicated. "
            "Start empirical antibiotics if clinical suspicion high."
        ),
        metadata={"indicators": tuple(indicators)},
    )


def deterioration_findings(
    panels: Sequence[VitalPanel],
    heart_rate_row: ThresholdRow | None,
) -> list[Finding]:
    """Look for worsening trends across recent panels."""
    if len(panels) < 2:
        return []
    recent = sorted(panels, key=lambda panel: panel.timestamp, reverse=True)[:DETERIORATION_WINDOW]
    findings: list[Finding] = []

    # Newest first: a falling SpO2 reads as non-decreasing when walking back in time.
    spo2_values = [value for value in (as_float(p.spo2) for p in recent) if value is not None]
    if len(spo2_values) >= SPO2_TREND_MIN_READINGS:
        declining = all(
            newer <= older for newer, older in zip(spo2_values, spo2_values[1:])
        )
        if declining and spo2_values[0] < spo2_values[-1] - SPO2_TREND_MIN_DROP:
            findings.append(
                Finding(
                    title="Declining SpO2 Trend",
                    message=(
                        f"SpO2 has decreased from {spo2_values[-1]:g}% to {spo2_values[0]:g}% "
                        "over recent assessments"
                    ),
                    severity=Severity.WARNING,
                    recommendation="Review respiratory status, consider increasing oxygen support",
                )
            )

    hr_values = [value for value in (as_float(p.heart_rate) for p in recent) if value is not None]
    if len(hr_values) >= TACHYCARDIA_READINGS:
        max_normal = (
            heart_rate_row.normal_max
            if heart_rate_row is not None and heart_rate_row.normal_max is not None
            else 160
        )
        latest = hr_values[:TACHYCARDIA_READINGS]
        if all(value > max_normal for value in latest):
            findings.append(
                Finding(
                    title="Persistent Tachycardia",
                    message=(
                        "Heart rate consistently elevated "
                        f"({', '.join(f'{value:g}' for value in latest)} bpm) over recent assessments"
                    ),
                    severity=Severity.WARNING,
                    recommendation="Assess for pain, fever, infection, or cardiac issues",
                )
            )

    return findings
