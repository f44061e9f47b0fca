from __future__ import annotations

import math
from typing import Literal, Mapping

import structlog

from neoalert.modules.alerts.models import Severity, VitalObservation
from neoalert.modules.thresholds.classifier import classify
from neoalert.modules.thresholds.models import AgeBand, ThresholdRow, VitalKind
from neoalert.modules.thresholds.table import ThresholdTable
from neoalert.shared.exceptions import InvalidObservationError

log = structlog.get_logger()

ThresholdOverrides = Mapping[tuple[AgeBand, VitalKind], ThresholdRow]


class RuleEvaluator:
    """Grade a vital reading against its age band's reference ranges."""

    def __init__(self, table: ThresholdTable) -> None:
        self._table = table

    @property
    def table(self) -> ThresholdTable:
        return self._table

    def band_for(self, observation: VitalObservation) -> AgeBand:
        return classify(
            observation.patient_age,
            observation.patient_age_unit,
            corrected_gestational_weeks=observation.corrected_gestational_weeks,
        )

    def evaluate(
        self,
        observation: VitalObservation,
        overrides: ThresholdOverrides | None = None,
    ) -> Severity | None:
        self.validate(observation)
        band = self.band_for(observation)
        row = self.resolve_row(band, observation.vital_kind, overrides)
        if row is None:
            log.debug(
                "no threshold row for vital",
                band=band.value,
                vital=observation.vital_kind.value,
            )
            return None
        return self.grade(observation.value, row)

    def resolve_row(
        self,
        band: AgeBand,
        vital: VitalKind,
        overrides: ThresholdOverrides | None = None,
    ) -> ThresholdRow | None:
        # An override replaces the default row outright; bounds are never merged.
        if overrides:
            override = overrides.get((band, vital))
            if override is not None:
                return override
        return self._table.lookup(band, vital)

    @staticmethod
    def grade(value: float, row: ThresholdRow) -> Severity | None:
        if row.critical_min is not None and value < row.critical_min:
            return Severity.CRITICAL
        if row.critical_max is not None and value > row.critical_max:
            return Severity.CRITICAL
        if row.normal_min is not None and value < row.normal_min:
            return Severity.WARNING
        if row.normal_max is not None and value > row.normal_max:
            return Severity.WARNING
        return None

    @staticmethod
    def direction(value: float, row: ThresholdRow) -> Literal["low", "high"] | None:
        """Which side of the normal range ``value`` falls on, if any."""
        if row.normal_max is not None and value > row.normal_max:
            return "high"
        if row.normal_min is not None and value < row.normal_min:
            return "low"
        return None

    @staticmethod
    def validate(observation: VitalObservation) -> None:
        value = observation.value
        if not math.isfinite(value):
            raise InvalidObservationError("value", value, "vital value must be finite")
        if value < 0:
            raise InvalidObservationError("value", value, "vital value must not be negative")
