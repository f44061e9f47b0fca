from __future__ import annotations

from enum import Enum

from pydantic import model_validator

from neoalert.shared.schemas import FrozenCamelModel


class AgeBand(str, Enum):
    """Clinical age classifications, youngest first."""

    PRETERM = "preterm"
    NEWBORN = "newborn"
    INFANT = "infant"
    TODDLER = "toddler"
    CHILD = "child"

    @property
    def order(self) -> int:
        return list(AgeBand).index(self)


class AgeUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class VitalKind(str, Enum):
    """Vital signs tracked by the threshold table."""

    TEMPERATURE = "temperature"
    HEART_RATE = "heart_rate"
    RESP_RATE = "resp_rate"
    SPO2 = "spo2"
    BP_SYSTOLIC = "bp_systolic"
    BP_DIASTOLIC = "bp_diastolic"
    CRT = "crt"


class ThresholdRow(FrozenCamelModel):
    """
    Normal and critical bounds for one vital within one age band.

    Critical bounds, when present, form the outer envelope around the normal range.
    """

    normal_min: float | None = None
    normal_max: float | None = None
    critical_min: float | None = None
    critical_max: float | None = None

    @model_validator(mode="after")
    def validate_envelope(self) -> "ThresholdRow":
        if self.normal_min is None and self.normal_max is None:
            raise ValueError("a threshold row needs normalMin or normalMax")
        if (
            self.normal_min is not None
            and self.normal_max is not None
            and self.normal_min > self.normal_max
        ):
            raise ValueError("normalMin must not exceed normalMax")
        if self.critical_min is not None:
            if self.normal_min is None:
                raise ValueError("criticalMin requires normalMin")
            if self.critical_min > self.normal_min:
                raise ValueError("criticalMin must be <= normalMin")
        if self.critical_max is not None:
            if self.normal_max is None:
                raise ValueError("criticalMax requires normalMax")
            if self.critical_max < self.normal_max:
                raise ValueError("criticalMax must be >= normalMax")
        return self
