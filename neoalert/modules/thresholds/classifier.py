"""Age banding used to pick vital-sign reference ranges."""

import math

from neoalert.modules.thresholds.models import AgeBand, AgeUnit
from neoalert.shared.exceptions import InvalidObservationError

DAYS_PER_UNIT: dict[AgeUnit, int] = {
    AgeUnit.DAYS: 1,
    AgeUnit.WEEKS: 7,
    AgeUnit.MONTHS: 30,
    AgeUnit.YEARS: 365,
}

NEWBORN_MAX_DAYS = 28
INFANT_MAX_DAYS = 365
TODDLER_MAX_DAYS = 1095
TERM_GESTATION_WEEKS = 37


def parse_unit(unit: AgeUnit | str) -> AgeUnit:
    if isinstance(unit, AgeUnit):
        return unit
    try:
        return AgeUnit(str(unit).strip().lower())
    except ValueError as exc:
        raise InvalidObservationError("patient_age_unit", unit, "unknown age unit") from exc


def to_days(age: float, unit: AgeUnit | str) -> float:
    """Convert an age to days using 30-day months and 365-day years."""
    age_unit = parse_unit(unit)
    if isinstance(age, bool) or not isinstance(age, (int, float)):
        raise InvalidObservationError("patient_age", age, "age must be numeric")
    if not math.isfinite(age):
        raise InvalidObservationError("patient_age", age, "age must be finite")
    if age < 0:
        raise InvalidObservationError("patient_age", age, "age must not be negative")
    return age * DAYS_PER_UNIT[age_unit]


def classify(
    age: float,
    unit: AgeUnit | str,
    corrected_gestational_weeks: float | None = None,
) -> AgeBand:
    """
    Map a patient's age to an age band.

    Preterm is only selected from an explicit corrected gestational age below 37 weeks;
    chronological age alone never yields it.
    """
    days = to_days(age, unit)
    if corrected_gestational_weeks is not None:
        if not math.isfinite(corrected_gestational_weeks) or corrected_gestational_weeks <= 0:
            raise InvalidObservationError(
                "corrected_gestational_weeks",
                corrected_gestational_weeks,
                "gestational age must be a positive number of weeks",
            )
        if corrected_gestational_weeks < TERM_GESTATION_WEEKS:
            return AgeBand.PRETERM

    if days <= NEWBORN_MAX_DAYS:
        return AgeBand.NEWBORN
    if days <= INFANT_MAX_DAYS:
        return AgeBand.INFANT
    if days <= TODDLER_MAX_DAYS:
        return AgeBand.TODDLER
    return AgeBand.CHILD
