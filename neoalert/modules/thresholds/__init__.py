from neoalert.modules.thresholds.classifier import classify, to_days
from neoalert.modules.thresholds.models import AgeBand, AgeUnit, ThresholdRow, VitalKind
from neoalert.modules.thresholds.table import DEFAULT_TABLE, ThresholdTable, load_table

__all__ = [
    "AgeBand",
    "AgeUnit",
    "DEFAULT_TABLE",
    "ThresholdRow",
    "ThresholdTable",
    "VitalKind",
    "classify",
    "load_table",
    "to_days",
]
