from neoalert.modules.alerts.bus import SubscriptionBus, patient_filter
from neoalert.modules.alerts.engine import ClinicalAlertEngine
from neoalert.modules.alerts.models import (
    Alert,
    AlertEvent,
    AlertEventType,
    AlertType,
    Severity,
    VitalObservation,
)
from neoalert.modules.alerts.service import build_engine
from neoalert.modules.alerts.store import AlertLifecycleStore

__all__ = [
    "Alert",
    "AlertEvent",
    "AlertEventType",
    "AlertLifecycleStore",
    "AlertType",
    "ClinicalAlertEngine",
    "Severity",
    "SubscriptionBus",
    "VitalObservation",
    "build_engine",
    "patient_filter",
]
