from typing import Any


class AlertEngineError(Exception):
    """Base class for errors raised by the alert engine."""


class InvalidObservationError(AlertEngineError, ValueError):
    """A vital observation or patient age that cannot be evaluated."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"invalid {field} {value!r}: {reason}")


class DuplicateAlertError(AlertEngineError):
    """An alert id that was already used by a dismissed alert."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"alert id {alert_id!r} was already used")
