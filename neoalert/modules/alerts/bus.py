from __future__ import annotations

from typing import Callable

import structlog

from neoalert.modules.alerts.models import Alert, AlertEvent, AlertEventType

log = structlog.get_logger()

AlertCallback = Callable[[AlertEvent], None]
Unsubscribe = Callable[[], None]


class _Subscription:
    __slots__ = ("callback", "active")

    def __init__(self, callback: AlertCallback) -> None:
        self.callback = callback
        self.active = True


class SubscriptionBus:
    """
    In-process fan-out of alert events.

    Every subscriber receives every event, in registration order; filtering (for example
    by patient) is left to the subscriber. Delivery is synchronous and best-effort: a
    failing callback is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: AlertCallback) -> Unsubscribe:
        subscription = _Subscription(callback)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, alert: Alert, event: AlertEventType = AlertEventType.CREATED) -> int:
        """Deliver ``alert`` to current subscribers and return how many callbacks ran cleanly."""
        envelope = AlertEvent(event=event, alert=alert)
        delivered = 0
        for subscription in list(self._subscriptions):
            # Subscribers removed earlier in this same publish are skipped.
            if not subscription.active:
                continue
            try:
                subscription.callback(envelope)
            except Exception:
                log.exception(
                    "alert_subscriber_failed",
                    alert_id=alert.id,
                    alert_event=event.value,
                )
                continue
            delivered += 1
        return delivered

    def clear(self) -> None:
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()


def patient_filter(patient_id: str, callback: AlertCallback) -> AlertCallback:
    """Wrap ``callback`` so it only sees alerts for ``patient_id`` and system-wide alerts."""

    def filtered(event: AlertEvent) -> None:
        if event.alert.patient_id is None or event.alert.patient_id == patient_id:
            callback(event)

    return filtered
