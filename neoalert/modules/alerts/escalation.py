from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

import structlog

from neoalert.modules.alerts.bus import SubscriptionBus
from neoalert.modules.alerts.config import AlertConfigRegistry, AlertConfiguration, EscalationRule
from neoalert.modules.alerts.models import Alert, AlertEventType, utc_now
from neoalert.modules.alerts.store import AlertLifecycleStore

log = structlog.get_logger()

EscalationNotifier = Callable[[Alert, EscalationRule], Awaitable[Any] | None]

SYSTEM_ACTOR_ID = "system"
SYSTEM_ACTOR_NAME = "Auto-acknowledge"


@dataclass(frozen=True)
class EscalationRecord:
    alert_id: str
    rule: EscalationRule
    escalated_at: datetime


class EscalationScheduler:
    """
    Periodic sweep that escalates alerts left unacknowledged past their institution's delay.

    Each alert escalates at most once. The store is re-read right before an escalation
    fires, so an acknowledgement or dismissal that lands before that point cancels it.
    Escalation only notifies; the alert's severity and state are untouched.
    """

    def __init__(
        self,
        store: AlertLifecycleStore,
        configs: AlertConfigRegistry,
        notifier: EscalationNotifier,
        bus: SubscriptionBus | None = None,
        interval_seconds: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._configs = configs
        self._notifier = notifier
        self._bus = bus
        self._interval = interval_seconds
        self._clock = clock
        self._escalated: set[str] = set()
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def has_escalated(self, alert_id: str) -> bool:
        return alert_id in self._escalated

    def sweep(self, now: datetime | None = None) -> list[EscalationRecord]:
        now = now or self._clock()
        self._forget_inactive()

        snapshot = [
            alert
            for alert in self._store.list_active()
            if not alert.acknowledged and alert.id not in self._escalated
        ]

        records: list[EscalationRecord] = []
        for alert in snapshot:
            config = self._configs.resolve(alert.institution_id)
            if not config.enabled:
                continue
            age_minutes = (now - alert.timestamp).total_seconds() / 60

            if self._auto_acknowledge_due(config, age_minutes):
                self._store.acknowledge(alert.id, SYSTEM_ACTOR_ID, SYSTEM_ACTOR_NAME, at=now)
                continue

            rule = self._due_rule(config, age_minutes)
            if rule is None:
                continue

            current = self._store.get(alert.id)
            if current is None or current.acknowledged or current.id in self._escalated:
                continue

            self._escalated.add(current.id)
            records.append(EscalationRecord(alert_id=current.id, rule=rule, escalated_at=now))
            log.info(
                "alert escalated",
                alert_id=current.id,
                escalate_to=rule.escalate_to,
                notify_method=rule.notify_method.value,
                age_minutes=round(age_minutes, 2),
            )
            self._notify(current, rule)
            if self._bus is not None:
                self._bus.publish(current, AlertEventType.ESCALATED)
        return records

    async def start(self) -> None:
        if self.running:
            log.warning("escalation sweep already running")
            return
        self._task = asyncio.create_task(self._run())
        log.info("escalation sweep started", interval_seconds=self._interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            log.info("escalation sweep stopped")

        pending = list(self._pending)
        if pending:
            for notification in pending:
                notification.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            log.warning("escalation notifications cancelled at shutdown", count=len(pending))

    async def _run(self) -> None:
        while True:
            try:
                self.sweep()
            except Exception:
                log.exception("escalation_sweep_failed")
            await asyncio.sleep(self._interval)

    @staticmethod
    def _auto_acknowledge_due(config: AlertConfiguration, age_minutes: float) -> bool:
        timeout = config.auto_acknowledge_after
        return timeout is not None and age_minutes >= timeout

    @staticmethod
    def _due_rule(config: AlertConfiguration, age_minutes: float) -> EscalationRule | None:
        # Rules are sorted by delay; the longest delay already elapsed wins.
        due = [rule for rule in config.escalation_rules if age_minutes >= rule.after_minutes]
        return due[-1] if due else None

    def _forget_inactive(self) -> None:
        self._escalated = {alert_id for alert_id in self._escalated if alert_id in self._store}

    def _notify(self, alert: Alert, rule: EscalationRule) -> None:
        try:
            result = self._notifier(alert, rule)
        except Exception:
            log.exception("escalation_notify_failed", alert_id=alert.id)
            return
        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.error(
                "escalation_notify_dropped",
                alert_id=alert.id,
                reason="notifier returned an awaitable outside an event loop",
            )
            if inspect.iscoroutine(result):
                result.close()
            return

        task = loop.create_task(self._await_notification(result, alert.id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _await_notification(result: Awaitable[Any], alert_id: str) -> None:
        try:
            await result
        except Exception:
            log.exception("escalation_notify_failed", alert_id=alert_id)
