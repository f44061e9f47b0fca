import pytest

from neoalert.modules.alerts.bus import SubscriptionBus
from neoalert.modules.alerts.config import (
    AlertConfigRegistry,
    AlertConfiguration,
    EscalationRule,
    NotifyMethod,
)
from neoalert.modules.alerts.engine import ClinicalAlertEngine
from neoalert.modules.alerts.factory import AlertFactory
from neoalert.modules.alerts.models import AlertHistoryEntry
from neoalert.modules.alerts.store import AlertLifecycleStore
from neoalert.modules.thresholds.table import ThresholdTable
from tests.helpers import EventRecorder, NotifierRecorder


@pytest.fixture
def table() -> ThresholdTable:
    return ThresholdTable()


@pytest.fixture
def bus() -> SubscriptionBus:
    return SubscriptionBus()


@pytest.fixture
def store(bus: SubscriptionBus) -> AlertLifecycleStore:
    return AlertLifecycleStore(bus=bus)


@pytest.fixture
def factory(
    store: AlertLifecycleStore, bus: SubscriptionBus, table: ThresholdTable
) -> AlertFactory:
    return AlertFactory(store=store, bus=bus, table=table)


@pytest.fixture
def recorder(bus: SubscriptionBus) -> EventRecorder:
    """Subscribe an event recorder to the shared bus fixture."""
    events = EventRecorder()
    bus.subscribe(events)
    return events


@pytest.fixture
def ward_config() -> AlertConfiguration:
    return AlertConfiguration(
        institution_id="ward-a",
        escalation_rules=[
            EscalationRule(after_minutes=5, escalate_to="charge_nurse"),
            EscalationRule(
                after_minutes=15,
                escalate_to="attending_physician",
                notify_method=NotifyMethod.SMS,
            ),
        ],
    )


@pytest.fixture
def configs(ward_config: AlertConfiguration) -> AlertConfigRegistry:
    return AlertConfigRegistry(default=ward_config)


@pytest.fixture
def notifier() -> NotifierRecorder:
    return NotifierRecorder()


@pytest.fixture
def audit_entries() -> list[AlertHistoryEntry]:
    return []


@pytest.fixture
def engine(
    table: ThresholdTable,
    configs: AlertConfigRegistry,
    notifier: NotifierRecorder,
    audit_entries: list[AlertHistoryEntry],
) -> ClinicalAlertEngine:
    return ClinicalAlertEngine(
        table=table,
        configs=configs,
        notifier=notifier,
        audit_sink=audit_entries.append,
        sweep_interval_seconds=0.01,
    )
