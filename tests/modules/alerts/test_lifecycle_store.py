from datetime import timedelta

from neoalert.modules.alerts.models import AlertEventType, AlertType, Severity
from neoalert.modules.alerts.store import AlertLifecycleStore
from neoalert.modules.thresholds.models import VitalKind
from tests.helpers import BASE_TIME, EventRecorder, make_alert


def test_added_alert_is_active(store: AlertLifecycleStore) -> None:
    alert = make_alert()
    assert store.add(alert) is True
    assert store.get(alert.id) == alert
    assert alert.id in store
    assert len(store) == 1


def test_acknowledge_then_dismiss(store: AlertLifecycleStore, recorder: EventRecorder) -> None:
    store.add(make_alert("A1"))
    ack_time = BASE_TIME + timedelta(minutes=2)

    acknowledged = store.acknowledge("A1", "u7", "Nurse Lee", at=ack_time)

    assert acknowledged is not None
    assert acknowledged.acknowledged is True
    assert acknowledged.acknowledged_by == "u7"
    assert acknowledged.acknowledged_by_name == "Nurse Lee"
    assert acknowledged.acknowledged_at == ack_time
    assert store.get("A1").acknowledged is True
    assert [event.event for event in recorder.events] == [AlertEventType.ACKNOWLEDGED]

    dismissed = store.dismiss("A1")

    assert dismissed is not None
    assert dismissed.dismissed is True
    assert dismissed.dismissed_at is not None
    assert store.list_active() == []
    assert store.get("A1") is None


def test_second_acknowledgement_keeps_the_first(store: AlertLifecycleStore, recorder: EventRecorder) -> None:
    store.add(make_alert("A1"))
    first = store.acknowledge("A1", "u7", "Nurse Lee", at=BASE_TIME)

    assert store.acknowledge("A1", "u9", "Dr Okafor", at=BASE_TIME + timedelta(minutes=1)) is None

    current = store.get("A1")
    assert current == first
    assert current.acknowledged_by == "u7"
    assert len(recorder.events) == 1


def test_lifecycle_calls_on_unknown_or_dismissed_ids_are_no_ops(store: AlertLifecycleStore) -> None:
    assert store.acknowledge("missing", "u7", "Nurse Lee") is None
    assert store.dismiss("missing") is None

    store.add(make_alert("A1"))
    store.dismiss("A1")

    assert store.dismiss("A1") is None
    assert store.acknowledge("A1", "u7", "Nurse Lee") is None
    assert len(store) == 0


def test_dismissal_does_not_require_acknowledgement(store: AlertLifecycleStore) -> None:
    store.add(make_alert("A1"))
    dismissed = store.dismiss("A1")
    assert dismissed.dismissed is True
    assert dismissed.acknowledged is False


def test_ids_are_never_reused(store: AlertLifecycleStore) -> None:
    store.add(make_alert("A1"))
    assert store.add(make_alert("A1", severity=Severity.CRITICAL)) is False
    assert store.get("A1").severity == Severity.WARNING

    store.dismiss("A1")
    assert store.add(make_alert("A1")) is False
    assert store.get("A1") is None


def test_list_active_is_newest_first_and_filters_by_patient(store: AlertLifecycleStore) -> None:
    store.add(make_alert("old", minutes_ago=10))
    store.add(make_alert("new", minutes_ago=1))
    store.add(make_alert("other", patient_id="P2", minutes_ago=0))
    store.add(make_alert("ward", patient_id=None, minutes_ago=5))

    assert [alert.id for alert in store.list_active()] == ["other", "new", "ward", "old"]
    assert [alert.id for alert in store.list_active("P1")] == ["new", "old"]
    assert store.list_active("P3") == []


def test_equal_timestamps_keep_latest_insertion_first(store: AlertLifecycleStore) -> None:
    for alert_id in ("first", "second", "third"):
        store.add(make_alert(alert_id))
    assert [alert.id for alert in store.list_active()] == ["third", "second", "first"]


def test_list_by_severity_ranks_most_urgent_first(store: AlertLifecycleStore) -> None:
    store.add(make_alert("info", severity=Severity.INFO, minutes_ago=1))
    store.add(make_alert("critical", severity=Severity.CRITICAL, minutes_ago=5))
    store.add(make_alert("warning", severity=Severity.WARNING, minutes_ago=3))
    assert [alert.id for alert in store.list_by_severity()] == ["critical", "warning", "info"]


def test_highest_severity_uses_rank_not_name(store: AlertLifecycleStore) -> None:
    assert store.highest_severity() is None

    store.add(make_alert("w", severity=Severity.WARNING))
    store.add(make_alert("e", severity=Severity.EMERGENCY, patient_id="P2"))
    store.add(make_alert("c", severity=Severity.CRITICAL))

    assert store.highest_severity() == Severity.EMERGENCY
    assert store.highest_severity("P1") == Severity.CRITICAL
    assert store.highest_severity("P3") is None


def test_statistics_cover_dismissed_alerts(store: AlertLifecycleStore) -> None:
    store.add(make_alert("hr1", trigger_vital=VitalKind.HEART_RATE, trigger_value=210))
    store.add(make_alert("hr2", trigger_vital=VitalKind.HEART_RATE, trigger_value=70))
    store.add(
        make_alert(
            "sp1",
            severity=Severity.CRITICAL,
            trigger_vital=VitalKind.SPO2,
            trigger_value=85,
        )
    )
    store.add(make_alert("drug", type=AlertType.DRUG_INTERACTION))

    store.acknowledge("hr1", "u7", "Nurse Lee", at=BASE_TIME + timedelta(seconds=30))
    store.acknowledge("sp1", "u7", "Nurse Lee", at=BASE_TIME + timedelta(seconds=90))
    store.dismiss("hr1")

    stats = store.statistics()

    assert stats.total_alerts == 4
    assert stats.by_type == {AlertType.VITAL_ABNORMAL: 3, AlertType.DRUG_INTERACTION: 1}
    assert stats.by_severity == {Severity.WARNING: 3, Severity.CRITICAL: 1}
    assert stats.acknowledged_count == 2
    assert stats.avg_acknowledgment_time == 60.0
    assert [(entry.trigger, entry.count) for entry in stats.top_triggers] == [
        ("heart_rate", 2),
        ("spo2", 1),
    ]


def test_statistics_on_empty_store(store: AlertLifecycleStore) -> None:
    stats = store.statistics()
    assert stats.total_alerts == 0
    assert stats.avg_acknowledgment_time == 0.0
    assert stats.top_triggers == []


def test_store_without_bus_still_acknowledges() -> None:
    store = AlertLifecycleStore()
    store.add(make_alert("A1"))
    assert store.acknowledge("A1", "u7", "Nurse Lee").acknowledged is True


def test_clear_forgets_everything(store: AlertLifecycleStore) -> None:
    store.add(make_alert("A1"))
    store.dismiss("A1")
    store.clear()
    assert store.add(make_alert("A1")) is True
