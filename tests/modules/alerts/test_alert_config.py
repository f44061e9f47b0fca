import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from neoalert.modules.alerts.config import (
    AlertConfigRegistry,
    AlertConfiguration,
    EscalationRule,
    NotifyMethod,
    default_configuration,
    load_configurations,
)
from neoalert.modules.thresholds.models import AgeBand, ThresholdRow, VitalKind


def test_default_configuration_escalates_to_nurse_then_physician() -> None:
    config = default_configuration("main")

    assert config.institution_id == "main"
    assert config.enabled is True
    assert config.auto_acknowledge_after is None
    assert [(rule.after_minutes, rule.escalate_to, rule.notify_method) for rule in config.escalation_rules] == [
        (5, "charge_nurse", NotifyMethod.IN_APP),
        (15, "attending_physician", NotifyMethod.SMS),
    ]


def test_escalation_rules_are_sorted_by_delay() -> None:
    config = AlertConfiguration(
        institution_id="ward-a",
        escalation_rules=[
            EscalationRule(after_minutes=30, escalate_to="director"),
            EscalationRule(after_minutes=10, escalate_to="charge_nurse"),
        ],
    )
    assert [rule.escalate_to for rule in config.escalation_rules] == ["charge_nurse", "director"]


@pytest.mark.parametrize("minutes", [0, -5])
def test_escalation_delay_must_be_positive(minutes: float) -> None:
    with pytest.raises(ValidationError):
        EscalationRule(after_minutes=minutes, escalate_to="charge_nurse")


def test_duplicate_threshold_overrides_are_rejected() -> None:
    override = {"band": "newborn", "vital": "spo2", "row": {"normalMin": 90}}
    with pytest.raises(ValidationError):
        AlertConfiguration.model_validate(
            {"institutionId": "ward-a", "customThresholds": [override, override]}
        )


def test_threshold_overrides_are_keyed_by_band_and_vital() -> None:
    config = AlertConfiguration.model_validate(
        {
            "institutionId": "ward-a",
            "customThresholds": [
                {"band": "infant", "vital": "spo2", "row": {"normalMin": 92, "criticalMin": 88}}
            ],
        }
    )
    assert config.threshold_overrides() == {
        (AgeBand.INFANT, VitalKind.SPO2): ThresholdRow(normal_min=92, critical_min=88)
    }


def test_registry_falls_back_to_default() -> None:
    default = default_configuration("main")
    nicu = AlertConfiguration(institution_id="nicu-b", enabled=False)
    registry = AlertConfigRegistry(default, [nicu])

    assert registry.resolve("nicu-b") is nicu
    assert registry.resolve("elsewhere") is default
    assert registry.resolve(None) is default


def test_load_configurations_reads_camel_case_json(tmp_path: Path) -> None:
    path = tmp_path / "alerts.json"
    path.write_text(
        json.dumps(
            {
                "configurations": [
                    {
                        "institutionId": "main",
                        "autoAcknowledgeAfter": 60,
                        "escalationRules": [{"afterMinutes": 2, "escalateTo": "rapid_response"}],
                    },
                    {"institutionId": "nicu-b", "enabled": False},
                ]
            }
        )
    )

    registry = load_configurations(path, "main")

    assert registry.default.auto_acknowledge_after == 60
    assert registry.resolve("unknown").escalation_rules[0].escalate_to == "rapid_response"
    assert registry.resolve("nicu-b").enabled is False


def test_load_configurations_falls_back_to_defaults(tmp_path: Path) -> None:
    missing = load_configurations(tmp_path / "missing.json", "main")
    assert missing.default == default_configuration("main")

    broken = tmp_path / "broken.json"
    broken.write_text('{"configurations": [{"escalationRules": "soon"}]}')
    assert load_configurations(broken, "main").default == default_configuration("main")

    assert load_configurations(None, "main").resolve("x").institution_id == "main"
