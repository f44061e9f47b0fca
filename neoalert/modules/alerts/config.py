import json
from enum import Enum
from pathlib import Path

import structlog
from pydantic import Field, field_validator

from neoalert.modules.thresholds.models import AgeBand, ThresholdRow, VitalKind
from neoalert.shared.schemas import FrozenCamelModel

log = structlog.get_logger()


class NotifyMethod(str, Enum):
    IN_APP = "inApp"
    EMAIL = "email"
    SMS = "sms"


class EscalationRule(FrozenCamelModel):
    after_minutes: float = Field(gt=0)
    escalate_to: str
    notify_method: NotifyMethod = NotifyMethod.IN_APP


class ThresholdOverride(FrozenCamelModel):
    """Institution-specific row that replaces the default row for one band and vital."""

    band: AgeBand
    vital: VitalKind
    row: ThresholdRow


class NotificationPreferences(FrozenCamelModel):
    show_banner: bool = True
    play_sound: bool = False
    send_notification: bool = True


class AlertConfiguration(FrozenCamelModel):
    institution_id: str
    enabled: bool = True
    custom_thresholds: list[ThresholdOverride] = Field(default_factory=list)
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    auto_acknowledge_after: float | None = Field(default=None, gt=0)
    escalation_rules: list[EscalationRule] = Field(default_factory=list)

    @field_validator("custom_thresholds")
    @classmethod
    def ensure_unique_overrides(
        cls, value: list[ThresholdOverride]
    ) -> list[ThresholdOverride]:
        seen: set[tuple[AgeBand, VitalKind]] = set()
        for override in value:
            key = (override.band, override.vital)
            if key in seen:
                raise ValueError(
                    f"duplicate threshold override for {override.band.value}/{override.vital.value}"
                )
            seen.add(key)
        return value

    @field_validator("escalation_rules")
    @classmethod
    def sort_rules(cls, value: list[EscalationRule]) -> list[EscalationRule]:
        return sorted(value, key=lambda rule: rule.after_minutes)

    def threshold_overrides(self) -> dict[tuple[AgeBand, VitalKind], ThresholdRow]:
        return {(item.band, item.vital): item.row for item in self.custom_thresholds}


class AlertConfigFile(FrozenCamelModel):
    version: str = "v1"
    configurations: list[AlertConfiguration] = Field(default_factory=list)


def default_configuration(institution_id: str) -> AlertConfiguration:
    return AlertConfiguration(
        institution_id=institution_id,
        escalation_rules=[
            EscalationRule(after_minutes=5, escalate_to="charge_nurse"),
            EscalationRule(
                after_minutes=15,
                escalate_to="attending_physician",
                notify_method=NotifyMethod.SMS,
            ),
        ],
    )


class AlertConfigRegistry:
    """Per-institution alert configuration with a fallback default."""

    def __init__(
        self,
        default: AlertConfiguration,
        configurations: list[AlertConfiguration] | None = None,
    ) -> None:
        self._default = default
        self._by_institution: dict[str, AlertConfiguration] = {}
        for configuration in configurations or []:
            self.register(configuration)

    @property
    def default(self) -> AlertConfiguration:
        return self._default

    def register(self, configuration: AlertConfiguration) -> None:
        self._by_institution[configuration.institution_id] = configuration

    def resolve(self, institution_id: str | None) -> AlertConfiguration:
        if institution_id is None:
            return self._default
        return self._by_institution.get(institution_id, self._default)


def load_configurations(path: Path | None, default_institution_id: str) -> AlertConfigRegistry:
    default = default_configuration(default_institution_id)
    if path is None:
        return AlertConfigRegistry(default)
    try:
        payload = json.loads(Path(path).read_text())
        config_file = AlertConfigFile.model_validate(payload)
    except FileNotFoundError:
        log.info("alert configuration file not found, using defaults", path=str(path))
        return AlertConfigRegistry(default)
    except Exception as exc:
        log.warning(
            "alert configuration load failed, using defaults", path=str(path), error=str(exc)
        )
        return AlertConfigRegistry(default)

    # A file entry for the default institution replaces the built-in default.
    for item in config_file.configurations:
        if item.institution_id == default_institution_id:
            default = item
    log.info(
        "alert configurations loaded",
        path=str(path),
        institutions=len(config_file.configurations),
    )
    return AlertConfigRegistry(default, config_file.configurations)
