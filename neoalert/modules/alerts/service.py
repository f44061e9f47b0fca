from neoalert.core.config import Settings, settings
from neoalert.modules.alerts.config import load_configurations
from neoalert.modules.alerts.engine import AuditSink, ClinicalAlertEngine
from neoalert.modules.alerts.escalation import EscalationNotifier
from neoalert.modules.thresholds.table import load_table


def build_engine(
    notifier: EscalationNotifier | None = None,
    audit_sink: AuditSink | None = None,
    config: Settings = settings,
) -> ClinicalAlertEngine:
    """Assemble an alert engine from the configured rule files."""
    return ClinicalAlertEngine(
        table=load_table(config.THRESHOLDS_FILE),
        configs=load_configurations(config.ALERT_CONFIG_FILE, config.DEFAULT_INSTITUTION_ID),
        notifier=notifier,
        audit_sink=audit_sink,
        sweep_interval_seconds=config.ESCALATION_SWEEP_SECONDS,
    )
