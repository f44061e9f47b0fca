from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "NeoAlert"
    ENVIRONMENT: str = ""  # local, dev, prod (from .env)

    # Logging & Sentry
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    # Rule files (from .env, leave empty to use the built-in defaults)
    THRESHOLDS_FILE: Path | None = None
    ALERT_CONFIG_FILE: Path | None = None

    # Alert engine
    DEFAULT_INSTITUTION_ID: str = "default"
    ESCALATION_SWEEP_SECONDS: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
