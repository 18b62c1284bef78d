from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BASE_DIR = Path(__file__).resolve().parents[2]
_DEFAULT_RULES_PATH = _BASE_DIR / "config" / "rules.json"


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "alert-processor"
    ENV: str = "dev"
    DATABASE_URL: str | None = None
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"
    SENTRY_DSN: str | None = None

    # Per-source rule file (window_mins, escalate_if_count, auto_close_after_mins, auto_close_if)
    ALERT_RULES_PATH: str = str(_DEFAULT_RULES_PATH)

    # Event bus (Redis stream per topic)
    ALERT_EVENTS_TOPIC: str = "alert-events"
    ALERT_EVENTS_MAXLEN: int = 100_000

    # Retention workers
    RETENTION_POLL_SECONDS: float = 5.0
    AUTO_DELETE_AFTER_MINUTES: int = 5
    RETENTION_LOCK_TIMEOUT_SECONDS: int = 60

    @model_validator(mode="after")
    def _validate_required_fields(self) -> BaseAppSettings:
        if self.DATABASE_URL and self.DATABASE_URL.startswith("postgres://"):
            self.DATABASE_URL = self.DATABASE_URL.replace("postgres://", "postgresql://", 1)

        if self.RETENTION_POLL_SECONDS <= 0:
            raise ValueError("RETENTION_POLL_SECONDS must be positive")
        if self.AUTO_DELETE_AFTER_MINUTES < 0:
            raise ValueError("AUTO_DELETE_AFTER_MINUTES must not be negative")

        required_in_prod = ("DATABASE_URL", "REDIS_URL")
        if self.ENV.lower() == "prod":
            missing = [name for name in required_in_prod if not getattr(self, name)]
            if missing:
                raise ValueError(f"Missing required production settings: {', '.join(missing)}")
        return self


class DevSettings(BaseAppSettings):
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./storage/dev.db"


class TestSettings(BaseAppSettings):
    ENV: str = "test"
    DATABASE_URL: str = "sqlite:///:memory:"


class ProdSettings(BaseAppSettings):
    ENV: str = "prod"
    LOG_FORMAT: str = "json"


_ENV_TO_SETTINGS: dict[str, type[BaseAppSettings]] = {
    "dev": DevSettings,
    "development": DevSettings,
    "test": TestSettings,
    "testing": TestSettings,
    "prod": ProdSettings,
    "production": ProdSettings,
}


@lru_cache
def get_settings() -> BaseAppSettings:
    env_name = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    env = env_name.lower()
    settings_cls = _ENV_TO_SETTINGS.get(env, DevSettings)
    return settings_cls()


settings = get_settings()
