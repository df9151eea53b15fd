from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Core service settings
    environment: str = Field("development", alias="ENVIRONMENT")
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    api_host: str = Field("0.0.0.0", alias="API_HOST")
    api_port: int = Field(8000, alias="API_PORT")

    # Stores
    database_url: str = Field("sqlite:///./error_alerts.db", alias="DATABASE_URL")
    db_pool_timeout_seconds: int = Field(10, alias="DB_POOL_TIMEOUT_SECONDS")
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")

    # Email delivery
    smtp_host: str | None = Field(None, alias="SMTP_HOST")
    smtp_port: int = Field(587, alias="SMTP_PORT")
    smtp_user: str | None = Field(None, alias="SMTP_USER")
    smtp_password: str | None = Field(None, alias="SMTP_PASSWORD")
    smtp_timeout_seconds: int = Field(15, alias="SMTP_TIMEOUT_SECONDS")
    email_from: str | None = Field(None, alias="EMAIL_FROM")
    email_recipients: str | None = Field(None, alias="EMAIL_RECIPIENTS")  # comma list, used when a rule has no recipient
    email_max_attempts: int = Field(1, alias="EMAIL_MAX_ATTEMPTS")

    # Alert evaluation
    alert_eval_inline: bool = Field(False, alias="ALERT_EVAL_INLINE")
    alert_email_subject_prefix: str = Field("[Error Alert]", alias="ALERT_EMAIL_SUBJECT_PREFIX")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"  # Allow extra environment variables

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def evaluate_inline(self) -> bool:
        return self.alert_eval_inline or self.app_env == "test"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings():
    """Clear cached settings (useful in tests when env vars change)."""
    get_settings.cache_clear()


def parse_email_recipients(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [r.strip() for r in raw.split(",") if r.strip()]
