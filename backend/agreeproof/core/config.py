"""Application configuration via pydantic settings."""

from functools import lru_cache
from pathlib import Path

from typing import Any

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = Field("AgreeProof API", alias="APP_NAME")
    api_v1_prefix: str = Field("/api/v1", alias="API_V1_PREFIX")

    database_url: str = Field(
        "sqlite+aiosqlite:///./agreeproof.db", alias="DATABASE_URL"
    )
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    secret_key: str = Field(..., alias="SECRET_KEY")
    jwt_secret_key: str = Field(default="", alias="JWT_SECRET_KEY")
    jwt_refresh_secret_key: str = Field(default="", alias="JWT_REFRESH_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        60 * 24 * 7, alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )
    refresh_token_expire_minutes: int = Field(
        60 * 24 * 30, alias="REFRESH_TOKEN_EXPIRE_MINUTES"
    )
    auth_cookie_name: str = Field("token", alias="AUTH_COOKIE_NAME")
    auth_cookie_secure: bool = Field(default=False, alias="AUTH_COOKIE_SECURE")

    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int | None = Field(default=None, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_from: str | None = Field(default=None, alias="SMTP_FROM")

    frontend_url: str = Field("http://localhost:3000", alias="FRONTEND_URL")

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allowlist: list[str] = Field(default_factory=list, alias="CORS_ALLOWLIST")

    rate_limit_default: str = Field("100/15 minutes", alias="RATE_LIMIT_DEFAULT")
    rate_limit_agreements: str = Field("20/15 minutes", alias="RATE_LIMIT_AGREEMENTS")
    rate_limit_auth: str = Field("5/15 minutes", alias="RATE_LIMIT_AUTH")
    max_request_bytes: int = Field(10 * 1024 * 1024, alias="MAX_REQUEST_BYTES")

    reminder_window_days: int = Field(3, alias="REMINDER_WINDOW_DAYS")
    reminder_cron_hour: int = Field(9, alias="REMINDER_CRON_HOUR")
    overdue_cron_hour: int = Field(10, alias="OVERDUE_CRON_HOUR")
    stats_cron_weekday: int = Field(6, alias="STATS_CRON_WEEKDAY")
    stats_cron_hour: int = Field(2, alias="STATS_CRON_HOUR")
    email_health_cron_hours: int = Field(6, alias="EMAIL_HEALTH_CRON_HOURS")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        case_sensitive=False,
        extra="ignore",
    )

    def model_post_init(self, __context: Any) -> None:
        """Derive JWT secrets from the generic secret when not provided."""

        if not self.jwt_secret_key:
            object.__setattr__(self, "jwt_secret_key", self.secret_key)
        if not self.jwt_refresh_secret_key:
            object.__setattr__(
                self, "jwt_refresh_secret_key", f"{self.jwt_secret_key}:refresh"
            )

    @field_validator("cors_allow_origins", "cors_allowlist", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_port)


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
