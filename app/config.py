from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_env: str = Field("production", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    api_key: str = "test-api-key"

    trusted_proxies: list[str] = Field(
        default_factory=lambda: ["127.0.0.1", "testclient"]
    )
    rate_limit_ip: int = Field(30, alias="RATE_LIMIT_IP")
    rate_limit_user: int = Field(120, alias="RATE_LIMIT_USER")

    database_url: str = Field("sqlite:////tmp/chartdesk_test.db", alias="DATABASE_URL")
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")
    db_pool_size: int = Field(20, alias="DB_POOL_SIZE")

    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")

    free_daily_limit: int = Field(3, alias="FREE_DAILY_LIMIT")
    premium_daily_limit: int = Field(999, alias="PREMIUM_DAILY_LIMIT")
    usage_timezone: str = Field(
        "UTC",
        alias="USAGE_TIMEZONE",
        description="Timezone whose calendar day bounds the daily usage counter",
    )

    admin_emails: str = Field(
        "",
        alias="ADMIN_EMAILS",
        description="Comma-separated emails allowed to manage support tickets",
    )

    billing_webhook_secret: str = Field(
        "test-billing-secret", alias="BILLING_WEBHOOK_SECRET"
    )
    billing_webhook_tolerance_s: int = Field(300, alias="BILLING_WEBHOOK_TOLERANCE_S")

    max_image_size: int = Field(5 * 1024 * 1024, alias="MAX_IMAGE_SIZE")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
    )

    @property
    def admin_email_set(self) -> set[str]:
        return {e.strip().lower() for e in self.admin_emails.split(",") if e.strip()}

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"
