from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./perks.db"
    database_echo: bool = False
    log_level: str = "INFO"
    tracing_console_fallback: bool = True

    # Document store limits
    batch_write_limit: int = Field(500, gt=0)
    transaction_max_attempts: int = Field(5, gt=0)
    transaction_retry_backoff_seconds: float = Field(0.02, ge=0)

    # Promotion issuance
    reward_coupon_validity_days: int = 90
    coupon_code_suffix_length: int = Field(4, ge=2, le=12)
    new_user_window_days: int = 7

    # Loyalty earning (currency units per point, 0 disables earning)
    points_per_amount: int = Field(100, ge=0)

    # Staff notifications
    push_notifications_enabled: bool = False
    staff_notification_roles: list[str] = Field(default_factory=lambda: ["admin", "designer"])

    @field_validator("staff_notification_roles", mode="before")
    @classmethod
    def _parse_role_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        return []

    # Coupon expiry automation
    coupon_expiry_worker_enabled: bool = False
    coupon_expiry_interval_seconds: int = 60 * 60
    coupon_expiry_batch_size: int = 500


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
