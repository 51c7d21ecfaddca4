"""Application configuration via pydantic settings."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from typing import Any, Literal

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = "Salon Booking Marketplace API"
    api_v1_prefix: str = "/api/v1"

    database_url: str = Field(..., alias="DATABASE_URL")
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    secret_key: str = Field("change-me", alias="SECRET_KEY")
    jwt_secret_key: str = Field(default="", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    default_currency: str = Field("ZAR", alias="DEFAULT_CURRENCY")
    platform_default_tax_rate: Decimal = Field(
        Decimal("0"), alias="PLATFORM_DEFAULT_TAX_RATE"
    )
    platform_service_fee_type: Literal["percentage", "fixed_amount"] = Field(
        "percentage", alias="PLATFORM_SERVICE_FEE_TYPE"
    )
    platform_service_fee_percentage: Decimal = Field(
        Decimal("0"), alias="PLATFORM_SERVICE_FEE_PERCENTAGE"
    )
    platform_service_fee_fixed: Decimal = Field(
        Decimal("0"), alias="PLATFORM_SERVICE_FEE_FIXED"
    )

    slot_interval_minutes: int = Field(15, alias="SLOT_INTERVAL_MINUTES")
    default_open_time: str = Field("09:00", alias="DEFAULT_OPEN_TIME")
    default_close_time: str = Field("18:00", alias="DEFAULT_CLOSE_TIME")
    max_advance_days: int = Field(365, alias="MAX_ADVANCE_DAYS")

    booking_api_base_url: str = Field(
        "http://localhost:8000", alias="BOOKING_API_BASE_URL"
    )
    booking_api_timeout_seconds: float = Field(
        10.0, alias="BOOKING_API_TIMEOUT_SECONDS"
    )

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allowlist: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], alias="CORS_ALLOWLIST"
    )

    rate_limit_default: str = Field("100/minute", alias="RATE_LIMIT_DEFAULT")
    rate_limit_login: str = Field("10/minute", alias="RATE_LIMIT_LOGIN")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        case_sensitive=False,
    )

    def model_post_init(self, __context: Any) -> None:
        """Populate JWT secret from the generic secret when not provided."""

        if not self.jwt_secret_key:
            object.__setattr__(self, "jwt_secret_key", self.secret_key)

    @field_validator("cors_allow_origins", "cors_allowlist", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
