from __future__ import annotations

import json
from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, DotEnvSettingsSource, EnvSettingsSource, SettingsConfigDict


_LIST_FIELDS = {"allow_origins", "depreciation_days"}


class _FallbackEnvSettingsSource(EnvSettingsSource):
    """Allow list settings to be comma-separated instead of strict JSON."""

    def decode_complex_value(self, field_name, field, value):  # type: ignore[override]
        try:
            return super().decode_complex_value(field_name, field, value)
        except json.JSONDecodeError:
            if field_name in _LIST_FIELDS:
                return value
            raise


class _FallbackDotEnvSettingsSource(DotEnvSettingsSource):
    """Allow list settings to be comma-separated instead of strict JSON."""

    def decode_complex_value(self, field_name, field, value):  # type: ignore[override]
        try:
            return super().decode_complex_value(field_name, field, value)
        except json.JSONDecodeError:
            if field_name in _LIST_FIELDS:
                return value
            raise


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    project_name: str = "AdminHub API"
    project_version: str = "1.0.0"
    environment: str = Field(
        default="development",
        description="Deployment environment name",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", description="Logging level")
    git_sha: str | None = Field(default=None, description="Git SHA for /version")
    build_version: str | None = Field(default=None, description="Build identifier")
    create_tables_on_startup: bool = Field(default=True, description="Create missing tables when the app starts")

    # Database
    database_url: str = Field(
        default="postgresql+psycopg://postgres@localhost:5432/adminhub",
        description="SQLAlchemy database URL",
    )
    db_pool_size: int = Field(default=5, description="Base DB connection pool size")
    db_max_overflow: int = Field(default=10, description="Additional DB connections beyond pool size")
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a DB connection")
    db_pool_recycle: int = Field(default=1800, description="Recycle DB connections after N seconds")

    # Auth / JWT
    jwt_secret: str = Field(default="change_me", description="JWT signing secret")
    algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Access token expiry in minutes")

    # CORS
    allow_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    # Public links
    app_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the portal; encoded in asset QR codes",
        validation_alias=AliasChoices("APP_BASE_URL", "AUTH_URL"),
    )

    # Depreciation calendar
    depreciation_days: List[int] = Field(
        default_factory=lambda: [30, 31],
        description="Days of month on which batch depreciation may run (last day of month always allowed)",
    )

    # Leave
    leave_carry_over_guideline_days: int = Field(
        default=20,
        description="Carry-over days above this are flagged for acknowledgement at replenishment",
    )

    # Pagination
    default_page_size: int = Field(default=10, description="Default page size for list endpoints")
    max_page_size: int = Field(default=100, description="Upper bound for requested page size")

    @field_validator("allow_origins", mode="before")
    @classmethod
    def parse_allow_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if isinstance(value, str) and value.strip():
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]

    @field_validator("depreciation_days", mode="before")
    @classmethod
    def parse_depreciation_days(cls, value: str | int | List[int]) -> List[int]:
        if isinstance(value, int):
            return [value]
        if isinstance(value, str):
            return [int(part) for part in value.split(",") if part.strip()]
        return list(value)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            _FallbackEnvSettingsSource(settings_cls),
            _FallbackDotEnvSettingsSource(settings_cls),
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
