"""Configuration management for the Pluto ORM."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreConfig(BaseModel):
    """Entity store configuration."""

    commit_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Max time a commit waits for the write lock"
    )
    migrate_on_start: bool = Field(
        default=True, description="Apply pending migrations when a context is created"
    )


class LoadingConfig(BaseModel):
    """Relation loading configuration."""

    lazy_loading_enabled: bool = Field(
        default=True, description="Allow one-lookup-per-access relation resolution"
    )
    sql_dialect: str = Field(default="sqlite", description="Dialect used by to_sql()")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="pluto_orm", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for the Pluto ORM."""

    model_config = SettingsConfigDict(
        env_prefix="PLUTO_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    store: StoreConfig = Field(default_factory=StoreConfig)
    loading: LoadingConfig = Field(default_factory=LoadingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
