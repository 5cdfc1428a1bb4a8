from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "pantry-service"
DEFAULT_STATE_KEY = "pantry-state-repository:v1"


class ServiceSettings(BaseSettings):
    """Settings for the pantry tracker service and its tooling."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8000)
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    state_path: str = Field(default="./data/pantry_state.json")
    database_url: str | None = Field(default=None)
    state_key: str = Field(default=DEFAULT_STATE_KEY, min_length=1)
    barcode_lookup_enabled: bool = Field(default=True)
    barcode_lookup_base_url: str = Field(default="https://world.openfoodfacts.org")
    barcode_lookup_timeout_seconds: float = Field(default=5.0, gt=0.0)
    enforce_stock_on_checkout: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="PANTRY_", extra="ignore"
    )


@lru_cache
def get_settings() -> ServiceSettings:
    """Return cached service settings."""

    return ServiceSettings()
