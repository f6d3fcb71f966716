"""Application configuration using Pydantic settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PlanningSettings(BaseModel):
    tokens_per_agent: int = 50_000
    default_max_retries: int = Field(default=3, ge=0)
    default_timeout_seconds: int = 300
    default_estimated_minutes: int = 15
    catalog_path: str | None = Field(
        default=None,
        description="Agent library directory or directory.json document; built-in catalog when unset",
    )
    layer_spacing_x: int = 300
    node_spacing_y: int = 150


class ExecutionSettings(BaseModel):
    max_parallel: int = Field(default=3, ge=1, le=32)
    backoff: Literal["fixed", "linear", "exponential"] = "exponential"
    initial_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)
    review_timeout_seconds: float | None = None


class ObservabilitySettings(BaseModel):
    otel_service_name: str = "flowplanner"
    otel_exporter_otlp_endpoint: str | None = None
    log_level: str = "INFO"
    json_logs: bool = False


class FlowPlannerSettings(BaseSettings):
    planning: PlanningSettings = PlanningSettings()
    execution: ExecutionSettings = ExecutionSettings()
    observability: ObservabilitySettings = ObservabilitySettings()
    environment: Literal["dev", "qa", "prod"] | str = "dev"

    model_config = SettingsConfigDict(env_nested_delimiter="__", env_prefix="FLOWPLANNER_", case_sensitive=False)


@lru_cache(maxsize=1)
def get_settings(**kwargs: Any) -> FlowPlannerSettings:
    """Return cached settings instance."""
    return FlowPlannerSettings(**kwargs)


__all__ = ["ExecutionSettings", "FlowPlannerSettings", "ObservabilitySettings", "PlanningSettings", "get_settings"]
