"""Logging settings."""

from pydantic import BaseModel, ConfigDict, Field


class LoggingSettings(BaseModel):
    """Centralized logging configuration."""

    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO", description="Log level name")

    json_logs: bool = Field(
        default=False,
        description="Render log records as JSON instead of console output",
    )


__all__ = ["LoggingSettings"]
