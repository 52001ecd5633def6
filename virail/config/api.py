"""API endpoint settings."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiSettings(BaseModel):
    """Where the Virail API lives and how long general calls may take."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the Virail API (API__BASE_URL)",
    )

    timeout: float = Field(
        default=30.0,
        description=(
            "Timeout in seconds for general API calls. Authentication calls "
            "are never subject to it."
        ),
        gt=0.0,
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


__all__ = ["ApiSettings"]
