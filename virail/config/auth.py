"""Authentication-related settings."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from virail.auth.mode import AuthMode


def _default_storage_path() -> Path:
    return Path.home() / ".config" / "virail" / "session.json"


class AuthSettings(BaseModel):
    """Configuration for session storage and auth mode negotiation."""

    model_config = ConfigDict(extra="ignore")

    initial_mode: AuthMode = Field(
        default=AuthMode.COOKIES,
        description="Auth mode a new session starts in (cookies, bearer or auto)",
    )

    storage: Literal["file", "keyring", "memory"] = Field(
        default="file",
        description="Backend used to persist tokens and the cached user",
    )

    storage_path: Path = Field(
        default_factory=_default_storage_path,
        description="Session file used by the 'file' storage backend",
    )

    keyring_service: str = Field(
        default="virail-studio",
        description="Service name used by the 'keyring' storage backend",
    )

    probe_path: str = Field(
        default="/docs",
        description="Lightweight endpoint probed with credentials during negotiation",
    )

    login_route: str = Field(
        default="/login",
        description="Route the user is sent to when the session expires",
    )

    app_url: str = Field(
        default="http://localhost:5173",
        description="Base URL of the Virail Studio web app, used to resolve routes",
    )


__all__ = ["AuthSettings"]
