import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from virail.core.logging import get_logger

from .api import ApiSettings
from .auth import AuthSettings
from .logging import LoggingSettings


__all__ = ["Settings", "ConfigurationError", "find_toml_config_file", "get_settings"]


logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def find_toml_config_file() -> Path | None:
    """Return the first TOML config file found, or None.

    Looks for ``.virail.toml`` in the current directory, then
    ``config.toml`` in ``$XDG_CONFIG_HOME/virail/``.
    """
    local = Path.cwd() / ".virail.toml"
    if local.is_file():
        return local

    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg_home) if xdg_home else Path.home() / ".config"
    user_config = config_home / "virail" / "config.toml"
    if user_config.is_file():
        return user_config

    return None


class Settings(BaseSettings):
    """
    Configuration settings for the Virail client.

    Settings are loaded from environment variables, .env files, and TOML
    configuration files. Environment variables take precedence over TOML
    values; keyword overrides passed to ``from_config`` win over both.
    Nested values use ``__`` in environment variable names, for example
    ``API__BASE_URL`` or ``AUTH__STORAGE``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    api: ApiSettings = Field(
        default_factory=ApiSettings,
        description="Virail API endpoint settings",
    )

    auth: AuthSettings = Field(
        default_factory=AuthSettings,
        description="Session storage and auth mode settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Centralized logging configuration",
    )

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls,
        config_path: Path | str | None = None,
        **kwargs: Any,
    ) -> "Settings":
        """Create Settings instance from configuration file."""
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            config_data = cls.load_toml_config(config_path)
            logger.debug(
                "config_file_loaded",
                path=str(config_path),
                category="config",
            )

        settings = cls()

        for key, value in config_data.items():
            if not hasattr(settings, key):
                continue
            if isinstance(value, dict):
                nested_obj = getattr(settings, key)
                updates = {
                    nested_key: nested_value
                    for nested_key, nested_value in value.items()
                    if os.getenv(f"{key.upper()}__{nested_key.upper()}") is None
                }
                # Revalidate so TOML values get the same coercion as env vars
                merged = nested_obj.model_dump()
                merged.update(updates)
                setattr(settings, key, type(nested_obj).model_validate(merged))

        def _apply_overrides(target: Any, overrides: dict[str, Any]) -> None:
            for k, v in overrides.items():
                if isinstance(v, dict) and isinstance(getattr(target, k, None), BaseModel):
                    sub = getattr(target, k)
                    merged = sub.model_dump()
                    merged.update(v)
                    setattr(target, k, type(sub).model_validate(merged))
                else:
                    setattr(target, k, v)

        if kwargs:
            _apply_overrides(settings, kwargs)

        return settings


def get_settings() -> Settings:
    """Load settings from the environment and the discovered config file."""
    return Settings.from_config()
