"""Settings management using Pydantic for type validation and configuration."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import pytz
import yaml
from pydantic import Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "SHIFTSYNC_"

# Keys accepted from config.yaml, applied unless set explicitly or via environment
YAML_SETTINGS = ("app_name", "data_dir", "timezone", "log_level", "debug")


def _check_timezone(value: str) -> str:
    """Reject timezone names pytz does not know."""
    try:
        pytz.timezone(value)
    except pytz.UnknownTimeZoneError as e:
        raise ValueError(f"Unknown timezone: {value}") from e
    return value


class ShiftSyncSettings(BaseSettings):
    """Application settings with environment variable and YAML support."""

    _explicit_args: set = PrivateAttr(default_factory=set)
    _env_vars_set: set = PrivateAttr(default_factory=set)

    app_name: str = Field(default="ShiftSync", description="Application name used in User-Agent")

    # Paths
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config" / "shiftsync",
        description="Configuration directory",
    )
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "shiftsync",
        description="Data directory holding the SQLite database",
    )

    # Occurrence dates and clock times are materialized in this zone
    timezone: str = Field(
        default="UTC", description="IANA timezone for wall-clock dates and times"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    debug: bool = Field(default=False, description="Enable debug logging")

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def __init__(self, **kwargs: Any) -> None:
        env_vars_set = {
            key[len(ENV_PREFIX) :].lower() for key in os.environ if key.startswith(ENV_PREFIX)
        }

        super().__init__(**kwargs)

        self._explicit_args = set(kwargs.keys())
        self._env_vars_set = env_vars_set

        self._load_yaml_config()

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _check_timezone(value)

    def _find_config_file(self) -> Optional[Path]:
        """Return config.yaml from the config directory if it exists."""
        config_file = self.config_dir / "config.yaml"
        return config_file if config_file.exists() else None

    def _load_yaml_config(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_file = self._find_config_file()
        if not config_file:
            return

        try:
            with config_file.open() as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            # Don't fail if YAML loading fails, just continue with defaults/env vars
            logger.warning(f"Could not load YAML config from {config_file}: {e}")
            return

        if not config_data:
            return

        for setting in YAML_SETTINGS:
            if (
                setting in config_data
                and setting not in self._explicit_args
                and setting not in self._env_vars_set
            ):
                value = config_data[setting]
                if setting == "data_dir":
                    value = Path(value).expanduser()
                elif setting == "timezone":
                    value = _check_timezone(value)
                setattr(self, setting, value)

    @property
    def database_file(self) -> Path:
        """Path to SQLite database file."""
        return self.data_dir / "shiftsync.db"


_settings_instance: Optional[ShiftSyncSettings] = None


def get_settings() -> ShiftSyncSettings:
    """Get the global settings instance, creating it lazily if needed."""
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = ShiftSyncSettings()
    return globals()["_settings_instance"]


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
