"""
Settings loader for userfiles-auth.

Reads config/userfiles-auth.yaml (directory overridable through
USERFILES_AUTH_CONFIG_DIR). Every field has a default, so a missing file
only produces a warning.

Example:

    userfiles_auth:
      home_dir: /etc/guacamole
      cache_enabled: true
      strict_duplicates: false
      log_level: INFO
      log_file: /var/log/userfiles-auth.log
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

CONFIG_DIR: Path = Path(os.environ.get("USERFILES_AUTH_CONFIG_DIR", PROJECT_ROOT / "config"))
SETTINGS_FILE_NAME = "userfiles-auth.yaml"
SETTINGS_SECTION = "userfiles_auth"

# Gateway home resolution
GUACAMOLE_HOME_ENV = "GUACAMOLE_HOME"
USER_HOME_DIRNAME = ".guacamole"
SYSTEM_HOME_DIR = Path("/etc/guacamole")


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigNotFoundError(Exception):
    """Raised when a required settings file does not exist."""
    pass


class ConfigValidationError(Exception):
    """Raised when the settings file cannot be parsed or holds invalid values."""
    pass


def get_home_directory() -> Path:
    """
    Return the gateway home directory.

    Resolution order: GUACAMOLE_HOME, ~/.guacamole if it exists,
    /etc/guacamole.
    """
    env_home = os.environ.get(GUACAMOLE_HOME_ENV)
    if env_home:
        return Path(env_home)

    user_home = Path.home() / USER_HOME_DIRNAME
    if user_home.is_dir():
        return user_home

    return SYSTEM_HOME_DIR


class AuthSettings(BaseModel):
    """Runtime settings for config loading and the API surface."""

    home_dir: Optional[Path] = Field(
        default=None, description="Directory holding the config files (None = auto-detect)"
    )
    cache_enabled: bool = Field(
        default=True, description="Reuse parsed documents while the file is unchanged"
    )
    strict_duplicates: bool = Field(
        default=False, description="Reject documents that repeat a config name"
    )
    log_level: str = Field(default="INFO", description="Package log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    def resolved_home_dir(self) -> Path:
        return self.home_dir if self.home_dir is not None else get_home_directory()


def load_settings(config_path: Optional[Path | str] = None, require: bool = False) -> AuthSettings:
    """
    Load settings from YAML.

    Args:
        config_path: Path to the settings file (default: CONFIG_DIR/userfiles-auth.yaml)
        require: Raise instead of falling back to defaults when the file is missing

    Returns:
        AuthSettings instance

    Raises:
        ConfigNotFoundError: If require is set and the file does not exist
        ConfigValidationError: If the file is not valid YAML or holds invalid values
    """
    config_path = Path(config_path) if config_path else CONFIG_DIR / SETTINGS_FILE_NAME

    if not config_path.exists():
        if require:
            raise ConfigNotFoundError(f"Settings file not found: {config_path}")
        logger.warning(f"Settings not found at {config_path}. Using defaults.")
        return AuthSettings()

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Failed to parse {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigValidationError(f"Settings file must contain a mapping: {config_path}")

    section = data.get(SETTINGS_SECTION, {}) or {}
    if not isinstance(section, dict):
        raise ConfigValidationError(
            f"'{SETTINGS_SECTION}' section in {config_path} must be a mapping"
        )

    try:
        return AuthSettings(**section)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid settings in {config_path}:\n{e}")


# =============================================================================
# Startup logging
# =============================================================================

def log_settings(settings: AuthSettings) -> None:
    """Log the effective settings at startup."""
    values: dict[str, Any] = settings.model_dump()
    values["home_dir"] = settings.resolved_home_dir()

    logger.info("=" * 60)
    logger.info("USERFILES AUTH CONFIGURATION")
    logger.info("=" * 60)
    for key, value in values.items():
        logger.info(f"{key}: {value}")
    logger.info("=" * 60)
