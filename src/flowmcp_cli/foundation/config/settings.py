"""Environment-based configuration using pydantic-settings.

Settings locate the per-user FlowMCP home (global config, imported schema
sources, response cache) and control logging and live-test pacing.

Example:
    >>> from flowmcp_cli.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.config_path
    PosixPath('/home/me/.flowmcp/config.json')

    # Or with environment variables:
    # FLOWMCP_HOME=/tmp/flowmcp
    # FLOWMCP_DEBUG=1
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, NonNegativeFloat, PositiveFloat, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "FlowMCP"
CLI_COMMAND = "flowmcp"
CORE_VERSION = "2.0.0"
SCHEMA_SPEC = "2.0.0"
LOCAL_CONFIG_DIR = ".flowmcp"
CONFIG_FILE = "config.json"
DEFAULT_ENV_FILE = ".env"
REGISTRY_FILE_NAMES: tuple[str, ...] = ("_registry.json", "flowmcp-registry.json")
SCHEMA_SUFFIX = ".py"
USER_PARAM = "{{USER_PARAM}}"


def local_config_path(cwd: Path | str) -> Path:
    """Path of the project config for a working directory."""
    return Path(cwd) / LOCAL_CONFIG_DIR / CONFIG_FILE


class FlowmcpSettings(BaseSettings):
    """Root settings for the FlowMCP CLI.

    Loads configuration from environment variables with the FLOWMCP_ prefix.

    Example environment variables:
        FLOWMCP_HOME=~/.flowmcp
        FLOWMCP_DEBUG=true
        FLOWMCP_LOG_LEVEL=DEBUG
        FLOWMCP_TEST_DELAY=0
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWMCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    home: Path = Field(default_factory=lambda: Path.home() / LOCAL_CONFIG_DIR, description="Global FlowMCP directory")
    debug: bool = Field(default=False, description="Emit diagnostics for isolated handler failures")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_format: Literal["console", "json", "none"] = "console"
    test_delay: NonNegativeFloat = Field(default=1.0, description="Pause between live route tests in seconds")
    http_timeout: PositiveFloat = Field(default=30.0, description="Timeout for outbound schema requests")

    @field_validator("home", mode="before")
    @classmethod
    def _expand_home(cls, v: str | Path) -> Path:
        """Expand ~ so FLOWMCP_HOME may be given the way users type it."""
        return Path(v).expanduser()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @computed_field
    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILE

    @computed_field
    @property
    def schemas_dir(self) -> Path:
        return self.home / "schemas"

    @computed_field
    @property
    def cache_dir(self) -> Path:
        return self.home / "cache"


@lru_cache(maxsize=1)
def get_settings() -> FlowmcpSettings:
    """Get the global settings instance (cached).

    Example:
        >>> settings = get_settings()
        >>> settings.debug
        False
    """
    return FlowmcpSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
