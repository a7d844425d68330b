"""Configuration: process settings (pydantic-settings) and the two-level config store."""

from .environment import (
    build_server_params,
    check_env_params,
    combine_env_errors,
    env_unreadable,
    missing_params,
    read_env_file,
)
from .models import MODE_AGENT, MODE_DEV, CoreInfo, GlobalConfig, GroupConfig, LocalConfig, Mode, SourceConfig
from .settings import (
    APP_NAME,
    CLI_COMMAND,
    CORE_VERSION,
    DEFAULT_ENV_FILE,
    LOCAL_CONFIG_DIR,
    REGISTRY_FILE_NAMES,
    SCHEMA_SPEC,
    SCHEMA_SUFFIX,
    USER_PARAM,
    FlowmcpSettings,
    clear_settings_cache,
    get_settings,
    local_config_path,
)
from .store import ConfigStore, global_warnings, group_refs, group_warnings, local_warnings, read_json, write_json

__all__ = [
    # Settings
    "FlowmcpSettings", "get_settings", "clear_settings_cache", "local_config_path",
    "APP_NAME", "CLI_COMMAND", "CORE_VERSION", "DEFAULT_ENV_FILE", "LOCAL_CONFIG_DIR",
    "REGISTRY_FILE_NAMES", "SCHEMA_SPEC", "SCHEMA_SUFFIX", "USER_PARAM",
    # Store
    "ConfigStore", "GlobalConfig", "LocalConfig", "GroupConfig", "SourceConfig", "CoreInfo",
    "Mode", "MODE_AGENT", "MODE_DEV",
    "global_warnings", "local_warnings", "group_warnings", "group_refs", "read_json", "write_json",
    # Env file
    "read_env_file", "env_unreadable", "missing_params", "build_server_params",
    "check_env_params", "combine_env_errors",
]
