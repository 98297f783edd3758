"""Configuration system for nc-backup.

This module provides TOML-based configuration loading, validation,
and schema definitions for the backup run.
"""

from .loader import ConfigError, find_config_file, load_config
from .schema import (
    Config,
    ConfigCopyConfig,
    GlobalConfig,
    MariaDbConfig,
    RetentionConfig,
    SnapperConfig,
)

__all__ = [
    "GlobalConfig",
    "MariaDbConfig",
    "ConfigCopyConfig",
    "SnapperConfig",
    "RetentionConfig",
    "Config",
    "load_config",
    "find_config_file",
    "ConfigError",
]
