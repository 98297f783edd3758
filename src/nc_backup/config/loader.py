"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from .schema import (
    CLEANUP_ALGORITHMS,
    Config,
    ConfigCopyConfig,
    GlobalConfig,
    MariaDbConfig,
    RetentionConfig,
    SnapperConfig,
)


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "nc-backup" / "config.toml",
    Path("/etc/nc-backup/config.toml"),
]

RETENTION_KINDS = ("daily", "weekly", "monthly", "quarterly", "yearly")
SECTIONS = ("global", "mariadb", "config", "snapper", "retention")


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _positive(section: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"[{section}] {key} must be a positive number, got {value!r}")
    return float(value)


def _parse_retention(data: dict[str, Any]) -> RetentionConfig:
    """Parse retention configuration from dict.

    A negative value or the string "all" keeps every backup of that kind.
    """
    defaults = RetentionConfig()
    values: dict[str, int | None] = {}
    for kind in RETENTION_KINDS:
        value = data.get(kind, getattr(defaults, kind))
        if value == "all" or (isinstance(value, int) and value < 0):
            value = None
        elif value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise ConfigError(f"[retention] {kind} must be an integer or \"all\"")
        values[kind] = value
    return RetentionConfig(**values)


def _parse_mariadb(data: dict[str, Any]) -> MariaDbConfig:
    """Parse database dump configuration from dict."""
    defaults = MariaDbConfig()
    extra_args = data.get("extra_args", defaults.extra_args)
    if not isinstance(extra_args, list) or not all(
        isinstance(a, str) for a in extra_args
    ):
        raise ConfigError("[mariadb] extra_args must be a list of strings")

    return MariaDbConfig(
        command=data.get("command", defaults.command),
        defaults_file=data.get("defaults_file"),
        database=data.get("database"),
        user=data.get("user"),
        extra_args=extra_args,
        timeout=_positive("mariadb", "timeout", data.get("timeout", defaults.timeout)),
        require_completion_marker=data.get(
            "require_completion_marker", defaults.require_completion_marker
        ),
    )


def _parse_config_copy(data: dict[str, Any]) -> ConfigCopyConfig:
    """Parse config copy settings from dict."""
    defaults = ConfigCopyConfig()
    return ConfigCopyConfig(
        mask_secrets=data.get("mask_secrets", defaults.mask_secrets),
        timeout=_positive("config", "timeout", data.get("timeout", defaults.timeout)),
    )


def _parse_snapper(data: dict[str, Any]) -> SnapperConfig:
    """Parse snapshot configuration from dict."""
    defaults = SnapperConfig()
    cleanup = data.get("cleanup_algorithm", defaults.cleanup_algorithm)
    if cleanup in ("", "none"):
        cleanup = None
    if cleanup is not None and cleanup not in CLEANUP_ALGORITHMS:
        raise ConfigError(
            f"[snapper] unknown cleanup_algorithm {cleanup!r}, "
            f"expected one of: {', '.join(CLEANUP_ALGORITHMS)}"
        )

    return SnapperConfig(
        command=data.get("command", defaults.command),
        config_name=data.get("config_name"),
        data_directory=data.get("data_directory"),
        cleanup_algorithm=cleanup,
        description=data.get("description", defaults.description),
        timeout=_positive("snapper", "timeout", data.get("timeout", defaults.timeout)),
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    defaults = GlobalConfig()
    return GlobalConfig(
        document_root=data.get("document_root", defaults.document_root),
        php=data.get("php", defaults.php),
        backup_root=data.get("backup_root"),
        log_file=data.get("log_file"),
        occ_timeout=_positive(
            "global", "occ_timeout", data.get("occ_timeout", defaults.occ_timeout)
        ),
        notify=data.get("notify", defaults.notify),
        admin=data.get("admin", defaults.admin),
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if not Path(config.global_config.document_root).is_absolute():
        warnings.append(
            f"document_root '{config.global_config.document_root}' is relative"
        )

    backup_root = config.global_config.backup_root
    if backup_root and not Path(backup_root).is_absolute():
        warnings.append(f"backup_root '{backup_root}' is relative")

    if config.mariadb.defaults_file is None:
        warnings.append(
            "No [mariadb] defaults_file set, the dump relies on the client's default option files"
        )

    retention = config.retention
    if all(getattr(retention, kind) == 0 for kind in RETENTION_KINDS):
        warnings.append("Retention keeps no backups at all, 'retain' would prune every run")

    if config.global_config.notify and not config.global_config.admin:
        warnings.append("Notifications enabled but no admin account configured")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    sections: dict[str, dict[str, Any]] = {}
    for name in SECTIONS:
        section = data.get(name, {})
        if not isinstance(section, dict):
            raise ConfigError(f"[{name}] must be a table, got {section!r}")
        sections[name] = section

    config = Config(
        global_config=_parse_global(sections["global"]),
        mariadb=_parse_mariadb(sections["mariadb"]),
        config_copy=_parse_config_copy(sections["config"]),
        snapper=_parse_snapper(sections["snapper"]),
        retention=_parse_retention(sections["retention"]),
    )

    # Validate and collect warnings
    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# nc-backup configuration
# See documentation for full options

[global]
document_root = "/var/www/nextcloud"
php = "php"
backup_root = "/var/backups/nextcloud"
# log_file = "/var/log/nc-backup.log"
occ_timeout = 60

# Summary notification after each run
notify = true
admin = "admin"

[mariadb]
command = "mariadb-dump"
defaults_file = "/etc/nc-backup/my.cnf"   # [client] user/password, never parsed here
# database = "nextcloud"                  # default: occ config:system:get dbname
# user = "nextcloud"                      # default: occ config:system:get dbuser
extra_args = ["--opt", "--single-transaction"]
timeout = 1800

[config]
mask_secrets = true    # replace dbpassword in the copied config.php
timeout = 60

[snapper]
command = "snapper"
# config_name = "nextcloud-data"   # default: config whose subvolume is the data directory
# data_directory = "/srv/nextcloud/data"   # default: occ config:system:get datadirectory
cleanup_algorithm = "number"
description = "Full Nextcloud Backup"
timeout = 300

[retention]
daily = 10         # First backup of each day, newest 10 days
weekly = 0
monthly = 10
quarterly = 0
yearly = 10        # "all" keeps every yearly backup
"""
