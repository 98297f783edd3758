"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_DOCUMENT_ROOT = "/var/www/nextcloud"
CLEANUP_ALGORITHMS = ("number", "timeline")


@dataclass
class RetentionConfig:
    """Retention policy configuration.

    A value of None keeps every backup of that kind.

    Attributes:
        daily: Number of daily backups to keep (first backup of a day)
        weekly: Number of weekly backups to keep (first backup of an ISO week)
        monthly: Number of monthly backups to keep
        quarterly: Number of quarterly backups to keep
        yearly: Number of yearly backups to keep
    """

    daily: Optional[int] = 10
    weekly: Optional[int] = 0
    monthly: Optional[int] = 10
    quarterly: Optional[int] = 0
    yearly: Optional[int] = 10


@dataclass
class MariaDbConfig:
    """Database dump configuration.

    Attributes:
        command: Dump tool executable
        defaults_file: Client option file holding the credentials
        database: Database name (None = ask occ for dbname)
        user: Database user (None = ask occ for dbuser)
        extra_args: Arguments passed before the database name
        timeout: Seconds before the dump is aborted
        require_completion_marker: Treat dumps without the trailer as truncated
    """

    command: str = "mariadb-dump"
    defaults_file: Optional[str] = None
    database: Optional[str] = None
    user: Optional[str] = None
    extra_args: list[str] = field(
        default_factory=lambda: ["--opt", "--single-transaction"]
    )
    timeout: float = 1800.0
    require_completion_marker: bool = True


@dataclass
class ConfigCopyConfig:
    """Configuration file copy settings.

    Attributes:
        mask_secrets: Replace the database password in the copy
        timeout: Seconds before reading and writing the copy is given up
    """

    mask_secrets: bool = True
    timeout: float = 60.0


@dataclass
class SnapperConfig:
    """Snapshot configuration.

    Attributes:
        command: Snapper executable
        config_name: Snapper config bound to the data directory
            (None = look it up by subvolume)
        data_directory: Nextcloud data directory (None = ask occ)
        cleanup_algorithm: Cleanup algorithm attached to created snapshots
        description: Description of created snapshots
        timeout: Seconds before a snapper call is aborted
    """

    command: str = "snapper"
    config_name: Optional[str] = None
    data_directory: Optional[str] = None
    cleanup_algorithm: Optional[str] = "number"
    description: str = "Full Nextcloud Backup"
    timeout: float = 300.0


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        document_root: Nextcloud installation directory (holds occ)
        php: PHP interpreter used to run occ
        backup_root: Default destination for backups
        log_file: Path to log file (None for no file logging)
        occ_timeout: Seconds before an occ call is aborted
        notify: Send a summary notification after each run
        admin: Nextcloud account receiving notifications
    """

    document_root: str = DEFAULT_DOCUMENT_ROOT
    php: str = "php"
    backup_root: Optional[str] = None
    log_file: Optional[str] = None
    occ_timeout: float = 60.0
    notify: bool = True
    admin: str = "admin"


@dataclass
class Config:
    """Root configuration object."""

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    mariadb: MariaDbConfig = field(default_factory=MariaDbConfig)
    config_copy: ConfigCopyConfig = field(default_factory=ConfigCopyConfig)
    snapper: SnapperConfig = field(default_factory=SnapperConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)

    def override_timeouts(self, timeout: float) -> None:
        """Apply one timeout to every external tool."""
        self.global_config.occ_timeout = timeout
        self.mariadb.timeout = timeout
        self.config_copy.timeout = timeout
        self.snapper.timeout = timeout
