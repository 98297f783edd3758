# pyright: standard

"""nc-backup: nc_backup/nextcloud/occ.py
Access to the command-line interface of a Nextcloud installation.
"""

import logging
from pathlib import Path

from ..__util__ import exec_command
from ..errors import OccError

logger = logging.getLogger(__name__)


class Occ:
    """Run occ commands through the PHP interpreter.

    Also serves as the maintenance-mode control used by the consistency
    guard: ``enable()``, ``disable()`` and ``status()``.
    """

    def __init__(self, occ_path: Path | str, php: str = "php", timeout: float = 60.0) -> None:
        self.occ_path = Path(occ_path)
        self.php = php
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"Occ({str(self.occ_path)!r})"

    def execute(self, command: str, *args: str, timeout: float | None = None) -> str:
        """Run an occ command and return its trimmed stdout.

        ``--no-warnings`` suppresses the banner occ prints while maintenance
        mode is on.
        """
        cmd = [self.php, str(self.occ_path), "--no-warnings", command, *args]
        result = exec_command(
            cmd,
            timeout=self.timeout if timeout is None else timeout,
            error_class=OccError,
        )
        return (result.stdout or "").rstrip()

    def status(self) -> bool:
        """Return whether maintenance mode is enabled."""
        message = self.execute("maintenance:mode")
        return "enabled" in message

    def enable(self) -> None:
        """Enable maintenance mode."""
        self.execute("maintenance:mode", "--on")
        logger.debug("Maintenance mode enabled")

    def disable(self) -> None:
        """Disable maintenance mode."""
        self.execute("maintenance:mode", "--off")
        logger.debug("Maintenance mode disabled")

    def system_config(self, key: str) -> str:
        """Read a value from the system configuration (config.php)."""
        value = self.execute("config:system:get", key)
        if not value:
            raise OccError(f"system config value '{key}' is not set")
        return value

    def data_directory(self) -> Path:
        return Path(self.system_config("datadirectory"))

    def db_name(self) -> str:
        return self.system_config("dbname")

    def db_user(self) -> str:
        return self.system_config("dbuser")

    def update_apps(self, show_only: bool = False) -> None:
        """Update all installed apps.

        Args:
            show_only: Only list available updates
        """
        log = self.execute("app:update", "--showonly" if show_only else "--all")
        for line in log.splitlines():
            logger.info("Update apps: %s", line)

    def notify(self, user: str, message: str) -> None:
        """Send a notification to a Nextcloud account."""
        self.execute("notification:generate", user, message)
