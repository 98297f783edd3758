"""Database dump adapter.

Streams the output of ``mariadb-dump`` into a single file inside the backup
root. Credentials are never handled here: they come from the client option
file passed with ``--defaults-extra-file``.
"""

import logging
from pathlib import Path

from ..config.schema import MariaDbConfig
from ..errors import DumpError, OccError
from ..nextcloud.occ import Occ
from .common import Adapter

logger = logging.getLogger(__name__)

# Trailer written by mariadb-dump/mysqldump (with comments enabled) once the
# dump is complete
COMPLETION_MARKER = b"-- Dump completed"
TAIL_BYTES = 4096


class DatabaseDumpAdapter(Adapter):
    """Produce a logical dump of the Nextcloud database."""

    error_class = DumpError
    name = "database dump"

    def __init__(self, settings: MariaDbConfig, occ: Occ | None = None, dry_run: bool = False) -> None:
        super().__init__(timeout=settings.timeout, dry_run=dry_run)
        self.settings = settings
        self.occ = occ

    def _lookup(self, configured: str | None, key: str) -> str | None:
        if configured:
            return configured
        if self.occ is None:
            return None
        try:
            return self.occ.system_config(key)
        except OccError as e:
            raise DumpError(f"could not read '{key}' from Nextcloud: {e.reason}", e.timed_out)

    def build_command(self) -> list[str]:
        """Build the dump command line.

        Raises:
            DumpError: If the database name cannot be determined
        """
        database = self._lookup(self.settings.database, "dbname")
        if not database:
            raise DumpError("no database name configured")
        user = self._lookup(self.settings.user, "dbuser")

        cmd = [self.settings.command]
        # must be the first option
        if self.settings.defaults_file:
            cmd.append(f"--defaults-extra-file={self.settings.defaults_file}")
        cmd.extend(self.settings.extra_args)
        if user:
            cmd.append(f"--user={user}")
        cmd.append(database)
        return cmd

    def run(self, dest: Path) -> Path:
        """Dump the database to ``dest``.

        Args:
            dest: Dump file to create, must not exist yet

        Returns:
            Path of the written dump

        Raises:
            DumpError: On non-zero exit, timeout, empty or truncated output
        """
        cmd = self.build_command()
        logger.info("Dumping database to %s", dest)

        if self.dry_run:
            self._would_run(cmd)
            return dest

        output = self._create_artifact(dest)
        try:
            with output:
                self._exec_command(cmd, stdout=output, text=False)
            self._verify(dest)
        except BaseException:
            self._discard(dest)
            raise

        logger.info("Database dump finished: %s", dest)
        return dest

    def _verify(self, dest: Path) -> None:
        """Reject empty or truncated dump output."""
        try:
            size = dest.stat().st_size
            if size == 0:
                raise DumpError("dump output is empty")

            if self.settings.require_completion_marker:
                with open(dest, "rb") as f:
                    f.seek(max(0, size - TAIL_BYTES))
                    tail = f.read()
                if COMPLETION_MARKER not in tail:
                    raise DumpError("dump output is truncated, completion marker missing")
        except OSError as e:
            raise DumpError(f"cannot inspect dump {dest}: {e}")

        logger.debug("Dump size: %d bytes", size)
