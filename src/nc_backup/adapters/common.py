# pyright: standard

"""nc-backup: nc_backup/adapters/common.py
Common functionality among adapters.
"""

import os
import subprocess
from pathlib import Path
from typing import BinaryIO, Sequence

from nc_backup.__logger__ import logger
from nc_backup.__util__ import exec_command, format_command
from nc_backup.errors import AdapterError

# Artifacts may contain credentials and user data
ARTIFACT_MODE = 0o600


class Adapter:
    """Generic structure of an external tool adapter.

    An adapter performs exactly one action per ``run()`` call and never
    retries. Every command it starts is bounded by ``timeout``.
    """

    error_class: type[AdapterError] = AdapterError
    name = "adapter"

    def __init__(self, timeout: float | None = None, dry_run: bool = False) -> None:
        self.timeout = timeout
        self.dry_run = dry_run

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout={self.timeout}, dry_run={self.dry_run})"

    def _exec_command(self, cmd: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
        """Run a command, raising this adapter's error class on any failure."""
        return exec_command(
            cmd, timeout=self.timeout, error_class=self.error_class, **kwargs
        )

    def _would_run(self, cmd: Sequence[str]) -> None:
        logger.info("Dry run, skipping: %s", format_command(cmd))

    def _fail(self, path: Path, reason: str) -> AdapterError:
        """Build this adapter's error for a filesystem problem with ``path``."""
        return self.error_class(f"{path}: {reason}")

    def _create_artifact(self, path: Path) -> BinaryIO:
        """Create ``path`` exclusively for writing, with its parent directory.

        Never truncates an existing artifact.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, ARTIFACT_MODE)
        except FileExistsError:
            raise self._fail(path, "already exists")
        except OSError as e:
            raise self._fail(path, f"cannot create: {e.strerror or e}")
        return os.fdopen(fd, "wb")

    def _discard(self, path: Path) -> None:
        """Remove a partially written artifact."""
        try:
            path.unlink()
            logger.info("Removed incomplete %s", path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not remove incomplete %s: %s", path, e)
