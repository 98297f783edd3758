"""Error taxonomy for nc-backup.

Adapter errors (dump, config copy, snapshot, occ) are recorded per step by the
coordinator. Guard errors and the concurrency check are run-level.
"""

from pathlib import Path


class NcBackupError(Exception):
    """Base class for all nc-backup failures."""


class AdapterError(NcBackupError):
    """An external tool invocation failed.

    Attributes:
        reason: Human readable failure description
        timed_out: True if the invocation exceeded its timeout
    """

    def __init__(self, reason: str, timed_out: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.timed_out = timed_out


class OccError(AdapterError):
    """A Nextcloud occ command failed."""


class DumpError(AdapterError):
    """The database dump failed or produced empty/truncated output."""


class SnapshotError(AdapterError):
    """The filesystem snapshot could not be created or identified."""


class ConfigCopyError(AdapterError):
    """The application configuration could not be copied."""

    def __init__(self, path: Path | str, reason: str = "", timed_out: bool = False) -> None:
        self.path = Path(path)
        message = f"{self.path}: {reason}" if reason else str(self.path)
        super().__init__(message, timed_out)


class GuardAcquireError(NcBackupError):
    """Maintenance mode could not be enabled."""


class GuardReleaseError(NcBackupError):
    """Maintenance mode could not be disabled. Needs human attention."""


class ConcurrentRunError(NcBackupError):
    """Another backup run holds maintenance mode or the backup root lock."""


class ManifestError(NcBackupError):
    """The manifest could not be written or parsed."""


class RunInterrupted(BaseException):
    """Raised from a signal handler to unwind a running backup.

    Derives from BaseException so that step error handling does not
    absorb it.
    """

    def __init__(self, signum: int) -> None:
        super().__init__(f"interrupted by signal {signum}")
        self.signum = signum
