"""Access and manage Nextcloud installations.

``Nextcloud`` locates an installation below its document root and exposes
its ``Occ`` command-line interface.
"""

from pathlib import Path

from ..errors import NcBackupError
from .occ import Occ

__all__ = ["Nextcloud", "NextcloudNotFoundError", "Occ"]


class NextcloudNotFoundError(NcBackupError):
    """The installation directory or its occ script is missing."""


class Nextcloud:
    """A Nextcloud instance."""

    def __init__(self, document_root: Path | str, php: str = "php", occ_timeout: float = 60.0) -> None:
        self.document_root = Path(document_root)
        if not self.document_root.is_dir():
            raise NextcloudNotFoundError(
                f"Nextcloud installation directory not found: {self.document_root}"
            )

        occ_path = self.document_root / "occ"
        if not occ_path.exists():
            raise NextcloudNotFoundError(f"occ not found: {occ_path}")

        self.occ = Occ(occ_path, php=php, timeout=occ_timeout)

    def __repr__(self) -> str:
        return f"Nextcloud({str(self.document_root)!r})"

    @property
    def config_file(self) -> Path:
        """Path of the instance's config.php."""
        return self.document_root / "config" / "config.php"
