"""On-disk layout of a backup root.

This is the input contract of the archival step::

    <root>/db/database-<run_id>.sql
    <root>/config/config-<run_id>.php
    <root>/manifests/manifest-<run_id>.json
"""

from dataclasses import dataclass
from pathlib import Path

DB_DIR = "db"
CONFIG_DIR = "config"
MANIFEST_DIR = "manifests"
LOCK_NAME = ".nc-backup.lock"


@dataclass(frozen=True)
class BackupLayout:
    root: Path

    def __post_init__(self):
        object.__setattr__(self, "root", Path(self.root))

    @property
    def manifest_dir(self) -> Path:
        return self.root / MANIFEST_DIR

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_NAME

    def dump_path(self, run_id: str) -> Path:
        return self.root / DB_DIR / f"database-{run_id}.sql"

    def config_copy_path(self, run_id: str) -> Path:
        return self.root / CONFIG_DIR / f"config-{run_id}.php"

    def manifest_path(self, run_id: str) -> Path:
        return self.manifest_dir / f"manifest-{run_id}.json"

    def relative(self, path: str | Path) -> str:
        """Express ``path`` relative to the root when it lies inside it."""
        try:
            return str(Path(path).relative_to(self.root))
        except ValueError:
            return str(path)

    def resolve(self, path: str | Path) -> Path:
        """Inverse of relative()."""
        return self.root / path
