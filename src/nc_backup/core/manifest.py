"""Backup manifest writing and reading.

One JSON manifest per run records what was captured. The archival step
consumes these; their shape is a stable contract:

- Artifact paths are relative to the backup root.
- A manifest is created exclusively and never overwritten.
"""

import errno
import json
import logging
import os
import socket
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..errors import ManifestError
from .layout import BackupLayout
from .run import BackupRun, Outcome, StepKind, StepResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
# link() errors of filesystems without hard links (CIFS, vfat)
LINK_UNSUPPORTED = frozenset({errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP})
PATH_STEPS = (StepKind.DATABASE_DUMP, StepKind.CONFIG_COPY)


@dataclass(frozen=True)
class Manifest:
    """Parsed content of a manifest file."""

    run_id: str
    timestamp: str
    outcome: Outcome
    backup_root: str = ""
    hostname: str = ""
    interrupted: bool = False
    snapshot_id: Optional[str] = None
    snapshot_config: Optional[str] = None
    database_dump: Optional[str] = None
    config_copy: Optional[str] = None
    steps: tuple[StepResult, ...] = field(default_factory=tuple)
    schema_version: int = SCHEMA_VERSION

    @property
    def started_at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)

    def step(self, kind: StepKind) -> Optional[StepResult]:
        for result in self.steps:
            if result.kind is kind:
                return result
        return None

    @classmethod
    def from_run(cls, run: BackupRun, layout: BackupLayout) -> "Manifest":
        steps = []
        for result in run.steps:
            if result.kind in PATH_STEPS and result.artifact:
                result = StepResult(
                    kind=result.kind,
                    status=result.status,
                    artifact=layout.relative(result.artifact),
                    error=result.error,
                    error_type=result.error_type,
                    details=result.details,
                )
            steps.append(result)

        def artifact(kind: StepKind) -> Optional[str]:
            found = [s for s in steps if s.kind is kind and s.ok]
            return found[-1].artifact if found else None

        snapshot = run.step(StepKind.SNAPSHOT_TRIGGER)
        return cls(
            run_id=run.run_id,
            timestamp=run.started_at.isoformat(),
            outcome=run.outcome,
            backup_root=str(run.backup_root),
            hostname=socket.gethostname(),
            interrupted=run.interrupted,
            snapshot_id=run.snapshot_id,
            snapshot_config=snapshot.details.get("config") if snapshot else None,
            database_dump=artifact(StepKind.DATABASE_DUMP),
            config_copy=artifact(StepKind.CONFIG_COPY),
            steps=tuple(steps),
        )

    def to_dict(self) -> dict[str, Any]:
        snapshot = None
        if self.snapshot_id is not None:
            snapshot = {"id": self.snapshot_id, "config": self.snapshot_config}
        return {
            "schema_version": self.schema_version,
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            "hostname": self.hostname,
            "backup_root": self.backup_root,
            "outcome": self.outcome.value,
            "interrupted": self.interrupted,
            "snapshot": snapshot,
            "database_dump": self.database_dump,
            "config_copy": self.config_copy,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Manifest":
        snapshot = data.get("snapshot") or {}
        return cls(
            schema_version=int(data.get("schema_version", SCHEMA_VERSION)),
            run_id=data["run_id"],
            timestamp=data["timestamp"],
            hostname=data.get("hostname", ""),
            backup_root=data.get("backup_root", ""),
            outcome=Outcome(data["outcome"]),
            interrupted=bool(data.get("interrupted", False)),
            snapshot_id=snapshot.get("id"),
            snapshot_config=snapshot.get("config"),
            database_dump=data.get("database_dump"),
            config_copy=data.get("config_copy"),
            steps=tuple(StepResult.from_dict(s) for s in data.get("steps", [])),
        )


class ManifestWriter:
    """Persist run manifests into a backup root."""

    def __init__(self, layout: BackupLayout, dry_run: bool = False) -> None:
        self.layout = layout
        self.dry_run = dry_run

    def write(self, run: BackupRun) -> Path:
        """Write the manifest of ``run``.

        Returns:
            Path of the manifest

        Raises:
            ManifestError: If the backup root is unwritable or a manifest for
                this run already exists
        """
        manifest = Manifest.from_run(run, self.layout)
        path = self.layout.manifest_path(run.run_id)
        payload = json.dumps(manifest.to_dict(), indent=2, sort_keys=True) + "\n"

        if self.dry_run:
            logger.info("Dry run, not writing manifest %s", path)
            logger.debug("Manifest content:\n%s", payload)
            return path

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                # link() refuses to replace an existing manifest
                try:
                    os.link(tmp_name, path)
                except OSError as e:
                    if e.errno not in LINK_UNSUPPORTED:
                        raise
                    logger.debug("No hard links in %s, writing manifest in place", path.parent)
                    _write_exclusive(path, payload)
            finally:
                os.unlink(tmp_name)
        except FileExistsError:
            raise ManifestError(f"manifest already exists: {path}")
        except OSError as e:
            raise ManifestError(f"cannot write manifest {path}: {e}")

        logger.info("Manifest written: %s", path)
        return path


def _write_exclusive(path: Path, payload: str) -> None:
    """Create ``path`` exclusively and write ``payload`` into it."""
    f = open(path, "x", encoding="utf-8")
    try:
        with f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
    except OSError:
        path.unlink(missing_ok=True)
        raise


def read_manifest(path: Path | str) -> Manifest:
    """Parse a manifest file.

    Raises:
        ManifestError: If the file is unreadable or malformed
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return Manifest.from_dict(data)
    except OSError as e:
        raise ManifestError(f"cannot read manifest {path}: {e}")
    except (ValueError, KeyError, TypeError) as e:
        raise ManifestError(f"malformed manifest {path}: {e}")


def list_manifests(layout: BackupLayout) -> list[Manifest]:
    """Return all readable manifests of a backup root, oldest first."""
    if not layout.manifest_dir.is_dir():
        return []

    manifests = []
    for path in sorted(layout.manifest_dir.glob("manifest-*.json")):
        try:
            manifests.append(read_manifest(path))
        except ManifestError as e:
            logger.warning("Skipping %s", e)
    manifests.sort(key=lambda m: m.run_id)
    return manifests
