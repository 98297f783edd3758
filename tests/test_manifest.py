"""Tests for manifest writing and reading."""

import errno
import json
import os
from datetime import datetime

import pytest

from nc_backup.core.layout import BackupLayout
from nc_backup.core.manifest import (
    SCHEMA_VERSION,
    Manifest,
    ManifestWriter,
    list_manifests,
    read_manifest,
)
from nc_backup.core.run import BackupRun, Outcome, StepKind, StepResult
from nc_backup.errors import DumpError, ManifestError


def make_run(layout, started_at=None, snapshot_ok=True):
    run = BackupRun(
        backup_root=layout.root,
        started_at=started_at or datetime(2024, 3, 1, 2, 0, 5).astimezone(),
    )
    run.record(StepResult.success(StepKind.MAINTENANCE_ENABLE))
    run.record(StepResult.failure(StepKind.DATABASE_DUMP, DumpError("dump output is empty")))
    run.record(
        StepResult.success(StepKind.CONFIG_COPY, layout.config_copy_path(run.run_id))
    )
    if snapshot_ok:
        run.record(
            StepResult.success(StepKind.SNAPSHOT_TRIGGER, "17", {"config": "nextcloud"})
        )
    run.record(StepResult.success(StepKind.MAINTENANCE_DISABLE))
    run.outcome = Outcome.PARTIAL_FAILURE
    return run


class TestManifestWriter:
    """Tests for ManifestWriter.write."""

    def test_round_trip(self, layout):
        """Test a written manifest reads back with the same content."""
        run = make_run(layout)
        path = ManifestWriter(layout).write(run)

        assert path == layout.manifest_path("2024-03-01T02-00-05")
        manifest = read_manifest(path)

        assert manifest.run_id == run.run_id
        assert manifest.outcome is Outcome.PARTIAL_FAILURE
        assert manifest.snapshot_id == "17"
        assert manifest.snapshot_config == "nextcloud"
        assert [s.status for s in manifest.steps] == [s.status for s in run.steps]
        assert manifest.step(StepKind.DATABASE_DUMP).error == "dump output is empty"
        assert manifest.started_at == run.started_at

    def test_paths_relative_to_root(self, layout):
        """Test artifact paths are stored relative to the backup root."""
        run = make_run(layout)
        path = ManifestWriter(layout).write(run)

        data = json.loads(path.read_text())
        assert data["config_copy"] == "config/config-2024-03-01T02-00-05.php"
        assert data["database_dump"] is None
        assert data["snapshot"] == {"id": "17", "config": "nextcloud"}
        assert data["schema_version"] == SCHEMA_VERSION
        assert data["steps"][1] == {
            "step": "database_dump",
            "status": "failed",
            "artifact": None,
            "error": "dump output is empty",
            "error_type": "DumpError",
        }

    def test_never_overwrites(self, layout):
        """Test a second manifest for the same run id is rejected."""
        run = make_run(layout)
        writer = ManifestWriter(layout)
        path = writer.write(run)
        before = path.read_text()

        with pytest.raises(ManifestError, match="already exists"):
            writer.write(run)

        assert path.read_text() == before
        assert [p.name for p in layout.manifest_dir.iterdir()] == [path.name]

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores permissions")
    def test_unwritable_root(self, tmp_path):
        """Test an unwritable backup root raises ManifestError."""
        root = tmp_path / "readonly"
        root.mkdir()
        root.chmod(0o500)
        layout = BackupLayout(root)
        try:
            with pytest.raises(ManifestError, match="cannot write"):
                ManifestWriter(layout).write(make_run(layout))
        finally:
            root.chmod(0o700)

    def test_without_hard_links(self, layout, monkeypatch):
        """Test backup roots without hard link support still get a manifest."""

        def link(src, dst):
            raise OSError(errno.EPERM, "Operation not permitted")

        monkeypatch.setattr("nc_backup.core.manifest.os.link", link)
        run = make_run(layout)
        writer = ManifestWriter(layout)
        path = writer.write(run)

        assert read_manifest(path).snapshot_id == "17"
        assert [p.name for p in layout.manifest_dir.iterdir()] == [path.name]

        with pytest.raises(ManifestError, match="already exists"):
            writer.write(run)

    def test_other_link_errors_fail(self, layout, monkeypatch):
        def link(src, dst):
            raise OSError(errno.EIO, "Input/output error")

        monkeypatch.setattr("nc_backup.core.manifest.os.link", link)

        with pytest.raises(ManifestError, match="cannot write"):
            ManifestWriter(layout).write(make_run(layout))
        assert list(layout.manifest_dir.iterdir()) == []

    def test_dry_run_writes_nothing(self, layout):
        """Test dry run only logs the manifest."""
        path = ManifestWriter(layout, dry_run=True).write(make_run(layout))

        assert not path.exists()
        assert not layout.manifest_dir.exists()


class TestReadManifest:
    """Tests for read_manifest and list_manifests."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestError, match="cannot read"):
            read_manifest(tmp_path / "nope.json")

    def test_malformed(self, tmp_path):
        path = tmp_path / "manifest-x.json"
        path.write_text('{"run_id": "x"}')
        with pytest.raises(ManifestError, match="malformed"):
            read_manifest(path)

    def test_list_sorted_and_skips_broken(self, layout):
        """Test listing returns oldest first and ignores unreadable files."""
        writer = ManifestWriter(layout)
        writer.write(make_run(layout, datetime(2024, 5, 2, 1, 0, 0).astimezone()))
        writer.write(make_run(layout, datetime(2024, 5, 1, 1, 0, 0).astimezone()))
        (layout.manifest_dir / "manifest-broken.json").write_text("{not json")

        manifests = list_manifests(layout)

        assert [m.run_id for m in manifests] == [
            "2024-05-01T01-00-00",
            "2024-05-02T01-00-00",
        ]

    def test_list_empty_root(self, layout):
        assert list_manifests(layout) == []

    def test_from_dict_without_snapshot(self):
        manifest = Manifest.from_dict(
            {"run_id": "r", "timestamp": "2024-01-01T00:00:00", "outcome": "failed", "snapshot": None}
        )
        assert manifest.snapshot_id is None
        assert manifest.outcome is Outcome.FAILED
        assert manifest.steps == ()
