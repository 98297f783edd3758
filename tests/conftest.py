"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from nc_backup.core import (
    BackupCoordinator,
    BackupLayout,
    ConsistencyGuard,
    InterruptHandler,
    ManifestWriter,
)
from nc_backup.errors import DumpError, OccError


class FakeMaintenance:
    """In-memory stand-in for the occ maintenance-mode control."""

    def __init__(self, enabled=False):
        self.enabled = enabled
        self.calls = []
        self.enable_error = None
        self.disable_error = None
        self.status_error = None
        self.stuck = False  # disable() leaves maintenance on

    def enable(self):
        self.calls.append("enable")
        if self.enable_error:
            raise self.enable_error
        self.enabled = True

    def disable(self):
        self.calls.append("disable")
        if self.disable_error:
            raise self.disable_error
        if not self.stuck:
            self.enabled = False

    def status(self):
        self.calls.append("status")
        if self.status_error:
            raise self.status_error
        return self.enabled

    @property
    def disable_calls(self):
        return self.calls.count("disable")


class FakeFileAdapter:
    """Adapter writing a small file, or failing through ``action``."""

    def __init__(self, content=b"data\n"):
        self.content = content
        self.calls = 0
        self.action = None

    def run(self, dest):
        self.calls += 1
        if self.action:
            self.action()
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.content)
        return dest


class FakeSnapshot:
    """Snapshot adapter returning a fixed snapshot id."""

    def __init__(self, snapshot_id="42", config_name="nextcloud"):
        self.snapshot_id = snapshot_id
        self.config_name = config_name
        self.calls = 0
        self.action = None

    def run(self):
        self.calls += 1
        if self.action:
            self.action()
        return self.snapshot_id


def raise_(error):
    """Return a callable raising ``error``, for adapter ``action`` hooks."""

    def action():
        raise error

    return action


@pytest.fixture
def maintenance():
    return FakeMaintenance()


@pytest.fixture
def backup_root(tmp_path):
    root = tmp_path / "backups"
    root.mkdir()
    return root


@pytest.fixture
def layout(backup_root):
    return BackupLayout(backup_root)


@pytest.fixture
def dump():
    return FakeFileAdapter(b"CREATE TABLE oc_users;\n-- Dump completed\n")


@pytest.fixture
def config_copy():
    return FakeFileAdapter(b"<?php\n$CONFIG = array();\n")


@pytest.fixture
def snapshot():
    return FakeSnapshot()


@pytest.fixture
def make_coordinator(maintenance, dump, config_copy, snapshot, layout):
    """Factory building a coordinator from the fake collaborators."""

    def factory(dry_run=False, signals=(), **overrides):
        kwargs = dict(
            guard=ConsistencyGuard(maintenance, dry_run=dry_run),
            dump=dump,
            config_copy=config_copy,
            snapshot=snapshot,
            layout=layout,
            manifest_writer=ManifestWriter(layout, dry_run=dry_run),
            interrupts=InterruptHandler(signals),
            dry_run=dry_run,
        )
        kwargs.update(overrides)
        return BackupCoordinator(**kwargs)

    return factory


@pytest.fixture
def empty_dump_error():
    return DumpError("dump output is empty")


@pytest.fixture
def occ_failure():
    return OccError("php exited with 1: Could not open input file: occ")


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
document_root = "/var/www/nextcloud"
php = "php8.2"
backup_root = "/var/backups/nextcloud"
occ_timeout = 30
notify = true
admin = "root"

[mariadb]
defaults_file = "/etc/nc-backup/my.cnf"
database = "nextcloud"
user = "nc"
timeout = 600

[config]
mask_secrets = true

[snapper]
config_name = "nextcloud-data"
cleanup_algorithm = "timeline"
timeout = 120

[retention]
daily = 7
weekly = 4
monthly = "all"
quarterly = 0
yearly = -1
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[global]
document_root = "/srv/nextcloud"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
