"""Tests for the Nextcloud occ wrapper."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from nc_backup.errors import OccError
from nc_backup.nextcloud import Nextcloud, NextcloudNotFoundError, Occ

RUN = "nc_backup.__util__.subprocess.run"


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess([], returncode, stdout, stderr)


@pytest.fixture
def occ():
    return Occ("/var/www/nextcloud/occ", php="php8.2", timeout=30)


class TestOcc:
    """Tests for Occ commands."""

    def test_command_line(self, occ):
        with patch(RUN, return_value=completed("")) as run:
            occ.enable()
        assert run.call_args.args[0] == [
            "php8.2",
            "/var/www/nextcloud/occ",
            "--no-warnings",
            "maintenance:mode",
            "--on",
        ]
        assert run.call_args.kwargs["timeout"] == 30

    def test_disable(self, occ):
        with patch(RUN, return_value=completed("")) as run:
            occ.disable()
        assert run.call_args.args[0][-2:] == ["maintenance:mode", "--off"]

    @pytest.mark.parametrize(
        "output, expected",
        [
            ("Maintenance mode is currently enabled\n", True),
            ("Maintenance mode is currently disabled\n", False),
        ],
    )
    def test_status(self, occ, output, expected):
        with patch(RUN, return_value=completed(output)):
            assert occ.status() is expected

    def test_failure_raises_occ_error(self, occ):
        with patch(RUN, return_value=completed(returncode=1, stderr="Could not open input file")):
            with pytest.raises(OccError, match="Could not open input file"):
                occ.status()

    def test_timeout(self, occ):
        with patch(RUN, side_effect=subprocess.TimeoutExpired(["php8.2"], 30)):
            with pytest.raises(OccError) as exc_info:
                occ.enable()
        assert exc_info.value.timed_out

    def test_system_config(self, occ):
        with patch(RUN, return_value=completed("/srv/nextcloud/data\n")) as run:
            assert occ.data_directory() == Path("/srv/nextcloud/data")
        assert run.call_args.args[0][-2:] == ["config:system:get", "datadirectory"]

    def test_system_config_unset(self, occ):
        with patch(RUN, return_value=completed("")):
            with pytest.raises(OccError, match="dbname"):
                occ.db_name()

    @pytest.mark.parametrize(
        "show_only, flag", [(False, "--all"), (True, "--showonly")]
    )
    def test_update_apps(self, occ, show_only, flag):
        with patch(RUN, return_value=completed("calendar new version available: 4.7.1\n")) as run:
            occ.update_apps(show_only=show_only)
        assert run.call_args.args[0][-2:] == ["app:update", flag]

    def test_update_apps_failure(self, occ):
        with patch(RUN, return_value=completed(returncode=1, stderr="App not found")):
            with pytest.raises(OccError):
                occ.update_apps()

    def test_notify(self, occ):
        with patch(RUN, return_value=completed("")) as run:
            occ.notify("admin", "Backup done")
        assert run.call_args.args[0][-3:] == ["notification:generate", "admin", "Backup done"]


class TestNextcloud:
    """Tests for locating a Nextcloud installation."""

    def test_valid_installation(self, tmp_path):
        (tmp_path / "occ").write_text("<?php")
        nextcloud = Nextcloud(tmp_path, php="php8.2", occ_timeout=10)

        assert nextcloud.occ.occ_path == tmp_path / "occ"
        assert nextcloud.occ.timeout == 10
        assert nextcloud.config_file == tmp_path / "config" / "config.php"

    def test_missing_directory(self, tmp_path):
        with pytest.raises(NextcloudNotFoundError, match="directory not found"):
            Nextcloud(tmp_path / "missing")

    def test_missing_occ(self, tmp_path):
        with pytest.raises(NextcloudNotFoundError, match="occ not found"):
            Nextcloud(tmp_path)
