"""Snapshot adapter backed by snapper.

The snapper config bound to the Nextcloud data directory must exist already;
this adapter only triggers snapshots in it.
"""

import json
import logging
from pathlib import Path

from ..config.schema import SnapperConfig
from ..errors import OccError, SnapshotError
from ..nextcloud.occ import Occ
from .common import Adapter

logger = logging.getLogger(__name__)

SNAPPER_USERDATA_TAG = "nc_backup"


def parse_snapshot_id(output: str) -> str:
    """Parse the snapshot number printed by ``snapper create -p``.

    Raises:
        SnapshotError: If the output is not a single non-negative number
    """
    text = output.strip()
    try:
        number = int(text)
    except ValueError:
        raise SnapshotError(f"unparsable snapshot id: {text!r}")
    if number < 0:
        raise SnapshotError(f"unparsable snapshot id: {text!r}")
    return str(number)


def find_config_for_subvolume(list_configs_json: str, subvolume: Path) -> str | None:
    """Return the name of the snapper config whose subvolume is ``subvolume``."""
    try:
        data = json.loads(list_configs_json)
        configs = data["configs"]
    except (ValueError, KeyError, TypeError) as e:
        raise SnapshotError(f"unexpected snapper list-configs output: {e}")

    wanted = Path(subvolume)
    for entry in configs:
        if not isinstance(entry, dict):
            continue
        name = entry.get("config")
        path = entry.get("subvolume")
        if name and path and Path(path) == wanted:
            return name
    return None


class SnapshotAdapter(Adapter):
    """Trigger a copy-on-write snapshot of the data directory."""

    error_class = SnapshotError
    name = "snapshot"

    def __init__(
        self,
        settings: SnapperConfig,
        occ: Occ | None = None,
        dry_run: bool = False,
    ) -> None:
        super().__init__(timeout=settings.timeout, dry_run=dry_run)
        self.settings = settings
        self.occ = occ
        self.config_name: str | None = settings.config_name

    def data_directory(self) -> Path:
        if self.settings.data_directory:
            return Path(self.settings.data_directory)
        if self.occ is None:
            raise SnapshotError("no data directory configured")
        try:
            return self.occ.data_directory()
        except OccError as e:
            raise SnapshotError(f"could not read the data directory from Nextcloud: {e.reason}", e.timed_out)

    def resolve_config(self) -> str:
        """Find the snapper config bound to the data directory."""
        if self.config_name:
            return self.config_name

        data_dir = self.data_directory()
        result = self._exec_command([self.settings.command, "--jsonout", "list-configs"])
        name = find_config_for_subvolume(result.stdout, data_dir)
        if name is None:
            raise SnapshotError(f"no snapper config found for subvolume {data_dir}")

        logger.debug("Using snapper config '%s' for %s", name, data_dir)
        self.config_name = name
        return name

    def build_create_command(self, config_name: str) -> list[str]:
        cmd = [
            self.settings.command,
            "-c",
            config_name,
            "create",
            "-p",  # print the snapshot number
            "--userdata",
            f"{SNAPPER_USERDATA_TAG}=true",
            "--description",
            self.settings.description,
        ]
        if self.settings.cleanup_algorithm:
            cmd.extend(["--cleanup-algorithm", self.settings.cleanup_algorithm])
        return cmd

    def run(self) -> str:
        """Create a snapshot.

        Returns:
            The snapshot number as a string

        Raises:
            SnapshotError: On non-zero exit, timeout or unparsable id
        """
        config_name = self.resolve_config()
        cmd = self.build_create_command(config_name)
        logger.info("Creating snapshot in snapper config '%s'", config_name)

        if self.dry_run:
            self._would_run(cmd)
            return "0"

        result = self._exec_command(cmd)
        snapshot_id = parse_snapshot_id(result.stdout or "")
        logger.info("Created snapshot: %s", snapshot_id)
        return snapshot_id
