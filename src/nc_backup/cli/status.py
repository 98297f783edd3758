"""Status command: show maintenance mode and recent backup runs."""

import argparse
import logging

from ..config import ConfigError
from ..core import BackupLayout, list_manifests
from ..core.run import EXIT_FAILED, EXIT_SUCCESS
from ..errors import OccError
from ..nextcloud import Nextcloud, NextcloudNotFoundError
from .common import load_cli_config, resolve_backup_root, setup_logging

logger = logging.getLogger(__name__)


def execute_status(args: argparse.Namespace) -> int:
    """Execute the status command.

    Shows whether maintenance mode is enabled and the latest runs found
    in the backup root.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)
    try:
        config = load_cli_config(args)
        backup_root = resolve_backup_root(args, config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_FAILED

    healthy = True

    print("nc-backup Status")
    print("=" * 60)
    print(f"Nextcloud: {config.global_config.document_root}")
    try:
        nextcloud = Nextcloud(
            config.global_config.document_root,
            php=config.global_config.php,
            occ_timeout=config.global_config.occ_timeout,
        )
        enabled = nextcloud.occ.status()
        print(f"  Maintenance mode: {'ENABLED' if enabled else 'disabled'}")
        healthy = not enabled
    except (NextcloudNotFoundError, OccError) as e:
        print(f"  Maintenance mode: unknown ({e})")
        healthy = False

    print(f"Backup root: {backup_root}")
    manifests = list_manifests(BackupLayout(backup_root))
    print(f"  Runs: {len(manifests)}")

    limit = getattr(args, "limit", 10)
    if manifests:
        print("")
        print(f"{'Run':<20}  {'Outcome':<16}  {'Snapshot':<10}  Notes")
        print("-" * 60)
        for manifest in reversed(manifests[-limit:]):
            snapshot = manifest.snapshot_id or "-"
            notes = "interrupted" if manifest.interrupted else ""
            print(
                f"{manifest.run_id:<20}  {manifest.outcome.value:<16}  {snapshot:<10}  {notes}"
            )
        # the newest run decides whether the last backup is usable
        if manifests[-1].outcome.exit_code != EXIT_SUCCESS:
            healthy = False

    print("")
    print(f"Overall: {'healthy' if healthy else 'needs attention'}")
    return EXIT_SUCCESS if healthy else EXIT_FAILED
