"""Retain command: prune old backup runs according to the retention policy."""

import argparse
import logging

from ..config import ConfigError
from ..core import BackupLayout, apply_retention, list_manifests, plan_retention
from ..core.run import EXIT_FAILED, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS
from .common import load_cli_config, resolve_backup_root, setup_logging

logger = logging.getLogger(__name__)


def execute_retain(args: argparse.Namespace) -> int:
    """Execute the retain command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)
    try:
        config = load_cli_config(args)
        setup_logging(args, config)
        backup_root = resolve_backup_root(args, config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_FAILED

    dry_run = getattr(args, "dry_run", False)
    layout = BackupLayout(backup_root)
    manifests = list_manifests(layout)
    if not manifests:
        logger.info("No backup runs found in %s", backup_root)
        return EXIT_SUCCESS

    plan = plan_retention(manifests, config.retention)
    logger.info(
        "Keeping %d backup run(s), pruning %d", len(plan.keep), len(plan.prune)
    )
    for manifest in plan.keep:
        logger.debug("Keep: %s", manifest.run_id)

    removed = apply_retention(layout, plan.prune, dry_run=dry_run)
    if not dry_run and removed < len(plan.prune):
        logger.warning(
            "%d of %d backup run(s) could not be pruned",
            len(plan.prune) - removed,
            len(plan.prune),
        )
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS
