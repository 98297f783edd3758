"""Backup command: run one backup transaction."""

import argparse
import logging
from typing import Iterable, Optional

from .. import __util__
from ..adapters import ConfigCopyAdapter, DatabaseDumpAdapter, SnapshotAdapter
from ..config import Config, ConfigError
from ..core import (
    BackupCoordinator,
    BackupLayout,
    BackupRun,
    ConsistencyGuard,
    ManifestWriter,
    Outcome,
    StepKind,
)
from ..core.run import EXIT_CONCURRENT_RUN, EXIT_FAILED
from ..errors import ConcurrentRunError, OccError, RunInterrupted
from ..nextcloud import Nextcloud, NextcloudNotFoundError, Occ
from .common import load_cli_config, resolve_backup_root, setup_logging

logger = logging.getLogger(__name__)

# --enabled-backends names of the steps they control
BACKEND_STEPS = {
    "config": StepKind.CONFIG_COPY,
    "maria-db": StepKind.DATABASE_DUMP,
    "snapper": StepKind.SNAPSHOT_TRIGGER,
}


def execute_backup(args: argparse.Namespace) -> int:
    """Execute the backup command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code of the run (see ``BackupRun.exit_code``)
    """
    setup_logging(args)
    try:
        config = load_cli_config(args)
        setup_logging(args, config)
        backup_root = resolve_backup_root(args, config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_FAILED

    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        if timeout <= 0:
            logger.error("--timeout must be positive")
            return EXIT_FAILED
        config.override_timeouts(timeout)

    dry_run = getattr(args, "dry_run", False)

    try:
        nextcloud = Nextcloud(
            config.global_config.document_root,
            php=config.global_config.php,
            occ_timeout=config.global_config.occ_timeout,
        )
    except NextcloudNotFoundError as e:
        logger.error("%s", e)
        return EXIT_FAILED

    if not dry_run:
        try:
            backup_root.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            logger.error("Cannot create backup root %s: %s", backup_root, e)
            return EXIT_FAILED

    coordinator = build_coordinator(
        config,
        nextcloud,
        backup_root,
        dry_run,
        backends=getattr(args, "enabled_backends", None),
        update_apps=getattr(args, "update", False),
    )

    try:
        run = coordinator.run()
    except ConcurrentRunError as e:
        logger.error("Concurrent run detected: %s", e)
        return EXIT_CONCURRENT_RUN
    except RunInterrupted as e:
        logger.error("Backup aborted: %s", e)
        return EXIT_FAILED
    except Exception as e:
        logger.exception("Backup aborted by an unexpected error: %s", e)
        return EXIT_FAILED

    report_run(run)
    if _should_notify(args, config, dry_run):
        admin = getattr(args, "admin", None) or config.global_config.admin
        send_notification(nextcloud.occ, admin, run)

    return run.exit_code


def build_coordinator(
    config: Config,
    nextcloud: Nextcloud,
    backup_root,
    dry_run: bool = False,
    backends: Optional[Iterable[str]] = None,
    update_apps: bool = False,
) -> BackupCoordinator:
    """Wire guard, adapters and manifest writer for one run.

    Args:
        backends: Names from BACKEND_STEPS to run (None = all)
        update_apps: Update the apps after a successful snapshot
    """
    enabled = None
    if backends is not None:
        enabled = [BACKEND_STEPS[name] for name in backends]
    occ = nextcloud.occ
    layout = BackupLayout(backup_root)
    return BackupCoordinator(
        guard=ConsistencyGuard(occ, dry_run=dry_run),
        dump=DatabaseDumpAdapter(config.mariadb, occ=occ, dry_run=dry_run),
        config_copy=ConfigCopyAdapter(
            nextcloud.config_file, config.config_copy, dry_run=dry_run
        ),
        snapshot=SnapshotAdapter(config.snapper, occ=occ, dry_run=dry_run),
        layout=layout,
        manifest_writer=ManifestWriter(layout, dry_run=dry_run),
        dry_run=dry_run,
        app_updater=occ if update_apps else None,
        enabled=enabled,
    )


def report_run(run: BackupRun) -> None:
    """Log the single summary line of a finished run."""
    logger.info(__util__.log_heading("Summary"))
    for step in run.failed_steps:
        logger.info("  %s: %s (%s)", step.kind.label, step.status.value, step.error)

    summary = run.summary()
    if run.release_error:
        logger.critical(summary)
    elif run.outcome is Outcome.SUCCESS:
        logger.info(summary)
    elif run.outcome is Outcome.PARTIAL_FAILURE:
        logger.warning(summary)
    else:
        logger.error(summary)


def _should_notify(args: argparse.Namespace, config: Config, dry_run: bool) -> bool:
    if dry_run or getattr(args, "no_notification", False):
        return False
    return config.global_config.notify


def send_notification(occ: Occ, user: str, run: BackupRun) -> None:
    """Send the run summary to a Nextcloud account; failures only warn."""
    try:
        occ.notify(user, run.summary())
    except OccError as e:
        logger.warning("Could not notify '%s': %s", user, e)
    else:
        logger.debug("Notified '%s'", user)
