"""CLI dispatcher.

Builds the argument parser and routes each subcommand to its handler.
"""

import argparse
import sys
from typing import Callable

from .common import (
    BACKEND_NAMES,
    add_backup_root_args,
    add_verbosity_args,
    backend_list,
    positive_int,
)


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="nc-backup",
        description="Consistent Nextcloud backups: maintenance window, database dump, config copy and snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    parser.add_argument(
        "-d",
        "--document-root",
        metavar="DIR",
        help="Nextcloud installation directory (overrides config)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Run one backup",
        description="Enable maintenance mode, dump the database, copy config.php, "
        "snapshot the data directory, disable maintenance mode and write a manifest",
    )
    add_backup_root_args(backup_parser)
    backup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    backup_parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Timeout for every external command (overrides config)",
    )
    backup_parser.add_argument(
        "--admin",
        metavar="USER",
        help="Nextcloud account receiving the summary notification (overrides config)",
    )
    backup_parser.add_argument(
        "--no-notification",
        action="store_true",
        help="Do not send a summary notification",
    )
    backup_parser.add_argument(
        "-b",
        "--enabled-backends",
        type=backend_list,
        default=list(BACKEND_NAMES),
        metavar="LIST",
        help=f"Comma separated backends to run (default: {','.join(BACKEND_NAMES)})",
    )
    backup_parser.add_argument(
        "--update",
        action="store_true",
        help="Update all Nextcloud apps after a successful snapshot, still in maintenance mode",
    )

    # retain command
    retain_parser = subparsers.add_parser(
        "retain",
        help="Apply retention policy",
        description="Remove dumps, config copies and manifests of old runs",
    )
    add_backup_root_args(retain_parser)
    retain_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without making changes",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show maintenance mode and recent runs",
        description="Display maintenance mode state and the latest backup manifests",
    )
    add_backup_root_args(status_parser)
    status_parser.add_argument(
        "-n",
        "--limit",
        type=positive_int,
        default=10,
        metavar="N",
        help="Number of runs to show (default: 10)",
    )

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    # install command
    install_parser = subparsers.add_parser(
        "install",
        help="Install systemd timer/service",
        description="Generate and install systemd units for scheduled backups",
    )
    install_parser.add_argument(
        "--timer",
        choices=["hourly", "daily", "weekly"],
        help="Use preset timer interval (default: daily)",
    )
    install_parser.add_argument(
        "--oncalendar",
        metavar="SPEC",
        help="Custom OnCalendar specification (e.g., '*-*-* 03:30:00')",
    )
    install_parser.add_argument(
        "--unit-dir",
        metavar="DIR",
        help="Directory receiving the unit files (default: /etc/systemd/system)",
    )
    install_parser.add_argument(
        "--no-enable",
        action="store_true",
        help="Only write the unit files, do not call systemctl",
    )

    # uninstall command
    uninstall_parser = subparsers.add_parser(
        "uninstall",
        help="Remove systemd timer/service",
        description="Remove installed systemd units",
    )
    uninstall_parser.add_argument(
        "--unit-dir",
        metavar="DIR",
        help="Directory holding the unit files (default: /etc/systemd/system)",
    )
    uninstall_parser.add_argument(
        "--no-disable",
        dest="no_enable",
        action="store_true",
        help="Only remove the unit files, do not call systemctl",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"nc-backup {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 2

    # Route to appropriate command handler
    handlers: dict[str, Callable] = {
        "backup": cmd_backup,
        "retain": cmd_retain,
        "status": cmd_status,
        "config": cmd_config,
        "install": cmd_install,
        "uninstall": cmd_uninstall,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 2


def cmd_backup(args: argparse.Namespace) -> int:
    """Execute backup command."""
    from .backup import execute_backup

    return execute_backup(args)


def cmd_retain(args: argparse.Namespace) -> int:
    """Execute retain command."""
    from .retain import execute_retain

    return execute_retain(args)


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    from .status import execute_status

    return execute_status(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def cmd_install(args: argparse.Namespace) -> int:
    """Execute install command."""
    from .install import execute_install

    return execute_install(args)


def cmd_uninstall(args: argparse.Namespace) -> int:
    """Execute uninstall command."""
    from .install import execute_uninstall

    return execute_uninstall(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the nc-backup CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
