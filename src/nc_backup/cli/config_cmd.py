"""Config command: Configuration management."""

import argparse
import logging

from ..config import ConfigError, find_config_file, load_config
from ..config.loader import CONFIG_PATHS, generate_example_config
from .common import setup_logging

logger = logging.getLogger(__name__)


def execute_config(args: argparse.Namespace) -> int:
    """Execute the config command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    action = getattr(args, "config_action", None)

    if action == "validate":
        return _validate_config(args)
    elif action == "init":
        return _init_config(args)
    else:
        print("Usage: nc-backup config <validate|init>")
        return 2


def _validate_config(args: argparse.Namespace) -> int:
    """Validate configuration file."""
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Searched locations:")
            for path in CONFIG_PATHS:
                print(f"  {path}")
            return 2

        print(f"Validating: {config_path}")
        config, warnings = load_config(config_path)

        if warnings:
            print("")
            print("Warnings:")
            for warning in warnings:
                print(f"  - {warning}")

        print("")
        print("Configuration is valid.")
        print(f"  Nextcloud: {config.global_config.document_root}")
        print(f"  Backup root: {config.global_config.backup_root or '(command line)'}")
        print(f"  Snapper config: {config.snapper.config_name or '(auto-detect)'}")
        retention = config.retention
        print(
            "  Retention: "
            + ", ".join(
                f"{kind}={'all' if value is None else value}"
                for kind, value in (
                    ("daily", retention.daily),
                    ("weekly", retention.weekly),
                    ("monthly", retention.monthly),
                    ("quarterly", retention.quarterly),
                    ("yearly", retention.yearly),
                )
            )
        )

        return 0

    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 2


def _init_config(args: argparse.Namespace) -> int:
    """Generate example configuration."""
    content = generate_example_config()

    output = getattr(args, "output", None)
    if output:
        try:
            with open(output, "w") as f:
                f.write(content)
            print(f"Example configuration written to: {output}")
        except OSError as e:
            print(f"Error writing file: {e}")
            return 2
    else:
        print(content)

    return 0
