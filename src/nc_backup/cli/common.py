"""Shared CLI utilities and argument parsers."""

import argparse
import logging
from pathlib import Path
from typing import Optional

from ..__logger__ import create_logger
from ..config import Config, ConfigError, find_config_file, load_config

logger = logging.getLogger(__name__)


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_backup_root_args(parser: argparse.ArgumentParser) -> None:
    """Add the positional and optional backup root arguments."""
    parser.add_argument(
        "backup_root",
        nargs="?",
        metavar="BACKUP_ROOT",
        help="Directory receiving dumps, config copies and manifests",
    )
    parser.add_argument(
        "-r",
        "--backup-root",
        dest="backup_root_opt",
        metavar="DIR",
        help="Same as BACKUP_ROOT",
    )


BACKEND_NAMES = ("config", "maria-db", "snapper")


def positive_int(value: str) -> int:
    """argparse type accepting integers of at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def backend_list(value: str) -> list[str]:
    """argparse type for a comma separated list of backend names."""
    names = [name.strip() for name in value.split(",") if name.strip()]
    unknown = [name for name in names if name not in BACKEND_NAMES]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown backend(s) {', '.join(unknown)}, choose from {','.join(BACKEND_NAMES)}"
        )
    if not names:
        raise argparse.ArgumentTypeError("no backend given")
    return names


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def load_cli_config(args: argparse.Namespace) -> Config:
    """Load the configuration named on the command line or found on disk.

    Without a configuration file the built-in defaults apply. A
    ``--document-root`` option overrides the configured one.

    Raises:
        ConfigError: If the configuration file is missing or invalid
    """
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is None:
        logger.debug("No configuration file found, using defaults")
        config = Config()
    else:
        logger.debug("Loading configuration from: %s", config_path)
        config, warnings = load_config(config_path)
        for warning in warnings:
            logger.warning("Config: %s", warning)

    document_root = getattr(args, "document_root", None)
    if document_root:
        config.global_config.document_root = document_root
    return config


def setup_logging(args: argparse.Namespace, config: Optional[Config] = None) -> None:
    """Initialize logging, adding the configured log file if any."""
    log_file = config.global_config.log_file if config else None
    create_logger(level=get_log_level(args), log_file=log_file)


def resolve_backup_root(args: argparse.Namespace, config: Config) -> Path:
    """Pick the backup root from the command line, then the configuration.

    Raises:
        ConfigError: If no backup root is given anywhere
    """
    root = (
        getattr(args, "backup_root", None)
        or getattr(args, "backup_root_opt", None)
        or config.global_config.backup_root
    )
    if not root:
        raise ConfigError(
            "no backup root given, pass BACKUP_ROOT or set global.backup_root"
        )
    return Path(root)
