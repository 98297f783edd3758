"""Install command: systemd service and timer for scheduled backups."""

import argparse
import logging
import shutil
import sys
from pathlib import Path

from ..__util__ import exec_command, format_command
from ..errors import AdapterError
from .common import setup_logging

logger = logging.getLogger(__name__)

UNIT_NAME = "nc-backup"
DEFAULT_UNIT_DIR = Path("/etc/systemd/system")
SYSTEMCTL_TIMEOUT = 60.0

TIMER_PRESETS = {
    "hourly": "hourly",
    "daily": "*-*-* 02:00:00",
    "weekly": "Sun *-*-* 02:00:00",
}

SERVICE_TEMPLATE = """\
[Unit]
Description=Nextcloud backup (maintenance window, database dump, snapshot)
After=network-online.target mariadb.service

[Service]
Type=oneshot
ExecStart={exec_start}
# let the run disable maintenance mode before it is killed
KillSignal=SIGTERM
TimeoutStopSec=300
"""

TIMER_TEMPLATE = """\
[Unit]
Description=Scheduled Nextcloud backup

[Timer]
OnCalendar={oncalendar}
Persistent=true
RandomizedDelaySec=300

[Install]
WantedBy=timers.target
"""


def _exec_start(args: argparse.Namespace) -> str:
    executable = shutil.which("nc-backup") or f"{sys.executable} -m nc_backup"
    parts = [executable]
    if getattr(args, "config", None):
        parts += ["--config", str(Path(args.config).absolute())]
    parts += ["backup"]
    return " ".join(parts)


def render_units(args: argparse.Namespace) -> dict[str, str]:
    """Render service and timer unit files keyed by file name."""
    oncalendar = getattr(args, "oncalendar", None) or TIMER_PRESETS[
        getattr(args, "timer", None) or "daily"
    ]
    return {
        f"{UNIT_NAME}.service": SERVICE_TEMPLATE.format(exec_start=_exec_start(args)),
        f"{UNIT_NAME}.timer": TIMER_TEMPLATE.format(oncalendar=oncalendar),
    }


def _systemctl(*args: str) -> None:
    exec_command(["systemctl", *args], timeout=SYSTEMCTL_TIMEOUT)


def execute_install(args: argparse.Namespace) -> int:
    """Execute the install command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    if getattr(args, "timer", None) and getattr(args, "oncalendar", None):
        logger.error("--timer and --oncalendar are mutually exclusive")
        return 2

    unit_dir = Path(getattr(args, "unit_dir", None) or DEFAULT_UNIT_DIR)
    try:
        unit_dir.mkdir(parents=True, exist_ok=True)
        for name, content in render_units(args).items():
            path = unit_dir / name
            path.write_text(content)
            logger.info("Installed %s", path)
    except OSError as e:
        logger.error("Cannot write unit files to %s: %s", unit_dir, e)
        return 2

    if getattr(args, "no_enable", False):
        logger.info(
            "Enable with: %s",
            format_command(["systemctl", "enable", "--now", f"{UNIT_NAME}.timer"]),
        )
        return 0

    try:
        _systemctl("daemon-reload")
        _systemctl("enable", "--now", f"{UNIT_NAME}.timer")
    except AdapterError as e:
        logger.error("Could not enable timer: %s", e)
        return 2

    logger.info("Timer %s.timer enabled", UNIT_NAME)
    return 0


def execute_uninstall(args: argparse.Namespace) -> int:
    """Execute the uninstall command."""
    setup_logging(args)

    unit_dir = Path(getattr(args, "unit_dir", None) or DEFAULT_UNIT_DIR)
    timer = unit_dir / f"{UNIT_NAME}.timer"
    service = unit_dir / f"{UNIT_NAME}.service"

    if not timer.exists() and not service.exists():
        logger.info("No units installed in %s", unit_dir)
        return 0

    if not getattr(args, "no_enable", False):
        try:
            _systemctl("disable", "--now", f"{UNIT_NAME}.timer")
        except AdapterError as e:
            logger.warning("Could not disable timer: %s", e)

    status = 0
    for path in (timer, service):
        try:
            path.unlink()
            logger.info("Removed %s", path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Cannot remove %s: %s", path, e)
            status = 2

    if status == 0 and not getattr(args, "no_enable", False):
        try:
            _systemctl("daemon-reload")
        except AdapterError as e:
            logger.warning("Could not reload systemd: %s", e)
    return status
