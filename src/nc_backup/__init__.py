"""nc-backup: nc_backup/__init__.py."""

from datetime import datetime


__version__ = "0.3.0"

RUN_ID_FORMAT = "%Y-%m-%dT%H-%M-%S"


def format_run_id(timestamp: datetime) -> str:
    """Format a timestamp as a filesystem-safe, sortable run id"""
    return timestamp.strftime(RUN_ID_FORMAT)


def parse_run_id(run_id: str) -> datetime:
    """Inverse of format_run_id"""
    return datetime.strptime(run_id, RUN_ID_FORMAT)
