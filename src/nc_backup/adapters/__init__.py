"""External tool adapters: one verb each, no orchestration."""

from .common import Adapter
from .config_copy import ConfigCopyAdapter
from .mariadb import DatabaseDumpAdapter
from .snapper import SnapshotAdapter

__all__ = [
    "Adapter",
    "ConfigCopyAdapter",
    "DatabaseDumpAdapter",
    "SnapshotAdapter",
]
