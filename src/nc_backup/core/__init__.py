"""Core backup transaction for nc-backup.

The coordinator drives the guard and the adapters; run, manifest and
retention describe what a run produced and how long it is kept.
"""

from .coordinator import BackupCoordinator, RunState, next_state
from .guard import ConsistencyGuard, GuardState
from .interrupts import InterruptHandler
from .layout import BackupLayout
from .manifest import Manifest, ManifestWriter, list_manifests, read_manifest
from .retention import RetentionPlan, apply_retention, plan_retention
from .run import BackupRun, Outcome, StepKind, StepResult, StepStatus

__all__ = [
    "BackupCoordinator",
    "RunState",
    "next_state",
    "ConsistencyGuard",
    "GuardState",
    "InterruptHandler",
    "BackupLayout",
    "Manifest",
    "ManifestWriter",
    "read_manifest",
    "list_manifests",
    "RetentionPlan",
    "plan_retention",
    "apply_retention",
    "BackupRun",
    "Outcome",
    "StepKind",
    "StepResult",
    "StepStatus",
]
