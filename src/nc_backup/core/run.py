"""Backup run model: step results, outcomes and exit codes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .. import format_run_id

EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_FAILED = 2
EXIT_CONCURRENT_RUN = 3
EXIT_MAINTENANCE_STUCK = 4

# Reason recorded for steps left out with --enabled-backends
DISABLED_REASON = "disabled"


class Outcome(Enum):
    """Final result of a backup run."""

    PENDING = "pending"
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"  # usable snapshot, auxiliary artifact missing
    FAILED = "failed"  # no usable backup

    @property
    def exit_code(self) -> int:
        return {
            Outcome.SUCCESS: EXIT_SUCCESS,
            Outcome.PARTIAL_FAILURE: EXIT_PARTIAL_FAILURE,
        }.get(self, EXIT_FAILED)


class StepKind(Enum):
    """Orchestrated actions in execution order."""

    MAINTENANCE_ENABLE = "maintenance_enable"
    DATABASE_DUMP = "database_dump"
    CONFIG_COPY = "config_copy"
    SNAPSHOT_TRIGGER = "snapshot_trigger"
    APP_UPDATE = "app_update"
    MAINTENANCE_DISABLE = "maintenance_disable"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class StepStatus(Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one orchestrated action.

    Attributes:
        kind: Which action ran
        status: OK, FAILED or SKIPPED
        artifact: Produced path or snapshot id
        error: Failure description
        error_type: Exception class name of the failure
        details: Extra string facts about the artifact (e.g. snapper config)
    """

    kind: StepKind
    status: StepStatus
    artifact: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    details: dict[str, str] = field(default_factory=dict)

    @classmethod
    def success(cls, kind: StepKind, artifact: Any = None, details: Optional[dict[str, str]] = None) -> "StepResult":
        return cls(
            kind=kind,
            status=StepStatus.OK,
            artifact=None if artifact is None else str(artifact),
            details=dict(details or {}),
        )

    @classmethod
    def failure(cls, kind: StepKind, error: BaseException) -> "StepResult":
        return cls(
            kind=kind,
            status=StepStatus.FAILED,
            error=str(error),
            error_type=type(error).__name__,
        )

    @classmethod
    def skipped(cls, kind: StepKind, reason: str) -> "StepResult":
        return cls(kind=kind, status=StepStatus.SKIPPED, error=reason)

    @classmethod
    def skipped_disabled(cls, kind: StepKind) -> "StepResult":
        return cls.skipped(kind, DISABLED_REASON)

    @property
    def ok(self) -> bool:
        return self.status is StepStatus.OK

    @property
    def disabled(self) -> bool:
        """Skipped on purpose, neither a success nor a failure."""
        return self.status is StepStatus.SKIPPED and self.error == DISABLED_REASON

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "step": self.kind.value,
            "status": self.status.value,
            "artifact": self.artifact,
            "error": self.error,
        }
        if self.error_type:
            data["error_type"] = self.error_type
        if self.details:
            data["details"] = dict(self.details)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepResult":
        return cls(
            kind=StepKind(data["step"]),
            status=StepStatus(data["status"]),
            artifact=data.get("artifact"),
            error=data.get("error"),
            error_type=data.get("error_type"),
            details=dict(data.get("details") or {}),
        )


def evaluate_outcome(steps: list[StepResult]) -> Outcome:
    """Derive the run outcome from its recorded steps.

    Without a successful snapshot there is no usable backup point.
    """
    snapshot = [s for s in steps if s.kind is StepKind.SNAPSHOT_TRIGGER]
    if not snapshot or not snapshot[-1].ok:
        return Outcome.FAILED
    if all(s.ok or s.disabled for s in steps):
        return Outcome.SUCCESS
    return Outcome.PARTIAL_FAILURE


@dataclass
class BackupRun:
    """One execution of the backup transaction.

    Mutated only by the coordinator. Once ``finish()`` has been called the
    run rejects any further change.
    """

    backup_root: Path
    dry_run: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now().astimezone())
    run_id: str = ""
    outcome: Outcome = Outcome.PENDING
    steps: list[StepResult] = field(default_factory=list)
    manifest_path: Optional[Path] = None
    manifest_error: Optional[str] = None
    release_error: Optional[str] = None
    interrupted: bool = False
    finished_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.run_id:
            self.run_id = format_run_id(self.started_at)

    def __setattr__(self, name, value):
        if getattr(self, "finished_at", None) is not None:
            raise AttributeError(f"backup run {self.run_id} is already finished")
        super().__setattr__(name, value)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def record(self, result: StepResult) -> None:
        """Append a step result."""
        if self.finished:
            raise AttributeError(f"backup run {self.run_id} is already finished")
        self.steps.append(result)

    def step(self, kind: StepKind) -> Optional[StepResult]:
        """Return the latest result recorded for ``kind``."""
        for result in reversed(self.steps):
            if result.kind is kind:
                return result
        return None

    @property
    def snapshot_id(self) -> Optional[str]:
        result = self.step(StepKind.SNAPSHOT_TRIGGER)
        return result.artifact if result and result.ok else None

    @property
    def failed_steps(self) -> list[StepResult]:
        return [s for s in self.steps if not (s.ok or s.disabled)]

    def finish(self, outcome: Outcome) -> None:
        """Finalize the run with ``outcome``."""
        if outcome is Outcome.PENDING:
            raise ValueError("a finished run needs a final outcome")
        self.outcome = outcome
        self.finished_at = datetime.now().astimezone()

    @property
    def exit_code(self) -> int:
        # a stuck maintenance mode outranks every other result
        if self.release_error:
            return EXIT_MAINTENANCE_STUCK
        return self.outcome.exit_code

    def summary(self) -> str:
        """Single-line description of the run result."""
        parts = [f"Backup {self.run_id}: {self.outcome.value}"]
        if self.snapshot_id is not None:
            parts.append(f"snapshot {self.snapshot_id}")
        failed = [s.kind.value for s in self.failed_steps]
        if failed:
            parts.append(f"failed: {', '.join(failed)}")
        if self.interrupted:
            parts.append("interrupted")
        if self.release_error:
            parts.append("MAINTENANCE MODE STILL ENABLED")
        if self.dry_run:
            parts.append("dry run")
        return "; ".join(parts)
