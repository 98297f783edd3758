"""Backup transaction coordinator.

Drives one backup run through a fixed state machine::

    INIT -> MAINTENANCE_ON -> DUMPING_DATABASE -> COPYING_CONFIG
         -> SNAPSHOTTING -> UPDATING_APPS -> MAINTENANCE_OFF
         -> WRITING_MANIFEST -> DONE

Database dump, config copy and snapshot run while maintenance mode is held,
so all three see the same consistency window. Dump and config copy failures
are recorded and the run continues; the snapshot decides whether the run
produced a usable backup. Apps are only updated, on request, once a
snapshot exists. Disabling maintenance mode is registered as cleanup before
the first step and therefore runs on every exit path, including unexpected
exceptions and termination signals.
"""

import contextlib
import logging
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol, Sequence

from filelock import FileLock, Timeout

from ..__util__ import log_heading
from ..adapters import ConfigCopyAdapter, DatabaseDumpAdapter, SnapshotAdapter
from ..errors import (
    AdapterError,
    ConcurrentRunError,
    GuardAcquireError,
    GuardReleaseError,
    ManifestError,
    RunInterrupted,
)
from .guard import ConsistencyGuard
from .interrupts import InterruptHandler
from .layout import BackupLayout
from .manifest import ManifestWriter
from .run import BackupRun, Outcome, StepKind, StepResult, evaluate_outcome

logger = logging.getLogger(__name__)


class RunState(Enum):
    INIT = "init"
    MAINTENANCE_ON = "maintenance_on"
    DUMPING_DATABASE = "dumping_database"
    COPYING_CONFIG = "copying_config"
    SNAPSHOTTING = "snapshotting"
    UPDATING_APPS = "updating_apps"
    MAINTENANCE_OFF = "maintenance_off"
    WRITING_MANIFEST = "writing_manifest"
    DONE = "done"


# Step performed while in each state
STATE_STEPS = {
    RunState.MAINTENANCE_ON: StepKind.MAINTENANCE_ENABLE,
    RunState.DUMPING_DATABASE: StepKind.DATABASE_DUMP,
    RunState.COPYING_CONFIG: StepKind.CONFIG_COPY,
    RunState.SNAPSHOTTING: StepKind.SNAPSHOT_TRIGGER,
    RunState.UPDATING_APPS: StepKind.APP_UPDATE,
    RunState.MAINTENANCE_OFF: StepKind.MAINTENANCE_DISABLE,
}

# States executed while maintenance mode is held, in order
WINDOW_STATES = (
    RunState.MAINTENANCE_ON,
    RunState.DUMPING_DATABASE,
    RunState.COPYING_CONFIG,
    RunState.SNAPSHOTTING,
    RunState.UPDATING_APPS,
)

# Steps that can be left out with --enabled-backends
BACKEND_STEPS = (
    StepKind.DATABASE_DUMP,
    StepKind.CONFIG_COPY,
    StepKind.SNAPSHOT_TRIGGER,
)


class AppUpdater(Protocol):
    """Implemented by ``Occ``."""

    def update_apps(self, show_only: bool = False) -> None: ...


def next_state(
    state: RunState,
    result: Optional[StepResult],
    history: Sequence[StepResult],
    aborting: bool = False,
) -> RunState:
    """Transition function of the coordinator.

    Args:
        state: State whose step just completed
        result: Result of that step (None for INIT)
        history: All step results recorded so far
        aborting: The run was interrupted and must wind down

    Returns:
        The next state
    """
    if state is RunState.INIT:
        return RunState.MAINTENANCE_ON

    if state is RunState.MAINTENANCE_ON:
        if result is None or not result.ok:
            return RunState.DONE
        return RunState.MAINTENANCE_OFF if aborting else RunState.DUMPING_DATABASE

    if state in (
        RunState.DUMPING_DATABASE,
        RunState.COPYING_CONFIG,
        RunState.SNAPSHOTTING,
    ):
        if aborting:
            return RunState.MAINTENANCE_OFF
        return WINDOW_STATES[WINDOW_STATES.index(state) + 1]

    if state is RunState.UPDATING_APPS:
        return RunState.MAINTENANCE_OFF

    if state is RunState.MAINTENANCE_OFF:
        snapshots = [s for s in history if s.kind is StepKind.SNAPSHOT_TRIGGER]
        if snapshots and snapshots[-1].ok:
            return RunState.WRITING_MANIFEST
        return RunState.DONE

    return RunState.DONE


class BackupCoordinator:
    """Run the backup transaction once per ``run()`` call."""

    def __init__(
        self,
        guard: ConsistencyGuard,
        dump: DatabaseDumpAdapter,
        config_copy: ConfigCopyAdapter,
        snapshot: SnapshotAdapter,
        layout: BackupLayout,
        manifest_writer: Optional[ManifestWriter] = None,
        interrupts: Optional[InterruptHandler] = None,
        dry_run: bool = False,
        app_updater: Optional[AppUpdater] = None,
        enabled: Optional[Iterable[StepKind]] = None,
    ) -> None:
        """Wire the collaborators of one run.

        Args:
            app_updater: Updates the apps after a successful snapshot
                (None = no update)
            enabled: Backend steps to run (None = all of BACKEND_STEPS);
                the others are recorded as disabled
        """
        self.guard = guard
        self.dump = dump
        self.config_copy = config_copy
        self.snapshot = snapshot
        self.layout = layout
        self.manifest_writer = manifest_writer or ManifestWriter(layout, dry_run=dry_run)
        self.interrupts = interrupts or InterruptHandler()
        self.dry_run = dry_run
        self.app_updater = app_updater
        self.disabled = frozenset(BACKEND_STEPS) - frozenset(
            BACKEND_STEPS if enabled is None else enabled
        )

        self._actions: dict[RunState, Callable[[BackupRun], Optional[StepResult]]] = {
            RunState.MAINTENANCE_ON: self._enable_maintenance,
            RunState.DUMPING_DATABASE: self._dump_database,
            RunState.COPYING_CONFIG: self._copy_config,
            RunState.SNAPSHOTTING: self._take_snapshot,
            RunState.UPDATING_APPS: self._update_apps,
        }

    def run(self) -> BackupRun:
        """Execute one backup run.

        Returns:
            The finished run

        Raises:
            ConcurrentRunError: Another run holds the backup root or
                maintenance mode; nothing was changed
        """
        run = BackupRun(backup_root=self.layout.root, dry_run=self.dry_run)
        logger.info(log_heading(f"Backup {run.run_id}"))
        logger.info("Backup root: %s", run.backup_root)
        if StepKind.SNAPSHOT_TRIGGER in self.disabled:
            logger.warning("Snapshot disabled, this run creates no backup point")

        with self.interrupts, self._backup_root_lock():
            try:
                with contextlib.ExitStack() as window:
                    window.callback(self._release_guard, run)
                    state = self._run_window(run)
                # leaving the window released maintenance mode
            except RunInterrupted as e:
                state = self._recover(run, e)

            if state is RunState.MAINTENANCE_OFF:
                state = next_state(
                    state, run.step(StepKind.MAINTENANCE_DISABLE), run.steps
                )

            if state is RunState.WRITING_MANIFEST:
                self._write_manifest(run)
            else:
                run.outcome = Outcome.FAILED

            if self.interrupts.interrupted:
                run.interrupted = True
            run.finish(run.outcome)

        return run

    @contextlib.contextmanager
    def _backup_root_lock(self):
        """Refuse to share a backup root with a concurrent run on this host."""
        if self.dry_run:
            yield
            return

        lock = FileLock(str(self.layout.lock_path))
        try:
            lock.acquire(timeout=0)
        except Timeout as e:
            raise ConcurrentRunError(
                f"backup root {self.layout.root} is locked by another run"
            ) from e
        try:
            yield
        finally:
            lock.release()

    def _run_window(self, run: BackupRun) -> RunState:
        """Run the steps executed under maintenance mode.

        Returns:
            MAINTENANCE_OFF, or DONE when maintenance mode was never enabled
        """
        state = next_state(RunState.INIT, None, run.steps)
        try:
            while state in WINDOW_STATES:
                logger.debug("State: %s", state.value)
                result = self._actions[state](run)
                if result is not None:
                    run.record(result)
                state = next_state(state, result, run.steps)
        except RunInterrupted as e:
            return self._abort(run, state, e)
        return state

    def _steps_after(self, state: RunState) -> list[StepKind]:
        """Window steps this run would still perform after ``state``."""
        later = WINDOW_STATES[WINDOW_STATES.index(state) + 1 :]
        return [
            STATE_STEPS[s]
            for s in later
            if s is not RunState.UPDATING_APPS or self.app_updater is not None
        ]

    def _abort(self, run: BackupRun, state: RunState, error: RunInterrupted) -> RunState:
        """Record the interrupted step and skip the rest of the window."""
        run.interrupted = True
        kind = STATE_STEPS[state]
        result = run.step(kind)
        if result is None:
            result = StepResult.failure(kind, error)
            run.record(result)
        if state is not RunState.MAINTENANCE_ON:
            for later in self._steps_after(state):
                run.record(StepResult.skipped(later, "run interrupted"))
        return next_state(state, result, run.steps, aborting=True)

    def _recover(self, run: BackupRun, error: RunInterrupted) -> RunState:
        """Close the window after an interrupt outside the step loop.

        Returns:
            MAINTENANCE_OFF when maintenance mode had been enabled, else DONE
        """
        logger.warning("Run interrupted, finishing up: %s", error)
        run.interrupted = True
        enabled = run.step(StepKind.MAINTENANCE_ENABLE)
        if enabled is not None and enabled.ok:
            for kind in self._steps_after(RunState.MAINTENANCE_ON):
                if run.step(kind) is None:
                    run.record(StepResult.skipped(kind, "run interrupted"))

        # the cleanup callback may not have been reached
        if run.step(StepKind.MAINTENANCE_DISABLE) is None:
            self._release_guard(run)

        if enabled is None or not enabled.ok:
            return RunState.DONE
        return RunState.MAINTENANCE_OFF

    def _enable_maintenance(self, run: BackupRun) -> StepResult:
        try:
            self.guard.acquire()
        except GuardAcquireError as e:
            logger.error("%s", e)
            return StepResult.failure(StepKind.MAINTENANCE_ENABLE, e)
        return StepResult.success(StepKind.MAINTENANCE_ENABLE)

    def _release_guard(self, run: BackupRun) -> None:
        """Cleanup callback leaving the maintenance window.

        Runs once per run on every exit path.
        """
        self.interrupts.defer()
        if not self.guard.needs_release:
            return

        try:
            self.guard.release()
        except GuardReleaseError as e:
            run.release_error = str(e)
            run.record(StepResult.failure(StepKind.MAINTENANCE_DISABLE, e))
            logger.critical(
                "MAINTENANCE MODE IS STILL ENABLED, disable it manually: %s", e
            )
            return
        run.record(StepResult.success(StepKind.MAINTENANCE_DISABLE))

    def _adapter_step(
        self,
        kind: StepKind,
        action: Callable[[], object],
        details: Optional[Callable[[], dict]] = None,
    ) -> StepResult:
        if kind in self.disabled:
            logger.info("%s disabled, skipping", kind.label.capitalize())
            return StepResult.skipped_disabled(kind)

        logger.info(log_heading(kind.label.capitalize()))
        try:
            artifact = action()
        except AdapterError as e:
            logger.error("%s failed: %s", kind.label.capitalize(), e)
            return StepResult.failure(kind, e)
        return StepResult.success(kind, artifact, details() if details else None)

    def _dump_database(self, run: BackupRun) -> StepResult:
        dest = self.layout.dump_path(run.run_id)
        return self._adapter_step(StepKind.DATABASE_DUMP, lambda: self.dump.run(dest))

    def _copy_config(self, run: BackupRun) -> StepResult:
        dest = self.layout.config_copy_path(run.run_id)
        return self._adapter_step(StepKind.CONFIG_COPY, lambda: self.config_copy.run(dest))

    def _take_snapshot(self, run: BackupRun) -> StepResult:
        def details() -> dict:
            name = self.snapshot.config_name
            return {"config": name} if name else {}

        return self._adapter_step(StepKind.SNAPSHOT_TRIGGER, self.snapshot.run, details)

    def _update_apps(self, run: BackupRun) -> Optional[StepResult]:
        if self.app_updater is None:
            return None
        if run.snapshot_id is None:
            logger.warning("No snapshot taken, not updating apps")
            return StepResult.skipped(StepKind.APP_UPDATE, "no snapshot")

        updater = self.app_updater
        return self._adapter_step(
            StepKind.APP_UPDATE, lambda: updater.update_apps(show_only=self.dry_run)
        )

    def _write_manifest(self, run: BackupRun) -> None:
        run.outcome = evaluate_outcome(run.steps)
        try:
            run.manifest_path = self.manifest_writer.write(run)
        except ManifestError as e:
            # without a manifest the archival step never sees this backup
            logger.error("%s", e)
            run.manifest_error = str(e)
            run.outcome = Outcome.FAILED
