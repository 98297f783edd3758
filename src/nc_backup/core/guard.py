"""Consistency guard: scoped maintenance mode.

The guard switches the application into maintenance mode on ``acquire()``
and back on ``release()``. Whether another run currently holds maintenance
mode is asked from the application itself through ``status()``, since a
competing run lives in a different process.
"""

import logging
from enum import Enum
from typing import Protocol

from ..errors import (
    AdapterError,
    ConcurrentRunError,
    GuardAcquireError,
    GuardReleaseError,
)

logger = logging.getLogger(__name__)


class MaintenanceControl(Protocol):
    """Application control interface, implemented by ``Occ``."""

    def enable(self) -> None: ...

    def disable(self) -> None: ...

    def status(self) -> bool: ...


class GuardState(Enum):
    IDLE = "idle"  # nothing to release
    HELD = "held"
    UNCERTAIN = "uncertain"  # enable failed half way, maintenance may be on
    RELEASED = "released"


class ConsistencyGuard:
    """Hold maintenance mode for the duration of a backup window."""

    def __init__(self, control: MaintenanceControl, dry_run: bool = False) -> None:
        self.control = control
        self.dry_run = dry_run
        self.state = GuardState.IDLE

    def __repr__(self) -> str:
        return f"ConsistencyGuard(state={self.state.value}, dry_run={self.dry_run})"

    @property
    def needs_release(self) -> bool:
        return self.state in (GuardState.HELD, GuardState.UNCERTAIN)

    def acquire(self) -> "ConsistencyGuard":
        """Enable maintenance mode.

        Raises:
            ConcurrentRunError: Maintenance mode is already on; it is left untouched
            GuardAcquireError: Maintenance mode could not be enabled
        """
        if self.needs_release:
            raise GuardAcquireError("maintenance mode is already held by this run")

        try:
            already_enabled = self.control.status()
        except AdapterError as e:
            raise GuardAcquireError(f"could not query maintenance mode: {e}") from e
        if already_enabled:
            raise ConcurrentRunError(
                "maintenance mode is already enabled, another backup run may be in progress"
            )

        if self.dry_run:
            logger.info("Dry run, not enabling maintenance mode")
            self.state = GuardState.HELD
            return self

        # from here on maintenance mode may be on
        self.state = GuardState.UNCERTAIN
        try:
            self.control.enable()
        except AdapterError as e:
            # a timed out command may still have switched the flag
            if not e.timed_out:
                self.state = GuardState.IDLE
            raise GuardAcquireError(f"could not enable maintenance mode: {e}") from e

        try:
            enabled = self.control.status()
        except AdapterError as e:
            raise GuardAcquireError(f"could not verify maintenance mode: {e}") from e
        if not enabled:
            raise GuardAcquireError("maintenance mode did not report enabled")

        self.state = GuardState.HELD
        logger.info("Maintenance mode enabled")
        return self

    def release(self) -> None:
        """Disable maintenance mode. Safe to call any number of times.

        Raises:
            GuardReleaseError: Maintenance mode could not be disabled; the
                guard stays releasable so a later call retries
        """
        if not self.needs_release:
            logger.debug("Maintenance mode not held, nothing to release")
            return

        if self.dry_run:
            logger.info("Dry run, not disabling maintenance mode")
            self.state = GuardState.RELEASED
            return

        try:
            self.control.disable()
        except AdapterError as e:
            raise GuardReleaseError(f"could not disable maintenance mode: {e}") from e

        try:
            still_enabled = self.control.status()
        except AdapterError as e:
            logger.warning("Could not verify maintenance mode after disabling: %s", e)
            still_enabled = False
        if still_enabled:
            raise GuardReleaseError("maintenance mode still reports enabled after disabling")

        self.state = GuardState.RELEASED
        logger.info("Maintenance mode disabled")

    def __enter__(self) -> "ConsistencyGuard":
        return self.acquire()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()
