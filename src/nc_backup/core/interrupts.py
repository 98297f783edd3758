"""Turn termination signals into an exception the coordinator can unwind."""

import logging
import signal
import threading

from ..errors import RunInterrupted

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class InterruptHandler:
    """Install signal handlers raising ``RunInterrupted`` once.

    After ``defer()`` signals are only recorded, so cleanup such as
    disabling maintenance mode is never cut short.
    """

    def __init__(self, signals=HANDLED_SIGNALS) -> None:
        self.signals = tuple(signals)
        self.received: int | None = None
        self._deferred = False
        self._previous: dict = {}

    @property
    def interrupted(self) -> bool:
        return self.received is not None

    def defer(self) -> None:
        """Stop raising from now on; later signals are only recorded."""
        self._deferred = True

    def _handle(self, signum, frame) -> None:
        name = signal.Signals(signum).name
        if self.received is not None:
            logger.warning("Received %s while shutting down, ignoring", name)
            return
        self.received = signum
        if self._deferred:
            logger.warning("Received %s, finishing cleanup before exit", name)
            return
        logger.warning("Received %s, aborting backup run", name)
        raise RunInterrupted(signum)

    def __enter__(self) -> "InterruptHandler":
        self.received = None
        self._deferred = False
        # signal handlers can only be installed from the main thread
        if threading.current_thread() is threading.main_thread():
            for signum in self.signals:
                self._previous[signum] = signal.signal(signum, self._handle)
        else:
            logger.debug("Not running in the main thread, signal handlers not installed")
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)
        self._previous.clear()
