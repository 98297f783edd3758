"""Configuration copy adapter.

Copies Nextcloud's ``config.php`` into the backup root. The database password
is masked since a restore takes it from the restored database setup anyway.
The copy runs on a worker thread so a hanging mount below the document root
cannot hold maintenance mode past the timeout.
"""

import concurrent.futures
import logging
import re
import threading
from pathlib import Path
from typing import Callable

from ..config.schema import ConfigCopyConfig
from ..errors import ConfigCopyError
from .common import Adapter

logger = logging.getLogger(__name__)

DBPASSWORD_PATTERN = re.compile(r"(dbpassword.*=>\s*).*,")
DBPASSWORD_MASK = r"\1'DBPASSWORD',"


def mask_dbpassword(lines: list[str]) -> tuple[list[str], bool]:
    """Mask the first dbpassword entry.

    Returns:
        Tuple of (processed lines, whether an entry was masked)
    """
    masked = False
    result = []
    for line in lines:
        if not masked and DBPASSWORD_PATTERN.search(line):
            line = DBPASSWORD_PATTERN.sub(DBPASSWORD_MASK, line, count=1)
            masked = True
        result.append(line)
    return result, masked


class ConfigCopyAdapter(Adapter):
    """Copy the application's configuration file."""

    error_class = ConfigCopyError
    name = "config copy"

    def __init__(self, source: Path, settings: ConfigCopyConfig | None = None, dry_run: bool = False) -> None:
        settings = settings or ConfigCopyConfig()
        super().__init__(timeout=settings.timeout, dry_run=dry_run)
        self.source = Path(source)
        self.settings = settings

    def _fail(self, path: Path, reason: str) -> ConfigCopyError:
        return ConfigCopyError(path, reason)

    def run(self, dest: Path) -> Path:
        """Copy the configuration to ``dest``.

        Raises:
            ConfigCopyError: If the source is unreadable, ``dest`` unwritable
                or the copy does not finish within the timeout
        """
        logger.info("Copying %s to %s", self.source, dest)
        cancelled = threading.Event()
        try:
            return self._bounded(lambda: self._copy(dest, cancelled))
        except ConfigCopyError as e:
            if e.timed_out:
                cancelled.set()
                self._discard(dest)
            raise

    def _bounded(self, func: Callable[[], Path]) -> Path:
        """Run ``func`` on a daemon thread, waiting at most ``timeout``.

        A stuck worker is abandoned; being a daemon it never blocks exit.
        """
        if self.timeout is None:
            return func()

        future: concurrent.futures.Future = concurrent.futures.Future()

        def worker() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(func())
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=worker, name="config-copy", daemon=True).start()
        try:
            return future.result(timeout=self.timeout)
        except concurrent.futures.TimeoutError:
            raise ConfigCopyError(
                self.source, f"copy timed out after {self.timeout} seconds", timed_out=True
            )

    def _read_source(self) -> str:
        try:
            return self.source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigCopyError(self.source, f"cannot read: {e}")

    def _copy(self, dest: Path, cancelled: threading.Event) -> Path:
        lines = self._read_source().splitlines(keepends=True)
        if self.settings.mask_secrets:
            lines, masked = mask_dbpassword(lines)
            if masked:
                logger.debug("Masked dbpassword")
            else:
                logger.warning("No dbpassword entry found in %s to mask", self.source)

        if self.dry_run:
            logger.info("Dry run, not writing %s", dest)
            return dest
        if cancelled.is_set():
            raise ConfigCopyError(dest, "copy given up after timeout")

        output = self._create_artifact(dest)
        try:
            with output:
                output.write("".join(lines).encode("utf-8"))
        except OSError as e:
            self._discard(dest)
            raise ConfigCopyError(dest, f"cannot write: {e}")
        except BaseException:
            self._discard(dest)
            raise

        return dest
