# pyright: standard

"""nc-backup: nc_backup/__util__.py
Common utility code shared among modules.
"""

import logging
import shlex
import subprocess
from typing import Sequence, Type

from .errors import AdapterError

logger = logging.getLogger(__name__)


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"--[ {caption} ]{'-' * max(0, 50 - len(caption))}"


def format_command(cmd: Sequence[str]) -> str:
    """Render an argv list as a copy-pasteable shell command."""
    return " ".join(shlex.quote(str(part)) for part in cmd)


def exec_command(
    cmd: Sequence[str],
    timeout: float | None,
    error_class: Type[AdapterError] = AdapterError,
    **kwargs,
) -> subprocess.CompletedProcess:
    """Run ``cmd`` to completion and map every failure to ``error_class``.

    Non-zero exit, timeout and spawn failures all raise. Output is captured
    as text unless the caller redirects stdout itself.

    Args:
        cmd: Command and arguments
        timeout: Seconds before the process is killed (None = unbounded)
        error_class: AdapterError subclass to raise on failure
        kwargs: Passed through to subprocess.run

    Returns:
        The completed process
    """
    cmd_str = format_command(cmd)
    logger.debug("Running: %s", cmd_str)

    if "stdout" not in kwargs:
        kwargs["stdout"] = subprocess.PIPE
    kwargs.setdefault("stderr", subprocess.PIPE)
    kwargs.setdefault("text", True)

    try:
        result = subprocess.run(list(cmd), timeout=timeout, check=False, **kwargs)
    except subprocess.TimeoutExpired as e:
        raise error_class(
            f"{cmd[0]} timed out after {e.timeout} seconds", timed_out=True
        ) from e
    except OSError as e:
        raise error_class(f"could not run {cmd[0]}: {e}") from e

    stderr = result.stderr or ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode(errors="replace")
    stderr = stderr.strip()

    if result.returncode != 0:
        detail = stderr or "no error output"
        raise error_class(f"{cmd[0]} exited with {result.returncode}: {detail}")

    # relay warnings printed by otherwise successful commands
    if stderr:
        logger.warning("%s: %s", cmd[0], stderr)

    return result
