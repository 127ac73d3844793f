"""Subprocess helper shared by the real gateways."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from ..exceptions import ExternalCommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def run_command(
    argv: Sequence[str],
    operation: str,
    cwd: Path | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """Run an external command and capture its output.

    The caller inspects the return code; only a missing binary or a timeout
    raises.

    Args:
        argv: Command and arguments
        operation: What the command is for, used in error messages
        cwd: Working directory
        timeout: Seconds before the command is killed

    Raises:
        ExternalCommandError: If the binary is missing or the command times out
    """
    logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd)
    try:
        return subprocess.run(
            list(argv),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        msg = f"Cannot {operation}: '{argv[0]}' is not installed"
        raise ExternalCommandError(
            msg,
            details={"argv": list(argv)},
            remediation=f"Install {argv[0]} and make sure it is on PATH",
        ) from e
    except subprocess.TimeoutExpired as e:
        msg = f"Cannot {operation}: '{argv[0]}' timed out after {timeout:g}s"
        raise ExternalCommandError(msg, details={"argv": list(argv)}) from e
