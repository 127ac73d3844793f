"""Production SSH probe backed by the OpenSSH client."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ..models import ProbeResult
from .base import SshProbeGateway

logger = logging.getLogger(__name__)

_SUCCESS_MARKERS = ("successfully authenticated",)
_REJECTED_MARKERS = ("permission denied",)


def classify_probe_output(output: str) -> ProbeResult:
    """Map ``ssh -T git@host`` output to a probe result.

    GitHub answers a good key with "Hi <user>! You've successfully
    authenticated" and exit status 1, so the exit status is not used.
    """
    lowered = output.lower()
    if any(marker in lowered for marker in _SUCCESS_MARKERS):
        return ProbeResult.SUCCESS
    if any(marker in lowered for marker in _REJECTED_MARKERS):
        return ProbeResult.AUTH_REJECTED
    return ProbeResult.UNREACHABLE


class RealSshProbeGateway(SshProbeGateway):
    """Runs a non-interactive ``ssh -T`` against the git host."""

    def __init__(self, timeout: int) -> None:
        self.timeout = timeout

    def build_command(self, key_path: Path, host: str) -> list[str]:
        return [
            "ssh",
            "-T",
            "-i",
            str(key_path),
            "-o",
            "IdentitiesOnly=yes",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self.timeout}",
            "-o",
            "StrictHostKeyChecking=accept-new",
            f"git@{host}",
        ]

    def probe(self, key_path: Path, host: str) -> ProbeResult:
        argv = self.build_command(key_path, host)
        logger.debug("Probing %s with %s", host, key_path)
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout + 5,
                check=False,
            )
        except FileNotFoundError:
            logger.warning("ssh client not found on PATH")
            return ProbeResult.UNREACHABLE
        except subprocess.TimeoutExpired:
            logger.info("SSH probe to %s timed out", host)
            return ProbeResult.UNREACHABLE

        outcome = classify_probe_output(result.stdout + result.stderr)
        logger.debug("SSH probe exit=%s outcome=%s", result.returncode, outcome.value)
        return outcome
