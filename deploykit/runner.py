"""
External command runner.

Every shell-out in deploykit (flutter, fastlane, git, gh, bundle) goes
through run_command() so callers get one structured result and one failure
path. Tests pass their own callable with the same signature.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from .errors import ExternalToolFailure

logger = logging.getLogger(__name__)

# Exit status used by shells for "command not found"
MISSING_TOOL_EXIT = 127


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "CommandResult":
        """Raise ExternalToolFailure unless the command succeeded."""
        if not self.ok:
            raise ExternalToolFailure(self.args, self.returncode, self.stderr)
        return self


Runner = Callable[..., CommandResult]


def run_command(
    args: Sequence[str],
    cwd: Optional[str | Path] = None,
    env: Optional[Mapping[str, str]] = None,
    capture: bool = True,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run *args* and wait for it to finish.

    With capture=False the child's output goes straight to the terminal
    (used for long builds); stdout/stderr on the result are then empty.
    *env* is layered over the inherited environment. A missing executable
    is reported as exit code 127 rather than raised.
    """
    cmd = [str(a) for a in args]
    logger.debug("Running: %s (cwd=%s)", " ".join(cmd), cwd or ".")
    started = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            env={**os.environ, **env} if env else None,
            capture_output=capture,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        duration = time.monotonic() - started
        logger.warning("Executable not found: %s", cmd[0])
        return CommandResult(cmd, MISSING_TOOL_EXIT, "", f"{cmd[0]}: command not found", duration)
    except subprocess.TimeoutExpired:
        duration = time.monotonic() - started
        logger.warning("Command timed out after %.0fs: %s", duration, " ".join(cmd))
        return CommandResult(cmd, 124, "", "TIMEOUT", duration)

    duration = time.monotonic() - started
    result = CommandResult(
        cmd,
        proc.returncode,
        proc.stdout or "",
        proc.stderr or "",
        duration,
    )
    logger.debug("Exit %d after %.2fs: %s", result.returncode, duration, cmd[0])
    return result


def which(tool: str) -> bool:
    """True if *tool* is on PATH."""
    return shutil.which(tool) is not None
