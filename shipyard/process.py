"""Local process execution.

Every external tool shipyard drives (ssh, rsync, docker, aws, git) goes
through ``run_command`` so exit codes, output capture and timeouts are
handled the same way everywhere.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from shipyard.errors import CommandFailedError, TimeoutExceededError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of a finished command.

    Attributes:
        command: The command line, shell-quoted.
        exit_code: Process exit code.
        output: Combined stdout and stderr.
    """

    command: str
    exit_code: int
    output: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def run_command(
    argv: Sequence[str],
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = True,
    display: str | None = None,
) -> CommandResult:
    """Run a command and capture its combined output.

    Args:
        argv: Command as list of strings.
        cwd: Working directory.
        timeout: Timeout in seconds (None = no timeout).
        check: Raise on non-zero exit.
        display: Command text used in logs and errors instead of ``argv``.

    Returns:
        CommandResult with exit code and output.

    Raises:
        CommandFailedError: If the command cannot start, or exits non-zero
            while ``check`` is set.
        TimeoutExceededError: If the command outlives ``timeout``.
    """
    cmd_str = display or shlex.join(argv)
    logger.debug("Executing: %s", cmd_str)

    try:
        result = subprocess.run(
            list(argv),
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        logger.error("Command timed out after %s seconds: %s", timeout, cmd_str)
        raise TimeoutExceededError(timeout or 0) from e
    except OSError as e:
        logger.error("Failed to execute %s: %s", cmd_str, e)
        raise CommandFailedError(cmd_str, None, str(e)) from e

    output = result.stdout or ""
    if check and result.returncode != 0:
        logger.error("Command exited with status %d: %s", result.returncode, cmd_str)
        raise CommandFailedError(cmd_str, result.returncode, output)

    return CommandResult(command=cmd_str, exit_code=result.returncode, output=output)


__all__ = ["CommandResult", "run_command"]
