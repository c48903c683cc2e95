"""Subprocess execution for external tools."""

import shlex
import shutil
import subprocess
from dataclasses import dataclass, field

from stackctl.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 120

# Exit codes used when the process never produced one.
COMMAND_NOT_FOUND = 127
COMMAND_TIMED_OUT = 124

REDACTED = "****"


def redact(text: str, secrets: tuple[str, ...] | list[str]) -> str:
    """Mask every secret occurring in text."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    secrets: tuple[str, ...] = field(default=(), repr=False, compare=False)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return redact(shlex.join(self.args), self.secrets)

    def error_summary(self) -> str:
        """Last non-empty line of stderr, or the exit code."""
        for line in reversed(self.stderr.splitlines()):
            if line.strip():
                return redact(line.strip(), self.secrets)
        return f"exit code {self.returncode}"


class CommandRunner:
    """Runs external commands and captures their output.

    Failures never raise: a missing executable or a timeout is reported
    through the returned ``CommandResult`` so callers decide how fatal it is.
    """

    def __init__(self, cwd: str | None = None, default_timeout: int = DEFAULT_TIMEOUT):
        self.cwd = cwd
        self.default_timeout = default_timeout

    def run(
        self,
        args: list[str],
        timeout: int | None = None,
        secrets: list[str] | None = None,
    ) -> CommandResult:
        """Run a command.

        Args:
            args: Program and arguments
            timeout: Timeout in seconds
            secrets: Values masked wherever the command line is shown

        Returns:
            Command result
        """
        argv = tuple(args)
        hidden = tuple(s for s in (secrets or []) if s)
        timeout = timeout or self.default_timeout
        logger.debug(f"$ {redact(shlex.join(argv), hidden)}")

        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                cwd=self.cwd,
                timeout=timeout,
            )
        except FileNotFoundError:
            return CommandResult(argv, COMMAND_NOT_FOUND, stderr=f"{argv[0]}: command not found", secrets=hidden)
        except subprocess.TimeoutExpired:
            return CommandResult(argv, COMMAND_TIMED_OUT, stderr=f"timed out after {timeout}s", secrets=hidden)

        return CommandResult(argv, completed.returncode, completed.stdout, completed.stderr, secrets=hidden)

    def which(self, tool: str) -> str | None:
        """Locate a tool on PATH."""
        return shutil.which(tool)
