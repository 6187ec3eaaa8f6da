"""Async runner for the external commands the core depends on."""

import asyncio
import logging
import shlex
from collections.abc import Sequence
from dataclasses import dataclass

from portsentinel.errors import CommandError, CommandTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(slots=True, frozen=True)
class CommandResult:
    """Exit status and decoded output of one finished command."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.returncode == 0


def describe(command: str | Sequence[str]) -> str:
    """Printable form of a shell string or an argv list."""
    if isinstance(command, str):
        return command
    return shlex.join(command)


async def run_command(
    command: str | Sequence[str],
    timeout: float | None = DEFAULT_TIMEOUT,
) -> CommandResult:
    """
    Run a command and capture its output.

    A string is handed to the shell (pipelines are allowed), a sequence is
    executed directly. A nonzero exit is not an error here; callers decide
    what exit codes mean.

    Raises:
        CommandError: The program could not be started.
        CommandTimeoutError: The command outlived ``timeout`` and was killed.
    """
    display = describe(command)
    try:
        if isinstance(command, str):
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        else:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
    except OSError as exc:
        raise CommandError(display, message=f"Cannot run {display}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("Killed %s after %ss", display, timeout)
        raise CommandTimeoutError(display, timeout) from None

    return CommandResult(
        command=display,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )

