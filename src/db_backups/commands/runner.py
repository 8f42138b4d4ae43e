"""External command execution.

Defines the ``CommandRunner`` Protocol the orchestrators use for every call
out to the database client tools, and ``SubprocessRunner``, the production
implementation.  Tests substitute a fake runner so orchestration logic runs
without a database engine.

Usage:
    from db_backups.commands.runner import SubprocessRunner

    runner = SubprocessRunner(default_timeout=600)
    result = await runner.run(["pg_dump", "--version"])
    if not result.ok:
        print(result.stderr)
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


@dataclass
class CommandResult:
    """Captured output of one external command."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """True if the command exited with status 0."""
        return self.exit_code == 0 and not self.timed_out


class CommandRunner(Protocol):
    """Capability to run an external command and capture its output."""

    async def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        """Run ``args`` (argv, no shell) and return its output.

        Implementations must not raise for a failing command; failures are
        reported through ``CommandResult.exit_code``.
        """
        ...


class SubprocessRunner:
    """Runs commands as child processes via ``asyncio.create_subprocess_exec``.

    Every invocation is bounded by ``timeout`` (or ``default_timeout``).  On
    expiry the process is killed and a result with ``timed_out=True`` and
    exit code 124 is returned.

    Args:
        default_timeout: Seconds allowed per command when the caller passes
            no explicit timeout.  ``None`` disables the bound.
    """

    def __init__(self, default_timeout: float | None = 3600.0) -> None:
        self._default_timeout = default_timeout

    async def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        timeout = timeout if timeout is not None else self._default_timeout

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            return CommandResult(stdout="", stderr=str(e), exit_code=NOT_FOUND_EXIT_CODE)

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"Command {args[0]} timed out after {timeout}s")
            return CommandResult(
                stdout="",
                stderr=f"{args[0]} timed out after {timeout}s",
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
            )

        return CommandResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else 1,
        )
