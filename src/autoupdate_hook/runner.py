"""Process runners: the single seam between the hook and the host.

``CommandRunner`` is the capability the update trigger depends on.
``SubprocessRunner`` is the real implementation; tests substitute fakes.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from shutil import which
from typing import Protocol

from autoupdate_hook.errors import ProcessStartError, ProcessTimeoutError
from autoupdate_hook.logging import get_logger

log = get_logger("autoupdate_hook.runner")


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined stdout/stderr of one finished process."""

    exit_code: int
    output: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class CommandRunner(Protocol):
    async def run(self, command: str, args: list[str]) -> CommandResult:
        """Run ``command`` with ``args`` to completion.

        Raises:
            ProcessStartError: the process could not be started.
            ProcessTimeoutError: the process exceeded the runner's bound.
        """
        ...


class SubprocessRunner:
    """Runs commands with ``asyncio.create_subprocess_exec``.

    stderr is redirected into stdout so the captured text keeps the order in
    which the process wrote it.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    async def run(self, command: str, args: list[str]) -> CommandResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise ProcessStartError(command, exc.strerror or str(exc)) from exc

        log.debug("process_started", command=command, args=args, pid=proc.pid)

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError as exc:
            # wait_for cancelled communicate(); reap the child so it does not linger
            await self._kill(proc)
            raise ProcessTimeoutError(command, self._timeout or 0.0) from exc

        exit_code = proc.returncode if proc.returncode is not None else -1
        return CommandResult(exit_code=exit_code, output=_decode(stdout))

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def describe_exit(exit_code: int) -> str:
    """Human readable exit status, naming the signal for negative codes."""
    if exit_code < 0:
        return f"killed by signal {-exit_code}"
    return f"exit status {exit_code}"


def command_on_path(command: str) -> bool:
    """Whether ``command`` resolves to an executable, for the startup check."""
    if os.sep in command:
        return os.access(command, os.X_OK)
    return which(command) is not None
