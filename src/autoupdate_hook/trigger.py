"""Update trigger: runs the auto-update command and reports what happened.

The trigger owns no side effects of its own. Pulling images, restarting
units and rolling back failed starts are all done by the external tool; the
trigger only starts it, waits for it and turns the result into an
``UpdateOutcome``.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Sequence

from autoupdate_hook.config import DEFAULT_COMMAND, DEFAULT_COMMAND_ARGS
from autoupdate_hook.errors import ProcessStartError, ProcessTimeoutError
from autoupdate_hook.logging import get_logger
from autoupdate_hook.models import UpdateOutcome
from autoupdate_hook.runner import CommandRunner, describe_exit

log = get_logger("autoupdate_hook.trigger")


class UpdateTrigger:
    """Invokes the auto-update command once per call to :meth:`run`."""

    def __init__(
        self,
        runner: CommandRunner,
        command: str = DEFAULT_COMMAND,
        args: Sequence[str] = DEFAULT_COMMAND_ARGS,
        serialize: bool = False,
    ) -> None:
        self._runner = runner
        self._command = command
        self._args = list(args)
        self._lock = asyncio.Lock() if serialize else None

    @property
    def command_line(self) -> list[str]:
        return [self._command, *self._args]

    @property
    def serialized(self) -> bool:
        return self._lock is not None

    @property
    def is_busy(self) -> bool:
        return self._lock is not None and self._lock.locked()

    async def run(self) -> UpdateOutcome:
        """Run the command to completion and classify the result.

        Never raises for command failures: start errors, timeouts and
        non-zero exits all come back as a failed outcome.
        """
        async with self._slot():
            return await self._invoke()

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
            return
        if self.is_busy:
            log.info("update_waiting_for_previous_run")
        async with self._lock:
            yield

    async def _invoke(self) -> UpdateOutcome:
        start = time.monotonic()
        log.info("update_started", command=self.command_line)

        try:
            result = await self._runner.run(self._command, list(self._args))
        except ProcessStartError as exc:
            outcome = UpdateOutcome.failed(error=str(exc), duration_seconds=_since(start))
            log.error(
                "update_start_failed",
                command=self._command,
                reason=exc.reason,
                **outcome.to_dict(),
            )
            return outcome
        except ProcessTimeoutError as exc:
            outcome = UpdateOutcome.failed(error=str(exc), duration_seconds=_since(start))
            log.error(
                "update_timed_out",
                command=self._command,
                timeout=exc.timeout,
                **outcome.to_dict(),
            )
            return outcome

        elapsed = _since(start)
        if not result.succeeded:
            outcome = UpdateOutcome.failed(
                output=result.output,
                exit_code=result.exit_code,
                error=f"{self._command} failed with {describe_exit(result.exit_code)}",
                duration_seconds=elapsed,
            )
            log.error("update_failed", output=result.output[:500], **outcome.to_dict())
            return outcome

        outcome = UpdateOutcome.succeeded(result.output, duration_seconds=elapsed)
        records = outcome.records()
        log.info(
            "update_completed",
            containers=len(records),
            changed=[r.container_name or r.unit for r in records if r.changed],
            **outcome.to_dict(),
        )
        return outcome


def _since(start: float) -> float:
    return round(time.monotonic() - start, 2)
