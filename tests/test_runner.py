"""Tests for autoupdate_hook.runner — real subprocess execution."""

from __future__ import annotations

import sys

import pytest

from autoupdate_hook.errors import ProcessStartError, ProcessTimeoutError
from autoupdate_hook.runner import (
    CommandResult,
    SubprocessRunner,
    command_on_path,
    describe_exit,
)

PY = sys.executable


class TestSubprocessRunner:
    """Tests for SubprocessRunner.run()."""

    async def test_success_captures_stdout(self) -> None:
        result = await SubprocessRunner().run(PY, ["-c", "print('ok')"])
        assert result == CommandResult(exit_code=0, output="ok\n")
        assert result.succeeded is True

    async def test_nonzero_exit(self) -> None:
        script = "import sys; print('boom'); sys.exit(3)"
        result = await SubprocessRunner().run(PY, ["-c", script])
        assert result.exit_code == 3
        assert result.succeeded is False
        assert "boom" in result.output

    async def test_stderr_interleaved_with_stdout(self) -> None:
        script = (
            "import sys\n"
            "print('one', flush=True)\n"
            "print('two', file=sys.stderr, flush=True)\n"
            "print('three', flush=True)\n"
        )
        result = await SubprocessRunner().run(PY, ["-c", script])
        assert result.output.splitlines() == ["one", "two", "three"]

    async def test_empty_output(self) -> None:
        result = await SubprocessRunner().run(PY, ["-c", "pass"])
        assert result.output == ""

    async def test_invalid_utf8_is_replaced(self) -> None:
        script = "import sys; sys.stdout.buffer.write(b'\\xff ok')"
        result = await SubprocessRunner().run(PY, ["-c", script])
        assert result.output.endswith(" ok")

    async def test_missing_binary_raises_start_error(self, tmp_path) -> None:
        missing = str(tmp_path / "no-such-podman")
        with pytest.raises(ProcessStartError) as exc_info:
            await SubprocessRunner().run(missing, ["auto-update"])
        assert exc_info.value.command == missing
        assert "failed to start" in str(exc_info.value)

    async def test_non_executable_raises_start_error(self, tmp_path) -> None:
        script = tmp_path / "podman"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)
        with pytest.raises(ProcessStartError):
            await SubprocessRunner().run(str(script), [])

    async def test_timeout_kills_process(self) -> None:
        runner = SubprocessRunner(timeout=0.2)
        with pytest.raises(ProcessTimeoutError) as exc_info:
            await runner.run(PY, ["-c", "import time; time.sleep(30)"])
        assert exc_info.value.timeout == 0.2
        assert "timed out after 0.2s" in str(exc_info.value)

    async def test_finishes_within_timeout(self) -> None:
        runner = SubprocessRunner(timeout=30)
        result = await runner.run(PY, ["-c", "print('fast')"])
        assert result.output == "fast\n"


class TestHelpers:
    """Tests for module helpers."""

    def test_describe_exit_status(self) -> None:
        assert describe_exit(1) == "exit status 1"

    def test_describe_signal(self) -> None:
        assert describe_exit(-9) == "killed by signal 9"

    def test_command_on_path_absolute(self) -> None:
        assert command_on_path(PY) is True

    def test_command_on_path_missing(self, tmp_path) -> None:
        assert command_on_path(str(tmp_path / "missing")) is False
        assert command_on_path("definitely-not-a-real-binary-xyz") is False
