"""Shared fixtures for the auto-update hook tests."""

from __future__ import annotations

import asyncio
import os

import pytest

from autoupdate_hook.config import Settings, get_settings
from autoupdate_hook.errors import HookError
from autoupdate_hook.runner import CommandResult


class FakeRunner:
    """Stand-in for ``SubprocessRunner`` that records every invocation."""

    def __init__(
        self,
        exit_code: int = 0,
        output: str = "",
        error: HookError | None = None,
        delay: float = 0.0,
    ) -> None:
        self.exit_code = exit_code
        self.output = output
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, list[str]]] = []
        self.active = 0
        self.max_active = 0

    async def run(self, command: str, args: list[str]) -> CommandResult:
        self.calls.append((command, list(args)))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return CommandResult(exit_code=self.exit_code, output=self.output)
        finally:
            self.active -= 1


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep HOOK_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("HOOK_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings():
    """Build isolated Settings: no .env file, rate limiting off unless asked."""

    def _make(**overrides) -> Settings:
        values = {"_env_file": None, "rate_limit_burst": 0}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def fake_runner_cls() -> type[FakeRunner]:
    return FakeRunner
