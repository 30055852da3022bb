"""Exceptions raised while handling a trigger request."""

from __future__ import annotations


class HookError(Exception):
    """Base class for errors that end a trigger request."""

    status: int = 500


class AuthenticationFailure(HookError):
    """Missing, malformed or incorrect credential."""

    status = 401


class MalformedDelivery(HookError):
    """A GitHub delivery lacking the headers needed to verify it."""

    status = 400


class ProcessStartError(HookError):
    """The update command could not be launched."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"failed to start {command}: {reason}")
        self.command = command
        self.reason = reason


class ProcessTimeoutError(HookError):
    """The update command did not finish within the configured bound."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"{command} timed out after {timeout:g}s and was killed")
        self.command = command
        self.timeout = timeout
