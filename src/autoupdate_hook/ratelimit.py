"""Per-credential rate limiting for the hook endpoint."""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class RateLimitState:
    """Track the replenishment schedule for one credential.

    ``next_free`` is the theoretical arrival time of the next request: the
    bucket is full whenever it lies in the past.
    """

    next_free: float = 0.0


class RateLimiter:
    """Token bucket keyed by the presented credential."""

    def __init__(
        self,
        burst: int = 5,
        period_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = 1024,
    ) -> None:
        """Initialize rate limiter.

        Args:
            burst: Requests a key may make back to back.
            period_seconds: Time to replenish a single request slot.
            clock: Monotonic time source.
            prune_threshold: Tracked keys above which refilled buckets are
                swept, at most once per period.
        """
        self._burst = burst
        self._period = period_seconds
        self._clock = clock
        self._prune_threshold = prune_threshold
        self._next_prune = 0.0
        self._states: dict[str, RateLimitState] = defaultdict(RateLimitState)

    def check(self, key: str) -> tuple[bool, float]:
        """Check whether ``key`` may make a request now.

        Returns:
            Tuple of (is_allowed, retry_after_seconds).
        """
        now = self._clock()
        if len(self._states) > self._prune_threshold and now >= self._next_prune:
            self._next_prune = now + self._period
            self.prune()

        state = self._states[key]
        tolerance = self._period * (self._burst - 1)

        next_free = max(state.next_free, now)
        earliest = next_free - tolerance
        if now < earliest:
            return False, earliest - now

        state.next_free = next_free + self._period
        return True, 0.0

    def prune(self) -> None:
        """Forget keys whose bucket has fully refilled."""
        now = self._clock()
        for key in [k for k, s in self._states.items() if s.next_free <= now]:
            del self._states[key]

    def __len__(self) -> int:
        return len(self._states)
