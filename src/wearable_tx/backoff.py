#!/usr/bin/env python3
"""Wearable relay - the retry (exponential backoff) policy."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field

from .const import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    LISTENER_BASE_DELAY,
    LISTENER_JITTER,
    LISTENER_MAX_DELAY,
)
from .typing import RetryContext


@dataclass(frozen=True)
class BackoffPolicy:
    """Compute the delay before a retry: min(max_delay, base_delay * 2**attempt).

    With jitter, a random addition of up to jitter * delay is made (so the delay may
    exceed max_delay by that fraction).
    """

    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    jitter: float = 0.0
    rand: Callable[[], float] = field(default=random.random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Delays must not be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")

    def delay(self, attempt: int) -> float:
        """Return the delay (in seconds) before retry number attempt (from 0)."""
        if attempt < 0:
            raise ValueError("attempt must not be negative")
        # 2**attempt is unbounded, so stop doubling once past the cap
        delay = self.base_delay
        for _ in range(attempt):
            if delay >= self.max_delay:
                break
            delay *= 2
        delay = min(self.max_delay, delay)
        if self.jitter:
            delay += self.rand() * self.jitter * delay
        return delay

    def is_exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts

    def next_delay(self, retry: RetryContext) -> float | None:
        """Return the delay for the next retry & count it, or None if exhausted."""
        if self.is_exhausted(retry.attempt_count):
            return None
        delay = self.delay(retry.attempt_count)
        retry.attempt_count += 1
        return delay


SOCKET_BACKOFF = BackoffPolicy(
    DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY, DEFAULT_MAX_ATTEMPTS, jitter=0.0
)
LISTENER_BACKOFF = BackoffPolicy(
    LISTENER_BASE_DELAY, LISTENER_MAX_DELAY, DEFAULT_MAX_ATTEMPTS, jitter=LISTENER_JITTER
)
