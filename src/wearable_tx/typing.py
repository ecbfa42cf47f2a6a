#!/usr/bin/env python3
"""Wearable relay - typing for the supervisor, transports & listeners."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

BytesHandlerT: TypeAlias = Callable[[bytes], None]
PublishHandlerT: TypeAlias = Callable[[int], None]
ReachabilityHandlerT: TypeAlias = Callable[["Reachability"], None]

# subscribe() returns an opaque subscription handle (None is a failure)
SubscribeFuncT: TypeAlias = Callable[[BytesHandlerT], Awaitable[Any]]
UnsubscribeFuncT: TypeAlias = Callable[[Any], Awaitable[None]]
PriorityFuncT: TypeAlias = Callable[[], Awaitable[None]]


@dataclass
class RetryContext:
    """The retry bookkeeping of a session.

    attempt_count is the number of retries made since the last successful open (or
    the last explicit start).  should_retry is cleared by stop() and by a deliberate
    close, and while it is False nothing may schedule a retry.
    """

    attempt_count: int = 0
    target: str | None = None
    should_retry: bool = False

    def reset(self, target: str | None = None, *, should_retry: bool = True) -> None:
        self.attempt_count = 0
        self.target = target
        self.should_retry = should_retry


@dataclass(frozen=True)
class Reachability:
    """A snapshot of the device's network reachability.

    internet_reachable may be unknown (None), in which case only connected counts.
    """

    connected: bool
    internet_reachable: bool | None = None

    @property
    def is_online(self) -> bool:
        return self.connected and self.internet_reachable is not False
