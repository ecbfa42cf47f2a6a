#!/usr/bin/env python3
"""Wearable relay - network reachability, delivered on demand and on change."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from .typing import Reachability, ReachabilityHandlerT

_LOGGER = logging.getLogger(__name__)

DEFAULT_PROBE_HOST = "1.1.1.1"
DEFAULT_PROBE_PORT = 443
DEFAULT_PROBE_INTERVAL = 10.0
DEFAULT_PROBE_TIMEOUT = 3.0


class ReachabilityMonitor(ABC):
    """Base class for reachability collaborators.

    Subclasses implement fetch(); if they also watch for changes, they call
    _update() whenever a new state is observed.
    """

    def __init__(self) -> None:
        self._listeners: list[ReachabilityHandlerT] = []
        self._state: Reachability | None = None

    @property
    def state(self) -> Reachability | None:
        """Return the last observed state, if any."""
        return self._state

    @abstractmethod
    async def fetch(self) -> Reachability:
        """Return the current reachability (and update the observed state)."""

    def add_listener(self, listener: ReachabilityHandlerT) -> Callable[[], None]:
        """Add a listener for changes, returning a callable that removes it."""

        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _update(self, state: Reachability) -> None:
        if state == self._state:
            return

        _LOGGER.debug("Reachability changed: %s -> %s", self._state, state)
        self._state = state

        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as err:  # noqa: BLE001
                _LOGGER.error("Reachability listener raised an exception: %r", err)

    async def start(self) -> None:
        """Start watching for changes (default: nothing to watch)."""

    async def stop(self) -> None:
        """Stop watching for changes."""


class StaticReachability(ReachabilityMonitor):
    """A monitor that reports whatever it is told (e.g. always online)."""

    def __init__(self, connected: bool = True, internet_reachable: bool | None = True):
        super().__init__()
        self._state = Reachability(connected, internet_reachable)

    async def fetch(self) -> Reachability:
        assert self._state is not None  # mypy
        return self._state

    def set(self, connected: bool, internet_reachable: bool | None = None) -> None:
        """Change the state, notifying any listeners."""
        self._update(Reachability(connected, internet_reachable))


class TcpProbeMonitor(ReachabilityMonitor):
    """A monitor that considers the internet reachable if a TCP connect succeeds."""

    def __init__(
        self,
        host: str = DEFAULT_PROBE_HOST,
        port: int = DEFAULT_PROBE_PORT,
        *,
        interval: float = DEFAULT_PROBE_INTERVAL,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        super().__init__()

        self._host = host
        self._port = port
        self._interval = interval
        self._timeout = timeout

        self._probe_task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._host}:{self._port})"

    async def _probe(self) -> Reachability:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port), self._timeout
            )
        except (OSError, TimeoutError) as err:
            _LOGGER.debug("%s: probe failed: %r", self, err)
            return Reachability(connected=False, internet_reachable=False)

        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return Reachability(connected=True, internet_reachable=True)

    async def fetch(self) -> Reachability:
        state = await self._probe()
        self._update(state)
        return state

    async def _probe_loop(self) -> None:
        while True:
            await self.fetch()
            await asyncio.sleep(self._interval)

    async def start(self) -> None:
        if self._probe_task and not self._probe_task.done():
            return
        self._probe_task = asyncio.create_task(self._probe_loop())

    async def stop(self) -> None:
        if not self._probe_task:
            return
        self._probe_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._probe_task
        self._probe_task = None
