#!/usr/bin/env python3
"""Test helpers (fakes of the collaborators) for the wearable_relay test suites."""

import asyncio
import json
from typing import Any

from wearable_tx.backoff import BackoffPolicy
from wearable_tx.exceptions import TransportError
from wearable_tx.lifecycle import LifecycleNotifier
from wearable_tx.transport import CallbackTransport, TransportConfig

FAST_BACKOFF = BackoffPolicy(base_delay=0.01, max_delay=0.04, max_attempts=3)
SLOW_BACKOFF = BackoffPolicy(base_delay=30.0, max_delay=60.0, max_attempts=3)


class RecordingNotifier(LifecycleNotifier):
    """A notifier that records every call made to it."""

    def __init__(self, *, fail: bool = False) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.is_held = False
        self._fail = fail

    async def acquire(self, title: str, body: str) -> None:
        self.calls.append(("acquire", title, body))
        if self._fail:
            raise RuntimeError("acquire failed")
        self.is_held = True

    async def release(self) -> None:
        self.calls.append(("release",))
        if self._fail:
            raise RuntimeError("release failed")
        self.is_held = False

    async def notify(self, title: str, body: str) -> None:
        self.calls.append(("notify", title, body))

    @property
    def notifications(self) -> list[tuple[str, ...]]:
        return [c[1:] for c in self.calls if c[0] == "notify"]


class FakeServer:
    """A transport constructor that creates CallbackTransports.

    Everything written to the transports is recorded. The next `refuse`
    connections fail (float("inf") refuses them all); if autoconnect is False, the
    test decides when each transport opens.
    """

    def __init__(self) -> None:
        self.transports: list[CallbackTransport] = []
        self.targets: list[str] = []
        self.writes: list[str | bytes] = []
        self.refuse: float = 0
        self.autoconnect = True

    async def __call__(
        self,
        protocol: Any,
        target: str,
        /,
        *,
        config: TransportConfig,
        extra: dict[str, Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> CallbackTransport:
        self.targets.append(target)
        transport = CallbackTransport(
            protocol,
            self._write,
            config=config,
            autoconnect=False,
            extra=extra,
            loop=loop,
        )
        self.transports.append(transport)

        if self.refuse > 0:
            self.refuse -= 1
            transport.fail_connection(TransportError("Connection refused"))
        elif self.autoconnect:
            transport.make_connection()
        return transport

    async def _write(self, data: str | bytes) -> None:
        self.writes.append(data)

    @property
    def transport(self) -> CallbackTransport:
        return self.transports[-1]

    @property
    def headers(self) -> list[dict[str, Any]]:
        """Return the decoded JSON messages (framed headers & pings)."""
        return [json.loads(w) for w in self.writes if isinstance(w, str)]

    @property
    def kinds(self) -> list[str]:
        return [h["type"] for h in self.headers]


async def settle(times: int = 5) -> None:
    """Let any scheduled callbacks (and the tasks they create) run."""
    for _ in range(times):
        await asyncio.sleep(0)


async def wait_for(predicate: Any, timeout: float = 1.0) -> None:
    """Wait until predicate() is truthy."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


