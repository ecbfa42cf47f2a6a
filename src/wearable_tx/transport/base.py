#!/usr/bin/env python3
"""Wearable relay - base classes for (websocket-like) event transports."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime as dt, timedelta as td
from typing import TYPE_CHECKING, Any

from .. import exceptions as exc
from ..const import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_PING_INTERVAL,
    ReadyState,
)
from ..interfaces import TransportInterface

if TYPE_CHECKING:
    from ..interfaces import SupervisorInterface

_LOGGER = logging.getLogger(__name__)

_MAX_TRACKED_TRANSMITS = 99
_MAX_TRACKED_DURATION = 300

SZ_TX_RATE = "tx_rate"
SZ_TARGET = "target"


@dataclass
class TransportConfig:
    """Configuration parameters for transports.

    The timeouts bound each connection attempt; ping_interval is the transport's
    own keepalive (not the supervisor's heartbeat), and None disables it.
    """

    open_timeout: float | None = DEFAULT_OPEN_TIMEOUT
    close_timeout: float | None = DEFAULT_CLOSE_TIMEOUT
    ping_interval: float | None = DEFAULT_PING_INTERVAL
    ping_timeout: float | None = DEFAULT_PING_INTERVAL
    max_size: int | None = 2**20

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> TransportConfig:
        """Create a config from a (validated) dict, ignoring any unrelated keys."""
        keys = ("open_timeout", "close_timeout", "ping_interval")
        return cls(**{k: config[k] for k in keys if k in config})


class _BaseTransport(TransportInterface):
    """Base class for all transports.

    A transport reports to its supervisor exactly once, either connection_failed()
    (it never opened) or connection_lost() (it opened, and then closed); both are
    scheduled via the loop rather than called directly.
    """

    _protocol: SupervisorInterface
    _loop: asyncio.AbstractEventLoop

    def __init__(
        self,
        protocol: SupervisorInterface,
        /,
        *,
        config: TransportConfig,
        extra: dict[str, Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._protocol = protocol
        self._loop = loop or asyncio.get_running_loop()
        self._config = config
        self._extra: dict[str, Any] = {} if extra is None else extra

        self._ready_state = ReadyState.CONNECTING
        self._closing: bool = False  # a close has been requested, or has happened
        self._closed_fut: asyncio.Future[None] = self._loop.create_future()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._ready_state.name})"

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        """Get extra information about the transport."""
        return self._extra.get(name, default)

    def is_closing(self) -> bool:
        """Return True if the transport is closing or has closed."""
        return self._closing

    async def wait_closed(self) -> None:
        """Wait until the transport has closed (and has reported it)."""
        await asyncio.shield(self._closed_fut)

    def _make_connection(self) -> None:
        """Register the connection with the supervisor."""
        if self._ready_state != ReadyState.CONNECTING:
            return
        self._ready_state = ReadyState.OPEN

        self.loop.call_soon_threadsafe(
            functools.partial(self._protocol.connection_made, self)
        )

    def _close(
        self,
        err: Exception | None = None,
        *,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        """Inform the supervisor that this transport has closed (or never opened)."""
        if self._ready_state == ReadyState.CLOSED:
            return

        was_open = self._ready_state in (ReadyState.OPEN, ReadyState.CLOSING)
        self._ready_state = ReadyState.CLOSED
        self._closing = True

        if not self._closed_fut.done():
            self._closed_fut.set_result(None)

        if was_open:
            self.loop.call_soon_threadsafe(
                functools.partial(
                    self._protocol.connection_lost,
                    self,
                    err,
                    code=code,
                    reason=reason,
                )
            )
        else:
            self.loop.call_soon_threadsafe(
                self._protocol.connection_failed,
                self,
                err or exc.TransportError("Transport closed before it opened"),
            )

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Close the transport gracefully."""
        self._closing = True
        self._close(code=code, reason=reason)


class _FullTransport(_BaseTransport):
    """Base class for bidirectional transports (with tx rate tracking)."""

    def __init__(
        self,
        protocol: SupervisorInterface,
        /,
        *,
        config: TransportConfig,
        extra: dict[str, Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(protocol, config=config, extra=extra, loop=loop)

        self._transmit_times: deque[dt] = deque(maxlen=_MAX_TRACKED_TRANSMITS)

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        """Get extra info, including transmit rate calculations."""
        if name == SZ_TX_RATE:
            return self._report_transmit_rate()
        return super().get_extra_info(name, default=default)

    def _report_transmit_rate(self) -> float:
        """Return the transmit rate in transmits per minute."""
        dtm = dt.now() - td(seconds=_MAX_TRACKED_DURATION)
        transmit_times = tuple(t for t in self._transmit_times if t > dtm)

        if len(transmit_times) <= 1:
            return float(len(transmit_times))

        duration: float = (transmit_times[-1] - transmit_times[0]) / td(seconds=1)
        if not duration:
            return float(len(transmit_times))
        return int(len(transmit_times) / duration * 6000) / 100

    def _track_transmit_rate(self) -> None:
        self._transmit_times.append(dt.now())

    async def write(self, data: str | bytes) -> None:
        """Write a message via the underlying handler."""
        if self._closing:
            raise exc.TransportError("Transport is closing or has closed")
        if self._ready_state != ReadyState.OPEN:
            raise exc.TransportError(f"Transport is not open ({self._ready_state.name})")

        self._track_transmit_rate()
        await self._write(data)

    async def _write(self, data: str | bytes) -> None:
        """Write a message to the underlying handler."""
        raise NotImplementedError("_write() not implemented here")
