#!/usr/bin/env python3
"""Wearable relay - websocket-based event transport."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .. import exceptions as exc
from ..const import ABNORMAL_CLOSE_CODE, MANUAL_CLOSE_CODE, ReadyState
from .base import SZ_TARGET, TransportConfig, _FullTransport

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from ..interfaces import SupervisorInterface

_LOGGER = logging.getLogger(__name__)


class WebSocketTransport(_FullTransport):
    """Send framed events to a server via a websocket.

    The connection is opened by a background task: the supervisor learns of the
    outcome via connection_made() or connection_failed(). Messages from the
    server are passed on to data_received(), which only logs them.

    If the close was initiated here, the supervisor is told our own close code &
    reason, not whatever the server echoed back.
    """

    def __init__(
        self,
        url: str,
        protocol: SupervisorInterface,
        /,
        *,
        config: TransportConfig,
        extra: dict[str, Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(protocol, config=config, extra=extra, loop=loop)

        self._url = url
        self._extra[SZ_TARGET] = url

        self._ws: ClientConnection | None = None
        self._close_args: tuple[int, str] | None = None  # if we initiated the close

        self._close_task: asyncio.Task[None] | None = None
        self._init_task = self._loop.create_task(
            self._run(), name=f"{self.__class__.__name__}._run()"
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._url}, {self._ready_state.name})"

    async def _run(self) -> None:
        """Open the websocket, then read from it until it closes."""

        _LOGGER.debug("%s: connecting...", self)

        try:
            self._ws = await websockets.connect(
                self._url,
                open_timeout=self._config.open_timeout,
                close_timeout=self._config.close_timeout,
                ping_interval=self._config.ping_interval,
                ping_timeout=self._config.ping_timeout,
                max_size=self._config.max_size,
            )
        except (OSError, TimeoutError, WebSocketException) as err:
            _LOGGER.warning("%s: unable to connect: %r", self, err)
            self._close(exc.TransportError(f"Unable to connect to {self._url}: {err}"))
            return

        _LOGGER.info("%s: connected", self)
        self._make_connection()

        await self._read_loop(self._ws)

    async def _read_loop(self, ws: ClientConnection) -> None:
        err: Exception | None = None

        try:
            async for message in ws:
                self._protocol.data_received(self, message)

        except ConnectionClosed as e:
            err = exc.TransportError(f"Connection closed abnormally: {e}")
        except Exception as e:  # noqa: BLE001
            _LOGGER.error("%s: error while reading: %r", self, e)
            err = exc.TransportError(f"Error while reading: {e}")

        if self._close_args:  # we initiated the close
            code, reason = self._close_args
            err = None
        else:
            code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSE_CODE
            reason = ws.close_reason or ""

        _LOGGER.info("%s: closed (code=%s, reason=%r)", self, code, reason)
        self._close(err, code=code, reason=reason)

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Close the websocket, with the given code & reason."""

        if self._closing:
            return
        self._closing = True

        self._close_args = (code or MANUAL_CLOSE_CODE, reason or "")

        if self._ws is None:  # still connecting
            self._init_task.cancel("Closed while connecting")
            self._close(exc.TransportError("Closed while connecting"))
            return

        self._ready_state = ReadyState.CLOSING
        # the read loop will notice the closure, and report it
        self._close_task = self._loop.create_task(self._ws.close(*self._close_args))

    async def _write(self, data: str | bytes) -> None:
        assert self._ws is not None  # mypy (only OPEN transports get here)

        try:
            await self._ws.send(data)
        except ConnectionClosed as err:
            raise exc.TransportError(f"Unable to write: {err}") from err
