#!/usr/bin/env python3
"""Wearable relay - callback-based event transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from .. import exceptions as exc
from ..const import ABNORMAL_CLOSE_CODE, NORMAL_CLOSE_CODE, ReadyState
from .base import TransportConfig, _FullTransport

if TYPE_CHECKING:
    from ..interfaces import SupervisorInterface

_LOGGER = logging.getLogger(__name__)


class CallbackTransport(_FullTransport):
    """A virtual transport that delegates I/O to external callbacks.

    The owner of the writer injects inbound data with receive(), and a closure by
    the peer with remote_close(). If autoconnect is False, the owner decides
    whether the transport opens (make_connection) or fails (fail_connection).
    """

    def __init__(
        self,
        protocol: SupervisorInterface,
        io_writer: Callable[[str | bytes], Awaitable[None]],
        /,
        *,
        config: TransportConfig,
        autoconnect: bool = True,
        extra: dict[str, Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(protocol, config=config, extra=extra, loop=loop)

        self._io_writer = io_writer

        _LOGGER.info(f"CallbackTransport created with io_writer={io_writer}")

        if autoconnect:
            self._make_connection()

    def make_connection(self) -> None:
        """Open the transport (i.e. the peer has accepted the connection)."""
        self._make_connection()

    def fail_connection(self, err: Exception | None = None) -> None:
        """Fail the transport before it opens (e.g. the peer is unreachable)."""
        if self._ready_state != ReadyState.CONNECTING:
            raise exc.TransportError(f"Transport is not connecting: {self}")
        self._close(err or exc.TransportError("Connection refused"))

    async def _write(self, data: str | bytes) -> None:
        """Pass the message to the external writer."""

        _LOGGER.debug(f"Sending message via external writer: {data!r}")

        try:
            await self._io_writer(data)
        except Exception as err:
            _LOGGER.error(f"External writer failed to send message: {err}")
            raise exc.TransportError(f"External writer failed: {err}") from err

    def receive(self, data: str | bytes) -> None:
        """Ingest a message from the external source (read path)."""

        if self._ready_state != ReadyState.OPEN:
            _LOGGER.debug(f"Dropping received message (transport not open): {data!r}")
            return

        self._protocol.data_received(self, data)

    def remote_close(self, code: int = ABNORMAL_CLOSE_CODE, reason: str = "") -> None:
        """Close the transport as if by the peer (or by a network failure)."""

        err = (
            None
            if code == NORMAL_CLOSE_CODE
            else exc.TransportError(f"Closed by peer: {code}")
        )
        self._close(err, code=code, reason=reason)
