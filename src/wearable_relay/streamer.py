#!/usr/bin/env python3
"""Wearable relay - the streamer (a supervised websocket, with one send per kind).

The streamer is the public surface of a streaming unit: start(url), stop(), a send
operation per stream kind, the ready state, and the observable snapshot. All the
connection management is delegated to a ConnectionContext.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from wearable_tx.counter import PacketCounter
from wearable_tx.lifecycle import LifecycleNotifier
from wearable_tx.observable import ObservableState, StreamSnapshot
from wearable_tx.protocol import ConnectionContext, SupervisorConfig
from wearable_tx.transport import TransportConfig

from .const import ReadyState, StreamKind
from .exceptions import TransportError
from .schemas import SCH_STREAMER_CONFIG

if TYPE_CHECKING:
    from wearable_tx.reachability import ReachabilityMonitor
    from wearable_tx.transport import TransportConstructorT

_LOGGER = logging.getLogger(__name__)


class Streamer:
    """Stream framed events (audio, button & battery) to a websocket server."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        /,
        *,
        reachability: ReachabilityMonitor | None = None,
        notifier: LifecycleNotifier | None = None,
        transport_constructor: TransportConstructorT | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the streamer (must be called from within a running loop).

        :param config: The streamer config, validated by SCH_STREAMER_CONFIG.
        :type config: dict[str, Any] | None
        :param reachability: The network reachability collaborator.
        :type reachability: ReachabilityMonitor | None
        :param notifier: The lifecycle (keep-alive & notification) collaborator.
        :type notifier: LifecycleNotifier | None
        :param transport_constructor: A custom async callable to create transports.
        :type transport_constructor: TransportConstructorT | None
        :raises vol.Invalid: If the config is invalid.
        """

        self.config = SCH_STREAMER_CONFIG(config or {})

        self.observable = ObservableState()
        self._context = ConnectionContext(
            config=SupervisorConfig.from_dict(self.config),
            transport_config=TransportConfig.from_dict(self.config),
            notifier=notifier,
            reachability=reachability,
            transport_constructor=transport_constructor,
            observable=self.observable,
            loop=loop,
        )

        self._counter = PacketCounter(
            self._publish_count, flush_interval=self.config["flush_interval"]
        )
        self._unsubscribe = self.observable.subscribe(self._state_changed)

    def __repr__(self) -> str:
        return f"<Streamer context={self._context}>"

    @property
    def context(self) -> ConnectionContext:
        return self._context

    @property
    def snapshot(self) -> StreamSnapshot:
        return self.observable.snapshot

    @property
    def is_streaming(self) -> bool:
        return self._context.is_open

    def get_ready_state(self) -> ReadyState:
        """Return the ready state of the transport (CLOSED if there is none)."""
        state = self._context.ready_state
        return ReadyState.CLOSED if state is None else state

    def subscribe(self, observer: Callable[[StreamSnapshot], None]) -> Callable[[], None]:
        """Add an observer of the snapshot, returning a callable that removes it."""
        return self.observable.subscribe(observer)

    def _publish_count(self, total: int) -> None:
        self.observable.update(packets_sent=total)

    def _state_changed(self, snapshot: StreamSnapshot) -> None:
        # count (i.e. flush) only while there is a connection
        if snapshot.is_active and not self._counter.is_running:
            self._counter.start()
        elif not snapshot.is_active and self._counter.is_running:
            self._counter.stop()

    ####################################################################################
    # The session

    async def start(self, url: str) -> None:
        """Start streaming to a websocket server.

        :raises ValidationError: If the URL is empty.
        :raises ConnectivityError: If the network is unreachable.
        """

        if (url or "").strip():
            self._counter.reset()
        await self._context.start(url)

    async def stop(self) -> None:
        """Stop streaming (closing the websocket with the manual-close signal)."""
        await self._context.stop()
        self._counter.stop()

    def close(self) -> None:
        """Detach from the owner (e.g. the UI) without ending the session."""
        self._unsubscribe()
        self._counter.stop()
        self._context.close()

    ####################################################################################
    # The channels

    async def send(self, kind: StreamKind, payload: bytes) -> bool:
        """Send a payload on a channel, returning True if it was sent.

        This never raises: a send when not open, of an empty payload, or on a
        channel not enabled by the profile is a no-op, and a failed send is
        reflected only in the snapshot's last_error.
        """

        if not payload:
            _LOGGER.debug("Not sending %s: the payload is empty", kind)
            return False

        if not self._context.is_open:
            _LOGGER.debug("Not sending %s: %s is not open", kind, self._context)
            return False

        event = self._context.config.profile.channel_event(kind, bytes(payload))
        if event is None:
            _LOGGER.debug("Not sending %s: the channel is not enabled", kind)
            return False

        try:
            sent = await self._context.send_event(event)
        except TransportError as err:
            _LOGGER.warning("%s: failed to send %s: %s", self, kind, err)
            self.observable.update(last_error=f"Failed to send {kind}: {err}")
            return False

        if sent:
            self._counter.increment()
        return sent

    async def send_audio(self, payload: bytes) -> bool:
        return await self.send(StreamKind.AUDIO, payload)

    async def send_button(self, payload: bytes) -> bool:
        return await self.send(StreamKind.BUTTON, payload)

    async def send_battery(self, payload: bytes) -> bool:
        return await self.send(StreamKind.BATTERY, payload)
