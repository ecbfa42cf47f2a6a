#!/usr/bin/env python3
"""Wearable relay - interfaces for the transport/supervisor stack."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from .const import ReadyState, StreamKind
    from .listener import ListenerCapability


class TransportInterface(ABC):
    """Interface for the (websocket-like) Transport layer."""

    @property
    @abstractmethod
    def ready_state(self) -> ReadyState:
        """Return the current ready state of the transport."""

    @abstractmethod
    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Close the transport, with an optional close code and reason."""

    @abstractmethod
    def get_extra_info(self, name: str, default: Any = None) -> Any:
        """Get extra information about the transport."""

    @abstractmethod
    def is_closing(self) -> bool:
        """Return True if the transport is closing or closed."""

    @abstractmethod
    async def wait_closed(self) -> None:
        """Wait until the transport has finished closing."""

    @abstractmethod
    async def write(self, data: str | bytes) -> None:
        """Write a text or binary message."""


class SupervisorInterface(ABC):
    """Interface for the layer that owns (and supervises) a transport.

    A transport reports each of these at most once, except data_received.
    """

    @abstractmethod
    def connection_made(self, transport: TransportInterface) -> None:
        """Called when the transport has opened."""

    @abstractmethod
    def connection_failed(self, transport: TransportInterface, err: Exception) -> None:
        """Called when the transport could not be opened."""

    @abstractmethod
    def connection_lost(
        self,
        transport: TransportInterface,
        err: Exception | None,
        *,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        """Called when an open transport has closed (or failed)."""

    @abstractmethod
    def data_received(self, transport: TransportInterface, data: str | bytes) -> None:
        """Called when a message is received from the server."""


class DeviceInterface(ABC):
    """Interface for a (BLE) device that exposes notify channels."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Return True if the device is currently connected."""

    @abstractmethod
    def capability(self, kind: StreamKind) -> ListenerCapability:
        """Return the subscribe/unsubscribe capability for a stream kind."""

    def add_disconnect_listener(
        self, listener: Callable[[], None]
    ) -> Callable[[], None]:
        """Call a listener when the link is lost unexpectedly; return a remover.

        Devices that cannot detect a lost link need not override this.
        """
        return lambda: None
