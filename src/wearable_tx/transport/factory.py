#!/usr/bin/env python3
"""Wearable relay - factory for event transports."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeAlias
from urllib.parse import urlparse

from .. import exceptions as exc
from ..interfaces import TransportInterface
from .base import TransportConfig
from .websocket import WebSocketTransport

if TYPE_CHECKING:
    from ..interfaces import SupervisorInterface

_LOGGER = logging.getLogger(__name__)

RelayTransportT: TypeAlias = TransportInterface
TransportConstructorT: TypeAlias = Callable[..., Awaitable[RelayTransportT]]

_WEBSOCKET_SCHEMES = ("ws", "wss")


async def transport_factory(
    protocol: SupervisorInterface,
    target: str,
    /,
    *,
    config: TransportConfig,
    transport_constructor: TransportConstructorT | None = None,
    extra: dict[str, Any] | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> RelayTransportT:
    """Create and return an event transport for a target.

    The transport will report to the protocol (supervisor) when it opens or fails;
    this function does not wait for that.

    :param protocol: The supervisor that will own this transport.
    :type protocol: SupervisorInterface
    :param target: The target, usu. a ws:// or wss:// URL.
    :type target: str
    :param config: Setup configuration for transports.
    :type config: TransportConfig
    :param transport_constructor: Custom async callable to create a transport, defaults to None.
    :type transport_constructor: TransportConstructorT | None, optional
    :param extra: Extra information to be made available via get_extra_info().
    :type extra: dict[str, Any] | None, optional
    :param loop: Asyncio event loop, defaults to None.
    :type loop: asyncio.AbstractEventLoop | None, optional
    :return: An instantiated transport.
    :rtype: RelayTransportT
    :raises exc.TransportSourceInvalid: If the target is not a websocket URL.
    """

    # If a constructor is provided, delegate entirely to it.
    if transport_constructor:
        _LOGGER.debug("transport_factory: Delegating to external transport_constructor")
        return await transport_constructor(
            protocol,
            target,
            config=config,
            extra=extra,
            loop=loop,
        )

    url = urlparse(target)
    if url.scheme not in _WEBSOCKET_SCHEMES or not url.netloc:
        raise exc.TransportSourceInvalid(f"Not a websocket URL: {target}")

    return WebSocketTransport(target, protocol, config=config, extra=extra, loop=loop)
