#!/usr/bin/env python3
"""Wearable relay - the listener supervisor (one per stream kind).

A StreamListener subscribes to a device's notifications for one kind of data
(audio, button or battery), and keeps it subscribed: failures are retried with
exponential backoff (with jitter), independently of any other stream kind.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

from .backoff import LISTENER_BACKOFF, BackoffPolicy
from .const import (
    DEFAULT_FLUSH_INTERVAL,
    NOTIFY_ERROR,
    NOTIFY_NOT_CONNECTED,
    StreamKind,
)
from .counter import PacketCounter
from .exceptions import ConnectivityError, ProtocolFsmError, TransportError
from .helpers import best_effort
from .lifecycle import LifecycleNotifier, LoggingNotifier
from .observable import ObservableState, StreamSnapshot
from .typing import (
    BytesHandlerT,
    PriorityFuncT,
    RetryContext,
    SubscribeFuncT,
    UnsubscribeFuncT,
)

_LOGGER = logging.getLogger(__name__)


class StreamState(StrEnum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    RETRYING = "retrying"
    FAILED = "failed"


# stop() may be called in any state, so Idle is reachable from everywhere
_TRANSITIONS: Final[dict[StreamState, frozenset[StreamState]]] = {
    StreamState.IDLE: frozenset({StreamState.SUBSCRIBING}),
    StreamState.SUBSCRIBING: frozenset(
        {StreamState.ACTIVE, StreamState.RETRYING, StreamState.FAILED, StreamState.IDLE}
    ),
    StreamState.ACTIVE: frozenset({StreamState.RETRYING, StreamState.IDLE}),
    StreamState.RETRYING: frozenset({StreamState.SUBSCRIBING, StreamState.IDLE}),
    StreamState.FAILED: frozenset({StreamState.IDLE}),
}


@dataclass(frozen=True)
class ListenerCapability:
    """How to subscribe to (and unsubscribe from) one kind of notification.

    :param subscribe: subscribe a bytes handler, returning a subscription handle
    :param unsubscribe: cancel the subscription with the given handle
    :param request_priority: request an elevated link priority (optional)
    """

    subscribe: SubscribeFuncT
    unsubscribe: UnsubscribeFuncT
    request_priority: PriorityFuncT | None = None


@dataclass
class ListenerConfig:
    """Configuration parameters for the listener supervisor."""

    backoff: BackoffPolicy = field(default_factory=lambda: LISTENER_BACKOFF)
    flush_interval: float = DEFAULT_FLUSH_INTERVAL
    reset_counter_on_stop: bool = True

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> ListenerConfig:
        """Create a config from a dict validated by SCH_LISTENER_CONFIG."""
        return cls(
            backoff=BackoffPolicy(
                base_delay=config["base_delay"],
                max_delay=config["max_delay"],
                max_attempts=config["max_attempts"],
                jitter=config["jitter"],
            ),
            flush_interval=config["flush_interval"],
            reset_counter_on_stop=config["reset_counter_on_stop"],
        )


class StreamListener:
    """The listener supervisor for one stream kind."""

    def __init__(
        self,
        kind: StreamKind,
        capability: ListenerCapability,
        /,
        *,
        is_connected: Callable[[], bool],
        config: ListenerConfig | None = None,
        notifier: LifecycleNotifier | None = None,
        observable: ObservableState | None = None,
    ) -> None:
        self.kind = kind
        self._capability = capability
        self._is_connected = is_connected
        self.config = config or ListenerConfig()
        self._notifier = notifier or LoggingNotifier()
        self.observable = observable or ObservableState()

        self.retry = RetryContext(target=str(kind))
        self.next_retry_delay: float | None = None

        self._state = StreamState.IDLE
        self._handler: BytesHandlerT | None = None
        self._subscription: Any = None
        self._retry_task: asyncio.Task[None] | None = None
        self._notify_task: asyncio.Task[Any] | None = None
        self._generation = 0  # bumped by start/stop, to detect stale attempts

        self.counter = PacketCounter(
            self._publish_count, flush_interval=self.config.flush_interval
        )

    def __repr__(self) -> str:
        return f"<StreamListener kind={self.kind}, state={self._state}>"

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def snapshot(self) -> StreamSnapshot:
        return self.observable.snapshot

    @property
    def is_active(self) -> bool:
        return self._state == StreamState.ACTIVE

    def _set_state(self, state: StreamState) -> None:
        if state == self._state:
            return
        if state not in _TRANSITIONS[self._state]:
            raise ProtocolFsmError(f"{self}: invalid transition to {state}")

        _LOGGER.debug(f"{self.kind} listener state changed {self._state}->{state}")
        self._state = state

    def _publish_count(self, total: int) -> None:
        self.observable.update(packets_received=total)

    def _on_bytes(self, data: bytes | bytearray) -> None:
        """Count every packet, and pass on the non-empty ones."""
        self.counter.increment()

        if not data or self._handler is None:
            return
        try:
            self._handler(bytes(data))
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("%s: exception from the data handler: %s", self, err)

    ####################################################################################
    # The public surface

    async def start(self, handler: BytesHandlerT) -> None:
        """Subscribe to the notifications, retrying as required until stop().

        :raises ConnectivityError: If the device is not connected.
        """

        if not self._is_connected():
            await best_effort(
                self._notifier.notify(
                    NOTIFY_NOT_CONNECTED,
                    f"Please connect to a device first to start {self.kind} listener.",
                ),
                "notify the user",
            )
            raise ConnectivityError(f"Device not connected: cannot start {self}")

        if self._state != StreamState.IDLE:
            _LOGGER.info("%s: already started, stopping first", self)
            await self.stop()

        self._handler = handler
        self._generation += 1
        self.retry.reset(str(self.kind), should_retry=True)
        self.observable.update(retry_attempts=0, last_error=None)

        _LOGGER.info("%s: starting...", self)
        self._set_state(StreamState.SUBSCRIBING)
        await self._attempt()

    async def stop(self) -> None:
        """Unsubscribe, and stop retrying. Safe to call in any state."""

        self.retry.should_retry = False
        self._generation += 1
        self._cancel_retry()

        subscription, self._subscription = self._subscription, None
        self._handler = None
        self._set_state(StreamState.IDLE)

        self.counter.stop(reset_total=self.config.reset_counter_on_stop)
        self.observable.update(is_active=False, is_retrying=False, retry_attempts=0)

        if subscription is None:
            _LOGGER.debug("%s: was not subscribed", self)
            return

        try:
            await self._capability.unsubscribe(subscription)
        except Exception as err:  # noqa: BLE001
            _LOGGER.error("%s: failed to stop: %r", self, err)
            self.observable.update(last_error=f"Failed to stop {self.kind} listener")
            await best_effort(
                self._notifier.notify(
                    NOTIFY_ERROR, f"Failed to stop {self.kind} listener: {err}"
                ),
                "notify the user",
            )
            return

        _LOGGER.info("%s: stopped", self)

    def connection_lost(self) -> None:
        """The device link was lost: resubscribe (via backoff) if active."""

        if self._state != StreamState.ACTIVE:
            return

        _LOGGER.warning("%s: device disconnected", self)
        self._subscription = None  # it died with the link
        self.counter.stop()
        self._handle_failure(TransportError("Device disconnected"))

    def close(self) -> None:
        """Detach from the owner: stop retrying & publishing, but stay subscribed."""

        self.retry.should_retry = False
        self._cancel_retry()
        self.counter.stop()
        self.observable.close()

    ####################################################################################
    # Subscribing & retrying

    async def _attempt(self) -> None:
        """Make one attempt to subscribe."""

        generation = self._generation

        try:
            if not self._is_connected():
                raise ConnectivityError("Device not connected")

            if self._capability.request_priority is not None:
                await best_effort(
                    self._capability.request_priority(),
                    "request high connection priority",
                )

            subscription = await self._capability.subscribe(self._on_bytes)
            if subscription is None:
                raise TransportError("No subscription was returned")

        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001
            _LOGGER.warning("%s: failed to subscribe: %r", self, err)
            if generation == self._generation:
                self._handle_failure(err)
            return

        if generation != self._generation or self._state != StreamState.SUBSCRIBING:
            # stopped while subscribing
            await best_effort(
                self._capability.unsubscribe(subscription), "unsubscribe (stale)"
            )
            return

        self._subscription = subscription
        self.retry.attempt_count = 0
        self._set_state(StreamState.ACTIVE)

        self.counter.reset()
        self.counter.start()
        self.observable.update(
            is_active=True, is_retrying=False, retry_attempts=0, last_error=None
        )
        _LOGGER.info("%s: started", self)

    def _handle_failure(self, err: Exception) -> None:
        self.observable.update(last_error=str(err) or err.__class__.__name__)

        if not self.retry.should_retry:
            self._set_state(StreamState.IDLE)
            self.observable.update(is_active=False, is_retrying=False)
            return

        delay = self.config.backoff.next_delay(self.retry)

        if delay is None:
            self._set_state(StreamState.FAILED)
            self.retry.should_retry = False
            self.observable.update(is_active=False, is_retrying=False)

            max_attempts = self.config.backoff.max_attempts
            _LOGGER.error("%s: giving up after %s attempts", self, max_attempts)
            self._notify_task = asyncio.create_task(
                best_effort(
                    self._notifier.notify(
                        f"{self.kind.title()} Listener Failed",
                        f"Failed to start {self.kind} listener after {max_attempts}"
                        " attempts. Please try again manually.",
                    ),
                    "notify the user",
                )
            )
            return

        self._set_state(StreamState.RETRYING)
        self.observable.update(
            is_active=False, is_retrying=True, retry_attempts=self.retry.attempt_count
        )

        _LOGGER.warning(
            "%s: retrying in %.1f secs (attempt %s/%s)",
            self,
            delay,
            self.retry.attempt_count,
            self.config.backoff.max_attempts,
        )
        self._cancel_retry()
        self.next_retry_delay = delay
        self._retry_task = asyncio.create_task(self._retry_after(delay))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)

        self._retry_task = None
        self.next_retry_delay = None

        # a stop() may have happened while waiting
        if not self.retry.should_retry or self._state != StreamState.RETRYING:
            return

        self._set_state(StreamState.SUBSCRIBING)
        await self._attempt()

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and self._retry_task is not asyncio.current_task():
            self._retry_task.cancel("Retry cancelled")
        self._retry_task = None
        self.next_retry_delay = None
