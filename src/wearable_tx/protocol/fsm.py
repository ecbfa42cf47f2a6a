#!/usr/bin/env python3
"""Wearable relay - the connection supervisor finite state machine.

This module owns the transport of a streaming unit, and manages its lifecycle:
connecting, the heartbeat, reconnection with exponential backoff, and recovery
when the network becomes reachable again.

    Idle --start()--> Connecting --opened--> Open
    Connecting --failed--> Retrying | FailedTerminal | Idle
    Open --closed (manual-stop)--> Idle
    Open --closed (otherwise)--> Retrying | FailedTerminal | Idle
    Retrying --delay elapsed, or network back--> Connecting
    (any) --stop()--> Idle
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from ..backoff import SOCKET_BACKOFF, BackoffPolicy
from ..codec import (
    AUDIO_PROFILE,
    PROFILES,
    FramedEvent,
    StreamProfile,
    encode_ping,
    write_event,
)
from ..const import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_KEEP_ALIVE_BODY,
    DEFAULT_KEEP_ALIVE_TITLE,
    ERR_NO_INTERNET,
    ERR_RECONNECTING,
    ERR_TARGET_REQUIRED,
    MANUAL_CLOSE_CODE,
    MANUAL_CLOSE_REASON,
    NOTIFY_CONNECTION_LOST,
    NOTIFY_RECONNECT_FAILED,
    ReadyState,
)
from ..exceptions import (
    ConnectivityError,
    RetryExhaustedError,
    TransportError,
    ValidationError,
)
from ..helpers import best_effort
from ..interfaces import SupervisorInterface, TransportInterface
from ..lifecycle import LifecycleNotifier, LoggingNotifier
from ..observable import ObservableState
from ..transport import TransportConfig, transport_factory
from ..typing import Reachability, RetryContext

if TYPE_CHECKING:
    from ..reachability import ReachabilityMonitor
    from ..transport import TransportConstructorT

_LOGGER = logging.getLogger(__name__)


@dataclass
class SupervisorConfig:
    """Configuration parameters for the connection supervisor."""

    backoff: BackoffPolicy = field(default_factory=lambda: SOCKET_BACKOFF)
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    profile: StreamProfile = AUDIO_PROFILE
    keep_alive_title: str = DEFAULT_KEEP_ALIVE_TITLE
    keep_alive_body: str = DEFAULT_KEEP_ALIVE_BODY
    stop_timeout: float = DEFAULT_CLOSE_TIMEOUT

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> SupervisorConfig:
        """Create a config from a dict validated by SCH_STREAMER_CONFIG."""
        return cls(
            backoff=BackoffPolicy(
                base_delay=config["base_delay"],
                max_delay=config["max_delay"],
                max_attempts=config["max_attempts"],
                jitter=config["jitter"],
            ),
            heartbeat_interval=config["heartbeat_interval"],
            profile=PROFILES[config["profile"]],
            keep_alive_title=config["keep_alive_title"],
            keep_alive_body=config["keep_alive_body"],
            stop_timeout=config.get("close_timeout", DEFAULT_CLOSE_TIMEOUT),
        )


def _is_manual_close(code: int | None, reason: str | None) -> bool:
    return code == MANUAL_CLOSE_CODE and reason == MANUAL_CLOSE_REASON


class ConnectionContext(SupervisorInterface):
    """The context for the connection supervisor finite state machine.

    Callers use start(), stop() and send_event(), and read the observable state;
    the transport & all timers are owned here, and are never exposed.
    """

    def __init__(
        self,
        /,
        *,
        config: SupervisorConfig | None = None,
        transport_config: TransportConfig | None = None,
        notifier: LifecycleNotifier | None = None,
        reachability: ReachabilityMonitor | None = None,
        transport_constructor: TransportConstructorT | None = None,
        observable: ObservableState | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the supervisor state machine context.

        :param config: The backoff, heartbeat, profile & keep-alive parameters.
        :type config: SupervisorConfig | None
        :param transport_config: The parameters passed to each new transport.
        :type transport_config: TransportConfig | None
        :param notifier: The lifecycle (keep-alive & notification) collaborator.
        :type notifier: LifecycleNotifier | None
        :param reachability: The network reachability collaborator (if None, the
            network is assumed to be reachable).
        :type reachability: ReachabilityMonitor | None
        :param transport_constructor: A custom async callable to create transports.
        :type transport_constructor: TransportConstructorT | None
        :param observable: The observable state to update.
        :type observable: ObservableState | None
        """
        self.config = config or SupervisorConfig()
        self._transport_config = transport_config or TransportConfig()
        self._notifier = notifier or LoggingNotifier()
        self._reachability = reachability
        self._transport_constructor = transport_constructor
        self.observable = observable or ObservableState()

        self._loop = loop or asyncio.get_running_loop()

        self.retry = RetryContext()
        self.manually_stopped = False
        self.next_retry_delay: float | None = None

        self._transport: TransportInterface | None = None
        self._retired: weakref.WeakSet[TransportInterface] = weakref.WeakSet()
        self._settled: asyncio.Future[None] | None = None
        self._starting = False
        self._epoch = 0  # bumped by stop(), so a suspended start() yields to it

        self._connect_task: asyncio.Task[None] | None = None
        self._open_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._retry_task: asyncio.Task[None] | None = None
        self._notify_task: asyncio.Task[None] | None = None

        self._remove_listener: Callable[[], None] | None = None
        self._was_online: bool | None = None

        self._state: _ConnectionStateT = None  # type: ignore[assignment]
        self.set_state(Idle)

    def __repr__(self) -> str:
        msg = f"<ConnectionContext state={self._state.__class__.__name__}"
        if self.retry.attempt_count:
            msg += f", attempt={self.retry.attempt_count}"
            msg += f"/{self.config.backoff.max_attempts}"
        return msg + ">"

    @property
    def state(self) -> _ConnectionStateT:
        """Return the current state of the FSM."""
        return self._state

    @property
    def is_open(self) -> bool:
        return isinstance(self._state, Open)

    @property
    def ready_state(self) -> ReadyState | None:
        """Return the ready state of the transport, if there is one."""
        return None if self._transport is None else self._transport.ready_state

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        if self._transport is None:
            return default
        return self._transport.get_extra_info(name, default)

    def set_state(
        self, state_class: _ConnectionStateClassT, err: Exception | None = None
    ) -> None:
        """Transition the state machine to a new state.

        Any timers armed by the previous state are cancelled before the new state
        is entered (so there is at most one timer of each kind).

        :param state_class: The new state class to transition to.
        :type state_class: _ConnectionStateClassT
        :param err: Any exception that caused the state transition.
        :type err: Exception | None
        """

        self._cancel_tasks()

        prev_state = self._state
        self._state = state_class(self)

        transition = f"{prev_state.__class__.__name__}->{state_class.__name__}"
        if err:
            _LOGGER.debug(f"FSM state changed {transition}: {err} (ctx={self})")
        else:
            _LOGGER.debug(f"FSM state changed {transition} (ctx={self})")

        self._state.enter(err)

    def _cancel_tasks(self) -> None:
        current = asyncio.current_task()  # may be one of these tasks

        for task in (
            self._connect_task,
            self._open_task,
            self._heartbeat_task,
            self._retry_task,
        ):
            if task is not None and task is not current and not task.done():
                task.cancel("Changing state")

        self._connect_task = self._open_task = None
        self._heartbeat_task = self._retry_task = None
        self.next_retry_delay = None

    def _settle(self) -> None:
        """Release any start() that is waiting for the first attempt to settle."""
        if self._settled is not None and not self._settled.done():
            self._settled.set_result(None)

    ####################################################################################
    # The public surface

    async def start(self, target: str) -> None:
        """Connect to a target, reconnecting as required until stop() is called.

        Returns once the first attempt has settled (opened, or failed). Transport
        failures are not raised here: they are reflected in the observable state.

        :raises ValidationError: If the target is empty.
        :raises ConnectivityError: If the network is unreachable.
        """

        target = (target or "").strip()
        if not target:
            self.observable.update(last_error=ERR_TARGET_REQUIRED)
            raise ValidationError(ERR_TARGET_REQUIRED)

        self._subscribe_reachability()

        epoch = self._epoch
        self._starting = True
        try:
            online = await self._is_online()
            if epoch != self._epoch:
                _LOGGER.info("%s: start(%s) was overtaken by stop()", self, target)
                return

            if not online:
                if isinstance(self._state, Idle):  # so a network-back will connect
                    self.retry.reset(target, should_retry=True)
                    self.manually_stopped = False
                self.observable.update(is_connecting=False, last_error=ERR_NO_INTERNET)
                raise ConnectivityError(ERR_NO_INTERNET)

            await self._acquire_keep_alive()
            if epoch != self._epoch:
                _LOGGER.info("%s: start(%s) was overtaken by stop()", self, target)
                await best_effort(self._notifier.release(), "release the keep-alive")
                return

            await self._retire_transport()  # any existing transport
            if epoch != self._epoch:
                return

            self.retry.reset(target, should_retry=True)
            self.manually_stopped = False
            self.observable.update(last_error=None)

            self._settled = self._loop.create_future()
            self.set_state(Connecting)
        finally:
            self._starting = False

        _LOGGER.info("%s: starting (target=%s)", self, target)
        await asyncio.shield(self._settled)

    async def stop(self) -> None:
        """Stop the session: close the transport with the manual-close signal.

        Safe to call in any state; the state is Idle before this first suspends.
        """

        self._epoch += 1
        self.manually_stopped = True
        self.retry.should_retry = False
        self.retry.attempt_count = 0

        transport, self._transport = self._transport, None
        self.set_state(Idle)

        if transport is not None:
            self._retired.add(transport)

            if transport.ready_state == ReadyState.OPEN:
                for event in self.config.profile.stop_events():
                    await best_effort(write_event(transport, event), f"send {event}")

            await self._close_transport(transport)

        await best_effort(self._notifier.release(), "release the keep-alive")
        _LOGGER.info("%s: stopped", self)

    async def send_event(self, event: FramedEvent) -> bool:
        """Send an event if the connection is open, returning True if it was sent.

        Exceptions from the transport are raised to the caller.
        """

        if not isinstance(self._state, Open):
            _LOGGER.debug("Not sending %s: %s is not open", event, self)
            return False
        return await write_event(self._transport, event)

    def close(self) -> None:
        """Detach from the owner: clear timers & listeners, but keep the session.

        The owner must still call stop() to end the session.
        """

        for task in (self._heartbeat_task, self._retry_task):
            if task is not None and not task.done():
                task.cancel("Context closed")
        self._heartbeat_task = self._retry_task = None

        if self._remove_listener:
            self._remove_listener()
            self._remove_listener = None
        self.observable.close()

    ####################################################################################
    # The supervisor interface (callbacks from the transport)

    def _is_current(self, transport: TransportInterface | None) -> bool:
        """Return True if the transport is the one being supervised."""

        if transport is None:  # the factory failed, so there was no transport
            return isinstance(self._state, Connecting)

        if transport is self._transport:
            return True

        # the transport may report before the factory has returned it
        if (
            self._transport is None
            and isinstance(self._state, Connecting)
            and transport not in self._retired
        ):
            self._transport = transport
            return True

        return False

    def connection_made(self, transport: TransportInterface) -> None:
        if not self._is_current(transport):
            _LOGGER.debug("%s: closing a stale transport: %s", self, transport)
            transport.close(MANUAL_CLOSE_CODE, MANUAL_CLOSE_REASON)
            return
        self._state.connection_made(transport)

    def connection_failed(
        self, transport: TransportInterface | None, err: Exception
    ) -> None:
        if not self._is_current(transport):
            _LOGGER.debug("%s: ignoring failure of a stale transport: %r", self, err)
            return
        self._transport = None
        self._state.connection_failed(err)

    def connection_lost(
        self,
        transport: TransportInterface,
        err: Exception | None,
        *,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        if not self._is_current(transport):
            _LOGGER.debug("%s: ignoring closure of a stale transport", self)
            return
        self._transport = None
        self._state.connection_lost(err, code, reason)

    def data_received(self, transport: TransportInterface, data: str | bytes) -> None:
        # replies from the server are informational only
        _LOGGER.info("%s: message received: %r", self, data)

    ####################################################################################
    # Transitions used by the states

    def _handle_failure(self, err: Exception | None, last_error: str | None) -> None:
        """Schedule a retry, or give up (if exhausted, or retrying is not wanted)."""

        if last_error:
            self.observable.update(last_error=last_error)

        if self.manually_stopped or not self.retry.should_retry:
            self.set_state(Idle, err=err)
            return

        delay = self.config.backoff.next_delay(self.retry)
        if delay is None:
            self.set_state(
                FailedTerminal,
                err=RetryExhaustedError(
                    f"Retry limit ({self.config.backoff.max_attempts}) reached"
                ),
            )
            return

        self.set_state(Retrying, err=err)
        self._arm_retry(delay)

    def _arm_retry(self, delay: float) -> None:
        self.next_retry_delay = delay
        self._retry_task = self._loop.create_task(self._retry_after(delay))

        _LOGGER.warning(
            "%s: reconnecting in %.1f secs (attempt %s/%s)",
            self,
            delay,
            self.retry.attempt_count,
            self.config.backoff.max_attempts,
        )

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._state.retry_due()

    async def _acquire_keep_alive(self) -> None:
        await best_effort(
            self._notifier.acquire(
                self.config.keep_alive_title, self.config.keep_alive_body
            ),
            "acquire the keep-alive",
        )

    async def _connect_pending(self) -> None:
        """Connect to the target left pending by an offline start()."""

        if self.manually_stopped or not self.retry.should_retry or not self.retry.target:
            return

        epoch = self._epoch
        await self._acquire_keep_alive()
        if epoch != self._epoch or not isinstance(self._state, Idle):
            return
        self._connect_now()

    def _connect_now(self) -> None:
        """Attempt to connect now, if retrying is (still) wanted."""
        if self.manually_stopped or not self.retry.should_retry or not self.retry.target:
            _LOGGER.debug("%s: not connecting: stopped, or no target", self)
            return
        self.set_state(Connecting)

    async def _open_transport(self) -> None:
        """Create the transport (it will report when it opens, or fails)."""

        try:
            # the network was checked by start(), but not for retries
            if self.retry.attempt_count > 0 and not await self._is_online():
                raise ConnectivityError(ERR_NO_INTERNET)

            transport = await transport_factory(
                self,
                self.retry.target,  # type: ignore[arg-type]
                config=self._transport_config,
                transport_constructor=self._transport_constructor,
                loop=self._loop,
            )

        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001
            _LOGGER.warning("%s: unable to create a transport: %r", self, err)
            self.connection_failed(None, err)
            return

        if self._transport is None and transport not in self._retired:
            self._transport = transport

    async def _send_open_events(self, transport: TransportInterface) -> None:
        for event in self.config.profile.open_events():
            await best_effort(write_event(transport, event), f"send {event}")
        self._settle()

    def _start_heartbeat(self, transport: TransportInterface) -> None:
        self._heartbeat_task = self._loop.create_task(self._heartbeat_loop(transport))

    async def _heartbeat_loop(self, transport: TransportInterface) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)

            if not isinstance(self._state, Open) or transport is not self._transport:
                return
            if transport.ready_state != ReadyState.OPEN:
                continue  # the close will be detected via connection_lost()

            try:
                await transport.write(encode_ping())
            except TransportError as err:
                _LOGGER.debug("%s: heartbeat failed (ignored): %s", self, err)

    async def _notify_exhausted(self) -> None:
        await best_effort(
            self._notifier.notify(NOTIFY_CONNECTION_LOST, NOTIFY_RECONNECT_FAILED),
            "notify the user",
        )

    async def _retire_transport(self) -> None:
        """Force-close any existing transport, and wait for it to close."""

        transport, self._transport = self._transport, None
        if not isinstance(self._state, Idle):
            self.set_state(Idle)

        if transport is not None:
            self._retired.add(transport)
            await self._close_transport(transport)

    async def _close_transport(self, transport: TransportInterface) -> None:
        transport.close(MANUAL_CLOSE_CODE, MANUAL_CLOSE_REASON)
        try:
            await asyncio.wait_for(transport.wait_closed(), self.config.stop_timeout)
        except TimeoutError:
            _LOGGER.warning("%s: transport did not close in time: %s", self, transport)

    ####################################################################################
    # Network reachability

    def _subscribe_reachability(self) -> None:
        if self._reachability is None or self._remove_listener is not None:
            return
        self._remove_listener = self._reachability.add_listener(
            self._reachability_changed
        )

    async def _is_online(self) -> bool:
        if self._reachability is None:
            return True

        try:
            state = await self._reachability.fetch()
        except Exception as err:  # noqa: BLE001
            _LOGGER.warning("%s: reachability unknown (assumed online): %r", self, err)
            return True

        self._was_online = state.is_online
        return state.is_online

    def _reachability_changed(self, state: Reachability) -> None:
        was_online, self._was_online = self._was_online, state.is_online

        if not state.is_online or was_online or self._starting:
            return

        _LOGGER.info("%s: network is reachable again", self)
        self._state.network_restored()


class ConnectionStateBase:
    """The base class for the connection supervisor states."""

    def __init__(self, context: ConnectionContext) -> None:
        self._context = context

    def __repr__(self) -> str:
        return f"<ConnectionState state={self.__class__.__name__}>"

    def enter(self, err: Exception | None) -> None:
        """Perform the side effects of entering this state."""

    def connection_made(self, transport: TransportInterface) -> None:
        _LOGGER.warning("%s: unexpected connection_made()", self._context)

    def connection_failed(self, err: Exception) -> None:
        _LOGGER.debug("%s: ignoring connection_failed(): %r", self._context, err)

    def connection_lost(
        self, err: Exception | None, code: int | None, reason: str | None
    ) -> None:
        _LOGGER.debug("%s: ignoring connection_lost(): %r", self._context, err)

    def retry_due(self) -> None:
        _LOGGER.debug("%s: ignoring a retry timer", self._context)

    def network_restored(self) -> None:
        pass


class Idle(ConnectionStateBase):
    """There is no transport, and none is being attempted."""

    def enter(self, err: Exception | None) -> None:
        self._context.observable.update(
            is_active=False,
            is_connecting=False,
            is_retrying=False,
            retry_attempts=self._context.retry.attempt_count,
        )
        self._context._settle()

    def network_restored(self) -> None:
        ctx = self._context
        if not ctx.retry.target:
            return
        _LOGGER.info("%s: network is back, connecting to pending target", ctx)
        # a stop() (i.e. set_state) cancels this task
        ctx._connect_task = ctx._loop.create_task(ctx._connect_pending())


class Connecting(ConnectionStateBase):
    """A transport is being opened."""

    def enter(self, err: Exception | None) -> None:
        ctx = self._context
        ctx.observable.update(is_active=False, is_connecting=True)
        ctx._connect_task = ctx._loop.create_task(ctx._open_transport())

    def connection_made(self, transport: TransportInterface) -> None:
        self._context.set_state(Open)

    def connection_failed(self, err: Exception) -> None:
        self._context._handle_failure(err, str(err) or err.__class__.__name__)

    def connection_lost(
        self, err: Exception | None, code: int | None, reason: str | None
    ) -> None:
        self._context._handle_failure(err, ERR_RECONNECTING)


class Open(ConnectionStateBase):
    """The transport is open: events may be sent."""

    def enter(self, err: Exception | None) -> None:
        ctx = self._context
        assert ctx._transport is not None  # mypy

        ctx.retry.attempt_count = 0
        ctx.observable.update(
            is_active=True,
            is_connecting=False,
            is_retrying=False,
            retry_attempts=0,
            last_error=None,
        )
        _LOGGER.info("%s: connection open", ctx)

        ctx._start_heartbeat(ctx._transport)
        ctx._open_task = ctx._loop.create_task(ctx._send_open_events(ctx._transport))

    def connection_lost(
        self, err: Exception | None, code: int | None, reason: str | None
    ) -> None:
        ctx = self._context
        _LOGGER.info("%s: connection closed (code=%s, reason=%r)", ctx, code, reason)

        if _is_manual_close(code, reason):
            ctx.retry.should_retry = False
            ctx.set_state(Idle)
            return

        ctx._handle_failure(err, ERR_RECONNECTING)


class Retrying(ConnectionStateBase):
    """The retry timer is armed; when it fires, a new transport is attempted."""

    def enter(self, err: Exception | None) -> None:
        ctx = self._context
        ctx.observable.update(
            is_active=False,
            is_connecting=True,
            is_retrying=True,
            retry_attempts=ctx.retry.attempt_count,
        )
        ctx._settle()

    def retry_due(self) -> None:
        # a stop() may have happened while waiting
        self._context._connect_now()

    def network_restored(self) -> None:
        _LOGGER.info("%s: network is back, retrying now", self._context)
        self._context._connect_now()


class FailedTerminal(ConnectionStateBase):
    """The retry limit was reached: nothing more happens until the next start()."""

    def enter(self, err: Exception | None) -> None:
        ctx = self._context

        ctx.manually_stopped = True
        ctx.retry.should_retry = False
        ctx.observable.update(
            is_active=False,
            is_connecting=False,
            is_retrying=False,
            last_error=NOTIFY_RECONNECT_FAILED,
        )
        _LOGGER.error("%s: giving up: %s", ctx, err)

        # the keep-alive is held until stop()
        ctx._notify_task = ctx._loop.create_task(ctx._notify_exhausted())
        ctx._settle()


_ConnectionStateT: TypeAlias = Idle | Connecting | Open | Retrying | FailedTerminal
_ConnectionStateClassT: TypeAlias = (
    type[Idle] | type[Connecting] | type[Open] | type[Retrying] | type[FailedTerminal]
)
