#!/usr/bin/env python3
"""Wearable relay - the lifecycle notifier (keep-alive & user-visible status).

On a phone this is a foreground service and local notifications; here it is an
interface, with a default implementation that only logs.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import ClassVar

_LOGGER = logging.getLogger(__name__)


class LifecycleNotifier(ABC):
    """Keep the process alive while streaming, and tell the user about failures.

    All methods are best-effort: callers log and discard any exception.

    Any process-wide registration (e.g. of a background task with the platform) is
    done by ensure_registered(), which runs _register() at most once per process
    for each subclass, however many instances there are.
    """

    _registered: ClassVar[set[type[LifecycleNotifier]]] = set()
    _register_lock: ClassVar[threading.Lock] = threading.Lock()

    def ensure_registered(self) -> bool:
        """Run the one-time registration, if required. Return True if it was run."""
        cls = type(self)
        with LifecycleNotifier._register_lock:
            if cls in LifecycleNotifier._registered:
                return False
            self._register()
            LifecycleNotifier._registered.add(cls)
        return True

    def _register(self) -> None:  # noqa: B027
        """Perform the process-wide registration (default: nothing to do)."""

    @abstractmethod
    async def acquire(self, title: str, body: str) -> None:
        """Start the keep-alive (e.g. a foreground service with a notification)."""

    @abstractmethod
    async def release(self) -> None:
        """Stop the keep-alive."""

    @abstractmethod
    async def notify(self, title: str, body: str) -> None:
        """Show a one-off message to the user."""


class LoggingNotifier(LifecycleNotifier):
    """A notifier that logs, and keeps track of whether the keep-alive is held."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _LOGGER
        self.is_held = False

    async def acquire(self, title: str, body: str) -> None:
        self.ensure_registered()
        if not self.is_held:
            self._logger.info("Keep-alive acquired: %s - %s", title, body)
        self.is_held = True

    async def release(self) -> None:
        if self.is_held:
            self._logger.info("Keep-alive released")
        self.is_held = False

    async def notify(self, title: str, body: str) -> None:
        self._logger.warning("%s: %s", title, body)
