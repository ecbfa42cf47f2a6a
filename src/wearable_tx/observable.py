#!/usr/bin/env python3
"""Wearable relay - read-only observable state, for UI (or CLI) binding."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamSnapshot:
    """A point-in-time view of a streaming unit (or of one stream kind)."""

    is_active: bool = False
    is_connecting: bool = False
    last_error: str | None = None
    packets_received: int = 0
    packets_sent: int = 0
    is_retrying: bool = False
    retry_attempts: int = 0


class ObservableState:
    """Hold a snapshot, and notify observers when (and only when) it changes.

    Once closed (i.e. the consumer has been torn down), updates are dropped.
    """

    def __init__(self, initial: StreamSnapshot | None = None) -> None:
        self._snapshot = initial or StreamSnapshot()
        self._observers: list[Callable[[StreamSnapshot], None]] = []
        self._closed = False

    @property
    def snapshot(self) -> StreamSnapshot:
        return self._snapshot

    @property
    def is_closed(self) -> bool:
        return self._closed

    def update(self, **changes: Any) -> bool:
        """Apply changes to the snapshot; return True if observers were notified."""

        if self._closed:
            _LOGGER.debug("Dropped an update after close: %s", changes)
            return False

        new = dataclasses.replace(self._snapshot, **changes)
        if new == self._snapshot:
            return False

        self._snapshot = new
        for observer in list(self._observers):
            try:
                observer(new)
            except Exception as err:  # noqa: BLE001
                _LOGGER.error("Observer %s raised an exception: %r", observer, err)
        return True

    def subscribe(
        self, observer: Callable[[StreamSnapshot], None]
    ) -> Callable[[], None]:
        """Add an observer, returning a callable that removes it."""

        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def close(self) -> None:
        self._closed = True
        self._observers.clear()
