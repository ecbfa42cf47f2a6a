#!/usr/bin/env python3
"""Wearable relay - a packet counter that publishes at a fixed cadence."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .const import DEFAULT_FLUSH_INTERVAL
from .typing import PublishHandlerT

_LOGGER = logging.getLogger(__name__)


class PacketCounter:
    """Count packets, publishing the running total at most once per flush interval.

    increment() is cheap and synchronous (it may be called from a notification
    callback for every packet); the total is pushed to publish() by a flush task.
    """

    def __init__(
        self,
        publish: PublishHandlerT,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> None:
        self._publish = publish
        self._flush_interval = flush_interval

        self._pending = 0  # since the last flush
        self._total = 0
        self._flush_task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(total={self._total}, pending={self._pending})"

    @property
    def total(self) -> int:
        """Return the total, including any pending (unpublished) packets."""
        return self._total + self._pending

    @property
    def is_running(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def increment(self, count: int = 1) -> None:
        self._pending += count

    def flush(self) -> None:
        """Fold the pending count into the total and publish it, if it changed."""
        if not self._pending:
            return
        self._total += self._pending
        self._pending = 0
        self._publish(self._total)

    def reset(self) -> None:
        self._pending = 0
        self._total = 0
        self._publish(0)

    def start(self) -> None:
        """Start the periodic flush (restarting it, if it is running)."""
        self._cancel_flush()
        self._flush_task = asyncio.create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            self.flush()

    def stop(self, *, reset_total: bool = False) -> None:
        """Stop the periodic flush, publishing (or discarding) the pending count."""
        self._cancel_flush()
        if reset_total:
            self.reset()
        else:
            self.flush()

    def _cancel_flush(self) -> None:
        if self._flush_task and not self._flush_task.done():
            self._flush_task.cancel()
        self._flush_task = None

    async def wait_stopped(self) -> None:
        if self._flush_task:
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
