#!/usr/bin/env python3
"""Wearable relay - helper functions."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from typing import TypeVar

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


async def best_effort(awaitable: Awaitable[_T], what: str) -> _T | None:
    """Await something whose failure should not abort the caller.

    The failure is logged (as a warning) and None is returned instead.
    """
    try:
        return await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as err:  # noqa: BLE001
        _LOGGER.warning("Failed to %s (ignored): %r", what, err)
        return None


def timestamp_ms() -> int:
    """Return the wall-clock time, in milliseconds since the epoch."""
    return int(time.time() * 1000)
