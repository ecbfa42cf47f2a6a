#!/usr/bin/env python3
"""Wearable relay - schemas for the configuration of supervisors & transports."""

from __future__ import annotations

from typing import Any, Final

import voluptuous as vol

from .codec import PROFILES
from .const import (
    DEFAULT_BASE_DELAY,
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_KEEP_ALIVE_BODY,
    DEFAULT_KEEP_ALIVE_TITLE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_PING_INTERVAL,
    LISTENER_BASE_DELAY,
    LISTENER_JITTER,
    LISTENER_MAX_DELAY,
)

SZ_BASE_DELAY: Final = "base_delay"
SZ_MAX_DELAY: Final = "max_delay"
SZ_MAX_ATTEMPTS: Final = "max_attempts"
SZ_JITTER: Final = "jitter"
SZ_HEARTBEAT_INTERVAL: Final = "heartbeat_interval"
SZ_FLUSH_INTERVAL: Final = "flush_interval"
SZ_PROFILE: Final = "profile"
SZ_OPEN_TIMEOUT: Final = "open_timeout"
SZ_CLOSE_TIMEOUT: Final = "close_timeout"
SZ_PING_INTERVAL: Final = "ping_interval"
SZ_KEEP_ALIVE_TITLE: Final = "keep_alive_title"
SZ_KEEP_ALIVE_BODY: Final = "keep_alive_body"
SZ_RESET_COUNTER_ON_STOP: Final = "reset_counter_on_stop"

_SECONDS = vol.All(vol.Coerce(float), vol.Range(min=0))
_POSITIVE_SECONDS = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))
_JITTER = vol.All(vol.Coerce(float), vol.Range(min=0, max=1))
_ATTEMPTS = vol.All(int, vol.Range(min=1))


def sch_backoff_dict_factory(
    base_delay: float, max_delay: float, jitter: float
) -> dict[vol.Optional, Any]:
    """Return a backoff schema dict, with the given defaults."""
    return {
        vol.Optional(SZ_BASE_DELAY, default=base_delay): _SECONDS,
        vol.Optional(SZ_MAX_DELAY, default=max_delay): _SECONDS,
        vol.Optional(SZ_MAX_ATTEMPTS, default=DEFAULT_MAX_ATTEMPTS): _ATTEMPTS,
        vol.Optional(SZ_JITTER, default=jitter): _JITTER,
    }


SCH_TRANSPORT_CONFIG_DICT: Final = {
    vol.Optional(SZ_OPEN_TIMEOUT, default=DEFAULT_OPEN_TIMEOUT): _POSITIVE_SECONDS,
    vol.Optional(SZ_CLOSE_TIMEOUT, default=DEFAULT_CLOSE_TIMEOUT): _POSITIVE_SECONDS,
    vol.Optional(SZ_PING_INTERVAL, default=DEFAULT_PING_INTERVAL): vol.Any(
        None, _POSITIVE_SECONDS
    ),
}

SCH_SUPERVISOR_CONFIG_DICT: Final = {
    **sch_backoff_dict_factory(DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY, 0.0),
    vol.Optional(
        SZ_HEARTBEAT_INTERVAL, default=DEFAULT_HEARTBEAT_INTERVAL
    ): _POSITIVE_SECONDS,
    vol.Optional(SZ_FLUSH_INTERVAL, default=DEFAULT_FLUSH_INTERVAL): _POSITIVE_SECONDS,
    vol.Optional(SZ_PROFILE, default="audio"): vol.In(list(PROFILES)),
    vol.Optional(SZ_KEEP_ALIVE_TITLE, default=DEFAULT_KEEP_ALIVE_TITLE): str,
    vol.Optional(SZ_KEEP_ALIVE_BODY, default=DEFAULT_KEEP_ALIVE_BODY): str,
}

SCH_STREAMER_CONFIG: Final = vol.Schema(
    {**SCH_SUPERVISOR_CONFIG_DICT, **SCH_TRANSPORT_CONFIG_DICT},
    extra=vol.PREVENT_EXTRA,
)

SCH_LISTENER_CONFIG: Final = vol.Schema(
    {
        **sch_backoff_dict_factory(
            LISTENER_BASE_DELAY, LISTENER_MAX_DELAY, LISTENER_JITTER
        ),
        vol.Optional(
            SZ_FLUSH_INTERVAL, default=DEFAULT_FLUSH_INTERVAL
        ): _POSITIVE_SECONDS,
        vol.Optional(SZ_RESET_COUNTER_ON_STOP, default=True): bool,
    },
    extra=vol.PREVENT_EXTRA,
)
