#!/usr/bin/env python3
"""Wearable relay - the connection supervisor.

Operates at the supervisor layer of: app - supervisor - transport - socket

"""

from __future__ import annotations

from .fsm import (
    ConnectionContext as ConnectionContext,
    Connecting as Connecting,
    FailedTerminal as FailedTerminal,
    Idle as Idle,
    Open as Open,
    Retrying as Retrying,
    SupervisorConfig as SupervisorConfig,
)

__all__ = [
    "ConnectionContext",
    "Connecting",
    "FailedTerminal",
    "Idle",
    "Open",
    "Retrying",
    "SupervisorConfig",
]
