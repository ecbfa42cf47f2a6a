#!/usr/bin/env python3
"""Fixtures shared by the wearable_relay test suites."""

import math

import pytest

from tests.helpers import FakeServer, RecordingNotifier
from wearable_tx.reachability import StaticReachability


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def reachability() -> StaticReachability:
    return StaticReachability(connected=True, internet_reachable=True)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def refuse_all(server: FakeServer) -> FakeServer:
    server.refuse = math.inf
    return server
