"""
Root conftest.py for the ocean platform tests.

Shared fixtures: an in-memory transport that records what it is sent, a
controllable clock, fast settings and a TestClient bound to a fresh app.
"""

import json
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from api.app_config import AppSettings
from api.shared.errors import TransportError


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: mark test as involving WebSocket communication",
    )


def pytest_collection_modifyitems(config, items):
    """Mark tests with 'websocket' in their name."""
    for item in items:
        if "websocket" in item.name.lower():
            item.add_marker(pytest.mark.websocket)


# ============================================================================
# Test Doubles
# ============================================================================


class FakeTransport:
    """Transport that records sent frames instead of writing to a socket."""

    def __init__(self, fail: bool = False, open: bool = True):
        self.sent = []
        self.fail = fail
        self.pings = 0
        self.terminated = False
        self.closed_with = None
        self._open = open

    @property
    def is_open(self) -> bool:
        return self._open

    def drop(self) -> None:
        """Simulate the peer going away without a close handshake."""
        self._open = False

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise TransportError("broken pipe")
        self.sent.append(json.loads(text))

    async def ping(self) -> None:
        if self.fail:
            raise TransportError("broken pipe")
        self.pings += 1

    async def terminate(self) -> None:
        self.terminated = True
        self._open = False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)
        self._open = False

    def types(self):
        return [m["type"] for m in self.sent]

    def of_type(self, *types):
        return [m for m in self.sent if m["type"] in types]


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def make_transport():
    """Factory for FakeTransport instances."""
    return FakeTransport


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_settings() -> AppSettings:
    """Settings with slow training and no heartbeat ticks during a test."""
    return AppSettings(
        heartbeat_interval=3600.0,
        heartbeat_timeout=7200.0,
        epoch_duration=100.0,
        validation_delay=0.0,
        random_seed=1234,
    )


@pytest.fixture
def client(fast_settings):
    """TestClient for a fresh app instance with its own services."""
    from fastapi.testclient import TestClient

    from main import create_app

    with TestClient(create_app(fast_settings)) as c:
        yield c
