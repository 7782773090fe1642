"""Shared fixtures: a controllable clock and in-memory peer handles."""

import pytest

from backend import RoomService
from connection import ConnectionSession
from rate_limiter import RateLimiter
from tests.fakes import FakeClock, FakeHandle


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(max_attempts=5, lockout_seconds=300, clock=clock)


@pytest.fixture
def service(clock, rate_limiter):
    return RoomService(code_length=4, capacity=4, session_max_age=4 * 60 * 60, rate_limiter=rate_limiter, clock=clock)


@pytest.fixture
def connect(service):
    """Open a fake connection on the service: returns (session, handle)."""
    counter = {"n": 0}

    def _connect(address: str = "10.0.0.1"):
        counter["n"] += 1
        handle = FakeHandle(f"conn-{counter['n']}")
        session: ConnectionSession = service.open_session(handle, address)
        return session, handle

    return _connect
