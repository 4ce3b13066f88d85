"""Shared pytest fixtures for PageOne packages."""

from datetime import UTC, datetime, timedelta

import pytest


class FakeClock:
    """Settable clock returning timezone-aware instants."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        """Move the clock forward by a timedelta built from kwargs."""
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def install_time():
    """Fixed install instant for testing."""
    return datetime(2025, 1, 15, 10, 0, 0, tzinfo=UTC)


@pytest.fixture
def fake_clock(install_time):
    """Clock starting at the install instant."""
    return FakeClock(install_time)


@pytest.fixture
def memory_store():
    """Empty in-memory state store (a fresh install)."""
    from pageone.attribution.state import InMemoryStateStore

    return InMemoryStateStore()


@pytest.fixture
def sample_state_data():
    """Persisted install state as stored on disk."""
    return {
        "install_timestamp": "2025-01-15T10:00:00+00:00",
        "install_postback_sent": False,
    }
