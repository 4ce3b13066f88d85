"""Shared fixtures for attribution package tests."""

import pytest


class PostbackPlatform:
    """Platform exposing the full postback API (fine, coarse, lock)."""

    def __init__(self, fail: bool = False, defer: bool = False):
        self.fail = fail
        self.defer = defer
        self.calls = []
        self.pending = []
        self.registrations = 0

    def register_app_for_ad_network_attribution(self):
        self.registrations += 1

    def update_postback_conversion_value(self, fine_value, coarse_value, lock_window, completion):
        self.calls.append((fine_value, coarse_value, lock_window))
        if self.defer:
            self.pending.append(completion)
            return
        completion(RuntimeError("postback delivery failed") if self.fail else None)


class ConversionValuePlatform:
    """Platform exposing only the fine value update with completion."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def update_postback_conversion_value(self, fine_value, completion):
        self.calls.append(fine_value)
        completion(RuntimeError("postback delivery failed") if self.fail else None)


class LegacyPlatform:
    """Platform exposing only the synchronous legacy update."""

    def __init__(self):
        self.calls = []

    def update_conversion_value(self, fine_value):
        self.calls.append(fine_value)


@pytest.fixture
def postback_platform():
    """Tier A platform that acknowledges every update."""
    return PostbackPlatform()


@pytest.fixture
def failing_platform():
    """Tier A platform that fails every update."""
    return PostbackPlatform(fail=True)


@pytest.fixture
def deferred_platform():
    """Tier A platform that holds completions until the test releases them."""
    return PostbackPlatform(defer=True)


@pytest.fixture
def conversion_value_platform():
    """Tier B platform."""
    return ConversionValuePlatform()


@pytest.fixture
def legacy_platform():
    """Tier C platform."""
    return LegacyPlatform()


@pytest.fixture
def make_tracker(memory_store, fake_clock):
    """Factory building a tracker over the shared store and clock."""
    from pageone.attribution.sinks import resolve_sink
    from pageone.attribution.tracker import ConversionTracker

    def _make(platform=None, store=None, **kwargs):
        sink = resolve_sink(platform) if platform is not None else None
        return ConversionTracker(
            store=store if store is not None else memory_store,
            sink=sink,
            clock=fake_clock,
            **kwargs,
        )

    return _make
