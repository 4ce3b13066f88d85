"""Tests for pageone.attribution public API."""


def test_import_event_classes():
    """Event classes are importable from top level."""
    from pageone.attribution import CoarseValue, ConversionEvent, ConversionUpdate

    assert hasattr(ConversionEvent, "ACTIVE_USER")
    assert hasattr(CoarseValue, "HIGH")
    assert hasattr(ConversionUpdate, "for_event")


def test_import_tracker_classes():
    """Tracker and lifecycle functions are importable from top level."""
    from pageone.attribution import (
        ConversionTracker,
        NoteActivityReporter,
        TrackerState,
        get_tracker,
        shutdown_tracker,
        start_tracker,
    )

    assert callable(start_tracker)
    assert callable(get_tracker)
    assert callable(shutdown_tracker)
    assert hasattr(ConversionTracker, "report_install")
    assert hasattr(NoteActivityReporter, "note_created")
    assert TrackerState.EXPIRED.value == "expired"


def test_import_sinks_and_state():
    """Sinks and stores are importable from top level."""
    from pageone.attribution import (
        CapabilityTier,
        InMemoryStateStore,
        JsonFileStateStore,
        resolve_sink,
    )

    assert CapabilityTier.POSTBACK.rank > CapabilityTier.LEGACY.rank
    assert callable(resolve_sink)
    assert InMemoryStateStore().load() is None
    assert hasattr(JsonFileStateStore, "save")


def test_exception_hierarchy():
    """All attribution errors share a base class."""
    from pageone.attribution import (
        AttributionError,
        ImpressionError,
        InvalidConversionValueError,
        SinkTransportError,
        SinkUnavailableError,
        StateStoreError,
        WindowExpiredError,
    )

    for exc in (
        WindowExpiredError,
        SinkUnavailableError,
        SinkTransportError,
        StateStoreError,
        InvalidConversionValueError,
        ImpressionError,
    ):
        assert issubclass(exc, AttributionError)


def test_all_exports():
    """__all__ names resolve."""
    import pageone.attribution as attribution

    for name in attribution.__all__:
        assert hasattr(attribution, name), name


def test_import_development_tooling():
    """Impression and debug session classes are importable from top level."""
    from pageone.attribution import (
        DevelopmentImpression,
        DevelopmentImpressionStarter,
        PostbackDebugSession,
        SimulatedPostback,
        build_development_jws,
    )

    assert DevelopmentImpression(advertised_app_store_item_identifier=1).is_development is True
    assert hasattr(DevelopmentImpressionStarter, "start")
    assert hasattr(PostbackDebugSession, "flush_postbacks")
    assert SimulatedPostback(postback_url="https://x").version == "4.0"
    assert callable(build_development_jws)
