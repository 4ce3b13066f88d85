"""
PageOne Attribution - conversion value reporting for ad attribution.

Provides:
- Fixed conversion events and their fine/coarse values
- Install-relative attribution windows
- Capability-tiered sinks over the platform postback API
- A tracker that reports each event at most once per call and the
  install exactly once per install
- Development impressions and a postback debug session for testing

The app reports events after its note writes commit; the tracker decides
whether and how to forward them to the platform.

Usage:
    from pageone.attribution import (
        NoteActivityReporter,
        TrackerConfig,
        start_tracker,
    )

    tracker = start_tracker(TrackerConfig.from_env(), platform=platform)
    reporter = NoteActivityReporter(tracker)

    # After a note is saved
    reporter.note_created(total_notes=3)
"""

from pageone.attribution.config import TrackerConfig
from pageone.attribution.debug_session import (
    PostbackDebugSession,
    PostbackResponse,
    RecordedUpdate,
    SimulatedPostback,
)
from pageone.attribution.events import (
    CoarseValue,
    ConversionEvent,
    ConversionUpdate,
)
from pageone.attribution.exceptions import (
    AttributionError,
    ImpressionError,
    InvalidConversionValueError,
    SinkTransportError,
    SinkUnavailableError,
    StateStoreError,
    WindowExpiredError,
)
from pageone.attribution.impressions import (
    DevelopmentImpression,
    DevelopmentImpressionStarter,
    build_development_jws,
    generate_development_key,
    load_private_key,
)
from pageone.attribution.policy import LockWindowPolicy
from pageone.attribution.producer import NoteActivityReporter
from pageone.attribution.sinks import (
    AttributionSink,
    CapabilityTier,
    ConversionValueSink,
    LegacySink,
    PostbackSink,
    detect_tier,
    resolve_sink,
)
from pageone.attribution.state import (
    InMemoryStateStore,
    InstallState,
    JsonFileStateStore,
    StateStore,
)
from pageone.attribution.tracker import (
    ConversionTracker,
    TrackerState,
    get_tracker,
    shutdown_tracker,
    start_tracker,
)
from pageone.attribution.windows import AttributionWindow, compute_window

__all__ = [
    # Events
    "CoarseValue",
    "ConversionEvent",
    "ConversionUpdate",
    # Windows and policy
    "AttributionWindow",
    "compute_window",
    "LockWindowPolicy",
    # State
    "InstallState",
    "StateStore",
    "InMemoryStateStore",
    "JsonFileStateStore",
    # Sinks
    "AttributionSink",
    "CapabilityTier",
    "PostbackSink",
    "ConversionValueSink",
    "LegacySink",
    "detect_tier",
    "resolve_sink",
    # Tracker
    "ConversionTracker",
    "TrackerState",
    "start_tracker",
    "get_tracker",
    "shutdown_tracker",
    "NoteActivityReporter",
    "TrackerConfig",
    # Development tooling
    "DevelopmentImpression",
    "DevelopmentImpressionStarter",
    "build_development_jws",
    "generate_development_key",
    "load_private_key",
    "PostbackDebugSession",
    "SimulatedPostback",
    "PostbackResponse",
    "RecordedUpdate",
    # Exceptions
    "AttributionError",
    "WindowExpiredError",
    "SinkUnavailableError",
    "SinkTransportError",
    "StateStoreError",
    "InvalidConversionValueError",
    "ImpressionError",
]
