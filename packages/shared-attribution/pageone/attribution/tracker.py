"""
ConversionTracker - at-most-once conversion value reporting.

Turns app events into conversion value updates for the platform postback
API. Every public report method is fire-and-forget: it never raises and
never waits for the platform.

Rules applied to every report:
1. The attribution window is recomputed from the install timestamp.
   Reports after the last window are dropped for good.
2. The lock-window policy decides whether the update finalizes the window.
3. The update goes to the resolved sink; its completion is logged.
4. The install report is sent at most once per install. Its flag is only
   persisted after the sink acknowledges it, so a failed attempt is
   retried on the next app launch.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from functools import partial
from typing import Any

from pageone.attribution.config import TrackerConfig
from pageone.attribution.events import (
    CoarseValue,
    ConversionEvent,
    ConversionUpdate,
    validate_fine_value,
)
from pageone.attribution.exceptions import (
    InvalidConversionValueError,
    SinkUnavailableError,
    StateStoreError,
    WindowExpiredError,
)
from pageone.attribution.policy import LockWindowPolicy
from pageone.attribution.sinks import AttributionSink, resolve_sink
from pageone.attribution.state import InstallState, JsonFileStateStore, StateStore
from pageone.attribution.windows import AttributionWindow, compute_window

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TrackerState(str, Enum):
    """Lifecycle state of the tracker."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    EXPIRED = "expired"


class ConversionTracker:
    """Reports app events to the platform attribution API.

    Example:
        >>> tracker = ConversionTracker(
        ...     store=JsonFileStateStore("~/.pageone/attribution_state.json"),
        ...     sink=resolve_sink(platform),
        ... )
        >>> tracker.report_note_created(is_first_note=True)
        >>> tracker.report_note_edited()
    """

    def __init__(
        self,
        store: StateStore,
        sink: AttributionSink | None = None,
        policy: LockWindowPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
        report_install_on_start: bool = True,
    ):
        """Initialize the tracker.

        Loads the install record (creating it on first launch), registers
        with the platform and attempts the install report. If the store
        cannot be read the tracker stays UNINITIALIZED and drops reports
        until the next launch.

        Args:
            store: Persistence for the install record.
            sink: Resolved attribution sink. None makes every report a no-op.
            policy: Lock-window policy. Defaults to LockWindowPolicy().
            clock: Returns the current timezone-aware instant.
            report_install_on_start: Attempt the install report immediately.
        """
        self._store = store
        self._sink = sink
        self.policy = policy or LockWindowPolicy()
        self._clock = clock or _utcnow

        self._lock = threading.Lock()
        self._install_in_flight = False
        self._expired = False
        self._install_state: InstallState | None = None

        self._install_state = self._load_or_create_state()

        if self._sink is None:
            logger.warning("No attribution sink available; conversion reports are disabled")
        else:
            self._register()

        if report_install_on_start:
            self.report_install()

    @property
    def sink(self) -> AttributionSink | None:
        """Return the resolved sink (None if attribution is unavailable)."""
        return self._sink

    @property
    def install_timestamp(self) -> datetime | None:
        """Return when this install was first seen, or None if the record is unavailable."""
        if self._install_state is None:
            return None
        return self._install_state.install_timestamp

    @property
    def install_postback_sent(self) -> bool:
        """Return True once the install report has been acknowledged."""
        with self._lock:
            return self._install_state is not None and self._install_state.install_postback_sent

    @property
    def state(self) -> TrackerState:
        """Return the lifecycle state, recomputed from the clock."""
        if self._install_state is None:
            return TrackerState.UNINITIALIZED
        if self.current_window() is AttributionWindow.EXPIRED:
            return TrackerState.EXPIRED
        return TrackerState.ACTIVE

    def compute_window(self, now: datetime | None = None) -> AttributionWindow:
        """Return the attribution window for `now` (defaults to the clock).

        Raises:
            StateStoreError: If the install record could not be loaded.
        """
        if self._install_state is None:
            raise StateStoreError("Install record unavailable; attribution window unknown")
        return compute_window(self._install_state.install_timestamp, now or self._clock())

    def current_window(self) -> AttributionWindow:
        """Return the current attribution window.

        Once EXPIRED has been observed it sticks, even if the clock later
        moves backwards.
        """
        if self._expired:
            return AttributionWindow.EXPIRED
        window = self.compute_window()
        if window is AttributionWindow.EXPIRED:
            self._expired = True
        return window

    def report_note_created(self, is_first_note: bool = False) -> None:
        """Report a committed note creation."""
        event = ConversionEvent.FIRST_NOTE_CREATED if is_first_note else ConversionEvent.NOTE_CREATED
        self._report(ConversionUpdate.for_event(event))

    def report_note_edited(self) -> None:
        """Report a committed note edit."""
        self._report(ConversionUpdate.for_event(ConversionEvent.NOTE_EDITED))

    def report_multiple_notes_created(self) -> None:
        """Report that the user has created several notes."""
        self._report(ConversionUpdate.for_event(ConversionEvent.MULTIPLE_NOTES_CREATED))

    def report_active_user(self) -> None:
        """Report an active user. The caller decides when the threshold is met."""
        self._report(ConversionUpdate.for_event(ConversionEvent.ACTIVE_USER))

    def report_custom(
        self,
        fine_value: int,
        coarse_value: CoarseValue | str = CoarseValue.MEDIUM,
        lock_window: bool = True,
    ) -> None:
        """Report a value outside the fixed event table.

        Window gating still applies; lock_window is used as given.

        Args:
            fine_value: Fine conversion value, 0-63.
            coarse_value: Coarse tier. Defaults to medium.
            lock_window: Whether to lock the attribution window.
        """
        try:
            update = ConversionUpdate(
                event=ConversionEvent.CUSTOM,
                fine_value=validate_fine_value(fine_value),
                coarse_value=CoarseValue(coarse_value),
                lock_window=lock_window,
            )
        except (InvalidConversionValueError, ValueError) as e:
            logger.warning(f"Dropped custom conversion report: {e}")
            return

        self._report(update, apply_policy=False)

    def report_install(self) -> None:
        """Report the install, at most once per install.

        Skipped without touching the sink when the install postback was
        already acknowledged or another attempt is still in flight.
        """
        with self._lock:
            if self._install_state is None:
                logger.warning("Install record unavailable; install report deferred to next launch")
                return
            if self._install_state.install_postback_sent:
                logger.debug("Install postback already sent; skipping install report")
                return
            if self._install_in_flight:
                logger.debug("Install report already in flight; skipping")
                return
            self._install_in_flight = True

        dispatched = self._report(ConversionUpdate.for_event(ConversionEvent.INSTALL))

        if not dispatched:
            with self._lock:
                self._install_in_flight = False

    def _report(self, update: ConversionUpdate, apply_policy: bool = True) -> bool:
        """Gate, decorate and dispatch an update.

        Returns:
            True if the update was handed to the sink.
        """
        try:
            if self._install_state is None:
                logger.warning(f"Install record unavailable; dropped {update.event.value} report")
                return False

            window = self.current_window()
            if not window.is_open:
                raise WindowExpiredError(
                    f"Attribution windows closed (installed {self.install_timestamp.isoformat()})"
                )

            if self._sink is None:
                logger.warning(f"No attribution sink; dropped {update.event.value} report")
                return False

            if apply_policy:
                update = self.policy.apply(update, window)

            logger.info(
                f"Reporting {update.event.value}: value={update.fine_value} "
                f"coarse={update.coarse_value.value} lock={update.lock_window} "
                f"window={window.value} tier={self._sink.tier.value}"
            )
            self._sink.send(update, partial(self._on_complete, update))
            return True
        except WindowExpiredError as e:
            logger.warning(f"Dropped {update.event.value} report: {e}")
            return False
        except Exception as e:
            logger.warning(f"Conversion report for {update.event.value} failed: {e}")
            return False

    def _on_complete(self, update: ConversionUpdate, error: Exception | None) -> None:
        """Handle the sink's completion for one update."""
        try:
            if error is not None:
                logger.warning(f"Conversion update failed for {update.event.value}: {error}")
                if update.is_install:
                    with self._lock:
                        self._install_in_flight = False
                return

            logger.info(f"Conversion update acknowledged for {update.event.value} (value {update.fine_value})")
            if update.is_install:
                self._mark_install_sent()
        except Exception as e:
            logger.warning(f"Error handling completion for {update.event.value}: {e}")

    def _mark_install_sent(self) -> None:
        with self._lock:
            self._install_in_flight = False
            self._install_state.install_postback_sent = True
            try:
                self._store.save(self._install_state)
            except Exception as e:
                # In-memory flag stays set so this process does not resend;
                # the next launch retries if the write never landed.
                logger.error(f"Failed to persist install postback flag: {e}")

    def _load_or_create_state(self) -> InstallState | None:
        try:
            state = self._store.load()
        except Exception as e:
            # The record may still exist; do not overwrite it
            logger.error(f"Could not load install state; attribution disabled for this launch: {e}")
            return None

        if state is not None:
            logger.debug(f"Loaded install record from {state.install_timestamp.isoformat()}")
            return state

        state = InstallState(install_timestamp=self._clock())
        try:
            self._store.save(state)
            logger.info(f"Created install record at {state.install_timestamp.isoformat()}")
        except Exception as e:
            logger.error(f"Failed to persist new install record: {e}")
        return state

    def _register(self) -> None:
        try:
            self._sink.register()
        except Exception as e:
            logger.warning(f"Attribution registration failed: {e}")


# Process-wide tracker
_tracker: ConversionTracker | None = None
_tracker_lock = threading.Lock()


def start_tracker(
    config: TrackerConfig | None = None,
    platform: Any = None,
    os_version: str | None = None,
    store: StateStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ConversionTracker:
    """Create the process-wide tracker at app launch.

    Calling again while a tracker is running returns the existing one.

    Args:
        config: Tracker configuration. Defaults to TrackerConfig.from_env().
        platform: Object exposing the OS attribution API.
        os_version: Optional OS version used to cap the capability tier.
        store: State store. Defaults to a JSON file at config.state_path.
        clock: Clock override.

    Returns:
        The running ConversionTracker.
    """
    global _tracker

    with _tracker_lock:
        if _tracker is not None:
            return _tracker

        config = config or TrackerConfig.from_env()
        store = store or JsonFileStateStore(config.state_path)

        try:
            sink = resolve_sink(platform, os_version=os_version)
        except (SinkUnavailableError, ValueError) as e:
            logger.warning(f"Attribution unavailable for this process: {e}")
            sink = None

        _tracker = ConversionTracker(
            store=store,
            sink=sink,
            policy=config.build_policy(),
            clock=clock,
        )
        return _tracker


def get_tracker() -> ConversionTracker | None:
    """Get the process-wide tracker, or None before start_tracker()."""
    return _tracker


def shutdown_tracker() -> None:
    """Release the process-wide tracker at app termination."""
    global _tracker

    with _tracker_lock:
        _tracker = None
