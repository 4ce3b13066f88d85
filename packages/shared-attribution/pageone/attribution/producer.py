"""Note activity reporting - maps note CRUD commits to tracker reports.

The note store calls these hooks after a write commits, passing the total
number of notes. Threshold events fire when the count reaches the
threshold exactly, so a relaunch with more notes does not send them again,
and at most once per process.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from pageone.attribution.config import (
    DEFAULT_ACTIVE_USER_THRESHOLD,
    DEFAULT_MULTIPLE_NOTES_THRESHOLD,
    TrackerConfig,
)
from pageone.attribution.tracker import ConversionTracker, get_tracker

logger = logging.getLogger(__name__)


class NoteActivityReporter:
    """Bridges note persistence events to the conversion tracker.

    Example:
        >>> reporter = NoteActivityReporter(tracker)
        >>> note_store.save(note)
        >>> reporter.note_created(total_notes=note_store.count())
    """

    def __init__(
        self,
        tracker: ConversionTracker | Callable[[], ConversionTracker | None] | None = None,
        active_user_threshold: int = DEFAULT_ACTIVE_USER_THRESHOLD,
        multiple_notes_threshold: int = DEFAULT_MULTIPLE_NOTES_THRESHOLD,
    ):
        """Initialize the reporter.

        Args:
            tracker: A tracker, or a callable returning one. Defaults to the
                process-wide tracker.
            active_user_threshold: Note count that marks an active user.
            multiple_notes_threshold: Note count reported as multiple notes.
        """
        self._tracker = tracker if tracker is not None else get_tracker
        self.active_user_threshold = active_user_threshold
        self.multiple_notes_threshold = multiple_notes_threshold
        self._lock = threading.Lock()
        self._fired: set[str] = set()

    @classmethod
    def from_config(
        cls,
        config: TrackerConfig,
        tracker: ConversionTracker | Callable[[], ConversionTracker | None] | None = None,
    ) -> NoteActivityReporter:
        """Create a reporter using the thresholds from a TrackerConfig."""
        return cls(
            tracker,
            active_user_threshold=config.active_user_threshold,
            multiple_notes_threshold=config.multiple_notes_threshold,
        )

    @property
    def tracker(self) -> ConversionTracker | None:
        """Return the tracker to report to, resolving it lazily."""
        if isinstance(self._tracker, ConversionTracker):
            return self._tracker
        return self._tracker()

    def note_created(self, total_notes: int) -> None:
        """Handle a committed note creation.

        Args:
            total_notes: Number of notes after the creation.
        """
        tracker = self.tracker
        if tracker is None:
            logger.debug("No tracker running; skipping note_created")
            return

        try:
            tracker.report_note_created(is_first_note=total_notes == 1)

            if total_notes == self.multiple_notes_threshold and self._first_time("multiple_notes"):
                tracker.report_multiple_notes_created()

            if total_notes == self.active_user_threshold:
                self.active_user_threshold_reached()
        except Exception as e:
            logger.warning(f"Note creation tracking failed: {e}")

    def note_edited(self) -> None:
        """Handle a committed note edit."""
        tracker = self.tracker
        if tracker is None:
            logger.debug("No tracker running; skipping note_edited")
            return

        try:
            tracker.report_note_edited()
        except Exception as e:
            logger.warning(f"Note edit tracking failed: {e}")

    def active_user_threshold_reached(self) -> None:
        """Report the active user event once per process."""
        tracker = self.tracker
        if tracker is None or not self._first_time("active_user"):
            return

        try:
            tracker.report_active_user()
        except Exception as e:
            logger.warning(f"Active user tracking failed: {e}")

    def _first_time(self, key: str) -> bool:
        with self._lock:
            if key in self._fired:
                return False
            self._fired.add(key)
            return True
