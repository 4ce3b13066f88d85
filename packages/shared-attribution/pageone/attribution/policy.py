"""Lock-window policy for conversion updates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pageone.attribution.events import ConversionUpdate
from pageone.attribution.windows import AttributionWindow

logger = logging.getLogger(__name__)

DEFAULT_LOCK_THRESHOLD = 2


@dataclass(frozen=True)
class LockWindowPolicy:
    """Decides whether an update should lock its attribution window.

    Locking finalizes the postback for the current window immediately
    instead of waiting for the window to close. Any non-baseline value
    locks by default; the install report always locks.

    Attributes:
        lock_threshold: Minimum fine value that locks the window.
        lock_install: Whether the install report locks the window.
        lockable_windows: Windows in which ordinary events may lock.
    """

    lock_threshold: int = DEFAULT_LOCK_THRESHOLD
    lock_install: bool = True
    lockable_windows: frozenset[AttributionWindow] = field(
        default_factory=lambda: frozenset(
            {
                AttributionWindow.WINDOW_0,
                AttributionWindow.WINDOW_1,
                AttributionWindow.WINDOW_2,
            }
        )
    )

    def should_lock(self, fine_value: int, window: AttributionWindow, is_install: bool = False) -> bool:
        """Return True if an update with this value should lock `window`."""
        if not window.is_open:
            return False
        if is_install:
            return self.lock_install
        return window in self.lockable_windows and fine_value >= self.lock_threshold

    def apply(self, update: ConversionUpdate, window: AttributionWindow) -> ConversionUpdate:
        """Return `update` with lock_window set by this policy."""
        lock = self.should_lock(update.fine_value, window, is_install=update.is_install)
        logger.debug(
            f"Lock decision for {update.event.value} "
            f"(value {update.fine_value}, {window.value}): {lock}"
        )
        return ConversionUpdate(
            event=update.event,
            fine_value=update.fine_value,
            coarse_value=update.coarse_value,
            lock_window=lock,
        )
