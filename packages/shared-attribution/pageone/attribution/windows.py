"""
Attribution windows - which postback window an instant falls into.

Windows are derived from time elapsed since install and never stored.
Upper bounds are inclusive: exactly 2 days after install is still WINDOW_0.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

WINDOW_0_END = timedelta(days=2)
WINDOW_1_END = timedelta(days=7)
WINDOW_2_END = timedelta(days=35)


class AttributionWindow(str, Enum):
    """Postback window relative to install time."""

    WINDOW_0 = "window_0"  # 0-2 days
    WINDOW_1 = "window_1"  # 2-7 days
    WINDOW_2 = "window_2"  # 7-35 days
    EXPIRED = "expired"  # no further updates accepted

    @property
    def is_open(self) -> bool:
        """Return True if conversion updates are still accepted."""
        return self is not AttributionWindow.EXPIRED


def compute_window(install_timestamp: datetime, now: datetime) -> AttributionWindow:
    """
    Compute the attribution window for `now`.

    A clock that reads earlier than the install timestamp (device clock
    changes) counts as zero elapsed time.

    Args:
        install_timestamp: When the app was first launched.
        now: Current instant, same timezone-awareness as install_timestamp.

    Returns:
        The current AttributionWindow.
    """
    elapsed = max(now - install_timestamp, timedelta(0))

    if elapsed <= WINDOW_0_END:
        return AttributionWindow.WINDOW_0
    if elapsed <= WINDOW_1_END:
        return AttributionWindow.WINDOW_1
    if elapsed <= WINDOW_2_END:
        return AttributionWindow.WINDOW_2
    return AttributionWindow.EXPIRED
