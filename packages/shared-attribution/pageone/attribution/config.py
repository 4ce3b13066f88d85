"""Tracker configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from pageone.attribution.policy import DEFAULT_LOCK_THRESHOLD, LockWindowPolicy

DEFAULT_STATE_PATH = Path("~/.pageone/attribution_state.json")
DEFAULT_ACTIVE_USER_THRESHOLD = 5
DEFAULT_MULTIPLE_NOTES_THRESHOLD = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class TrackerConfig:
    """Configuration for the conversion tracker.

    Attributes:
        state_path: JSON file holding the install state.
        lock_threshold: Minimum fine value that locks the attribution window.
        lock_install: Whether the install report locks the window.
        active_user_threshold: Note count that marks an active user.
        multiple_notes_threshold: Note count reported as multiple notes.
        postback_url: Postback URL for the debug test session, if any.
    """

    state_path: Path = field(default_factory=lambda: DEFAULT_STATE_PATH)
    lock_threshold: int = DEFAULT_LOCK_THRESHOLD
    lock_install: bool = True
    active_user_threshold: int = DEFAULT_ACTIVE_USER_THRESHOLD
    multiple_notes_threshold: int = DEFAULT_MULTIPLE_NOTES_THRESHOLD
    postback_url: str | None = None

    def __post_init__(self):
        self.state_path = Path(self.state_path).expanduser()
        if self.active_user_threshold < 1:
            raise ValueError("active_user_threshold must be at least 1")
        if self.multiple_notes_threshold < 1:
            raise ValueError("multiple_notes_threshold must be at least 1")

    @classmethod
    def from_env(cls) -> TrackerConfig:
        """Create configuration from environment variables.

        Uses PAGEONE_STATE_PATH, PAGEONE_LOCK_THRESHOLD, PAGEONE_LOCK_INSTALL,
        PAGEONE_ACTIVE_USER_THRESHOLD, PAGEONE_MULTIPLE_NOTES_THRESHOLD and
        PAGEONE_POSTBACK_URL. Unset variables fall back to defaults.

        Returns:
            TrackerConfig instance.

        Raises:
            ValueError: If a numeric or boolean variable cannot be parsed.
        """
        return cls(
            state_path=Path(os.getenv("PAGEONE_STATE_PATH") or DEFAULT_STATE_PATH),
            lock_threshold=_int_from_env("PAGEONE_LOCK_THRESHOLD", DEFAULT_LOCK_THRESHOLD),
            lock_install=_bool_from_env("PAGEONE_LOCK_INSTALL", True),
            active_user_threshold=_int_from_env(
                "PAGEONE_ACTIVE_USER_THRESHOLD", DEFAULT_ACTIVE_USER_THRESHOLD
            ),
            multiple_notes_threshold=_int_from_env(
                "PAGEONE_MULTIPLE_NOTES_THRESHOLD", DEFAULT_MULTIPLE_NOTES_THRESHOLD
            ),
            postback_url=os.getenv("PAGEONE_POSTBACK_URL") or None,
        )

    def build_policy(self) -> LockWindowPolicy:
        """Return the lock-window policy described by this config."""
        return LockWindowPolicy(
            lock_threshold=self.lock_threshold,
            lock_install=self.lock_install,
        )
