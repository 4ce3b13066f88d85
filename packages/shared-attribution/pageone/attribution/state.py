"""Persisted install state.

Two values survive app relaunches (but not reinstalls):
- install_timestamp: when the tracker first initialized on this install
- install_postback_sent: whether the install report was acknowledged
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from pageone.attribution.exceptions import StateStoreError

logger = logging.getLogger(__name__)


@dataclass
class InstallState:
    """Install record plus the install-postback flag."""

    install_timestamp: datetime
    install_postback_sent: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted key-value layout."""
        return {
            "install_timestamp": self.install_timestamp.isoformat(),
            "install_postback_sent": self.install_postback_sent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstallState:
        """Create InstallState from the persisted layout.

        Args:
            data: Dictionary with install_timestamp and install_postback_sent.

        Returns:
            InstallState instance. Naive timestamps are taken as UTC.

        Raises:
            ValueError: If install_timestamp is missing or malformed.
        """
        if "install_timestamp" not in data:
            raise ValueError("Missing required field: install_timestamp")

        raw = data["install_timestamp"]
        if isinstance(raw, datetime):
            timestamp = raw
        elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
            # epoch milliseconds
            timestamp = datetime.fromtimestamp(raw / 1000, tz=UTC)
        elif isinstance(raw, str):
            try:
                timestamp = datetime.fromisoformat(raw)
            except ValueError as e:
                raise ValueError(f"Invalid install_timestamp format: {raw}") from e
        else:
            raise ValueError(f"Invalid install_timestamp: {raw!r}")

        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)

        return cls(
            install_timestamp=timestamp,
            install_postback_sent=bool(data.get("install_postback_sent", False)),
        )


class StateStore(Protocol):
    """Narrow persistence interface for InstallState."""

    def load(self) -> InstallState | None:
        """Return the stored state, or None on a fresh install.

        Raises StateStoreError if existing state cannot be read.
        """
        ...

    def save(self, state: InstallState) -> None:
        """Durably store `state`."""
        ...


class InMemoryStateStore:
    """StateStore kept in process memory.

    Survives tracker re-creation within one process, which is enough to
    simulate app restarts in tests.
    """

    def __init__(self, state: InstallState | None = None):
        self._data: dict[str, Any] | None = state.to_dict() if state else None
        self.save_count = 0

    def load(self) -> InstallState | None:
        if self._data is None:
            return None
        return InstallState.from_dict(self._data)

    def save(self, state: InstallState) -> None:
        self._data = state.to_dict()
        self.save_count += 1


class JsonFileStateStore:
    """StateStore backed by a small JSON file.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so readers see either the old or the new state.

    Example:
        >>> store = JsonFileStateStore(Path("~/.pageone/attribution_state.json"))
        >>> state = store.load() or InstallState(install_timestamp=datetime.now(UTC))
        >>> store.save(state)
    """

    def __init__(self, path: str | Path):
        """Initialize the store.

        Args:
            path: Location of the JSON state file. `~` is expanded.
        """
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def load(self) -> InstallState | None:
        """Load state from disk.

        Returns:
            The stored InstallState, or None if the file is missing or its
            contents are corrupt. Corrupt files are logged and treated as
            absent.

        Raises:
            StateStoreError: If the file exists but cannot be read.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateStoreError(f"Could not read attribution state {self.path}: {e}") from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
            return InstallState.from_dict(data)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt attribution state {self.path}: {e}")
            return None

    def save(self, state: InstallState) -> None:
        """Write state to disk atomically.

        Raises:
            StateStoreError: If the file cannot be written.
        """
        payload = json.dumps(state.to_dict(), indent=2, sort_keys=True)

        with self._lock:
            tmp_name = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.path.parent,
                    prefix=f".{self.path.name}.",
                    suffix=".tmp",
                )
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self.path)
                tmp_name = None
            except OSError as e:
                raise StateStoreError(f"Failed to write attribution state {self.path}: {e}") from e
            finally:
                if tmp_name is not None:
                    try:
                        os.unlink(tmp_name)
                    except OSError:
                        logger.debug(f"Could not remove temp state file {tmp_name}")

        logger.debug(f"Saved attribution state to {self.path}")
