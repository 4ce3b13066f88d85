"""Tests for persisted install state."""

import json
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from pageone.attribution.exceptions import StateStoreError
from pageone.attribution.state import InMemoryStateStore, InstallState, JsonFileStateStore


class TestInstallState:
    """Test InstallState serialization."""

    def test_to_dict(self, install_time):
        """to_dict uses the persisted key layout."""
        state = InstallState(install_timestamp=install_time, install_postback_sent=True)

        assert state.to_dict() == {
            "install_timestamp": "2025-01-15T10:00:00+00:00",
            "install_postback_sent": True,
        }

    def test_from_dict_iso(self, sample_state_data, install_time):
        """ISO-8601 timestamps are parsed."""
        state = InstallState.from_dict(sample_state_data)

        assert state.install_timestamp == install_time
        assert state.install_postback_sent is False

    def test_from_dict_epoch_millis(self, install_time):
        """Epoch milliseconds are accepted."""
        millis = int(install_time.timestamp() * 1000)

        state = InstallState.from_dict({"install_timestamp": millis})

        assert state.install_timestamp == install_time

    def test_from_dict_naive_is_utc(self):
        """Naive timestamps are treated as UTC."""
        state = InstallState.from_dict({"install_timestamp": "2025-01-15T10:00:00"})

        assert state.install_timestamp.tzinfo == UTC

    def test_from_dict_missing_timestamp(self):
        """install_timestamp is required."""
        with pytest.raises(ValueError, match="Missing required field"):
            InstallState.from_dict({"install_postback_sent": True})

    def test_from_dict_bad_timestamp(self):
        """Malformed timestamps raise ValueError."""
        with pytest.raises(ValueError, match="Invalid install_timestamp"):
            InstallState.from_dict({"install_timestamp": "yesterday"})


class TestInMemoryStateStore:
    """Test InMemoryStateStore."""

    def test_empty_store(self):
        """A new store represents a fresh install."""
        assert InMemoryStateStore().load() is None

    def test_save_and_load(self, install_time):
        """Saved state is returned by load."""
        store = InMemoryStateStore()
        store.save(InstallState(install_timestamp=install_time, install_postback_sent=True))

        loaded = store.load()

        assert loaded.install_timestamp == install_time
        assert loaded.install_postback_sent is True
        assert store.save_count == 1

    def test_load_returns_copy(self, install_time):
        """Mutating a loaded state does not change the store."""
        store = InMemoryStateStore(InstallState(install_timestamp=install_time))

        store.load().install_postback_sent = True

        assert store.load().install_postback_sent is False


class TestJsonFileStateStore:
    """Test JsonFileStateStore."""

    def test_missing_file(self, tmp_path):
        """A missing file loads as None."""
        store = JsonFileStateStore(tmp_path / "state.json")
        assert store.load() is None

    def test_round_trip(self, tmp_path, install_time):
        """Saved state survives a new store instance."""
        path = tmp_path / "nested" / "state.json"
        JsonFileStateStore(path).save(InstallState(install_timestamp=install_time, install_postback_sent=True))

        loaded = JsonFileStateStore(path).load()

        assert loaded == InstallState(install_timestamp=install_time, install_postback_sent=True)
        assert json.loads(path.read_text()) == {
            "install_postback_sent": True,
            "install_timestamp": "2025-01-15T10:00:00+00:00",
        }

    def test_no_temp_files_left(self, tmp_path, install_time):
        """Atomic writes leave only the state file behind."""
        path = tmp_path / "state.json"
        store = JsonFileStateStore(path)

        store.save(InstallState(install_timestamp=install_time))
        store.save(InstallState(install_timestamp=install_time, install_postback_sent=True))

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_corrupt_file_treated_as_absent(self, tmp_path):
        """Unparseable JSON loads as None."""
        path = tmp_path / "state.json"
        path.write_text("{not json")

        assert JsonFileStateStore(path).load() is None

    def test_non_object_treated_as_absent(self, tmp_path):
        """JSON that is not an object loads as None."""
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]")

        assert JsonFileStateStore(path).load() is None

    def test_unreadable_file_raises(self, tmp_path, install_time):
        """A file that exists but cannot be read is an error, not a fresh install."""
        path = tmp_path / "state.json"
        store = JsonFileStateStore(path)
        store.save(InstallState(install_timestamp=install_time))

        with patch.object(type(path), "read_text", side_effect=PermissionError("denied")):
            with pytest.raises(StateStoreError, match="Could not read attribution state"):
                store.load()

    def test_save_failure_raises_state_store_error(self, tmp_path, install_time):
        """Write failures surface as StateStoreError and clean up."""
        path = tmp_path / "state.json"
        store = JsonFileStateStore(path)

        with patch("pageone.attribution.state.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StateStoreError, match="disk full"):
                store.save(InstallState(install_timestamp=install_time))

        assert list(tmp_path.iterdir()) == []

    def test_expands_user(self):
        """~ in the path is expanded."""
        store = JsonFileStateStore("~/state.json")
        assert "~" not in str(store.path)

    def test_loaded_timestamp_is_aware(self, tmp_path):
        """Loaded timestamps are timezone-aware."""
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"install_timestamp": "2025-01-15T10:00:00"}))

        state = JsonFileStateStore(path).load()

        assert state.install_timestamp == datetime(2025, 1, 15, 10, 0, 0, tzinfo=UTC)
