"""Tests for conversion events."""

import pytest
from pageone.attribution.events import (
    CoarseValue,
    ConversionEvent,
    ConversionUpdate,
    validate_fine_value,
)
from pageone.attribution.exceptions import InvalidConversionValueError


class TestConversionEvent:
    """Test event to value mapping."""

    @pytest.mark.parametrize(
        ("event", "fine", "coarse"),
        [
            (ConversionEvent.NOTE_CREATED, 1, CoarseValue.LOW),
            (ConversionEvent.FIRST_NOTE_CREATED, 2, CoarseValue.MEDIUM),
            (ConversionEvent.NOTE_EDITED, 3, CoarseValue.LOW),
            (ConversionEvent.MULTIPLE_NOTES_CREATED, 4, CoarseValue.MEDIUM),
            (ConversionEvent.ACTIVE_USER, 5, CoarseValue.HIGH),
            (ConversionEvent.INSTALL, 1, CoarseValue.LOW),
        ],
    )
    def test_event_values(self, event, fine, coarse):
        """Each fixed event maps to its fine value and coarse tier."""
        assert event.fine_value == fine
        assert event.coarse_value == coarse

    def test_custom_has_no_fixed_value(self):
        """Custom events must supply their own values."""
        with pytest.raises(InvalidConversionValueError):
            _ = ConversionEvent.CUSTOM.fine_value
        with pytest.raises(InvalidConversionValueError):
            _ = ConversionEvent.CUSTOM.coarse_value

    def test_enum_string_values(self):
        """Enums serialize to their string values."""
        assert ConversionEvent.ACTIVE_USER.value == "active_user"
        assert CoarseValue("high") is CoarseValue.HIGH


class TestValidateFineValue:
    """Test fine value validation."""

    def test_accepts_range_bounds(self):
        """0 and 63 are valid."""
        assert validate_fine_value(0) == 0
        assert validate_fine_value(63) == 63

    @pytest.mark.parametrize("value", [-1, 64, 1000])
    def test_rejects_out_of_range(self, value):
        """Values outside 0-63 are rejected."""
        with pytest.raises(InvalidConversionValueError, match="outside"):
            validate_fine_value(value)

    @pytest.mark.parametrize("value", ["5", 2.0, True, None])
    def test_rejects_non_int(self, value):
        """Non-int values (including bools) are rejected."""
        with pytest.raises(InvalidConversionValueError, match="must be an int"):
            validate_fine_value(value)

    def test_error_is_value_error(self):
        """InvalidConversionValueError is also a ValueError."""
        with pytest.raises(ValueError):
            validate_fine_value(99)


class TestConversionUpdate:
    """Test ConversionUpdate construction."""

    def test_for_event(self):
        """for_event copies the event's values."""
        update = ConversionUpdate.for_event(ConversionEvent.FIRST_NOTE_CREATED)

        assert update.fine_value == 2
        assert update.coarse_value == CoarseValue.MEDIUM
        assert update.lock_window is False
        assert update.is_install is False

    def test_install_update(self):
        """Install updates are flagged as such."""
        update = ConversionUpdate.for_event(ConversionEvent.INSTALL, lock_window=True)

        assert update.is_install is True
        assert update.lock_window is True

    def test_frozen(self):
        """Updates are immutable."""
        update = ConversionUpdate.for_event(ConversionEvent.NOTE_EDITED)
        with pytest.raises(AttributeError):
            update.fine_value = 10
