"""
Conversion events and the values they report.

Each app event maps to a fixed fine conversion value and a coarse tier.
Fine values follow the postback API range of 0-63; coarse tiers are the
three buckets the API accepts when the fine value is withheld for privacy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pageone.attribution.exceptions import InvalidConversionValueError

MIN_FINE_VALUE = 0
MAX_FINE_VALUE = 63


class CoarseValue(str, Enum):
    """Coarse conversion tier."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConversionEvent(str, Enum):
    """App events that produce a conversion value update."""

    NOTE_CREATED = "note_created"
    FIRST_NOTE_CREATED = "first_note_created"
    NOTE_EDITED = "note_edited"
    MULTIPLE_NOTES_CREATED = "multiple_notes_created"
    ACTIVE_USER = "active_user"  # 5+ notes
    INSTALL = "install"  # synthetic, sent once per install
    CUSTOM = "custom"

    @property
    def fine_value(self) -> int:
        """Fine conversion value reported for this event."""
        if self is ConversionEvent.CUSTOM:
            raise InvalidConversionValueError("Custom events carry their own fine value")
        return _FINE_VALUES[self]

    @property
    def coarse_value(self) -> CoarseValue:
        """Coarse tier reported for this event."""
        if self is ConversionEvent.CUSTOM:
            raise InvalidConversionValueError("Custom events carry their own coarse value")
        return _COARSE_VALUES[self]


_FINE_VALUES = {
    ConversionEvent.NOTE_CREATED: 1,
    ConversionEvent.FIRST_NOTE_CREATED: 2,
    ConversionEvent.NOTE_EDITED: 3,
    ConversionEvent.MULTIPLE_NOTES_CREATED: 4,
    ConversionEvent.ACTIVE_USER: 5,
    ConversionEvent.INSTALL: 1,
}

_COARSE_VALUES = {
    ConversionEvent.NOTE_CREATED: CoarseValue.LOW,
    ConversionEvent.FIRST_NOTE_CREATED: CoarseValue.MEDIUM,
    ConversionEvent.NOTE_EDITED: CoarseValue.LOW,
    ConversionEvent.MULTIPLE_NOTES_CREATED: CoarseValue.MEDIUM,
    ConversionEvent.ACTIVE_USER: CoarseValue.HIGH,
    ConversionEvent.INSTALL: CoarseValue.LOW,
}


def validate_fine_value(value: int) -> int:
    """Check that a fine value is an int within the postback range.

    Args:
        value: Candidate fine conversion value.

    Returns:
        The value unchanged.

    Raises:
        InvalidConversionValueError: If the value is not an int in 0-63.
    """
    # bool is an int subclass; True is never a meaningful conversion value
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConversionValueError(f"Fine value must be an int, got {type(value).__name__}")
    if not MIN_FINE_VALUE <= value <= MAX_FINE_VALUE:
        raise InvalidConversionValueError(
            f"Fine value {value} outside {MIN_FINE_VALUE}-{MAX_FINE_VALUE}"
        )
    return value


@dataclass(frozen=True)
class ConversionUpdate:
    """A single conversion value update headed for the attribution sink."""

    event: ConversionEvent
    fine_value: int
    coarse_value: CoarseValue
    lock_window: bool = False

    @classmethod
    def for_event(cls, event: ConversionEvent, lock_window: bool = False) -> ConversionUpdate:
        """Build the update for one of the fixed events."""
        return cls(
            event=event,
            fine_value=event.fine_value,
            coarse_value=event.coarse_value,
            lock_window=lock_window,
        )

    @property
    def is_install(self) -> bool:
        """Return True for the one-time install report."""
        return self.event is ConversionEvent.INSTALL
