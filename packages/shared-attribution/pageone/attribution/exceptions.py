"""Custom exceptions for conversion attribution."""

from __future__ import annotations


class AttributionError(Exception):
    """Base exception for attribution errors."""

    pass


class WindowExpiredError(AttributionError):
    """Raised internally when a report arrives after the last attribution window."""

    pass


class SinkUnavailableError(AttributionError):
    """Raised when no attribution capability tier can be resolved."""

    pass


class SinkTransportError(AttributionError):
    """Raised when the platform attribution call itself fails."""

    pass


class StateStoreError(AttributionError):
    """Raised when install state cannot be persisted."""

    pass


class InvalidConversionValueError(AttributionError, ValueError):
    """Raised when a fine conversion value is outside the accepted range."""

    pass


class ImpressionError(AttributionError):
    """Raised when a development impression cannot be built or signed."""

    pass
