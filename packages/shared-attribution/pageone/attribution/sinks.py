"""
Attribution sinks - adapters over the platform postback API.

The platform API surface differs by OS version. Three capability tiers
are supported, richest first:

- POSTBACK: fine value + coarse value + lock window, async completion
- CONVERSION_VALUE: fine value only, async completion
- LEGACY: synchronous fine value update, no feedback

The tier is detected once from what the platform object exposes and
wrapped in the matching AttributionSink subclass.
"""

from __future__ import annotations

import inspect
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

from pageone.attribution.events import ConversionUpdate
from pageone.attribution.exceptions import SinkTransportError, SinkUnavailableError

logger = logging.getLogger(__name__)

Completion = Callable[[Exception | None], None]

# Minimum OS versions for each tier
TIER_MIN_OS_VERSIONS = (
    ((16, 1), "postback"),
    ((15, 4), "conversion_value"),
    ((14, 0), "legacy"),
)


class CapabilityTier(str, Enum):
    """Platform attribution capability, richest first."""

    POSTBACK = "postback"  # Tier A
    CONVERSION_VALUE = "conversion_value"  # Tier B
    LEGACY = "legacy"  # Tier C
    NONE = "none"

    @property
    def rank(self) -> int:
        """Higher is richer."""
        return _TIER_RANKS[self]


_TIER_RANKS = {
    CapabilityTier.NONE: 0,
    CapabilityTier.LEGACY: 1,
    CapabilityTier.CONVERSION_VALUE: 2,
    CapabilityTier.POSTBACK: 3,
}


class AttributionSink(ABC):
    """Abstract base class for platform attribution adapters.

    Subclasses must set the class attribute `tier` and implement send().
    send() never raises: failures, including synchronous exceptions from
    the platform, are delivered to the completion as SinkTransportError.
    """

    tier: CapabilityTier

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Validate that subclasses define tier."""
        super().__init_subclass__(**kwargs)
        if ABC in cls.__bases__:
            return
        if getattr(cls, "tier", None) is None:
            raise TypeError(f"{cls.__name__} must define a 'tier' class attribute")

    def __init__(self, platform: Any):
        """Initialize the sink.

        Args:
            platform: Object exposing the OS attribution API.
        """
        self.platform = platform

    @abstractmethod
    def _dispatch(self, update: ConversionUpdate, completion: Completion) -> None:
        """Hand the update to the platform."""
        pass  # pragma: no cover

    def send(self, update: ConversionUpdate, completion: Completion) -> None:
        """Send a conversion update.

        Args:
            update: The update to send.
            completion: Called once with None on success or a
                SinkTransportError on failure. May run on another thread.
        """
        try:
            self._dispatch(update, completion)
        except Exception as e:
            completion(SinkTransportError(f"{self.tier.value} update for {update.event.value} failed: {e}"))

    def register(self) -> bool:
        """Register the app for ad network attribution if the platform requires it.

        Returns:
            True if a registration call was made.
        """
        register = getattr(self.platform, "register_app_for_ad_network_attribution", None)
        if not callable(register):
            return False
        register()
        logger.info("Registered app for ad network attribution")
        return True

    def _completion_adapter(self, update: ConversionUpdate, completion: Completion) -> Callable[[Any], None]:
        """Translate the platform's error-or-None callback into SinkTransportError."""

        def on_complete(error: Any = None) -> None:
            if error is None:
                completion(None)
            else:
                completion(
                    SinkTransportError(f"{self.tier.value} update for {update.event.value} failed: {error}")
                )

        return on_complete


class PostbackSink(AttributionSink):
    """Tier A: fine value, coarse value and lock window with completion."""

    tier = CapabilityTier.POSTBACK

    def _dispatch(self, update: ConversionUpdate, completion: Completion) -> None:
        self.platform.update_postback_conversion_value(
            update.fine_value,
            coarse_value=update.coarse_value.value,
            lock_window=update.lock_window,
            completion=self._completion_adapter(update, completion),
        )


class ConversionValueSink(AttributionSink):
    """Tier B: fine value with completion; coarse and lock are dropped.

    A platform whose update call still requires the coarse and lock
    arguments (a newer API capped to this tier by OS version) gets them as
    None and False.
    """

    tier = CapabilityTier.CONVERSION_VALUE

    def __init__(self, platform: Any):
        super().__init__(platform)
        update = getattr(platform, "update_postback_conversion_value", None)
        self._pass_neutral_fields = not _accepts_call(update, 0, completion=None)

    def _dispatch(self, update: ConversionUpdate, completion: Completion) -> None:
        kwargs: dict[str, Any] = {"completion": self._completion_adapter(update, completion)}
        if self._pass_neutral_fields:
            kwargs["coarse_value"] = None
            kwargs["lock_window"] = False
        self.platform.update_postback_conversion_value(update.fine_value, **kwargs)


class LegacySink(AttributionSink):
    """Tier C: synchronous fine value update, treated as always succeeding."""

    tier = CapabilityTier.LEGACY

    def _dispatch(self, update: ConversionUpdate, completion: Completion) -> None:
        self.platform.update_conversion_value(update.fine_value)
        completion(None)


_SINK_CLASSES: dict[CapabilityTier, type[AttributionSink]] = {
    CapabilityTier.POSTBACK: PostbackSink,
    CapabilityTier.CONVERSION_VALUE: ConversionValueSink,
    CapabilityTier.LEGACY: LegacySink,
}


def _accepts_call(func: Any, *args: Any, **kwargs: Any) -> bool:
    """Return True if `func` can be called with the given arguments.

    Callables without an introspectable signature are assumed to accept it.
    """
    if not callable(func):
        return True
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*args, **kwargs)
    except TypeError:
        return False
    return True


def detect_tier(platform: Any) -> CapabilityTier:
    """Detect the richest capability tier a platform object exposes.

    A platform may declare its tier with an `attribution_tier` attribute
    (a CapabilityTier or its value); otherwise the tier is inferred from
    the update method's signature. A `**kwargs` parameter counts as
    accepting the coarse and lock arguments.

    Args:
        platform: Object exposing some subset of the attribution API.

    Returns:
        The detected CapabilityTier (NONE if nothing usable is exposed).
    """
    if platform is None:
        return CapabilityTier.NONE

    declared = getattr(platform, "attribution_tier", None)
    if isinstance(declared, (CapabilityTier, str)):
        return CapabilityTier(declared)

    update_postback = getattr(platform, "update_postback_conversion_value", None)
    if callable(update_postback):
        try:
            params = inspect.signature(update_postback).parameters
        except (TypeError, ValueError):
            params = {}
        if "coarse_value" in params and "lock_window" in params:
            return CapabilityTier.POSTBACK
        if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values()):
            return CapabilityTier.POSTBACK
        return CapabilityTier.CONVERSION_VALUE

    if callable(getattr(platform, "update_conversion_value", None)):
        return CapabilityTier.LEGACY

    return CapabilityTier.NONE


def tier_for_os_version(os_version: str) -> CapabilityTier:
    """Map an OS version string such as "16.1" or "17.4.1" to a tier.

    Raises:
        ValueError: If the version string cannot be parsed.
    """
    match = re.match(r"^\s*(\d+)(?:\.(\d+))?", os_version)
    if not match:
        raise ValueError(f"Invalid OS version: {os_version!r}")
    version = (int(match.group(1)), int(match.group(2) or 0))

    for min_version, tier in TIER_MIN_OS_VERSIONS:
        if version >= min_version:
            return CapabilityTier(tier)
    return CapabilityTier.NONE


def _supports_tier(platform: Any, tier: CapabilityTier) -> bool:
    """Return True if the platform accepts the call the tier's sink makes."""
    if tier is CapabilityTier.LEGACY:
        return callable(getattr(platform, "update_conversion_value", None))

    update = getattr(platform, "update_postback_conversion_value", None)
    if not callable(update):
        return False
    if tier is CapabilityTier.CONVERSION_VALUE:
        return _accepts_call(update, 0, completion=None) or _accepts_call(
            update, 0, coarse_value=None, lock_window=False, completion=None
        )
    return True


def _next_tier_down(tier: CapabilityTier) -> CapabilityTier:
    return next((t for t in _SINK_CLASSES if t.rank == tier.rank - 1), CapabilityTier.NONE)


def resolve_sink(platform: Any, os_version: str | None = None) -> AttributionSink:
    """Pick the richest sink the platform supports.

    When os_version is given the detected tier is capped at what that OS
    version supports, so a newer API surface is never used on an older OS.
    A capped tier whose call the platform cannot accept falls through to
    the next tier down.

    Args:
        platform: Object exposing the OS attribution API.
        os_version: Optional OS version string.

    Returns:
        An AttributionSink for the resolved tier.

    Raises:
        SinkUnavailableError: If no tier is available.
    """
    tier = detect_tier(platform)
    if os_version is not None:
        version_tier = tier_for_os_version(os_version)
        if version_tier.rank < tier.rank:
            tier = version_tier
        while tier is not CapabilityTier.NONE and not _supports_tier(platform, tier):
            logger.info(f"Platform cannot take {tier.value} updates; trying the next tier")
            tier = _next_tier_down(tier)

    if tier is CapabilityTier.NONE:
        raise SinkUnavailableError(
            f"No attribution capability available (os_version={os_version})"
        )

    logger.info(f"Resolved attribution sink tier: {tier.value}")
    return _SINK_CLASSES[tier](platform)
