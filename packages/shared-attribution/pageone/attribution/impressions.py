"""
Development impressions - exercise postbacks without a real ad.

A development impression uses source app id 0, which the platform accepts
without an ad network signature. Newer attribution APIs instead take a
compact JWS signed with ES256; build_development_jws() produces one with
the development key identifier.
"""

from __future__ import annotations

import base64
import json
import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from pageone.attribution.exceptions import ImpressionError

logger = logging.getLogger(__name__)

DEVELOPMENT_KEY_ID = "apple-development-identifier/1"
DEVELOPMENT_AD_NETWORK_ID = "development.adattributionkit"
DEVELOPMENT_SKAN_NETWORK_ID = "example.skadnetwork"
IMPRESSION_VERSION = "2.2"

# P-256 coordinates are 32 bytes
_ES256_COORDINATE_BYTES = 32


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


@dataclass
class DevelopmentImpression:
    """A view-through impression for testing postbacks.

    Example:
        impression = DevelopmentImpression(
            advertised_app_store_item_identifier=6747420629,
            ad_campaign_identifier=739874,
        )
    """

    advertised_app_store_item_identifier: int
    ad_network_identifier: str = DEVELOPMENT_SKAN_NETWORK_ID
    ad_campaign_identifier: int = 0
    ad_impression_identifier: str = field(default_factory=lambda: str(uuid.uuid4()))
    source_app_store_item_identifier: int = 0  # 0 marks a development impression
    timestamp: int = field(default_factory=_now_ms)  # epoch milliseconds
    signature: str = "test-signature"
    version: str = IMPRESSION_VERSION

    @property
    def is_development(self) -> bool:
        """Return True if this impression is a development impression."""
        return self.source_app_store_item_identifier == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the platform's impression field names."""
        return {
            "source_app_store_item_identifier": self.source_app_store_item_identifier,
            "advertised_app_store_item_identifier": self.advertised_app_store_item_identifier,
            "ad_network_identifier": self.ad_network_identifier,
            "ad_campaign_identifier": self.ad_campaign_identifier,
            "ad_impression_identifier": self.ad_impression_identifier,
            "timestamp": self.timestamp,
            "signature": self.signature,
            "version": self.version,
        }


def base64url_encode(data: bytes) -> str:
    """Base64url-encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_development_key() -> ec.EllipticCurvePrivateKey:
    """Create a throwaway P-256 key for local testing."""
    logger.warning("Using a temporary development key; postbacks signed with it will not verify")
    return ec.generate_private_key(ec.SECP256R1())


def load_private_key(pem: bytes | str, password: bytes | None = None) -> ec.EllipticCurvePrivateKey:
    """Load an ad network P-256 private key from PEM.

    Raises:
        ImpressionError: If the key cannot be parsed or is not a P-256 key.
    """
    if isinstance(pem, str):
        pem = pem.encode("utf-8")

    try:
        key = serialization.load_pem_private_key(pem, password=password)
    except (ValueError, TypeError) as e:
        raise ImpressionError(f"Invalid ad network private key: {e}") from e

    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise ImpressionError("Ad network private key must be an EC P-256 key")
    return key


def development_jws_payload(
    advertised_item_identifier: int,
    ad_network_identifier: str = DEVELOPMENT_AD_NETWORK_ID,
    timestamp: int | None = None,
    impression_identifier: str | None = None,
) -> dict[str, Any]:
    """Build the claims of a development app impression."""
    return {
        "advertised-item-identifier": advertised_item_identifier,
        "ad-network-identifier": ad_network_identifier,
        "impression-type": "app-impression",
        "timestamp": timestamp if timestamp is not None else _now_ms(),
        "publisher-item-identifier": 0,  # 0 for development
        "impression-identifier": impression_identifier or str(uuid.uuid4()),
        "source-identifier": 0,
    }


def build_development_jws(
    private_key: ec.EllipticCurvePrivateKey,
    advertised_item_identifier: int,
    ad_network_identifier: str = DEVELOPMENT_AD_NETWORK_ID,
    timestamp: int | None = None,
    impression_identifier: str | None = None,
) -> str:
    """
    Build a compact JWS for a development impression.

    The signing input is BASE64URL(header) '.' BASE64URL(payload); the
    signature is the raw R || S form required by JWS ES256, not DER.

    Args:
        private_key: P-256 signing key.
        advertised_item_identifier: App Store id of the advertised app.
        ad_network_identifier: Ad network id claim.
        timestamp: Impression time in epoch milliseconds. Defaults to now.
        impression_identifier: Unique impression id. Defaults to a UUID4.

    Returns:
        header.payload.signature

    Raises:
        ImpressionError: If serialization or signing fails.
    """
    header = {"kid": DEVELOPMENT_KEY_ID, "alg": "ES256"}
    payload = development_jws_payload(
        advertised_item_identifier,
        ad_network_identifier=ad_network_identifier,
        timestamp=timestamp,
        impression_identifier=impression_identifier,
    )

    try:
        header_b64 = base64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
        payload_b64 = base64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    except (TypeError, ValueError) as e:
        raise ImpressionError(f"Failed to serialize JWS components: {e}") from e

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")

    try:
        der_signature = private_key.sign(signing_input, ec.ECDSA(hashes.SHA256()))
    except Exception as e:
        raise ImpressionError(f"ES256 signing failed: {e}") from e

    r, s = decode_dss_signature(der_signature)
    raw_signature = r.to_bytes(_ES256_COORDINATE_BYTES, "big") + s.to_bytes(_ES256_COORDINATE_BYTES, "big")

    return f"{header_b64}.{payload_b64}.{base64url_encode(raw_signature)}"


class DevelopmentImpressionStarter:
    """Starts one development impression per process.

    Once the platform confirms the impression, `on_started` runs; the
    app uses it to send a first conversion value against the impression.
    """

    def __init__(self, platform: Any, on_started: Callable[[], None] | None = None):
        self.platform = platform
        self.on_started = on_started
        self._lock = threading.Lock()
        self._started = False
        self._pending = False

    @property
    def started(self) -> bool:
        """Return True once the platform accepted an impression."""
        return self._started

    def start(self, impression: DevelopmentImpression) -> bool:
        """Hand `impression` to the platform.

        Returns:
            True if a start call was made; False if the platform cannot
            start impressions or one is already started or pending.
        """
        start_impression = getattr(self.platform, "start_impression", None)
        if not callable(start_impression):
            logger.warning("Impression start not available on this platform")
            return False

        with self._lock:
            if self._started or self._pending:
                logger.info("Development impression already created")
                return False
            self._pending = True

        try:
            start_impression(impression, self._on_complete)
        except Exception as e:
            logger.error(f"Failed to start development impression: {e}")
            with self._lock:
                self._pending = False
            return False
        return True

    def _on_complete(self, error: Any = None) -> None:
        with self._lock:
            self._pending = False
            if error is None:
                self._started = True

        if error is not None:
            logger.error(f"Error starting development impression: {error}")
            return

        logger.info("Development impression started")
        if self.on_started is not None:
            try:
                self.on_started()
            except Exception as e:
                logger.warning(f"Post-impression callback failed: {e}")
