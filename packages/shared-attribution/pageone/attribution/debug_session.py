"""Postback debug session - a local stand-in for the platform postback API.

Debug builds install a PostbackDebugSession as the attribution platform.
It exposes the richest capability tier, records every conversion update
and, on flush, delivers postbacks to the configured postback URLs so the
ad network side can be tested end to end.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from pageone.attribution.exceptions import SinkTransportError

logger = logging.getLogger(__name__)

POSTBACK_VERSION = "4.0"


@dataclass
class SimulatedPostback:
    """A postback the debug session delivers on flush."""

    postback_url: str
    ad_network_identifier: str = "linkrunner.network.test"
    source_identifier: str = "1234"  # 4-digit campaign identifier
    app_store_item_identifier: int = 123456789
    source_app_store_item_identifier: int = 0  # 0 in test environments
    source_domain: str | None = None
    fidelity_type: int = 1  # 1 = StoreKit-rendered or web ad
    is_redownload: bool = False
    did_win: bool = True
    version: str = POSTBACK_VERSION

    def to_payload(
        self,
        fine_value: int | None,
        coarse_value: str | None,
        sequence_index: int = 0,
    ) -> dict[str, Any]:
        """Build the JSON body for this postback.

        Args:
            fine_value: Latest fine conversion value, if any.
            coarse_value: Latest coarse value, if any.
            sequence_index: Postback window index (0, 1 or 2).

        Returns:
            Postback body using the platform's hyphenated field names.
        """
        payload: dict[str, Any] = {
            "version": self.version,
            "ad-network-id": self.ad_network_identifier,
            "source-identifier": self.source_identifier,
            "app-id": self.app_store_item_identifier,
            "transaction-id": str(uuid.uuid4()),
            "redownload": self.is_redownload,
            "fidelity-type": self.fidelity_type,
            "did-win": self.did_win,
            "postback-sequence-index": sequence_index,
        }
        if self.source_domain:
            payload["source-domain"] = self.source_domain
        else:
            payload["source-app-id"] = self.source_app_store_item_identifier

        # Only the first postback may carry a fine value
        if fine_value is not None and sequence_index == 0:
            payload["fine-conversion-value"] = fine_value
        if coarse_value is not None:
            payload["coarse-conversion-value"] = coarse_value
        return payload


@dataclass
class RecordedUpdate:
    """A conversion update received by the debug session."""

    fine_value: int
    coarse_value: str | None = None
    lock_window: bool = False
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class PostbackResponse:
    """Outcome of delivering one postback."""

    url: str
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return True for a 2xx response."""
        return self.status_code is not None and 200 <= self.status_code <= 299


class PostbackDebugSession:
    """Platform double for postback testing.

    Example:
        >>> session = PostbackDebugSession(
        ...     postbacks=[SimulatedPostback(postback_url="https://skan.example.com")]
        ... )
        >>> tracker = ConversionTracker(store=InMemoryStateStore(), sink=resolve_sink(session))
        >>> tracker.report_note_created(is_first_note=True)
        >>> responses = session.flush_postbacks()
    """

    def __init__(
        self,
        postbacks: list[SimulatedPostback] | None = None,
        client: httpx.Client | None = None,
        fail_updates: bool = False,
    ):
        """Initialize the session.

        Args:
            postbacks: Postbacks delivered on flush.
            client: Optional httpx client. Created lazily if not provided.
            fail_updates: Report every update as failed, to test retries.
        """
        self._postbacks = list(postbacks or [])
        self._client = client
        self._owns_client = client is None
        self.fail_updates = fail_updates
        self.registered = False
        self.updates: list[RecordedUpdate] = []
        self.impressions: list[Any] = []
        self._lock = threading.Lock()

    def __enter__(self) -> PostbackDebugSession:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=httpx.Timeout(30.0, connect=10.0))
        return self._client

    @property
    def postbacks(self) -> list[SimulatedPostback]:
        """Return the configured postbacks."""
        return list(self._postbacks)

    @property
    def latest_update(self) -> RecordedUpdate | None:
        """Return the most recent update, if any."""
        with self._lock:
            return self.updates[-1] if self.updates else None

    def set_postbacks(self, postbacks: list[SimulatedPostback]) -> None:
        """Replace the configured postbacks."""
        self._postbacks = list(postbacks)
        logger.info(f"Configured {len(self._postbacks)} debug postback(s)")

    def register_app_for_ad_network_attribution(self) -> None:
        """Platform registration hook."""
        self.registered = True
        logger.info("Debug session registered for ad network attribution")

    def start_impression(self, impression: Any, completion: Callable[[Any], None] | None = None) -> None:
        """Accept a development impression."""
        self.impressions.append(impression)
        logger.info("Debug session started impression")
        if completion is not None:
            completion(None)

    def update_postback_conversion_value(
        self,
        fine_value: int,
        coarse_value: str | None = None,
        lock_window: bool = False,
        completion: Callable[[Any], None] | None = None,
    ) -> None:
        """Record a conversion update and complete it immediately."""
        error = None
        if self.fail_updates:
            error = SinkTransportError("Simulated postback update failure")
        else:
            with self._lock:
                self.updates.append(
                    RecordedUpdate(
                        fine_value=fine_value,
                        coarse_value=coarse_value,
                        lock_window=lock_window,
                    )
                )
            logger.debug(f"Debug session recorded value {fine_value} (coarse={coarse_value}, lock={lock_window})")

        if completion is not None:
            completion(error)

    def flush_postbacks(self, sequence_index: int = 0) -> list[PostbackResponse]:
        """Deliver every configured postback with the latest values.

        Delivery failures are captured in the returned responses rather
        than raised.

        Args:
            sequence_index: Postback window index to report.

        Returns:
            One PostbackResponse per configured postback.
        """
        latest = self.latest_update
        fine_value = latest.fine_value if latest else None
        coarse_value = latest.coarse_value if latest else None

        responses = []
        for postback in self._postbacks:
            payload = postback.to_payload(fine_value, coarse_value, sequence_index=sequence_index)
            try:
                response = self.client.post(postback.postback_url, json=payload)
                result = PostbackResponse(url=postback.postback_url, status_code=response.status_code)
            except httpx.HTTPError as e:
                result = PostbackResponse(url=postback.postback_url, error=str(e))

            if result.ok:
                logger.info(f"Postback sent to {result.url}")
            else:
                logger.warning(
                    f"Postback to {result.url} failed: {result.error or f'status {result.status_code}'}"
                )
            responses.append(result)

        logger.info(f"Postback flush completed with {len(responses)} response(s)")
        return responses

    def update_and_flush(self, fine_value: int, coarse_value: str | None = None) -> list[PostbackResponse]:
        """Record an update and flush postbacks if it succeeded."""
        outcome: list[Any] = []
        self.update_postback_conversion_value(fine_value, coarse_value=coarse_value, completion=outcome.append)
        if outcome and outcome[0] is not None:
            logger.warning(f"Update to {fine_value} failed; not flushing: {outcome[0]}")
            return []
        return self.flush_postbacks()

    def diagnostics(self) -> dict[str, Any]:
        """Summarize session state."""
        latest = self.latest_update
        return {
            "registered": self.registered,
            "postback_count": len(self._postbacks),
            "postback_urls": [p.postback_url for p in self._postbacks],
            "update_count": len(self.updates),
            "impression_count": len(self.impressions),
            "latest_fine_value": latest.fine_value if latest else None,
            "latest_coarse_value": latest.coarse_value if latest else None,
            "fail_updates": self.fail_updates,
        }

    def close(self) -> None:
        """Close the HTTP client if this session created one."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
