"""
Asynchronous delivery of finished clips to the remote sink.

Uses ``httpx.AsyncClient`` so an in-flight upload never blocks the event
loop driving the recorder. Each clip is posted at most once; failures are
returned as ``DeliveryFailure`` values rather than raised.
"""

import logging
from collections import deque

import httpx

from src.core.config import get_settings
from src.core.exceptions import ClipAlreadyDeliveredError
from src.core.models import (
    DeliveryFailure,
    DeliveryOutcome,
    DeliverySuccess,
    EncodedClip,
    FailureKind,
)
from src.core.utils import build_data_uri

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "delivery failed"
DELIVERED_HISTORY = 256  # Clip ids remembered for the at-most-once guard


class DeliveryClient:
    """Posts encoded clips to the sink and interprets its JSON reply.

    Request body: ``{"audio": <data URI>, "filename": <str>}``.
    Reply: ``{"success": bool, "result"?: object, "error"?: str}``. The HTTP
    status is not used; only the reply body decides the outcome.
    """

    def __init__(
        self,
        sink_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        history_size: int = DELIVERED_HISTORY,
    ) -> None:
        """Initialize the delivery client.

        Args:
            sink_url: Endpoint to post clips to (falls back to settings).
            timeout: Request timeout in seconds (falls back to settings).
            client: Pre-built ``httpx.AsyncClient`` (tests, custom transports).
            history_size: How many recent clip ids are kept to refuse
                re-delivery.
        """
        settings = get_settings()
        self._sink_url = sink_url or settings.sink_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.delivery_timeout
        )
        self._delivered: set[str] = set()
        self._delivered_order: deque[str] = deque()
        self._history_size = max(1, history_size)

    @property
    def sink_url(self) -> str:
        return self._sink_url

    async def deliver(self, clip: EncodedClip) -> DeliveryOutcome:
        """Submit one clip to the sink.

        Args:
            clip: The finished recording.

        Returns:
            ``DeliverySuccess`` with the sink's ``result`` object, or
            ``DeliveryFailure`` with the sink's error message or a transport
            error description.

        Raises:
            ClipAlreadyDeliveredError: If this clip was already submitted.
        """
        if clip.clip_id in self._delivered:
            raise ClipAlreadyDeliveredError(clip.clip_id)
        self._remember(clip.clip_id)

        body = {
            "audio": build_data_uri(clip.media_type, clip.data),
            "filename": clip.filename,
        }
        logger.info("Delivering %s (%d bytes) to %s", clip.filename, clip.size, self._sink_url)

        try:
            resp = await self._client.post(self._sink_url, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("Delivery timed out: %s", exc)
            return DeliveryFailure(f"Request timed out: {exc}", kind=FailureKind.transport)
        except httpx.HTTPError as exc:
            logger.warning("Delivery transport error: %s", exc)
            return DeliveryFailure(f"Network error: {exc}", kind=FailureKind.transport)
        except httpx.InvalidURL as exc:
            logger.warning("Invalid sink URL %r: %s", self._sink_url, exc)
            return DeliveryFailure(f"Invalid sink URL: {exc}", kind=FailureKind.transport)

        return self._interpret(resp)

    def _remember(self, clip_id: str) -> None:
        """Record a submitted clip id, forgetting the oldest beyond the limit."""
        self._delivered.add(clip_id)
        self._delivered_order.append(clip_id)
        while len(self._delivered_order) > self._history_size:
            self._delivered.discard(self._delivered_order.popleft())

    def _interpret(self, resp: httpx.Response) -> DeliveryOutcome:
        """Translate the sink reply into a delivery outcome."""
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Malformed sink reply (HTTP %s)", resp.status_code)
            return DeliveryFailure(
                f"Malformed sink reply (HTTP {resp.status_code})",
                kind=FailureKind.transport,
            )
        if not isinstance(data, dict):
            return DeliveryFailure("Malformed sink reply", kind=FailureKind.transport)

        if data.get("success") is True:
            result = data.get("result")
            logger.info("Delivery succeeded")
            return DeliverySuccess(receipt=result if isinstance(result, dict) else {})

        reason = data.get("error") or GENERIC_FAILURE
        logger.warning("Sink rejected clip: %s", reason)
        return DeliveryFailure(str(reason), kind=FailureKind.rejected)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
