"""
Module: transport.py
Description: HTTP delivery of batches to the collector endpoint.

Implements one POST per call with configured headers and timeout.
Retry policy lives one layer up, in the retry ledger.
"""

from typing import Any, List, Optional

import httpx

from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.errors import ConfigurationError, TransportError
from telemetry_relay.models.item import QueueItem
from telemetry_relay.serialization import ReferenceSafeSerializer
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.utils.timestamps import utc_now_iso

logger = get_logger(__name__)


class HttpTransport:
    """
    HTTP client for pushing batches to the collector.

    Builds the ``{sentAt, items}`` envelope, serializes it with the
    reference-safe serializer, and raises TransportError for any
    non-2xx response. Lower level httpx errors propagate unchanged.
    """

    def __init__(
        self,
        config: DeliveryConfiguration,
        serializer: Optional[ReferenceSafeSerializer] = None
    ):
        """
        Initialize transport.

        Args:
            config: Shared delivery configuration (read on every send)
            serializer: Serializer for request bodies
        """
        self.config = config
        self.serializer = serializer or ReferenceSafeSerializer()

    def build_body(self, items: List[QueueItem]) -> str:
        envelope = {
            "sentAt": utc_now_iso(),
            "items": [item.to_wire() if isinstance(item, QueueItem) else item for item in items],
        }
        return self.serializer.serialize(envelope)

    async def send(self, items: List[QueueItem]) -> httpx.Response:
        """
        Deliver a batch with exactly one request.

        Args:
            items: Batch to deliver, in order

        Returns:
            The collector's response

        Raises:
            ConfigurationError: If no endpoint is configured
            TransportError: If the response status is not 2xx
            httpx.HTTPError: On timeouts and network failures
        """
        endpoint = self.config.endpoint
        if not endpoint:
            raise ConfigurationError("no collector endpoint configured")

        body = self.build_body(items)
        timeout = httpx.Timeout(self.config.timeout, connect=self.config.timeout)

        async with httpx.AsyncClient(timeout=timeout) as client:
            logger.debug(
                "Attempting batch delivery",
                endpoint=endpoint,
                items=len(items)
            )

            response = await client.post(
                endpoint,
                content=body.encode("utf-8"),
                headers=self.config.headers
            )

        if not response.is_success:
            logger.warning(
                "Batch delivery HTTP error",
                endpoint=endpoint,
                status_code=response.status_code,
                response=response.text[:500]  # Truncate large responses
            )
            raise TransportError(response.status_code, response.reason_phrase)

        logger.info(
            "Batch delivered successfully",
            endpoint=endpoint,
            items=len(items),
            status_code=response.status_code,
            response_time_ms=response.elapsed.total_seconds() * 1000
        )

        return response

    def apply_encryption(self, data: Any) -> Any:
        """
        Apply the configured encryption hook.

        Hook errors propagate; the hook is caller supplied and trusted.
        """
        if self.config.encrypt is not None:
            return self.config.encrypt(data)
        return data

    def is_configured(self) -> bool:
        return bool(self.config.endpoint)
