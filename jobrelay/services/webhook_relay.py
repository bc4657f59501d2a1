"""Outbound relay of context payloads to the downstream conversational webhook.

Delivery is a single attempt, fire-and-forget from the caller's side.
Failures are logged and dropped; they never reach the inbound handler that
triggered them.
"""

import asyncio
import logging
from typing import Any

import httpx

from jobrelay.errors import RelayDeliveryError
from jobrelay.observability.redaction import redact_text

logger = logging.getLogger(__name__)

SOURCE_HEADER = "X-Webhook-Source"
SOURCE_VALUE = "messenger-webhook"


class WebhookRelay:
    """POSTs JSON payloads to one configured webhook URL."""

    def __init__(
        self,
        webhook_url: str | None,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = (webhook_url or "").strip() or None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._url is not None

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def deliver(self, payload: dict[str, Any]) -> bool:
        """Send one payload.

        Returns:
            True if the webhook answered 2xx, False if delivery was skipped
            or failed.
        """
        if self._url is None:
            logger.debug("No relay webhook configured, dropping %s", payload.get("type"))
            return False
        try:
            await self._post(payload)
        except RelayDeliveryError as exc:
            logger.warning("Relay of %s failed: %s", payload.get("type"), exc)
            return False
        logger.info("Relayed %s", payload.get("type"))
        return True

    async def _post(self, payload: dict[str, Any]) -> None:
        try:
            response = await self._client.post(
                self._url,
                json=payload,
                headers={SOURCE_HEADER: SOURCE_VALUE},
            )
        except httpx.HTTPError as exc:
            raise RelayDeliveryError(redact_text(str(exc)) or type(exc).__name__) from exc
        if not response.is_success:
            raise RelayDeliveryError(
                f"webhook answered {response.status_code}: "
                f"{redact_text(response.text[:200])}"
            )

    def dispatch(self, payload: dict[str, Any]) -> asyncio.Task:
        """Schedule delivery in the background and return immediately."""
        task = asyncio.create_task(self.deliver(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def aclose(self, timeout_seconds: float = 5.0) -> None:
        """Wait (bounded) for in-flight deliveries, then close the client."""
        if self._pending:
            logger.info("Draining %d pending relay deliveries", len(self._pending))
            _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout_seconds)
            for task in still_pending:
                task.cancel()
            if still_pending:
                logger.warning("Cancelled %d relay deliveries at shutdown", len(still_pending))
        if self._owns_client:
            await self._client.aclose()
