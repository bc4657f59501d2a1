"""Messaging platform webhook endpoints.

GET performs the subscription handshake, POST receives event batches.
Event processing failures are logged and still acknowledged with 200 so the
platform does not retry or disable the subscription.
"""

import hmac
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse

from jobrelay.services.webhook_service import PAGE_OBJECT

if TYPE_CHECKING:
    from jobrelay.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

EVENT_RECEIVED = "EVENT_RECEIVED"


def verify_token_matches(expected: str | None, provided: str | None) -> bool:
    """Constant-time token check. An unset expected token never matches."""
    if not expected or provided is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def create_webhook_router(
    webhook_service: "WebhookService",
    *,
    verify_token: str | None,
) -> APIRouter:
    """Create webhook router with injected service.

    Args:
        webhook_service: WebhookService instance for event processing
        verify_token: Shared verification secret. When unset, every
            verification request is rejected.

    Returns:
        APIRouter with webhook endpoints configured
    """
    router = APIRouter(prefix="/webhook", tags=["webhooks"])

    if not verify_token:
        logger.warning("No webhook verify token configured, verification is disabled")

    @router.get("/messenger")
    async def verify_subscription(
        hub_mode: str | None = Query(default=None, alias="hub.mode"),
        hub_verify_token: str | None = Query(default=None, alias="hub.verify_token"),
        hub_challenge: str | None = Query(default=None, alias="hub.challenge"),
    ) -> PlainTextResponse:
        """Echo the challenge when the verify token matches, 403 otherwise."""
        if hub_mode != "subscribe" or not verify_token_matches(
            verify_token, hub_verify_token
        ):
            logger.warning("Webhook verification rejected")
            return PlainTextResponse("Forbidden", status_code=403)

        logger.info("Webhook verified")
        return PlainTextResponse(hub_challenge or "")

    @router.post("/messenger")
    async def receive_events(request: Request) -> PlainTextResponse:
        """Receive a batch of messaging events.

        Returns:
            200 EVENT_RECEIVED for page events (even when processing
            fails), 404 for any other object type
        """
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Webhook body is not valid JSON")
            return PlainTextResponse(EVENT_RECEIVED)

        if not isinstance(body, dict) or body.get("object") != PAGE_OBJECT:
            return PlainTextResponse("Not Found", status_code=404)

        try:
            await webhook_service.process_payload(body)
        except Exception:
            logger.exception("Webhook batch processing failed")
        return PlainTextResponse(EVENT_RECEIVED)

    return router
