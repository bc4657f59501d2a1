"""Inbound messaging webhook processing.

Routes each messaging event to a handler by kind and relays the resolved
job context downstream:

- ``referral`` / ``postback.referral``: the ref is a context session id
- ``message``: an optional ``message.referral.ref``, otherwise the sender's
  most recent session

Any other event kind is logged and ignored.
"""

import logging
from typing import Any

from jobrelay.clock import utcnow
from jobrelay.enums import RelayEventType
from jobrelay.models.domain import ContextSession
from jobrelay.observability.redaction import sanitize
from jobrelay.services.context_relay_service import ContextRelayService
from jobrelay.services.webhook_relay import WebhookRelay

logger = logging.getLogger(__name__)

PAGE_OBJECT = "page"
CONTEXT_NOT_FOUND = "Context not found or expired"


class WebhookService:
    """Webhook business logic for the messaging platform."""

    def __init__(self, relay_service: ContextRelayService, relay: WebhookRelay) -> None:
        self._contexts = relay_service
        self._relay = relay

    async def process_payload(self, body: dict[str, Any]) -> int:
        """Handle every messaging event in a page webhook batch.

        One failing event does not stop the rest of the batch.

        Returns:
            Number of events that produced a relay payload.
        """
        relayed = 0
        for entry in body.get("entry") or []:
            for event in (entry or {}).get("messaging") or []:
                try:
                    if await self.process_event(event) is not None:
                        relayed += 1
                except Exception:
                    logger.exception("Failed to process messaging event %s", sanitize(event))
        return relayed

    async def process_event(self, event: dict[str, Any]) -> dict[str, Any] | None:
        """Handle one messaging event.

        Returns:
            The payload dispatched to the relay, or None when the event was
            ignored.
        """
        sender_id = str((event.get("sender") or {}).get("id") or "")
        if not sender_id:
            logger.warning("Messaging event without sender ignored")
            return None

        match event:
            case {"referral": dict() as referral}:
                return await self._handle_referral(referral, sender_id)
            case {"postback": {"referral": dict() as referral}}:
                return await self._handle_referral(referral, sender_id)
            case {"message": dict() as message}:
                return await self._handle_message(message, sender_id)
            case _:
                logger.info("Ignoring messaging event with keys %s", sorted(event))
                return None

    async def _handle_referral(
        self, referral: dict[str, Any], sender_id: str
    ) -> dict[str, Any] | None:
        ref = referral.get("ref")
        if not ref:
            logger.info("Referral without ref ignored")
            return None

        session = await self._contexts.resolve_inbound_event(
            session_id=ref, external_user_id=sender_id
        )
        payload = self._base_payload(RelayEventType.REFERRAL, sender_id, ref)
        payload["referral"] = {"source": referral.get("source"), "type": referral.get("type")}
        self._attach_context(payload, session, explicit_ref=True)
        self._relay.dispatch(payload)
        return payload

    async def _handle_message(
        self, message: dict[str, Any], sender_id: str
    ) -> dict[str, Any]:
        ref = (message.get("referral") or {}).get("ref") or None
        session = await self._contexts.resolve_inbound_event(
            session_id=ref, external_user_id=sender_id
        )
        payload = self._base_payload(
            RelayEventType.MESSAGE,
            sender_id,
            ref or (session.session_token if session else None),
        )
        payload["message"] = {
            "mid": message.get("mid"),
            "text": message.get("text"),
            "attachments": message.get("attachments") or [],
        }
        self._attach_context(payload, session, explicit_ref=ref is not None)
        self._relay.dispatch(payload)
        return payload

    @staticmethod
    def _base_payload(
        event_type: RelayEventType, sender_id: str, session_id: str | None
    ) -> dict[str, Any]:
        return {
            "type": event_type.value,
            "timestamp": utcnow().isoformat(),
            "senderId": sender_id,
            "sessionId": session_id,
            "source": "facebook_messenger",
        }

    @staticmethod
    def _attach_context(
        payload: dict[str, Any], session: ContextSession | None, *, explicit_ref: bool
    ) -> None:
        if session is not None:
            payload["jobContext"] = session.context_data
            payload["conversationStarted"] = session.conversation_started
            return
        payload["jobContext"] = None
        if explicit_ref:
            payload["error"] = CONTEXT_NOT_FOUND
