"""Unit tests for WebhookService event routing."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobrelay.clock import utcnow
from jobrelay.enums import RelayEventType
from jobrelay.models.domain import ContextSession
from jobrelay.services.context_relay_service import ContextRelayService
from jobrelay.services.webhook_relay import WebhookRelay
from jobrelay.services.webhook_service import CONTEXT_NOT_FOUND, WebhookService


def _session(token: str = "session_abc") -> ContextSession:
    return ContextSession(
        session_token=token,
        context_data={"jobTitle": "Backend Engineer"},
        external_user_id="psid-1",
        conversation_started=True,
        expires_at=utcnow() + timedelta(hours=1),
    )


@pytest.fixture
def contexts() -> AsyncMock:
    return AsyncMock(spec=ContextRelayService)


@pytest.fixture
def relay() -> MagicMock:
    return MagicMock(spec=WebhookRelay)


@pytest.fixture
def service(contexts, relay) -> WebhookService:
    return WebhookService(contexts, relay)


class TestReferralEvents:
    async def test_referral_with_known_session(self, service, contexts, relay):
        contexts.resolve_inbound_event.return_value = _session()

        payload = await service.process_event(
            {
                "sender": {"id": "psid-1"},
                "referral": {"ref": "session_abc", "source": "SHORTLINK", "type": "OPEN_THREAD"},
            }
        )

        contexts.resolve_inbound_event.assert_awaited_once_with(
            session_id="session_abc", external_user_id="psid-1"
        )
        assert payload["type"] == RelayEventType.REFERRAL.value
        assert payload["sessionId"] == "session_abc"
        assert payload["jobContext"] == {"jobTitle": "Backend Engineer"}
        assert payload["referral"] == {"source": "SHORTLINK", "type": "OPEN_THREAD"}
        assert "error" not in payload
        relay.dispatch.assert_called_once_with(payload)

    async def test_unknown_ref_relays_error_marker(self, service, contexts, relay):
        contexts.resolve_inbound_event.return_value = None

        payload = await service.process_event(
            {"sender": {"id": "psid-1"}, "referral": {"ref": "session_expired"}}
        )

        assert payload["jobContext"] is None
        assert payload["error"] == CONTEXT_NOT_FOUND
        relay.dispatch.assert_called_once()

    async def test_postback_referral(self, service, contexts):
        contexts.resolve_inbound_event.return_value = _session()

        payload = await service.process_event(
            {
                "sender": {"id": "psid-1"},
                "postback": {"payload": "GET_STARTED", "referral": {"ref": "session_abc"}},
            }
        )

        assert payload["type"] == RelayEventType.REFERRAL.value
        assert payload["jobContext"] is not None

    async def test_referral_without_ref_is_ignored(self, service, relay):
        assert await service.process_event({"sender": {"id": "p"}, "referral": {}}) is None
        relay.dispatch.assert_not_called()


class TestMessageEvents:
    async def test_message_falls_back_to_sender(self, service, contexts, relay):
        contexts.resolve_inbound_event.return_value = _session("session_latest")

        payload = await service.process_event(
            {"sender": {"id": "psid-1"}, "message": {"mid": "m.1", "text": "Hi"}}
        )

        contexts.resolve_inbound_event.assert_awaited_once_with(
            session_id=None, external_user_id="psid-1"
        )
        assert payload["type"] == RelayEventType.MESSAGE.value
        assert payload["sessionId"] == "session_latest"
        assert payload["message"] == {"mid": "m.1", "text": "Hi", "attachments": []}
        assert payload["conversationStarted"] is True

    async def test_message_without_any_session(self, service, contexts):
        contexts.resolve_inbound_event.return_value = None

        payload = await service.process_event(
            {"sender": {"id": "psid-9"}, "message": {"mid": "m.2", "text": "Hello?"}}
        )

        assert payload["sessionId"] is None
        assert payload["jobContext"] is None
        assert "error" not in payload

    async def test_message_with_referral_ref(self, service, contexts):
        contexts.resolve_inbound_event.return_value = None

        payload = await service.process_event(
            {
                "sender": {"id": "psid-1"},
                "message": {"text": "Hi", "referral": {"ref": "session_x"}},
            }
        )

        contexts.resolve_inbound_event.assert_awaited_once_with(
            session_id="session_x", external_user_id="psid-1"
        )
        assert payload["error"] == CONTEXT_NOT_FOUND


class TestIgnoredEvents:
    @pytest.mark.parametrize(
        "event",
        [
            {"sender": {"id": "p"}, "delivery": {"mids": ["m.1"]}},
            {"sender": {"id": "p"}, "read": {"watermark": 1}},
            {"message": {"text": "no sender"}},
        ],
    )
    async def test_unhandled_event_kinds(self, service, contexts, relay, event):
        assert await service.process_event(event) is None
        contexts.resolve_inbound_event.assert_not_called()
        relay.dispatch.assert_not_called()


class TestProcessPayload:
    async def test_one_bad_event_does_not_stop_the_batch(self, service, contexts, relay):
        contexts.resolve_inbound_event.side_effect = [RuntimeError("db down"), _session()]
        body = {
            "object": "page",
            "entry": [
                {"messaging": [{"sender": {"id": "a"}, "message": {"text": "1"}}]},
                {"messaging": [{"sender": {"id": "b"}, "message": {"text": "2"}}]},
            ],
        }

        assert await service.process_payload(body) == 1
        relay.dispatch.assert_called_once()

    async def test_empty_batch(self, service):
        assert await service.process_payload({"object": "page"}) == 0
        assert await service.process_payload({"object": "page", "entry": [{}]}) == 0
