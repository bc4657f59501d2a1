"""Unit tests for the context session router."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from jobrelay.clock import utcnow
from jobrelay.models.domain import ContextSession
from jobrelay.routers.context_router import create_context_router


def _session(token: str) -> ContextSession:
    return ContextSession(
        session_token=token,
        publish_record_id="rec-1",
        context_data={"jobTitle": "Engineer", "company": "Acme"},
        expires_at=utcnow() + timedelta(hours=1),
    )


@pytest.fixture
def mock_relay_service():
    return AsyncMock()


@pytest.fixture
def client(mock_relay_service):
    app = FastAPI()
    app.include_router(create_context_router(mock_relay_service, list_limit=20))
    return TestClient(app)


class TestContextSessions:
    def test_list(self, client, mock_relay_service):
        mock_relay_service.list_active_sessions.return_value = [
            _session("session_b"),
            _session("session_a"),
        ]

        response = client.get("/api/context-sessions")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["contexts"][0]["sessionToken"] == "session_b"
        assert data["contexts"][0]["jobTitle"] == "Engineer"
        mock_relay_service.list_active_sessions.assert_awaited_once_with(20)

    def test_get(self, client, mock_relay_service):
        mock_relay_service.get_session.return_value = _session("session_a")

        response = client.get("/api/context-sessions/session_a")

        assert response.status_code == 200
        assert response.json()["contextData"]["company"] == "Acme"

    def test_get_missing(self, client, mock_relay_service):
        mock_relay_service.get_session.return_value = None

        assert client.get("/api/context-sessions/session_x").status_code == 404
