"""Unit tests for the deep-link redirect router."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from jobrelay.enums import DecodePhase, DeepLinkStatus
from jobrelay.routers.deep_link_router import create_deep_link_router
from jobrelay.services.context_relay_service import DeepLinkResolution


@pytest.fixture
def mock_relay_service():
    return AsyncMock()


@pytest.fixture
def client(mock_relay_service):
    app = FastAPI()
    app.include_router(create_deep_link_router(mock_relay_service))
    return TestClient(app)


class TestMessengerRedirect:
    def test_resolved_link_redirects(self, client, mock_relay_service):
        mock_relay_service.resolve_deep_link.return_value = DeepLinkResolution(
            DeepLinkStatus.RESOLVED,
            session_id="session_abc",
            redirect_url="https://m.me/acmejobs?ref=session_abc",
            decode_phase=DecodePhase.FULL,
        )

        response = client.get(
            "/api/messenger-redirect",
            params={"context": "eyJwdWJsaXNoUmVjb3JkSWQiOiJyIn0"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == "https://m.me/acmejobs?ref=session_abc"
        mock_relay_service.resolve_deep_link.assert_awaited_once_with(
            "eyJwdWJsaXNoUmVjb3JkSWQiOiJyIn0"
        )

    def test_missing_token(self, client, mock_relay_service):
        response = client.get("/api/messenger-redirect")

        assert response.status_code == 400
        assert "Invalid link" in response.text
        mock_relay_service.resolve_deep_link.assert_not_called()

    @pytest.mark.parametrize(
        "status, code, title",
        [
            (DeepLinkStatus.INVALID, 400, "Invalid link"),
            (DeepLinkStatus.NOT_FOUND, 404, "Job not found"),
            (DeepLinkStatus.CLOSED, 410, "Position closed"),
        ],
    )
    def test_unresolved_links_get_a_page(self, client, mock_relay_service, status, code, title):
        mock_relay_service.resolve_deep_link.return_value = DeepLinkResolution(status)

        response = client.get("/api/messenger-redirect", params={"context": "abc"})

        assert response.status_code == code
        assert response.headers["content-type"].startswith("text/html")
        assert title in response.text

    def test_unexpected_error_shows_closed_page(self, client, mock_relay_service):
        mock_relay_service.resolve_deep_link.side_effect = RuntimeError("db locked")

        response = client.get("/api/messenger-redirect", params={"context": "abc"})

        assert response.status_code == 410
        assert "db locked" not in response.text
