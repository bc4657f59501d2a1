"""Context session inspection endpoints."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException

from jobrelay.models.base import JsonModel
from jobrelay.models.domain import ContextSession, ContextSessionSummary

if TYPE_CHECKING:
    from jobrelay.services.context_relay_service import ContextRelayService


class ContextListResponse(JsonModel):
    count: int
    contexts: list[ContextSessionSummary]


def create_context_router(
    relay_service: "ContextRelayService", *, list_limit: int = 50
) -> APIRouter:
    """Create context session router with injected service."""
    router = APIRouter(prefix="/api/context-sessions", tags=["context-sessions"])

    @router.get("", response_model=ContextListResponse)
    async def list_sessions() -> ContextListResponse:
        """Active, unexpired context sessions, newest first."""
        sessions = await relay_service.list_active_sessions(list_limit)
        return ContextListResponse(
            count=len(sessions),
            contexts=[ContextSessionSummary.from_session(s) for s in sessions],
        )

    @router.get("/{session_id}", response_model=ContextSession)
    async def get_session(session_id: str) -> ContextSession:
        session = await relay_service.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Context session not found")
        return session

    return router
