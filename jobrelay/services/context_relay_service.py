"""Deep-link resolution and inbound event to context session mapping."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import uuid4

from jobrelay.clock import utcnow
from jobrelay.dao.context_session_dao import ContextSessionDAO
from jobrelay.dao.job_dao import JobDAO
from jobrelay.dao.publish_record_dao import PublishRecordDAO
from jobrelay.enums import DecodePhase, DeepLinkStatus, RelayEventType
from jobrelay.errors import DecodeError
from jobrelay.models.domain import ContextSession, Job, PublishRecord
from jobrelay.services.token_codec import PUBLISH_RECORD_KEY, decode_context
from jobrelay.services.webhook_relay import WebhookRelay

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session_"


@dataclass(frozen=True)
class DeepLinkResolution:
    status: DeepLinkStatus
    session_id: str | None = None
    redirect_url: str | None = None
    decode_phase: DecodePhase | None = None
    reason: str | None = None


def new_session_id() -> str:
    return f"{SESSION_PREFIX}{uuid4().hex}"


def build_session_snapshot(
    job: Job, record: PublishRecord, decoded_payload: dict[str, Any]
) -> dict[str, Any]:
    """Context snapshot stored on a session.

    Fresh job and record data win over whatever the token carried; token
    fields the store doesn't know about are kept.
    """
    fresh: dict[str, Any] = {
        PUBLISH_RECORD_KEY: record.id,
        "jobId": job.id,
        "jobTitle": job.title,
        "company": job.company,
        "location": job.location,
        "jobType": job.job_type,
        "experience": job.experience,
        "salaryRange": job.salary_range,
        "description": job.description,
        "requirements": list(job.requirements),
        "responsibilities": list(job.responsibilities),
        "perks": job.perks,
        "destination": record.destination,
        "postUrl": record.post_url,
    }
    return {**decoded_payload, **fresh}


class ContextRelayService:
    """Turns deep-link tokens into context sessions and finds them again for
    inbound chat events."""

    def __init__(
        self,
        *,
        job_dao: JobDAO,
        record_dao: PublishRecordDAO,
        session_dao: ContextSessionDAO,
        relay: WebhookRelay,
        messenger_link: str,
        session_ttl: timedelta = timedelta(hours=24),
    ):
        self._jobs = job_dao
        self._records = record_dao
        self._sessions = session_dao
        self._relay = relay
        self._messenger_link = messenger_link
        self._ttl = session_ttl

    async def resolve_deep_link(self, token: str | None) -> DeepLinkResolution:
        """Resolve a deep-link token to a fresh context session.

        A resolved link always creates a new session, even for a token that
        was resolved before.
        """
        if not token:
            return DeepLinkResolution(DeepLinkStatus.INVALID, reason="missing context")

        try:
            decoded = decode_context(token)
        except DecodeError as exc:
            logger.info("Rejecting deep link: %s", exc)
            return DeepLinkResolution(
                DeepLinkStatus.INVALID, decode_phase=exc.phase, reason=str(exc)
            )

        record = await self._records.get_by_id(decoded.publish_record_id)
        if record is None:
            return DeepLinkResolution(
                DeepLinkStatus.NOT_FOUND,
                decode_phase=decoded.phase,
                reason="publish record not found",
            )

        job = await self._jobs.get_by_id(record.job_id)
        if job is None:
            return DeepLinkResolution(
                DeepLinkStatus.NOT_FOUND, decode_phase=decoded.phase, reason="job not found"
            )

        now = utcnow()
        if not job.is_open(now):
            return DeepLinkResolution(
                DeepLinkStatus.CLOSED, decode_phase=decoded.phase, reason="job closed"
            )

        snapshot = build_session_snapshot(job, record, decoded.payload)
        session_id = new_session_id()
        await self._sessions.create(session_id, record.id, snapshot, now + self._ttl)
        redirect_url = f"{self._messenger_link}?ref={session_id}"

        self._relay.dispatch(
            {
                "type": RelayEventType.CONTEXT_TRIGGER.value,
                "timestamp": now.isoformat(),
                "sessionId": session_id,
                "jobContext": snapshot,
                "redirectUrl": redirect_url,
                "source": "deep_link",
            }
        )
        logger.info(
            "Deep link for record %s resolved (%s) to %s",
            record.id,
            decoded.phase,
            session_id,
        )
        return DeepLinkResolution(
            DeepLinkStatus.RESOLVED,
            session_id=session_id,
            redirect_url=redirect_url,
            decode_phase=decoded.phase,
        )

    async def resolve_inbound_event(
        self, session_id: str | None = None, external_user_id: str | None = None
    ) -> ContextSession | None:
        """Find the context session an inbound chat event belongs to.

        An explicit session id is looked up exactly, with no fallback. Without
        one, the user's most recently accessed session is used. The first
        event carrying both ids links the user to the session.
        """
        if session_id:
            session = await self._sessions.get_active_by_token(session_id)
            if session is None:
                logger.info("No active context session %s", session_id)
                return None
            if external_user_id and session.external_user_id is None:
                if await self._sessions.link_external_user(session_id, external_user_id):
                    logger.info("Linked external user to %s", session_id)
            return await self._sessions.touch(session_id)

        if external_user_id:
            session = await self._sessions.get_latest_for_external_user(external_user_id)
            if session is None:
                return None
            return await self._sessions.touch(session.session_token)

        return None

    async def list_active_sessions(self, limit: int = 50) -> list[ContextSession]:
        return await self._sessions.list_active(limit)

    async def get_session(self, session_id: str) -> ContextSession | None:
        return await self._sessions.get_active_by_token(session_id)

    async def sweep_expired(self) -> int:
        count = await self._sessions.deactivate_expired()
        if count:
            logger.info("Deactivated %d expired context sessions", count)
        return count

