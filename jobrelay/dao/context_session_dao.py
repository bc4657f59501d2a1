"""Context session data access operations."""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update

from jobrelay.clock import utcnow
from jobrelay.dao.base import BaseDAO
from jobrelay.models.domain import ContextSession
from jobrelay.models.orm import ContextSessionModel


def _to_domain(row: ContextSessionModel) -> ContextSession:
    return ContextSession(
        id=row.id,
        session_token=row.session_token,
        publish_record_id=row.publish_record_id,
        context_data=dict(row.context_data or {}),
        is_active=row.is_active,
        external_user_id=row.external_user_id,
        conversation_started=row.conversation_started,
        created_at=row.created_at,
        expires_at=row.expires_at,
        last_accessed_at=row.last_accessed_at,
    )


class ContextSessionDAO(BaseDAO[ContextSession]):
    """Data access object for context sessions.

    Expiry is enforced on every read: a session past ``expires_at`` is never
    returned as active, whether or not the expiry sweep has run yet.
    """

    async def create(
        self,
        session_token: str,
        publish_record_id: str | None,
        context_data: dict[str, Any],
        expires_at: datetime,
    ) -> ContextSession:
        """Store a new active session.

        Args:
            session_token: Opaque, unique session id.
            publish_record_id: Record the deep link was minted for.
            context_data: JSON-safe snapshot of the job context.
            expires_at: Absolute expiry.

        Returns:
            Created ContextSession domain model.
        """
        now = utcnow()
        async with self._db.session() as session:
            row = ContextSessionModel(
                session_token=session_token,
                publish_record_id=publish_record_id,
                context_data=context_data,
                is_active=True,
                conversation_started=False,
                created_at=now,
                expires_at=expires_at,
                last_accessed_at=now,
            )
            session.add(row)
            await session.flush()
            return _to_domain(row)

    async def get_active_by_token(
        self, session_token: str, now: datetime | None = None
    ) -> ContextSession | None:
        """Exact lookup of an active, unexpired session."""
        now = now or utcnow()
        async with self._db.session() as session:
            result = await session.execute(
                select(ContextSessionModel)
                .where(ContextSessionModel.session_token == session_token)
                .where(ContextSessionModel.is_active.is_(True))
                .where(ContextSessionModel.expires_at > now)
            )
            row = result.scalar_one_or_none()
            return _to_domain(row) if row is not None else None

    async def get_latest_for_external_user(
        self, external_user_id: str, now: datetime | None = None
    ) -> ContextSession | None:
        """Most recently accessed active, unexpired session linked to a user."""
        now = now or utcnow()
        async with self._db.session() as session:
            result = await session.execute(
                select(ContextSessionModel)
                .where(ContextSessionModel.external_user_id == external_user_id)
                .where(ContextSessionModel.is_active.is_(True))
                .where(ContextSessionModel.expires_at > now)
                .order_by(
                    ContextSessionModel.last_accessed_at.desc(),
                    ContextSessionModel.id.desc(),
                )
                .limit(1)
            )
            row = result.scalars().first()
            return _to_domain(row) if row is not None else None

    async def link_external_user(self, session_token: str, external_user_id: str) -> bool:
        """Attach an external user to a session that has none yet.

        The update is conditional on ``external_user_id IS NULL``, so
        concurrent first-touch events cannot overwrite each other.

        Returns:
            True if this call linked the user, False if the session was
            already linked or does not exist.
        """
        now = utcnow()
        async with self._db.session() as session:
            result = await session.execute(
                update(ContextSessionModel)
                .where(ContextSessionModel.session_token == session_token)
                .where(ContextSessionModel.external_user_id.is_(None))
                .values(
                    external_user_id=external_user_id,
                    conversation_started=True,
                    last_accessed_at=now,
                )
            )
            return result.rowcount == 1

    async def touch(self, session_token: str) -> ContextSession | None:
        """Refresh ``last_accessed_at`` and return the updated session."""
        async with self._db.session() as session:
            result = await session.execute(
                select(ContextSessionModel).where(
                    ContextSessionModel.session_token == session_token
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            row.last_accessed_at = utcnow()
            await session.flush()
            return _to_domain(row)

    async def deactivate(self, session_token: str) -> bool:
        """Mark a session inactive.

        Returns:
            True if an active session was deactivated.
        """
        async with self._db.session() as session:
            result = await session.execute(
                update(ContextSessionModel)
                .where(ContextSessionModel.session_token == session_token)
                .where(ContextSessionModel.is_active.is_(True))
                .values(is_active=False)
            )
            return result.rowcount == 1

    async def list_active(
        self, limit: int = 50, now: datetime | None = None
    ) -> list[ContextSession]:
        """Active, unexpired sessions, newest first."""
        now = now or utcnow()
        async with self._db.session() as session:
            result = await session.execute(
                select(ContextSessionModel)
                .where(ContextSessionModel.is_active.is_(True))
                .where(ContextSessionModel.expires_at > now)
                .order_by(ContextSessionModel.created_at.desc())
                .limit(limit)
            )
            return [_to_domain(row) for row in result.scalars().all()]

    async def deactivate_expired(self, now: datetime | None = None) -> int:
        """Flip ``is_active`` off for every session past its expiry.

        Returns:
            Number of sessions deactivated.
        """
        now = now or utcnow()
        async with self._db.session() as session:
            result = await session.execute(
                update(ContextSessionModel)
                .where(ContextSessionModel.is_active.is_(True))
                .where(ContextSessionModel.expires_at <= now)
                .values(is_active=False)
            )
            return result.rowcount
