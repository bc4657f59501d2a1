"""Publish record data access operations."""

from sqlalchemy import select

from jobrelay.clock import utcnow
from jobrelay.dao.base import BaseDAO
from jobrelay.enums import PublishStatus
from jobrelay.models.domain import PublishRecord
from jobrelay.models.orm import PublishRecordModel


def _to_domain(row: PublishRecordModel) -> PublishRecord:
    return PublishRecord(
        id=row.id,
        job_id=row.job_id,
        destination=row.destination,
        status=PublishStatus(row.status),
        post_url=row.post_url,
        error_message=row.error_message,
        attempt_count=row.attempt_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PublishRecordDAO(BaseDAO[PublishRecord]):
    """Data access object for publish records.

    Status changes go through ``transition``, which only applies when the
    row is still in the expected source status.
    """

    async def create(self, record_id: str, job_id: str, destination: str) -> PublishRecord:
        """Insert a PENDING record with ``attempt_count`` 1."""
        now = utcnow()
        async with self._db.session() as session:
            row = PublishRecordModel(
                id=record_id,
                job_id=job_id,
                destination=destination,
                status=PublishStatus.PENDING.value,
                attempt_count=1,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            return _to_domain(row)

    async def get_by_id(self, record_id: str) -> PublishRecord | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(PublishRecordModel).where(PublishRecordModel.id == record_id)
            )
            row = result.scalar_one_or_none()
            return _to_domain(row) if row is not None else None

    async def get_by_job(self, job_id: str) -> list[PublishRecord]:
        """All records of a job, oldest first."""
        async with self._db.session() as session:
            result = await session.execute(
                select(PublishRecordModel)
                .where(PublishRecordModel.job_id == job_id)
                .order_by(PublishRecordModel.created_at.asc())
            )
            return [_to_domain(row) for row in result.scalars().all()]

    async def transition(
        self,
        record_id: str,
        from_status: PublishStatus,
        to_status: PublishStatus,
        *,
        post_url: str | None = None,
        error_message: str | None = None,
        increment_attempt: bool = False,
    ) -> PublishRecord | None:
        """Move a record from ``from_status`` to ``to_status``.

        Args:
            record_id: Record identifier.
            from_status: Status the record must currently have.
            to_status: Target status.
            post_url: Locator of the published post, stored when given.
            error_message: Failure detail, stored when given.
            increment_attempt: Bump ``attempt_count`` as part of the update.

        Returns:
            The updated record, or None if the record is missing or was not
            in ``from_status``.
        """
        async with self._db.session() as session:
            result = await session.execute(
                select(PublishRecordModel)
                .where(PublishRecordModel.id == record_id)
                .where(PublishRecordModel.status == from_status.value)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None

            row.status = to_status.value
            if post_url is not None:
                row.post_url = post_url
            if error_message is not None:
                row.error_message = error_message
            if increment_attempt:
                row.attempt_count = (row.attempt_count or 0) + 1
            row.updated_at = utcnow()
            await session.flush()
            return _to_domain(row)
