"""Job data access operations."""

from datetime import datetime

from sqlalchemy import exists, select

from jobrelay.clock import utcnow
from jobrelay.dao.base import BaseDAO
from jobrelay.enums import PublishStatus
from jobrelay.models.domain import Job
from jobrelay.models.orm import JobModel, PublishRecordModel


def _to_domain(row: JobModel) -> Job:
    return Job(
        id=row.id,
        title=row.title,
        company=row.company,
        location=row.location,
        job_type=row.job_type,
        experience=row.experience,
        salary_range=row.salary_range,
        description=row.description,
        requirements=list(row.requirements or []),
        responsibilities=list(row.responsibilities or []),
        perks=row.perks,
        destinations=list(row.destinations or []),
        is_active=row.is_active,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class JobDAO(BaseDAO[Job]):
    """Data access object for job listings.

    Job authoring lives elsewhere; this DAO covers what publishing and the
    deep-link resolver need.
    """

    async def create(
        self,
        job_id: str,
        title: str,
        *,
        destinations: list[str] | None = None,
        company: str | None = None,
        location: str | None = None,
        job_type: str | None = None,
        experience: str | None = None,
        salary_range: str | None = None,
        description: str | None = None,
        requirements: list[str] | None = None,
        responsibilities: list[str] | None = None,
        perks: str | None = None,
        is_active: bool = True,
        expires_at: datetime | None = None,
    ) -> Job:
        """Insert a job listing.

        Returns:
            Created Job domain model.
        """
        now = utcnow()
        async with self._db.session() as session:
            row = JobModel(
                id=job_id,
                title=title,
                company=company,
                location=location,
                job_type=job_type,
                experience=experience,
                salary_range=salary_range,
                description=description,
                requirements=list(requirements or []),
                responsibilities=list(responsibilities or []),
                perks=perks,
                destinations=list(destinations or []),
                is_active=is_active,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            return _to_domain(row)

    async def get_by_id(self, job_id: str) -> Job | None:
        async with self._db.session() as session:
            result = await session.execute(select(JobModel).where(JobModel.id == job_id))
            row = result.scalar_one_or_none()
            return _to_domain(row) if row is not None else None

    async def set_active(self, job_id: str, is_active: bool) -> bool:
        """Open or close a job.

        Returns:
            True if the job was found and updated, False otherwise.
        """
        async with self._db.session() as session:
            result = await session.execute(select(JobModel).where(JobModel.id == job_id))
            row = result.scalar_one_or_none()
            if row is None:
                return False
            row.is_active = is_active
            row.updated_at = utcnow()
            return True

    async def list_pending(self, limit: int = 10) -> list[Job]:
        """Active, unexpired jobs with destinations and no successful post yet.

        Oldest first.
        """
        now = utcnow()
        published = exists().where(
            PublishRecordModel.job_id == JobModel.id,
            PublishRecordModel.status == PublishStatus.SUCCESS.value,
        )
        async with self._db.session() as session:
            result = await session.execute(
                select(JobModel)
                .where(JobModel.is_active.is_(True))
                .where((JobModel.expires_at.is_(None)) | (JobModel.expires_at > now))
                .where(~published)
                .order_by(JobModel.created_at.asc())
            )
            jobs = [_to_domain(row) for row in result.scalars().all()]

        # destinations is a JSON column, filter emptiness here
        return [job for job in jobs if job.destinations][:limit]
