"""Unit tests for JobDAO and PublishRecordDAO."""

import asyncio
from datetime import timedelta

import pytest_asyncio

from jobrelay.clock import utcnow
from jobrelay.dao.job_dao import JobDAO
from jobrelay.dao.publish_record_dao import PublishRecordDAO
from jobrelay.database import Database
from jobrelay.enums import PublishStatus
from jobrelay.models.domain import Job, PublishRecord

GROUP = "https://www.facebook.com/groups/devjobs"


@pytest_asyncio.fixture
async def job_dao(test_db: Database) -> JobDAO:
    return JobDAO(test_db)


@pytest_asyncio.fixture
async def record_dao(test_db: Database) -> PublishRecordDAO:
    return PublishRecordDAO(test_db)


class TestJobDAO:
    async def test_create_and_get(self, job_dao: JobDAO):
        created = await job_dao.create(
            "job-1",
            "Backend Engineer",
            destinations=[GROUP],
            company="Acme",
            requirements=["Python"],
        )

        fetched = await job_dao.get_by_id("job-1")

        assert isinstance(fetched, Job)
        assert fetched == created
        assert fetched.requirements == ["Python"]
        assert await job_dao.get_by_id("missing") is None

    async def test_set_active(self, job_dao: JobDAO):
        await job_dao.create("job-1", "Engineer")

        assert await job_dao.set_active("job-1", False) is True
        assert (await job_dao.get_by_id("job-1")).is_active is False
        assert await job_dao.set_active("missing", False) is False

    async def test_list_pending(self, job_dao: JobDAO, record_dao: PublishRecordDAO):
        await job_dao.create("old", "Old", destinations=[GROUP])
        await asyncio.sleep(0.01)
        await job_dao.create("new", "New", destinations=[GROUP])
        await job_dao.create("no-destinations", "Nowhere")
        await job_dao.create("closed", "Closed", destinations=[GROUP], is_active=False)
        await job_dao.create(
            "expired", "Expired", destinations=[GROUP], expires_at=utcnow() - timedelta(days=1)
        )
        await job_dao.create("published", "Published", destinations=[GROUP])
        await record_dao.create("rec-1", "published", GROUP)
        await record_dao.transition("rec-1", PublishStatus.PENDING, PublishStatus.SUCCESS)

        pending = await job_dao.list_pending()

        assert [job.id for job in pending] == ["old", "new"]
        assert [job.id for job in await job_dao.list_pending(limit=1)] == ["old"]

    async def test_failed_records_keep_job_pending(self, job_dao: JobDAO, record_dao: PublishRecordDAO):
        await job_dao.create("job-1", "Engineer", destinations=[GROUP])
        await record_dao.create("rec-1", "job-1", GROUP)
        await record_dao.transition("rec-1", PublishStatus.PENDING, PublishStatus.FAILED)

        assert [job.id for job in await job_dao.list_pending()] == ["job-1"]


class TestPublishRecordDAO:
    async def test_create_is_pending(self, job_dao: JobDAO, record_dao: PublishRecordDAO):
        await job_dao.create("job-1", "Engineer")

        record = await record_dao.create("rec-1", "job-1", GROUP)

        assert isinstance(record, PublishRecord)
        assert record.status == PublishStatus.PENDING
        assert record.attempt_count == 1

    async def test_transition_requires_source_status(
        self, job_dao: JobDAO, record_dao: PublishRecordDAO
    ):
        await job_dao.create("job-1", "Engineer")
        await record_dao.create("rec-1", "job-1", GROUP)

        assert (
            await record_dao.transition("rec-1", PublishStatus.POSTING, PublishStatus.SUCCESS)
            is None
        )
        moved = await record_dao.transition("rec-1", PublishStatus.PENDING, PublishStatus.POSTING)
        assert moved.status == PublishStatus.POSTING

    async def test_failed_transition_stores_error_and_bumps_attempts(
        self, job_dao: JobDAO, record_dao: PublishRecordDAO
    ):
        await job_dao.create("job-1", "Engineer")
        await record_dao.create("rec-1", "job-1", GROUP)
        await record_dao.transition("rec-1", PublishStatus.PENDING, PublishStatus.POSTING)

        failed = await record_dao.transition(
            "rec-1",
            PublishStatus.POSTING,
            PublishStatus.FAILED,
            error_message="Job posting failed: boom",
            increment_attempt=True,
        )

        assert failed.status == PublishStatus.FAILED
        assert failed.error_message == "Job posting failed: boom"
        assert failed.attempt_count == 2
        assert failed.post_url is None

    async def test_get_by_job(self, job_dao: JobDAO, record_dao: PublishRecordDAO):
        await job_dao.create("job-1", "Engineer")
        await record_dao.create("rec-1", "job-1", GROUP)
        await asyncio.sleep(0.01)
        await record_dao.create("rec-2", "job-1", "https://www.facebook.com/groups/other")

        records = await record_dao.get_by_job("job-1")

        assert [r.id for r in records] == ["rec-1", "rec-2"]
        assert await record_dao.get_by_job("missing") == []
