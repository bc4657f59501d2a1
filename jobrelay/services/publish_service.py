"""Publish runs and the publish record lifecycle."""

import asyncio
import logging
from uuid import uuid4

from jobrelay.automation.browser_pool import BrowserPool
from jobrelay.automation.credential_manager import CredentialManager
from jobrelay.automation.delays import Sleep
from jobrelay.automation.driver import ContextDriver, PageDriver
from jobrelay.automation.posting import PostingStateMachine, PublishOutcome
from jobrelay.clock import utcnow
from jobrelay.dao.job_dao import JobDAO
from jobrelay.dao.publish_record_dao import PublishRecordDAO
from jobrelay.enums import PublishStatus, RunStatus
from jobrelay.errors import (
    AccountBusyError,
    AuthenticationError,
    AutomationError,
    InvalidTransitionError,
    PostingError,
)
from jobrelay.models.domain import (
    Account,
    DestinationResult,
    Job,
    PublishRecord,
    PublishSummary,
    RunState,
)
from jobrelay.observability.redaction import mask_identity
from jobrelay.services.post_composer import DeepLinkBuilder, compose_post

logger = logging.getLogger(__name__)


def describe_failure(exc: BaseException) -> str:
    """Human-readable failure detail stored on a FAILED record."""
    if isinstance(exc, AuthenticationError):
        label = "Authentication failed"
    elif isinstance(exc, PostingError):
        label = "Job posting failed"
    elif isinstance(exc, AutomationError):
        label = "Automation failed"
    else:
        label = f"Unexpected error ({type(exc).__name__})"
    detail = str(exc).strip()
    return f"{label}: {detail}" if detail else label


class PublishRecordLifecycle:
    """Creates publish records and drives them to a terminal status.

    PENDING -> POSTING -> SUCCESS | FAILED. A FAILED transition increments
    ``attempt_count``.
    """

    def __init__(self, record_dao: PublishRecordDAO):
        self._dao = record_dao

    async def begin_publish(self, job: Job, destination: str) -> str:
        """Create a record for (job, destination) and move it to POSTING.

        Returns:
            The new record id, minted before any automation starts so it can
            be embedded in the deep link.
        """
        record = await self._dao.create(str(uuid4()), job.id, destination)
        moved = await self._dao.transition(
            record.id, PublishStatus.PENDING, PublishStatus.POSTING
        )
        if moved is None:
            raise InvalidTransitionError(f"Record {record.id} could not start posting")
        return record.id

    async def complete_publish(
        self, record_id: str, outcome: PublishOutcome | BaseException
    ) -> PublishRecord:
        """Record the result of a posting attempt.

        Raises:
            InvalidTransitionError: If the record is not in POSTING.
        """
        if isinstance(outcome, PublishOutcome):
            updated = await self._dao.transition(
                record_id,
                PublishStatus.POSTING,
                PublishStatus.SUCCESS,
                post_url=outcome.locator,
            )
            target = PublishStatus.SUCCESS
        else:
            updated = await self._dao.transition(
                record_id,
                PublishStatus.POSTING,
                PublishStatus.FAILED,
                error_message=describe_failure(outcome),
                increment_attempt=True,
            )
            target = PublishStatus.FAILED

        if updated is None:
            raise InvalidTransitionError(
                f"Record {record_id} cannot move to {target}: not in {PublishStatus.POSTING}"
            )
        return updated


class PublishService:
    """Runs a job through every destination for an account.

    A run holds the account's browsing context for its whole duration.
    Per-destination failures never abort the run: each one ends as a FAILED
    record and the run moves on to the next destination.
    """

    def __init__(
        self,
        *,
        job_dao: JobDAO,
        lifecycle: PublishRecordLifecycle,
        pool: BrowserPool,
        credential_manager: CredentialManager,
        state_machine: PostingStateMachine,
        link_builder: DeepLinkBuilder,
        between_posts_seconds: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self._jobs = job_dao
        self._lifecycle = lifecycle
        self._pool = pool
        self._credentials = credential_manager
        self._machine = state_machine
        self._links = link_builder
        self._between_posts = between_posts_seconds
        self._sleep = sleep
        self._runs: dict[str, RunState] = {}

    def get_status(self, account_key: str) -> RunState:
        return self._runs.get(account_key, RunState())

    async def run_publish_by_id(self, account: Account, job_id: str) -> PublishSummary:
        """Load a job and publish it.

        Raises:
            LookupError: If the job does not exist.
            ValueError: If the job is closed or has no destinations.
            AccountBusyError: If the account is already publishing.
        """
        job = await self._jobs.get_by_id(job_id)
        if job is None:
            raise LookupError(f"Job {job_id} not found")
        if not job.is_open():
            raise ValueError(f"Job {job_id} is not active")
        return await self.run_publish(account, job)

    async def run_publish(self, account: Account, job: Job) -> PublishSummary:
        """Publish ``job`` to each of its destinations, in order.

        Raises:
            ValueError: If the job has no destinations.
            AccountBusyError: If the account is already publishing.
        """
        if not job.destinations:
            raise ValueError(f"Job {job.id} has no destinations")

        async with self._pool.acquire(account.key) as lease:
            self._runs[account.key] = RunState(
                status=RunStatus.RUNNING, job_id=job.id, started_at=utcnow()
            )
            logger.info(
                "Publishing job %s to %d destinations as %s",
                job.id,
                len(job.destinations),
                mask_identity(account.key),
            )
            try:
                results = await self._publish_all(lease.context, account, job)
            except Exception as exc:
                self._runs[account.key] = self._runs[account.key].model_copy(
                    update={
                        "status": RunStatus.FAILED,
                        "finished_at": utcnow(),
                        "error": str(exc),
                    }
                )
                raise

        summary = PublishSummary(job_id=job.id, job_title=job.title, results=results)
        self._runs[account.key] = self._runs[account.key].model_copy(
            update={
                "status": RunStatus.COMPLETED,
                "finished_at": utcnow(),
                "summary": summary,
            }
        )
        logger.info(
            "Job %s done: %d succeeded, %d failed",
            job.id,
            summary.successful,
            summary.failed,
        )
        return summary

    async def process_pending_jobs(self, account: Account, limit: int = 10) -> list[PublishSummary]:
        """Publish active jobs that have not been posted anywhere yet, oldest first.

        Stops early when the account turns out to be busy.
        """
        summaries = []
        for job in await self._jobs.list_pending(limit):
            try:
                summaries.append(await self.run_publish(account, job))
            except AccountBusyError:
                logger.info(
                    "Account %s is busy, stopping pending sweep", mask_identity(account.key)
                )
                break
        return summaries

    async def _publish_all(
        self, context: ContextDriver, account: Account, job: Job
    ) -> list[DestinationResult]:
        page = await context.new_page()
        pages = [page]
        try:
            try:
                await self._credentials.ensure_authenticated(page, account)
            except AutomationError as exc:
                logger.error(
                    "Authentication failed for %s: %s", mask_identity(account.key), exc
                )
                if not isinstance(exc, AuthenticationError):
                    exc = AuthenticationError(str(exc))
                return [await self._fail_unattempted(job, d, exc) for d in job.destinations]
            except Exception as exc:
                logger.exception(
                    "Unexpected error while logging in as %s", mask_identity(account.key)
                )
                return [await self._fail_unattempted(job, d, exc) for d in job.destinations]

            results = []
            for index, destination in enumerate(job.destinations):
                if index:
                    await self._sleep(self._between_posts)
                if page.is_closed():
                    page = await context.new_page()
                    pages.append(page)
                result, page = await self._publish_one(page, job, destination)
                if page not in pages:
                    pages.append(page)
                results.append(result)
            return results
        finally:
            for opened in pages:
                await self._close_page(opened)

    async def _publish_one(
        self, page: PageDriver, job: Job, destination: str
    ) -> tuple[DestinationResult, PageDriver]:
        record_id = await self._lifecycle.begin_publish(job, destination)
        content = compose_post(job, self._links.link_for(job, record_id, destination))

        try:
            outcome = await self._machine.publish(page, destination, content)
        except AutomationError as exc:
            logger.error("Posting to %s failed: %s", destination, exc)
            return await self._failed_result(record_id, destination, exc), page
        except Exception as exc:
            logger.exception("Unexpected error while posting to %s", destination)
            return await self._failed_result(record_id, destination, exc), page

        record = await self._lifecycle.complete_publish(record_id, outcome)
        result = DestinationResult(
            destination=destination,
            record_id=record.id,
            status=record.status,
            post_url=record.post_url,
            recovered_from_crash=outcome.recovered_from_crash,
            confirmed=outcome.confirmed,
        )
        return result, outcome.page or page

    async def _failed_result(
        self, record_id: str, destination: str, exc: BaseException
    ) -> DestinationResult:
        record = await self._lifecycle.complete_publish(record_id, exc)
        return DestinationResult(
            destination=destination,
            record_id=record.id,
            status=record.status,
            error=record.error_message,
        )

    async def _fail_unattempted(
        self, job: Job, destination: str, exc: BaseException
    ) -> DestinationResult:
        record_id = await self._lifecycle.begin_publish(job, destination)
        return await self._failed_result(record_id, destination, exc)

    async def _close_page(self, page: PageDriver) -> None:
        if page.is_closed():
            return
        try:
            await page.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing page: %s", exc)
