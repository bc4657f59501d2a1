"""Publish trigger endpoints.

Routers handle HTTP concerns only. Publishing is delegated to PublishService.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException

from jobrelay.errors import AccountBusyError
from jobrelay.models.base import JsonModel
from jobrelay.models.domain import Account, PublishSummary, RunState

if TYPE_CHECKING:
    from jobrelay.services.publish_service import PublishService


class PublishRequest(JsonModel):
    """Request model for publishing one job."""

    account: str


class PendingRequest(JsonModel):
    """Request model for the pending-jobs sweep."""

    account: str
    limit: int | None = None


class PendingResponse(JsonModel):
    processed: int
    summaries: list[PublishSummary]


def create_publish_router(
    publish_service: "PublishService",
    get_account: Callable[[str], Account | None],
    *,
    pending_limit: int = 10,
) -> APIRouter:
    """Create publish router with injected service.

    Args:
        publish_service: PublishService instance for publish runs
        get_account: Resolves an account identity to its credentials
        pending_limit: Default number of jobs per pending sweep

    Returns:
        APIRouter with publish endpoints configured
    """
    router = APIRouter(prefix="/api/publish", tags=["publish"])

    def _account_or_404(identity: str) -> Account:
        account = get_account(identity)
        if account is None:
            raise HTTPException(status_code=404, detail="Unknown account")
        return account

    @router.post("/pending", response_model=PendingResponse)
    async def publish_pending(request: PendingRequest) -> PendingResponse:
        """Publish every pending job for an account, oldest first."""
        account = _account_or_404(request.account)
        try:
            summaries = await publish_service.process_pending_jobs(
                account, limit=request.limit or pending_limit
            )
            return PendingResponse(processed=len(summaries), summaries=summaries)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/status/{account}", response_model=RunState)
    async def publish_status(account: str) -> RunState:
        """Current or last publish run for an account."""
        return publish_service.get_status(_account_or_404(account).key)

    @router.post("/{job_id}", response_model=PublishSummary)
    async def publish_job(job_id: str, request: PublishRequest) -> PublishSummary:
        """Publish one job to all of its destinations.

        Raises:
            HTTPException: 404 unknown account or job, 409 account busy,
                400 job closed or without destinations
        """
        account = _account_or_404(request.account)
        try:
            return await publish_service.run_publish_by_id(account, job_id)
        except HTTPException:
            raise
        except AccountBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
