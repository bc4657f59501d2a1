"""Deep-link redirect endpoint.

Every deep link in a published post points here. Resolved links redirect to
the chat entry point with a fresh context session; everything else gets a
small static page, never an error trace.
"""

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from jobrelay.enums import DeepLinkStatus

if TYPE_CHECKING:
    from jobrelay.services.context_relay_service import ContextRelayService

logger = logging.getLogger(__name__)

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title}</title>
  <style>
    body {{ font-family: system-ui, sans-serif; background: #f5f6f7; color: #1c1e21;
           display: flex; align-items: center; justify-content: center; min-height: 100vh; margin: 0; }}
    main {{ background: #fff; border-radius: 12px; padding: 2rem 2.5rem; max-width: 28rem;
           box-shadow: 0 2px 12px rgba(0, 0, 0, .08); text-align: center; }}
  </style>
</head>
<body>
  <main>
    <h1>{title}</h1>
    <p>{message}</p>
  </main>
</body>
</html>
"""

_PAGES = {
    DeepLinkStatus.INVALID: (
        400,
        "Invalid link",
        "This link is incomplete or damaged. Please go back to the post and try again.",
    ),
    DeepLinkStatus.NOT_FOUND: (
        404,
        "Job not found",
        "We couldn't find the job this link points to.",
    ),
    DeepLinkStatus.CLOSED: (
        410,
        "Position closed",
        "This position is no longer accepting applications. Thanks for your interest!",
    ),
}


def _page(status: DeepLinkStatus) -> HTMLResponse:
    code, title, message = _PAGES[status]
    return HTMLResponse(_PAGE_TEMPLATE.format(title=title, message=message), status_code=code)


def create_deep_link_router(relay_service: "ContextRelayService") -> APIRouter:
    """Create the deep-link router with injected service.

    Args:
        relay_service: ContextRelayService that resolves tokens

    Returns:
        APIRouter with the redirect endpoint configured
    """
    router = APIRouter(prefix="/api", tags=["deep-links"])

    @router.get("/messenger-redirect")
    async def messenger_redirect(
        context: str | None = Query(default=None, description="Context token"),
    ) -> Response:
        """Resolve a context token and redirect into the chat.

        Returns:
            302 to the chat entry point, or a static page with 400 (missing
            or undecodable token), 404 (unknown job) or 410 (job closed)
        """
        if not context:
            return _page(DeepLinkStatus.INVALID)

        try:
            resolution = await relay_service.resolve_deep_link(context)
        except Exception:
            logger.exception("Deep link resolution failed")
            return _page(DeepLinkStatus.CLOSED)

        if resolution.status is DeepLinkStatus.RESOLVED:
            return RedirectResponse(resolution.redirect_url, status_code=302)
        return _page(resolution.status)

    return router
