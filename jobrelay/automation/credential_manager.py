"""Session/credential management for automation accounts.

Before any posting, a browsing context must carry a valid authenticated
session for its account. The manager restores persisted cookies, validates
them against the live site, and falls back to a fresh interactive login,
waiting out a verification challenge when one is shown.
"""

import asyncio
import logging
from dataclasses import dataclass

from jobrelay.automation.delays import Sleep, human_pause
from jobrelay.automation.driver import ContextDriver, PageDriver
from jobrelay.automation.selectors import SelectorSet
from jobrelay.clock import utcnow
from jobrelay.dao.credential_dao import CredentialDAO
from jobrelay.errors import (
    AuthenticationError,
    ChallengeTimeoutError,
    NavigationError,
)
from jobrelay.models.domain import (
    IDENTITY_ARTIFACT,
    SESSION_ARTIFACT,
    Account,
    CredentialArtifact,
    CredentialArtifactSet,
)
from jobrelay.observability.redaction import mask_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginTimings:
    page_load_timeout_ms: int = 30_000
    settle_seconds: float = 2.0
    field_timeout_ms: int = 10_000
    between_fields_seconds: float = 0.8
    after_submit_seconds: float = 4.0
    challenge_poll_seconds: float = 10.0
    challenge_max_polls: int = 30


class CredentialManager:
    """Ensures a context is authenticated for an account."""

    def __init__(
        self,
        credential_dao: CredentialDAO,
        *,
        base_url: str,
        artifact_domain: str,
        identity_artifact: str = IDENTITY_ARTIFACT,
        session_artifact: str = SESSION_ARTIFACT,
        selectors: SelectorSet | None = None,
        timings: LoginTimings | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._dao = credential_dao
        self._base_url = base_url
        self._domain = artifact_domain
        self._identity_artifact = identity_artifact
        self._session_artifact = session_artifact
        self._selectors = selectors or SelectorSet()
        self._timings = timings or LoginTimings()
        self._sleep = sleep

    async def ensure_authenticated(self, page: PageDriver, account: Account) -> None:
        """Make ``page``'s context carry a validated session for ``account``.

        On success the context's current cookies are persisted as the
        account's artifact set.

        Raises:
            AuthenticationError: If no valid session could be established.
            ChallengeTimeoutError: If a verification challenge was not
                resolved within the polling window.
        """
        context = page.context
        key = account.key
        who = mask_identity(key)

        restored = await self._restore(context, key)
        await self._load_base(page)
        if await self._has_valid_session(context):
            logger.info("Existing session is valid for %s", who)
            await self._persist(context, key)
            return

        if restored:
            logger.warning("Persisted session for %s is no longer valid", who)
        await context.clear_cookies()
        await self._dao.clear(key)

        await self._load_base(page)
        await self._login(page, account)

        if await self._challenge_shown(page):
            logger.warning(
                "Verification challenge shown for %s, waiting up to %.0fs",
                who,
                self._timings.challenge_poll_seconds * self._timings.challenge_max_polls,
            )
            await self._await_challenge(context, who)

        await self._load_base(page)
        if not await self._has_valid_session(context):
            raise AuthenticationError(f"Login failed for {who}: session cookies missing")

        await self._persist(context, key)
        logger.info("Logged in and saved session for %s", who)

    async def _restore(self, context: ContextDriver, key: str) -> bool:
        await self._dao.delete_expired(key)
        artifact_set = await self._dao.get_artifact_set(key)
        if artifact_set is None:
            logger.info("No persisted session for %s", mask_identity(key))
            return False

        now = utcnow()
        cookies = [
            artifact.to_browser_cookie()
            for artifact in artifact_set.live_artifacts(now)
            if artifact.matches_domain(self._domain)
        ]
        await context.add_cookies(cookies)
        logger.info("Restored %d cookies for %s", len(cookies), mask_identity(key))
        return bool(cookies)

    async def _load_base(self, page: PageDriver) -> None:
        try:
            await page.goto(self._base_url, timeout_ms=self._timings.page_load_timeout_ms)
        except NavigationError as exc:
            raise AuthenticationError(f"Could not reach {self._base_url}: {exc}") from exc
        await self._sleep(self._timings.settle_seconds)

    async def _current_artifacts(self, context: ContextDriver) -> list[CredentialArtifact]:
        artifacts = [CredentialArtifact.from_browser_cookie(c) for c in await context.cookies()]
        return [a for a in artifacts if a.matches_domain(self._domain)]

    async def _has_valid_session(self, context: ContextDriver) -> bool:
        artifact_set = CredentialArtifactSet(
            account_key="", artifacts=await self._current_artifacts(context)
        )
        return artifact_set.is_valid(
            identity_name=self._identity_artifact,
            session_name=self._session_artifact,
        )

    async def _persist(self, context: ContextDriver, key: str) -> None:
        artifacts = await self._current_artifacts(context)
        stored = await self._dao.replace_artifacts(key, artifacts)
        logger.debug("Persisted %d cookies for %s", stored, mask_identity(key))

    async def _login(self, page: PageDriver, account: Account) -> None:
        logger.info("Starting interactive login for %s", mask_identity(account.key))
        timeout = self._timings.field_timeout_ms

        identity_field = await page.locate(self._selectors.login_identity, timeout_ms=timeout)
        secret_field = await page.locate(self._selectors.login_secret, timeout_ms=timeout)
        if identity_field is None or secret_field is None:
            raise AuthenticationError("Login form not found")

        await identity_field.fill(account.identity)
        await human_pause(self._timings.between_fields_seconds, sleep=self._sleep)
        await secret_field.fill(account.secret)
        await human_pause(self._timings.between_fields_seconds, sleep=self._sleep)

        submit = await page.locate(self._selectors.login_submit, timeout_ms=timeout)
        if submit is None:
            raise AuthenticationError("Login button not found")
        await submit.click()
        await self._sleep(self._timings.after_submit_seconds)

    async def _challenge_shown(self, page: PageDriver) -> bool:
        content = (await page.content()).lower()
        return any(marker in content for marker in self._selectors.challenge_markers)

    async def _await_challenge(self, context: ContextDriver, who: str) -> None:
        for poll in range(1, self._timings.challenge_max_polls + 1):
            await self._sleep(self._timings.challenge_poll_seconds)
            if await self._has_valid_session(context):
                logger.info("Challenge resolved for %s after %d polls", who, poll)
                return
        raise ChallengeTimeoutError(
            f"Verification challenge for {who} not resolved after "
            f"{self._timings.challenge_max_polls} polls"
        )
