"""Posting state machine.

Publishing to one destination walks an explicit sequence of states::

    NAVIGATING -> STABLE_CHECK -> COMPOSING -> TYPING -> SUBMITTING -> VERIFYING -> DONE

A crash seen anywhere (crash markers after settling, or the page closing
underneath an action) moves to CRASHED. The first crash gets one recovery:
a fresh page in the same context, then NAVIGATING again from the top. A
second crash, or any other failure after recovery, ends the attempt.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from jobrelay.automation.delays import Sleep, human_pause
from jobrelay.automation.driver import ElementDriver, PageDriver
from jobrelay.automation.selectors import SelectorSet
from jobrelay.enums import PostingState
from jobrelay.errors import (
    CrashDetected,
    InteractionError,
    NavigationError,
    PostingError,
    SelectorNotFound,
)

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({PostingState.DONE})


@dataclass(frozen=True)
class PostingTimings:
    navigation_timeout_ms: int = 30_000
    navigation_attempts: int = 3
    navigation_backoff_seconds: float = 5.0
    settle_seconds: float = 5.0
    selector_probe_ms: int = 3_000
    composer_open_seconds: float = 2.0
    input_timeout_ms: int = 10_000
    type_delay_ms: int = 100
    action_pause_seconds: float = 0.5
    submit_timeout_ms: int = 10_000
    disabled_submit_grace_seconds: float = 4.0
    post_submit_seconds: float = 3.0
    dialog_close_timeout_ms: int = 10_000
    success_probe_ms: int = 3_000


@dataclass
class PublishOutcome:
    """A destination that accepted the post.

    ``locator`` is the page URL after publishing. ``confirmed`` is False when
    the site gave no explicit success signal and the post was assumed
    published. ``page`` is the page the post ended on, which differs from the
    input page after a crash recovery.
    """

    destination: str
    locator: str
    recovered_from_crash: bool = False
    confirmed: bool = False
    page: PageDriver | None = field(default=None, repr=False, compare=False)


@dataclass
class _Attempt:
    page: PageDriver
    destination: str
    content: str
    recovering: bool = False
    crash_reason: str = ""
    text_input: ElementDriver | None = None
    confirmed: bool = False


def _visible_length(text: str) -> int:
    return len("".join(text.split()))


class PostingStateMachine:
    """Publishes one post to one destination on a given page."""

    def __init__(
        self,
        selectors: SelectorSet | None = None,
        timings: PostingTimings | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self._selectors = selectors or SelectorSet()
        self._timings = timings or PostingTimings()
        self._sleep = sleep
        self._handlers = {
            PostingState.NAVIGATING: self._navigate,
            PostingState.STABLE_CHECK: self._stable_check,
            PostingState.COMPOSING: self._compose,
            PostingState.TYPING: self._type,
            PostingState.SUBMITTING: self._submit,
            PostingState.VERIFYING: self._verify,
            PostingState.CRASHED: self._crashed,
            PostingState.RECOVERING: self._recover,
        }

    async def publish(self, page: PageDriver, destination: str, content: str) -> PublishOutcome:
        """Publish ``content`` to ``destination``.

        Raises:
            PostingError: On any unrecoverable failure. Subclasses name the
                cause (NavigationError, SelectorNotFound, CrashDetected).
        """
        attempt = _Attempt(page=page, destination=destination, content=content)
        state = PostingState.NAVIGATING
        try:
            while state not in TERMINAL_STATES:
                logger.debug("%s: %s", destination, state)
                state = await self._step(state, attempt)
        except Exception:
            if attempt.recovering:
                await self._close_quietly(attempt.page)
            raise

        logger.info(
            "Published to %s (confirmed=%s, recovered=%s)",
            destination,
            attempt.confirmed,
            attempt.recovering,
        )
        return PublishOutcome(
            destination=destination,
            locator=attempt.page.url,
            recovered_from_crash=attempt.recovering,
            confirmed=attempt.confirmed,
            page=attempt.page,
        )

    async def _step(self, state: PostingState, attempt: _Attempt) -> PostingState:
        try:
            return await self._handlers[state](attempt)
        except CrashDetected as exc:
            if state in (PostingState.CRASHED, PostingState.RECOVERING):
                raise
            attempt.crash_reason = str(exc)
            return PostingState.CRASHED
        except PostingError as exc:
            if attempt.recovering:
                raise type(exc)(f"Crash recovery failed: {exc}") from exc
            raise

    async def _navigate(self, attempt: _Attempt) -> PostingState:
        t = self._timings
        last_error: NavigationError | None = None
        for number in range(1, t.navigation_attempts + 1):
            if attempt.page.is_closed():
                raise CrashDetected("Page closed before navigation")
            try:
                await attempt.page.goto(attempt.destination, timeout_ms=t.navigation_timeout_ms)
                return PostingState.STABLE_CHECK
            except NavigationError as exc:
                last_error = exc
                logger.warning(
                    "Navigation attempt %d/%d to %s failed: %s",
                    number,
                    t.navigation_attempts,
                    attempt.destination,
                    exc,
                )
                if number < t.navigation_attempts:
                    await self._sleep(t.navigation_backoff_seconds)
        raise NavigationError(
            f"Navigation failed after {t.navigation_attempts} attempts: {last_error}"
        )

    async def _stable_check(self, attempt: _Attempt) -> PostingState:
        await self._sleep(self._timings.settle_seconds)
        page = attempt.page
        if page.is_closed():
            attempt.crash_reason = "Page closed while settling"
            return PostingState.CRASHED

        haystack = f"{await page.title()} {page.url}".lower()
        for marker in self._selectors.crash_markers:
            if marker in haystack:
                attempt.crash_reason = f"Crash marker {marker!r} in page title or URL"
                return PostingState.CRASHED
        return PostingState.COMPOSING

    async def _compose(self, attempt: _Attempt) -> PostingState:
        page = attempt.page
        body = (await page.body_text()).lower()
        if any(marker in body for marker in self._selectors.restricted_markers):
            raise PostingError("Posting restricted")

        trigger = await page.locate(
            self._selectors.composer_triggers, timeout_ms=self._timings.selector_probe_ms
        )
        if trigger is None:
            raise SelectorNotFound("Could not find the post composer trigger")
        await trigger.click()
        await human_pause(
            self._timings.composer_open_seconds,
            self._timings.composer_open_seconds * 1.5,
            sleep=self._sleep,
        )
        return PostingState.TYPING

    async def _type(self, attempt: _Attempt) -> PostingState:
        page = attempt.page
        t = self._timings
        text_input = await page.locate(self._selectors.text_inputs, timeout_ms=t.input_timeout_ms)
        if text_input is None:
            raise SelectorNotFound("Could not find the post text input")

        try:
            await text_input.click(force=True)
        except InteractionError:
            logger.info("Forced click on text input failed, dispatching a DOM click")
            await text_input.dispatch_click()
        await human_pause(t.action_pause_seconds, t.action_pause_seconds * 2, sleep=self._sleep)

        await page.press("Control+a")
        await page.press("Delete")
        await page.type_text(attempt.content, delay_ms=t.type_delay_ms)
        await human_pause(t.action_pause_seconds, t.action_pause_seconds * 2, sleep=self._sleep)

        if self._incomplete(await text_input.text_content(), attempt.content):
            logger.info("Typed text looks incomplete, inserting it directly")
            await text_input.inject_paragraphs(attempt.content)
            await human_pause(t.action_pause_seconds, sleep=self._sleep)
            if self._incomplete(await text_input.text_content(), attempt.content):
                raise PostingError("Post body could not be entered")

        attempt.text_input = text_input
        return PostingState.SUBMITTING

    @staticmethod
    def _incomplete(typed: str, expected: str) -> bool:
        # Editors re-wrap whitespace, so compare visible characters only
        typed = (typed or "").strip()
        return not typed or _visible_length(typed) < _visible_length(expected) // 2

    async def _submit(self, attempt: _Attempt) -> PostingState:
        page = attempt.page
        t = self._timings
        button = await page.locate(self._selectors.submit_enabled, timeout_ms=t.submit_timeout_ms)
        if button is None:
            button = await page.locate(self._selectors.submit_any, timeout_ms=t.selector_probe_ms)
        if button is None:
            raise SelectorNotFound("Could not find the submit control")

        if await button.get_attribute("aria-disabled") == "true":
            logger.info("Submit control disabled, waiting %.1fs", t.disabled_submit_grace_seconds)
            await self._sleep(t.disabled_submit_grace_seconds)
            if await button.get_attribute("aria-disabled") == "true":
                raise PostingError("Submit control stayed disabled")

        try:
            await button.click()
        except InteractionError:
            logger.info("Submit click failed, retrying with force")
            await button.click(force=True)
        return PostingState.VERIFYING

    async def _verify(self, attempt: _Attempt) -> PostingState:
        page = attempt.page
        t = self._timings
        await self._sleep(t.post_submit_seconds)

        dialog_closed = await page.wait_for_detached(
            self._selectors.composer_dialog, timeout_ms=t.dialog_close_timeout_ms
        )
        failure = await page.locate(
            self._selectors.failure_indicators, timeout_ms=t.success_probe_ms
        )
        if failure is not None:
            raise PostingError("Destination reported that the post failed")

        success_seen = False
        if not dialog_closed:
            success_seen = (
                await page.locate(
                    self._selectors.success_indicators, timeout_ms=t.success_probe_ms
                )
                is not None
            )

        attempt.confirmed = dialog_closed or success_seen
        if not attempt.confirmed:
            logger.warning(
                "No success signal from %s, assuming the post went through",
                attempt.destination,
            )
        return PostingState.DONE

    async def _crashed(self, attempt: _Attempt) -> PostingState:
        if attempt.recovering:
            raise CrashDetected(f"Crash recovery failed: {attempt.crash_reason}")
        logger.warning("Crash on %s: %s", attempt.destination, attempt.crash_reason)
        return PostingState.RECOVERING

    async def _recover(self, attempt: _Attempt) -> PostingState:
        old_page = attempt.page
        try:
            new_page = await old_page.context.new_page()
        except CrashDetected as exc:
            raise CrashDetected(f"Crash recovery failed: {exc}") from exc
        await self._close_quietly(old_page)
        attempt.page = new_page
        attempt.recovering = True
        attempt.text_input = None
        logger.info("Opened a fresh page for %s", attempt.destination)
        return PostingState.NAVIGATING

    async def _close_quietly(self, page: PageDriver) -> None:
        if page.is_closed():
            return
        try:
            await page.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing page: %s", exc)
