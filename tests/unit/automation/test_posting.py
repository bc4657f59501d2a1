"""Unit tests for the posting state machine, driven by fake pages."""

import pytest

from jobrelay.automation.posting import PostingStateMachine, PostingTimings, PublishOutcome
from jobrelay.automation.selectors import SelectorSet
from jobrelay.errors import (
    CrashDetected,
    InteractionError,
    NavigationError,
    PostingError,
    SelectorNotFound,
)
from tests.fakes import FakeContext, FakePage, SleepRecorder, make_postable, no_sleep

GROUP = "https://www.facebook.com/groups/devjobs"
CONTENT = "Backend Engineer at Acme\n\nApply here: https://relay.example.com/x"
SELECTORS = SelectorSet()


@pytest.fixture
def machine() -> PostingStateMachine:
    return PostingStateMachine(SELECTORS, PostingTimings(), sleep=no_sleep)


def _page(context: FakeContext | None = None, **kwargs) -> FakePage:
    context = context or FakeContext()
    page = FakePage(context, **kwargs)
    context.pages.append(page)
    return make_postable(page)


class TestHappyPath:
    async def test_publishes_and_reports_locator(self, machine: PostingStateMachine):
        page = _page()

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert isinstance(outcome, PublishOutcome)
        assert outcome.locator == GROUP
        assert outcome.confirmed is True
        assert outcome.recovered_from_crash is False
        assert outcome.page is page
        assert page.typed == [CONTENT]
        assert page.keys == ["Control+a", "Delete"]
        assert page.elements[SELECTORS.submit_enabled[0]].clicks == [False]

    async def test_unconfirmed_post_is_still_an_outcome(self, machine: PostingStateMachine):
        page = _page(dialog_detaches=False)

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert outcome.confirmed is False

    async def test_success_indicator_confirms_when_dialog_stays(
        self, machine: PostingStateMachine
    ):
        page = _page(dialog_detaches=False)
        page.add(SELECTORS.success_indicators[0])

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert outcome.confirmed is True

    async def test_failure_indicator_raises(self, machine: PostingStateMachine):
        page = _page()
        page.add(SELECTORS.failure_indicators[0])

        with pytest.raises(PostingError, match="post failed"):
            await machine.publish(page, GROUP, CONTENT)


class TestNavigation:
    async def test_gives_up_after_three_attempts(self):
        sleep = SleepRecorder()
        machine = PostingStateMachine(SELECTORS, PostingTimings(), sleep=sleep)
        page = _page(goto_errors=[NavigationError("net::ERR_TIMED_OUT")] * 3)

        with pytest.raises(NavigationError, match="after 3 attempts"):
            await machine.publish(page, GROUP, CONTENT)

        assert len(page.visits) == 3
        assert sleep.calls == [5.0, 5.0]

    async def test_retries_then_succeeds(self, machine: PostingStateMachine):
        page = _page(goto_errors=[NavigationError("timeout"), None])

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert len(page.visits) == 2
        assert outcome.locator == GROUP


class TestCrashRecovery:
    async def test_recovers_once_on_fresh_page(self, machine: PostingStateMachine):
        context = FakeContext()
        crashed = _page(context, title="Aw, Snap!")

        outcome = await machine.publish(crashed, GROUP, CONTENT)

        assert outcome.recovered_from_crash is True
        assert crashed.is_closed()
        assert outcome.page is context.pages[-1]
        assert outcome.page is not crashed
        assert outcome.page.typed == [CONTENT]

    async def test_page_closing_mid_action_triggers_recovery(
        self, machine: PostingStateMachine
    ):
        context = FakeContext()
        page = _page(context)
        page.elements[SELECTORS.composer_triggers[0]].click_error = CrashDetected(
            "Target page, context or browser has been closed"
        )

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert outcome.recovered_from_crash is True

    async def test_second_crash_fails(self, machine: PostingStateMachine):
        context = FakeContext(page_factory=lambda ctx: make_postable(FakePage(ctx, title="Aw, Snap!")))
        page = _page(context, title="Aw, Snap!")

        with pytest.raises(CrashDetected, match="Crash recovery failed"):
            await machine.publish(page, GROUP, CONTENT)

        assert all(p.is_closed() for p in context.pages)

    async def test_other_failure_after_recovery_is_labelled(
        self, machine: PostingStateMachine
    ):
        context = FakeContext(page_factory=lambda ctx: FakePage(ctx))
        page = _page(context, title="Aw, Snap!")

        with pytest.raises(SelectorNotFound, match="Crash recovery failed"):
            await machine.publish(page, GROUP, CONTENT)


class TestComposerAndSubmit:
    async def test_restricted_group_stops_before_interaction(
        self, machine: PostingStateMachine
    ):
        page = _page(body_text="Sorry, you can't post in this group right now.")

        with pytest.raises(PostingError, match="Posting restricted"):
            await machine.publish(page, GROUP, CONTENT)

        assert page.elements[SELECTORS.composer_triggers[0]].clicks == []
        assert page.typed == []

    async def test_missing_composer_trigger(self, machine: PostingStateMachine):
        page = _page()
        del page.elements[SELECTORS.composer_triggers[0]]

        with pytest.raises(SelectorNotFound):
            await machine.publish(page, GROUP, CONTENT)

    async def test_forced_click_failure_falls_back_to_dom_click(
        self, machine: PostingStateMachine
    ):
        page = _page()
        text_input = page.elements[SELECTORS.text_inputs[-1]]

        async def intercepted(*, force: bool = False):
            raise InteractionError("Element click intercepted")

        text_input.click = intercepted

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert text_input.dispatched_clicks == 1
        assert text_input.text == CONTENT
        assert outcome.confirmed is True

    async def test_incomplete_typing_injects_paragraphs(self, machine: PostingStateMachine):
        page = _page(typing_works=False)

        await machine.publish(page, GROUP, CONTENT)

        assert page.elements[SELECTORS.text_inputs[-1]].injected == CONTENT

    async def test_submit_stays_disabled(self, machine: PostingStateMachine):
        page = _page()
        del page.elements[SELECTORS.submit_enabled[0]]
        page.add(SELECTORS.submit_any[0], attributes={"aria-disabled": "true"})

        with pytest.raises(PostingError, match="stayed disabled"):
            await machine.publish(page, GROUP, CONTENT)

    async def test_submit_enabled_after_grace_period(self):
        page = _page()
        del page.elements[SELECTORS.submit_enabled[0]]
        button = page.add(SELECTORS.submit_any[0], attributes={"aria-disabled": "true"})
        grace = PostingTimings().disabled_submit_grace_seconds

        async def sleep(seconds: float) -> None:
            if seconds == grace:
                button.attributes.pop("aria-disabled", None)

        machine = PostingStateMachine(SELECTORS, PostingTimings(), sleep=sleep)

        outcome = await machine.publish(page, GROUP, CONTENT)

        assert outcome.confirmed is True
        assert button.clicks == [False]
