"""Browser driver protocols and their Playwright adapters.

The credential manager and the posting state machine only talk to the
protocols below, so they can be exercised against in-memory fakes. The
Playwright adapters translate driver failures into the automation error
taxonomy: a closed or crashed target becomes ``CrashDetected``, a failed
``goto`` becomes ``NavigationError``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from playwright.async_api import Browser, BrowserContext, Locator, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from jobrelay.errors import CrashDetected, InteractionError, NavigationError

logger = logging.getLogger(__name__)

_CLOSED_TARGET_MARKERS = (
    "target page, context or browser has been closed",
    "target closed",
    "page closed",
    "page crashed",
    "browser has been closed",
    "context has been closed",
    "browser has disconnected",
)

# Puts text into a contenteditable as <p> blocks when keyboard typing fails
_INJECT_PARAGRAPHS_JS = """
(el, text) => {
    el.focus();
    el.innerHTML = '';
    for (const line of text.split('\\n')) {
        const p = document.createElement('p');
        if (line.trim()) {
            p.textContent = line;
        } else {
            p.appendChild(document.createElement('br'));
        }
        el.appendChild(p);
    }
    el.dispatchEvent(new InputEvent('input', { bubbles: true }));
}
"""


class ElementDriver(Protocol):
    """A located, visible element."""

    async def click(self, *, force: bool = False) -> None: ...

    async def dispatch_click(self) -> None: ...

    async def fill(self, value: str) -> None: ...

    async def text_content(self) -> str: ...

    async def get_attribute(self, name: str) -> str | None: ...

    async def inject_paragraphs(self, text: str) -> None: ...


class PageDriver(Protocol):
    """A single browser page (tab)."""

    @property
    def url(self) -> str: ...

    @property
    def context(self) -> ContextDriver: ...

    def is_closed(self) -> bool: ...

    async def goto(self, url: str, *, timeout_ms: int) -> None: ...

    async def title(self) -> str: ...

    async def content(self) -> str: ...

    async def body_text(self) -> str: ...

    async def locate(
        self, selectors: Sequence[str], *, timeout_ms: int
    ) -> ElementDriver | None: ...

    async def wait_for_detached(self, selector: str, *, timeout_ms: int) -> bool: ...

    async def press(self, key: str) -> None: ...

    async def type_text(self, text: str, *, delay_ms: int) -> None: ...

    async def close(self) -> None: ...


class ContextDriver(Protocol):
    """An isolated browsing context bound to one account."""

    async def cookies(self) -> list[dict[str, Any]]: ...

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None: ...

    async def clear_cookies(self) -> None: ...

    async def new_page(self) -> PageDriver: ...

    def on_close(self, callback: Callable[[], None]) -> None: ...

    async def close(self) -> None: ...


class BrowserHandle(Protocol):
    """A launched browser process."""

    def is_connected(self) -> bool: ...

    def on_disconnect(self, callback: Callable[[], None]) -> None: ...

    async def new_context(self) -> ContextDriver: ...

    async def close(self) -> None: ...


class BrowserLauncher(Protocol):
    """Starts browsers and tears the driver down at shutdown."""

    async def launch(self) -> BrowserHandle: ...

    async def stop(self) -> None: ...


def is_closed_target_error(exc: BaseException) -> bool:
    """True when a driver error means the page, context or browser is gone."""
    message = str(exc).lower()
    return any(marker in message for marker in _CLOSED_TARGET_MARKERS)


@asynccontextmanager
async def _translate_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except PlaywrightError as exc:
        if is_closed_target_error(exc):
            raise CrashDetected(f"{action}: {exc}") from exc
        raise


class PlaywrightElement:
    """ElementDriver over a Playwright ``Locator``."""

    def __init__(self, locator: Locator, action_timeout_ms: int = 10_000):
        self._locator = locator
        self._timeout = action_timeout_ms

    async def click(self, *, force: bool = False) -> None:
        async with _translate_errors("click"):
            try:
                await self._locator.click(force=force, timeout=self._timeout)
            except PlaywrightTimeoutError as exc:
                raise InteractionError(f"Element not clickable: {exc}") from exc

    async def dispatch_click(self) -> None:
        async with _translate_errors("dispatch click"):
            await self._locator.evaluate("el => el.click()")

    async def fill(self, value: str) -> None:
        async with _translate_errors("fill"):
            try:
                await self._locator.fill(value, timeout=self._timeout)
            except PlaywrightTimeoutError as exc:
                raise InteractionError(f"Element not fillable: {exc}") from exc

    async def text_content(self) -> str:
        async with _translate_errors("read text"):
            return (await self._locator.inner_text(timeout=self._timeout)) or ""

    async def get_attribute(self, name: str) -> str | None:
        async with _translate_errors("read attribute"):
            return await self._locator.get_attribute(name, timeout=self._timeout)

    async def inject_paragraphs(self, text: str) -> None:
        async with _translate_errors("inject text"):
            await self._locator.evaluate(_INJECT_PARAGRAPHS_JS, text)


class PlaywrightPage:
    """PageDriver over a Playwright ``Page``."""

    def __init__(self, page: Page, context: PlaywrightContext):
        self._page = page
        self._context = context

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def context(self) -> PlaywrightContext:
        return self._context

    def is_closed(self) -> bool:
        return self._page.is_closed()

    async def goto(self, url: str, *, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightError as exc:
            if is_closed_target_error(exc):
                raise CrashDetected(f"Page closed while loading {url}: {exc}") from exc
            raise NavigationError(f"Could not load {url}: {exc}") from exc

    async def title(self) -> str:
        async with _translate_errors("read title"):
            return await self._page.title()

    async def content(self) -> str:
        async with _translate_errors("read content"):
            return await self._page.content()

    async def body_text(self) -> str:
        async with _translate_errors("read body text"):
            return await self._page.evaluate(
                "() => document.body ? document.body.innerText : ''"
            )

    async def locate(
        self, selectors: Sequence[str], *, timeout_ms: int
    ) -> PlaywrightElement | None:
        """Return the first visible element matched by the ordered selectors.

        Each selector gets its own ``timeout_ms`` to appear.
        """
        # Playwright treats 0 as "wait forever"
        timeout_ms = max(int(timeout_ms), 1)
        for selector in selectors:
            locator = self._page.locator(selector)
            try:
                await locator.first.wait_for(state="attached", timeout=timeout_ms)
            except PlaywrightTimeoutError:
                logger.debug("Selector did not appear: %s", selector)
                continue
            except PlaywrightError as exc:
                if is_closed_target_error(exc):
                    raise CrashDetected(f"locate {selector}: {exc}") from exc
                logger.debug("Selector failed: %s (%s)", selector, exc)
                continue

            async with _translate_errors(f"locate {selector}"):
                for index in range(await locator.count()):
                    candidate = locator.nth(index)
                    if await candidate.is_visible():
                        logger.debug("Matched selector: %s", selector)
                        return PlaywrightElement(candidate)
        return None

    async def wait_for_detached(self, selector: str, *, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(
                selector, state="detached", timeout=max(int(timeout_ms), 1)
            )
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as exc:
            if is_closed_target_error(exc):
                raise CrashDetected(f"wait for {selector} to close: {exc}") from exc
            raise
        return True

    async def press(self, key: str) -> None:
        async with _translate_errors(f"press {key}"):
            await self._page.keyboard.press(key)

    async def type_text(self, text: str, *, delay_ms: int) -> None:
        async with _translate_errors("type"):
            await self._page.keyboard.type(text, delay=delay_ms)

    async def close(self) -> None:
        if not self._page.is_closed():
            await self._page.close()


class PlaywrightContext:
    """ContextDriver over a Playwright ``BrowserContext``."""

    def __init__(self, context: BrowserContext, default_timeout_ms: int = 30_000):
        self._context = context
        self._default_timeout_ms = default_timeout_ms

    async def cookies(self) -> list[dict[str, Any]]:
        async with _translate_errors("read cookies"):
            return [dict(cookie) for cookie in await self._context.cookies()]

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        if not cookies:
            return
        async with _translate_errors("add cookies"):
            await self._context.add_cookies(cookies)

    async def clear_cookies(self) -> None:
        async with _translate_errors("clear cookies"):
            await self._context.clear_cookies()

    async def new_page(self) -> PlaywrightPage:
        async with _translate_errors("open page"):
            page = await self._context.new_page()
        page.set_default_timeout(self._default_timeout_ms)
        page.on("crash", lambda _page: logger.warning("Page crashed: %s", _page.url))
        return PlaywrightPage(page, self)

    def on_close(self, callback: Callable[[], None]) -> None:
        self._context.on("close", lambda _context: callback())

    async def close(self) -> None:
        await self._context.close()


class PlaywrightBrowser:
    """BrowserHandle over a Playwright ``Browser``."""

    def __init__(
        self,
        browser: Browser,
        context_options: dict[str, Any],
        default_timeout_ms: int = 30_000,
    ):
        self._browser = browser
        self._context_options = context_options
        self._default_timeout_ms = default_timeout_ms

    def is_connected(self) -> bool:
        return self._browser.is_connected()

    def on_disconnect(self, callback: Callable[[], None]) -> None:
        self._browser.on("disconnected", lambda _browser: callback())

    async def new_context(self) -> PlaywrightContext:
        context = await self._browser.new_context(**self._context_options)
        return PlaywrightContext(context, self._default_timeout_ms)

    async def close(self) -> None:
        if self._browser.is_connected():
            await self._browser.close()


class PlaywrightLauncher:
    """Launches Chromium browsers from a single Playwright driver."""

    def __init__(
        self,
        *,
        headless: bool = True,
        args: Sequence[str] = (),
        user_agent: str | None = None,
        viewport: dict[str, int] | None = None,
        locale: str | None = None,
        default_timeout_ms: int = 30_000,
    ):
        self._headless = headless
        self._args = list(args)
        self._context_options: dict[str, Any] = {}
        if user_agent:
            self._context_options["user_agent"] = user_agent
        if viewport:
            self._context_options["viewport"] = viewport
        if locale:
            self._context_options["locale"] = locale
        self._default_timeout_ms = default_timeout_ms
        self._playwright: Playwright | None = None

    async def launch(self) -> PlaywrightBrowser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        browser = await self._playwright.chromium.launch(
            headless=self._headless, args=self._args
        )
        logger.info("Launched Chromium (headless=%s)", self._headless)
        return PlaywrightBrowser(browser, self._context_options, self._default_timeout_ms)

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
