"""Account-keyed browser pool.

Each account owns one slot: a browser, one browsing context bound to that
account, and a lock. A publish run holds the lock for its whole duration,
so two runs for the same account never share a context concurrently while
runs for different accounts proceed in parallel. Browsers and contexts that
disconnect or close are dropped and recreated on the next acquire.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from jobrelay.automation.driver import BrowserHandle, BrowserLauncher, ContextDriver
from jobrelay.errors import AccountBusyError
from jobrelay.observability.redaction import mask_identity

logger = logging.getLogger(__name__)


@dataclass
class _AccountSlot:
    account_key: str
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    browser: BrowserHandle | None = None
    context: ContextDriver | None = None


@dataclass(frozen=True)
class BrowserLease:
    """Exclusive use of an account's browsing context."""

    account_key: str
    browser: BrowserHandle
    context: ContextDriver


class BrowserPool:
    """Hands out one live browsing context per account, one holder at a time."""

    def __init__(self, launcher: BrowserLauncher, *, acquire_timeout_seconds: float = 0.0):
        """
        Args:
            launcher: Starts browsers.
            acquire_timeout_seconds: How long a second run for a busy account
                waits for the lock before ``AccountBusyError``. Zero rejects
                immediately.
        """
        self._launcher = launcher
        self._acquire_timeout = acquire_timeout_seconds
        self._slots: dict[str, _AccountSlot] = {}
        self._closed = False

    def is_busy(self, account_key: str) -> bool:
        slot = self._slots.get(account_key)
        return slot is not None and slot.lock.locked()

    @asynccontextmanager
    async def acquire(self, account_key: str) -> AsyncIterator[BrowserLease]:
        """Hold the account's context for the duration of the block.

        Raises:
            AccountBusyError: If the account is still held when the acquire
                timeout runs out.
            RuntimeError: If the pool has been shut down.
        """
        if self._closed:
            raise RuntimeError("Browser pool is shut down")

        slot = self._slots.setdefault(account_key, _AccountSlot(account_key))
        await self._lock(slot)
        try:
            lease = await self._ensure_live(slot)
            yield lease
        finally:
            slot.lock.release()

    async def _lock(self, slot: _AccountSlot) -> None:
        if slot.lock.locked() and self._acquire_timeout <= 0:
            raise AccountBusyError(slot.account_key)
        try:
            await asyncio.wait_for(slot.lock.acquire(), timeout=max(self._acquire_timeout, 0.001))
        except TimeoutError:
            raise AccountBusyError(slot.account_key) from None

    async def _ensure_live(self, slot: _AccountSlot) -> BrowserLease:
        if slot.browser is None or not slot.browser.is_connected():
            if slot.browser is not None:
                logger.warning(
                    "Browser for %s disconnected, relaunching", mask_identity(slot.account_key)
                )
            slot.context = None
            browser = await self._launcher.launch()
            browser.on_disconnect(lambda: self._drop_browser(slot, browser))
            slot.browser = browser

        if slot.context is None:
            context = await slot.browser.new_context()
            context.on_close(lambda: self._drop_context(slot, context))
            slot.context = context
            logger.info("Created browsing context for %s", mask_identity(slot.account_key))

        return BrowserLease(slot.account_key, slot.browser, slot.context)

    def _drop_browser(self, slot: _AccountSlot, browser: BrowserHandle) -> None:
        if slot.browser is browser:
            logger.warning("Browser for %s disconnected", mask_identity(slot.account_key))
            slot.browser = None
            slot.context = None

    def _drop_context(self, slot: _AccountSlot, context: ContextDriver) -> None:
        if slot.context is context:
            logger.info("Browsing context for %s closed", mask_identity(slot.account_key))
            slot.context = None

    async def shutdown(self) -> None:
        """Close every context, then every browser, then the driver."""
        self._closed = True
        slots = list(self._slots.values())

        for slot in slots:
            if slot.context is not None:
                context, slot.context = slot.context, None
                try:
                    await context.close()
                except Exception as exc:
                    logger.warning(
                        "Error closing context for %s: %s", mask_identity(slot.account_key), exc
                    )

        for slot in slots:
            if slot.browser is not None:
                browser, slot.browser = slot.browser, None
                try:
                    await browser.close()
                except Exception as exc:
                    logger.warning(
                        "Error closing browser for %s: %s", mask_identity(slot.account_key), exc
                    )

        await self._launcher.stop()
        logger.info("Browser pool shut down (%d accounts)", len(slots))
