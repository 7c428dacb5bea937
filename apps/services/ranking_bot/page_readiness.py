"""
Page-readiness primitives.

Every wait here polls element state against a deadline; nothing sleeps for a
fixed time in place of checking the page. Expired deadlines surface as
PageNotReadyError so callers can decide how far the failure reaches.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from libs.core.config import Settings
from libs.core.exceptions import AntiBotChallengeError, PageNotReadyError

from .diagnostics import DiagnosticSink
from .selectors import DEFAULT_SELECTORS, ShopSelectors

T = TypeVar("T")

COMPONENT = "Readiness"


class PageReadiness:
    """Bounded wait-for-condition helpers plus the two page-level gates."""

    def __init__(
        self,
        settings: Settings,
        diagnostics: DiagnosticSink,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.settings = settings
        self.diagnostics = diagnostics
        self.selectors = selectors

    async def wait_until(
        self,
        predicate: Callable[[], Awaitable[T]],
        timeout_s: float,
        what: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Poll ``predicate`` until it returns a truthy value or the bound expires.

        Errors raised while the document is being replaced (navigation in
        flight) count as "not yet".
        """
        poll = self.settings.timeouts.poll_interval_s
        deadline = time.monotonic() + timeout_s
        while True:
            try:
                value = await predicate()
            except PlaywrightError:
                value = None
            if value:
                return value
            if time.monotonic() >= deadline:
                raise PageNotReadyError(what, timeout_s, context)
            await asyncio.sleep(poll)

    async def wait_for_selector(self, page: Page, selector: str, timeout_s: Optional[float] = None):
        timeout_s = self.settings.timeouts.element_s if timeout_s is None else timeout_s
        return await self.wait_until(
            lambda: page.query_selector(selector),
            timeout_s,
            f"element '{selector}'",
            {"url": page.url},
        )

    async def wait_for_any(
        self,
        page: Page,
        selectors: Sequence[str],
        timeout_s: Optional[float] = None,
    ) -> Tuple[str, Any]:
        """Wait until one of ``selectors`` matches; earlier selectors win ties."""
        timeout_s = self.settings.timeouts.element_s if timeout_s is None else timeout_s

        async def first_match():
            for selector in selectors:
                element = await page.query_selector(selector)
                if element is not None:
                    return selector, element
            return None

        return await self.wait_until(
            first_match,
            timeout_s,
            "any of " + ", ".join(repr(s) for s in selectors),
            {"url": page.url},
        )

    async def wait_for_count(self, page: Page, selector: str, count: int, timeout_s: Optional[float] = None) -> list:
        """Wait until exactly ``count`` elements match ``selector``."""
        timeout_s = self.settings.timeouts.element_s if timeout_s is None else timeout_s

        async def exact():
            elements = await page.query_selector_all(selector)
            return elements if len(elements) == count else None

        return await self.wait_until(
            exact,
            timeout_s,
            f"exactly {count} x '{selector}'",
            {"url": page.url},
        )

    async def await_initial_load(self, page: Page) -> None:
        """Block until the site chrome shows; reload exactly once on an anti-bot challenge."""
        markers = (self.selectors.anti_bot_challenge, self.selectors.site_chrome)
        ready_s = self.settings.timeouts.ready_s

        matched, _ = await self.wait_for_any(page, markers, ready_s)
        if matched == self.selectors.site_chrome:
            return

        self.diagnostics.warning(COMPONENT, "Anti-bot challenge detected, reloading once", url=page.url)
        await self.diagnostics.capture_snapshot(page, "anti_bot_challenge")
        await page.reload(wait_until="domcontentloaded", timeout=self.settings.timeouts.navigation_ms)

        matched, _ = await self.wait_for_any(page, markers, ready_s)
        if matched != self.selectors.site_chrome:
            await self.diagnostics.capture_snapshot(page, "anti_bot_challenge_persisted")
            raise AntiBotChallengeError(page.url, {"url": page.url})
        self.diagnostics.info(COMPONENT, "Challenge cleared after reload", url=page.url)

    async def await_content_settled(self, page: Page) -> None:
        """Block until no visible loading/skeleton placeholder remains."""

        async def settled():
            for element in await page.query_selector_all(self.selectors.loading_placeholder):
                if await element.is_visible():
                    return False
            return True

        await self.wait_until(
            settled,
            self.settings.timeouts.settle_s,
            "loading placeholders cleared",
            {"url": page.url},
        )
