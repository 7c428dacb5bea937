"""
Pagination state machine for search results.

States are ``OnPage(n)`` for n = 1..last and a terminal ``Done``. Every move
blocks until the page's own current-page indicator shows the exact target
number, and every page is re-checked before it is processed; a mismatch is
healed by navigating back to the expected page.
"""

from typing import Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from libs.core.config import Settings
from libs.core.exceptions import PageNotReadyError, PageSyncError

from .diagnostics import DiagnosticSink
from .page_readiness import PageReadiness
from .parsing import parse_page_number
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "Pagination"


class SerpPaginator:
    """Tracks and moves between results pages on one results tab."""

    def __init__(
        self,
        page: Page,
        last_page: int,
        settings: Settings,
        readiness: PageReadiness,
        diagnostics: DiagnosticSink,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.page = page
        self.last_page = last_page
        self.settings = settings
        self.readiness = readiness
        self.diagnostics = diagnostics
        self.selectors = selectors
        self.expected = 1 if last_page >= 1 else 0

    @property
    def done(self) -> bool:
        return self.expected < 1 or self.expected > self.last_page

    async def _indicator(self) -> Optional[int]:
        element = await self.page.query_selector(self.selectors.current_page)
        if element is None:
            return None
        return parse_page_number(await element.text_content())

    async def read_current_page(self) -> Optional[int]:
        """Current-page indicator; None when the control is absent (single page).

        Reads interrupted by a document swap are repeated within the element
        timeout, then reported as PageNotReadyError.
        """

        async def readable() -> Tuple[Optional[int]]:
            # Wrapped so an absent indicator still counts as a successful read
            return (await self._indicator(),)

        (number,) = await self.readiness.wait_until(
            readable,
            self.settings.timeouts.element_s,
            "current page indicator readable",
            {"url": self.page.url},
        )
        return number

    async def step(self, forward: bool = True) -> int:
        """Click next/previous and block until the indicator shows the target page."""
        observed = await self.read_current_page()
        if observed is None:
            raise PageSyncError(self.expected, None, {"url": self.page.url})
        target = observed + (1 if forward else -1)

        buttons = await self.readiness.wait_for_count(self.page, self.selectors.page_nav_buttons, 2)
        try:
            await (buttons[-1] if forward else buttons[0]).click()
        except PlaywrightError as e:
            raise PageNotReadyError(
                f"page navigation to {target}",
                self.settings.timeouts.element_s,
                {"url": self.page.url, "cause": str(e)},
            ) from e

        async def on_target():
            return await self._indicator() == target

        await self.readiness.wait_until(
            on_target,
            self.settings.timeouts.ready_s,
            f"current page indicator = {target}",
            {"url": self.page.url},
        )
        await self.readiness.await_content_settled(self.page)
        self.diagnostics.debug(COMPONENT, f"Moved to results page {target}")
        return target

    async def ensure_on_expected(self) -> None:
        """Re-read the indicator and navigate back to the expected page if it drifted.

        Raises PageSyncError if the page cannot be reached within the resync budget.
        """
        observed = await self.read_current_page()
        if observed is None and self.expected == 1:
            # No index control rendered: only one page exists
            return
        if observed == self.expected:
            return

        self.diagnostics.warning(
            COMPONENT,
            f"Current page is {observed}, expected {self.expected}; navigating to the expected page",
        )
        attempts = self.settings.retries.resync_attempts
        for _ in range(attempts):
            if observed is None:
                break
            distance = abs(self.expected - observed)
            try:
                for _ in range(distance):
                    observed = await self.step(forward=observed < self.expected)
            except PageNotReadyError as e:
                self.diagnostics.warning(COMPONENT, f"Resync step failed: {e}")
            observed = await self.read_current_page()
            if observed == self.expected:
                self.diagnostics.info(COMPONENT, f"Resynchronized on page {self.expected}")
                return

        await self.diagnostics.capture_snapshot(self.page, f"page_sync_{self.expected}")
        raise PageSyncError(self.expected, observed, {"url": self.page.url})

    async def advance(self) -> None:
        """Move ``OnPage(n)`` to ``OnPage(n+1)``, or to ``Done`` after the last page."""
        if self.expected >= self.last_page:
            self.expected = self.last_page + 1
            return
        target = self.expected + 1
        try:
            reached = await self.step(forward=True)
        except PageNotReadyError as e:
            # Left for ensure_on_expected to heal before the page is processed
            self.diagnostics.warning(COMPONENT, f"Navigation to page {target} not confirmed: {e}")
            reached = None
        if reached is not None and reached != target:
            self.diagnostics.warning(COMPONENT, f"Landed on page {reached} instead of {target}")
        self.expected = target
