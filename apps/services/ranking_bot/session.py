"""Entry-page housekeeping: cookie consent and login-state check."""

from typing import Optional

from playwright.async_api import Page

from libs.core.config import Settings
from libs.core.exceptions import PageNotReadyError
from libs.core.models import RankingTask

from .diagnostics import DiagnosticSink
from .page_readiness import PageReadiness
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "Session"


class SessionChecks:
    def __init__(
        self,
        settings: Settings,
        readiness: PageReadiness,
        diagnostics: DiagnosticSink,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.settings = settings
        self.readiness = readiness
        self.diagnostics = diagnostics
        self.selectors = selectors

    async def accept_cookies(self, page: Page) -> bool:
        """Click the consent banner if it shows up within a short bound."""
        try:
            button = await self.readiness.wait_for_selector(
                page, self.selectors.cookie_accept, self.settings.timeouts.consent_s
            )
        except PageNotReadyError:
            self.diagnostics.debug(COMPONENT, "Cookie alert is not displayed")
            return False
        await button.click()
        self.diagnostics.info(COMPONENT, "Cookie accept button clicked")
        return True

    async def verify_profile(self, page: Page, task: RankingTask) -> Optional[bool]:
        """Compare the login state shown in the header with the task's expectation.

        Returns None when the login entry cannot be found at all.
        """
        sel = self.selectors
        try:
            matched, _ = await self.readiness.wait_for_any(
                page, (sel.login_entry_logged_in, sel.login_entry_anonymous)
            )
        except PageNotReadyError:
            self.diagnostics.warning(COMPONENT, "Login entry not found, profile state unknown")
            return None

        logged_in = matched == sel.login_entry_logged_in
        if task.is_anonymous and logged_in:
            self.diagnostics.error(COMPONENT, "Profile mismatch: anonymous user expected but profile is logged in")
            return False
        if not task.is_anonymous and not logged_in:
            self.diagnostics.error(COMPONENT, "Profile mismatch: profile should be logged in")
            return False
        self.diagnostics.info(COMPONENT, "Logged-in profile matched" if logged_in else "Anonymous profile matched")
        return True
