"""
Product-visit engine.

Opens a product in its own tab (the results tab keeps its state), waits for
it to become ready, dwells with human-like activity, optionally adds it to the
cart and verifies that through two independent cart reads. A failed visit is
recorded on its own result and never aborts the run.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import BrowserContext, Page

from libs.core.config import Settings
from libs.core.exceptions import (
    CartConfirmationError,
    ElementNotFoundError,
    PageNotReadyError,
    ProductNotFoundError,
)
from libs.core.models import AddToCartResult, ProductAction, ProductActionsResult, ProductInfo

from .browsing import scoped_page
from .cart import CartInspector
from .diagnostics import DiagnosticSink
from .human_activity import HumanActivitySimulator
from .page_readiness import PageReadiness
from .product_info import ProductInfoScraper
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "ProductVisit"


@dataclass
class VisitOutcome:
    result: ProductActionsResult
    info: Optional[ProductInfo] = None


class ProductVisitEngine:
    def __init__(
        self,
        context: BrowserContext,
        settings: Settings,
        readiness: PageReadiness,
        cart: CartInspector,
        info_scraper: ProductInfoScraper,
        diagnostics: DiagnosticSink,
        rng: random.Random,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.context = context
        self.settings = settings
        self.readiness = readiness
        self.cart = cart
        self.info_scraper = info_scraper
        self.diagnostics = diagnostics
        self.rng = rng
        self.selectors = selectors

    async def visit_and_act(
        self,
        product_url: str,
        product_id: str,
        page_found_on: Optional[int],
        action: ProductAction,
        results_page: Optional[Page] = None,
        scrape_info: bool = False,
    ) -> VisitOutcome:
        """Visit a product, run the activity loop and the configured action.

        Never raises: any failure is captured into ``result.error`` together
        with the URL, product ID and results page it was found on.
        """
        outcome = VisitOutcome(result=ProductActionsResult(product_id=product_id, found_on_page=page_found_on))
        current_url = product_url
        self.diagnostics.info(
            COMPONENT,
            f"Visiting {product_id} (min {action.min_time_on_page}s, addToCart={action.add_to_cart})",
            page_found_on=page_found_on,
        )
        try:
            async with scoped_page(
                self.context, product_url, self.settings, self.diagnostics, restore_to=results_page
            ) as page:
                try:
                    await self._await_product_page(page, product_id)
                    loaded_at = time.monotonic()
                    try:
                        current_url = page.url
                        if scrape_info:
                            outcome.info = await self.info_scraper.scrape_product_info(page, product_id, page.url)

                        simulator = HumanActivitySimulator(page, self.settings.human, self.diagnostics, self.rng)
                        await simulator.dwell(action.min_time_on_page, self.selectors.activity_targets)

                        if action.add_to_cart:
                            await self._add_to_cart(page, product_id, outcome.result, simulator)
                    finally:
                        outcome.result.time_on_page = round(time.monotonic() - loaded_at, 2)
                except Exception:
                    await self.diagnostics.capture_snapshot(page, f"visit_{product_id}")
                    raise
        except Exception as e:
            outcome.result.error = f"{type(e).__name__}: {e}"
            self.diagnostics.error(
                COMPONENT,
                f"Visit failed: {outcome.result.error}",
                url=current_url,
                product_id=product_id,
                page_found_on=page_found_on,
            )
        return outcome

    async def fetch_product_info(self, product_url: str, product_id: str, results_page: Optional[Page] = None) -> ProductInfo:
        """Open a product by URL and scrape it, without activity or cart actions.

        Raises ProductNotFoundError when the page reports no such product.
        """
        async with scoped_page(
            self.context, product_url, self.settings, self.diagnostics, restore_to=results_page
        ) as page:
            try:
                await self._await_product_page(page, product_id)
                return await self.info_scraper.scrape_product_info(page, product_id, page.url)
            except ProductNotFoundError:
                raise
            except Exception:
                await self.diagnostics.capture_snapshot(page, f"direct_{product_id}")
                raise

    async def _await_product_page(self, page: Page, product_id: str) -> None:
        await self.readiness.await_initial_load(page)
        await self.readiness.await_content_settled(page)
        if await page.query_selector(self.selectors.product_missing) is not None:
            raise ProductNotFoundError(product_id, page.url, {"url": page.url, "product_id": product_id})

    async def _add_to_cart(
        self,
        page: Page,
        product_id: str,
        result: ProductActionsResult,
        simulator: HumanActivitySimulator,
    ) -> None:
        sel = self.selectors
        try:
            button = await self.readiness.wait_for_selector(page, sel.add_to_cart)
        except PageNotReadyError as e:
            raise ElementNotFoundError(sel.add_to_cart, {"url": page.url, "product_id": product_id}) from e

        before = await self.cart.get_cart_status(restore_to=page)

        await simulator.move_within(button)
        await button.click()
        confirmation_error: Optional[CartConfirmationError] = None
        if await self._await_confirmation(page):
            await self._dismiss_confirmation(page)
        else:
            confirmation_error = CartConfirmationError(
                product_id,
                self.settings.retries.cart_confirm_polls,
                {"url": page.url, "product_id": product_id},
            )
            await self.diagnostics.capture_snapshot(page, f"cart_confirmation_{product_id}")

        after = await self.cart.get_cart_status(restore_to=page)
        result.add_to_cart = AddToCartResult(before=before.contains(product_id), after=after.contains(product_id))

        if confirmation_error is not None:
            result.error = f"{type(confirmation_error).__name__}: {confirmation_error}"
            self.diagnostics.warning(COMPONENT, result.error, product_id=product_id)
        elif not result.add_to_cart.after:
            result.error = f"Add-to-cart confirmed but {product_id} is not in the cart"
            self.diagnostics.warning(COMPONENT, result.error, count_before=before.item_count, count_after=after.item_count)
        else:
            self.diagnostics.info(
                COMPONENT,
                f"Add-to-cart verified for {product_id}",
                count_before=before.item_count,
                count_after=after.item_count,
            )

    async def _await_confirmation(self, page: Page) -> bool:
        retries = self.settings.retries
        for attempt in range(retries.cart_confirm_polls):
            overlay = await page.query_selector(self.selectors.cart_confirmation)
            if overlay is not None and await overlay.is_visible():
                return True
            if attempt < retries.cart_confirm_polls - 1:
                await asyncio.sleep(retries.cart_confirm_interval_s)
        return False

    async def _dismiss_confirmation(self, page: Page) -> None:
        close = await page.query_selector(self.selectors.cart_confirmation_close)
        if close is not None:
            await close.click()
        else:
            await page.keyboard.press("Escape")
