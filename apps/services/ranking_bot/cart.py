"""
Cart reconciliation.

Cart state is always read from a freshly opened cart view; success of any
cart side effect is established by reading twice and comparing, never by a
click that did not throw.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from libs.core.config import Settings
from libs.core.exceptions import PageNotReadyError

from .browsing import scoped_page
from .diagnostics import DiagnosticSink
from .page_readiness import PageReadiness
from .parsing import parse_cart_count, parse_product_id
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "Cart"


@dataclass(frozen=True)
class CartStatus:
    """Snapshot of the cart. Ephemeral: used for diffing, then discarded."""

    item_count: int
    product_ids: FrozenSet[str]

    def contains(self, product_id: str) -> bool:
        return product_id in self.product_ids

    def added_since(self, before: "CartStatus") -> FrozenSet[str]:
        return self.product_ids - before.product_ids

    def removed_since(self, before: "CartStatus") -> FrozenSet[str]:
        return before.product_ids - self.product_ids


EMPTY_CART = CartStatus(item_count=0, product_ids=frozenset())


class CartInspector:
    """Reads cart state through a new tab of the run's browser context."""

    def __init__(
        self,
        context: BrowserContext,
        cart_url: str,
        settings: Settings,
        readiness: PageReadiness,
        diagnostics: DiagnosticSink,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.context = context
        self.cart_url = cart_url
        self.settings = settings
        self.readiness = readiness
        self.diagnostics = diagnostics
        self.selectors = selectors

    async def get_cart_status(self, restore_to: Optional[Page] = None) -> CartStatus:
        """Open the cart view fresh and read item count plus product IDs.

        Browser errors (navigation timeout, document replaced mid-read) surface
        as PageNotReadyError.
        """
        try:
            return await self._read_cart(restore_to)
        except PlaywrightError as e:
            raise PageNotReadyError(
                "cart view",
                self.settings.timeouts.ready_s,
                {"url": self.cart_url, "cause": f"{type(e).__name__}: {e}"},
            ) from e

    async def _read_cart(self, restore_to: Optional[Page]) -> CartStatus:
        sel = self.selectors
        async with scoped_page(self.context, self.cart_url, self.settings, self.diagnostics, restore_to) as page:
            await self.readiness.await_initial_load(page)

            # Empty vs filled is decided by the structural marker, not by missing line items
            matched, _ = await self.readiness.wait_for_any(page, (sel.cart_empty, sel.cart_filled))
            if matched == sel.cart_empty:
                self.diagnostics.debug(COMPONENT, "Cart is empty")
                return EMPTY_CART

            await self.readiness.await_content_settled(page)

            product_ids = set()
            for link in await page.query_selector_all(sel.cart_item_link):
                href = await link.get_attribute("href")
                product_id = parse_product_id(href)
                if product_id is None:
                    self.diagnostics.warning(COMPONENT, "Unparseable cart item link skipped", href=href)
                    continue
                product_ids.add(product_id)

            counter = await self.readiness.wait_for_selector(page, sel.cart_counter)
            counter_text = await counter.text_content()
            count = parse_cart_count(counter_text)
            if count is None:
                self.diagnostics.warning(
                    COMPONENT,
                    "Cart counter unreadable, using line item count",
                    text=counter_text,
                    line_items=len(product_ids),
                )
                count = len(product_ids)

            status = CartStatus(item_count=count, product_ids=frozenset(product_ids))
            self.diagnostics.debug(COMPONENT, f"Cart has {count} items", product_ids=sorted(product_ids))
            return status
