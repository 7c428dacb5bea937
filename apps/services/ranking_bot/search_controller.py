"""
Search & filter controller.

Enters keyword and price bounds, then independently reads every field back
to confirm the page actually holds the requested values. A mismatch triggers
one re-apply; whatever remains after that is reported, not hidden.
"""

from dataclasses import dataclass
from typing import List, Optional

from playwright.async_api import Page

from libs.core.config import Settings
from libs.core.exceptions import FilterVerificationError, PageNotReadyError
from libs.core.models import SearchCriteria

from .diagnostics import DiagnosticSink
from .human_activity import HumanActivitySimulator
from .page_readiness import PageReadiness
from .parsing import parse_item_count, parse_localized_price, parse_page_number
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "Search"

PRICE_TOLERANCE = 0.005


@dataclass
class ResultSummary:
    total_items: int
    total_pages: int

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0


def format_price(value: float) -> str:
    """Render a price bound the way a person would type it on the site (decimal comma)."""
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}".replace(".", ",")


class SearchController:
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

    async def apply_filters(
        self,
        page: Page,
        criteria: SearchCriteria,
        simulator: HumanActivitySimulator,
    ) -> List[str]:
        """Enter and verify the search criteria; returns mismatches that survived the re-apply."""
        attempts = 1 + self.settings.retries.filter_reapply
        mismatches: List[FilterVerificationError] = []
        for attempt in range(1, attempts + 1):
            await self._enter_filters(page, criteria, simulator)
            mismatches = await self.verify_filters(page, criteria)
            if not mismatches:
                self.diagnostics.info(
                    COMPONENT,
                    f"Filters verified: keyword={criteria.keyword!r} "
                    f"min={criteria.min_price} max={criteria.max_price}",
                    attempt=attempt,
                )
                return []
            for mismatch in mismatches:
                self.diagnostics.warning(COMPONENT, f"Filter verification failed: {mismatch}", attempt=attempt)

        await self.diagnostics.capture_snapshot(page, "filter_mismatch")
        self.diagnostics.error(COMPONENT, f"Continuing with {len(mismatches)} unverified filter(s)")
        return [str(m) for m in mismatches]

    async def _enter_filters(self, page: Page, criteria: SearchCriteria, simulator: HumanActivitySimulator) -> None:
        sel = self.selectors
        search_input = await self.readiness.wait_for_selector(page, sel.search_input)
        await search_input.fill("")
        await simulator.type_like_human(search_input, criteria.keyword)
        await search_input.press("Enter")
        self.diagnostics.debug(COMPONENT, "Keyword entered", keyword=criteria.keyword)

        price_inputs = await self.readiness.wait_for_count(page, sel.price_inputs, self.settings.site.price_input_count)
        if criteria.min_price is None and criteria.max_price is None:
            await self.readiness.await_content_settled(page)
            return

        for element, value in ((price_inputs[0], criteria.min_price), (price_inputs[-1], criteria.max_price)):
            if value is None:
                continue
            await element.fill("")
            await simulator.type_like_human(element, format_price(value))
        await price_inputs[-1].press("Enter")
        await self.readiness.await_content_settled(page)

    async def verify_filters(self, page: Page, criteria: SearchCriteria) -> List[FilterVerificationError]:
        """Read each filter field back from the page and compare with the request."""
        sel = self.selectors
        mismatches: List[FilterVerificationError] = []

        search_input = await self.readiness.wait_for_selector(page, sel.search_input)
        keyword = (await search_input.input_value()).strip()
        if keyword != criteria.keyword.strip():
            mismatches.append(FilterVerificationError("keyword", criteria.keyword, keyword, {"url": page.url}))

        if criteria.min_price is None and criteria.max_price is None:
            return mismatches

        price_inputs = await self.readiness.wait_for_count(page, sel.price_inputs, self.settings.site.price_input_count)
        for name, element, expected in (
            ("minPrice", price_inputs[0], criteria.min_price),
            ("maxPrice", price_inputs[-1], criteria.max_price),
        ):
            if expected is None:
                continue
            raw = await element.input_value()
            actual = parse_localized_price(raw)
            if actual is None or abs(actual - expected) > PRICE_TOLERANCE:
                mismatches.append(FilterVerificationError(name, expected, raw, {"url": page.url}))
        return mismatches

    async def read_result_summary(self, page: Page) -> ResultSummary:
        """Read total items and derive total pages from the page index control."""
        sel = self.selectors

        async def summary_marker():
            if await page.query_selector(sel.empty_results) is not None:
                return "empty", None
            counter = await page.query_selector(sel.result_count)
            if counter is not None:
                text = (await counter.text_content() or "").strip()
                if text:
                    return "count", text
            return None

        kind, text = await self.readiness.wait_until(
            summary_marker,
            self.settings.timeouts.element_s,
            "result count or empty-search notice",
            {"url": page.url},
        )
        if kind == "empty":
            self.diagnostics.warning(COMPONENT, "Search returned no results")
            return ResultSummary(total_items=0, total_pages=0)

        total_items = parse_item_count(text)
        if total_items is None:
            # At least the first page is there; never under-report it
            self.diagnostics.warning(COMPONENT, "Total items unreadable, assuming 1", text=text)
            total_items = 1

        total_pages = 1
        if total_items > self.settings.site.items_per_page:
            total_pages = await self._read_total_pages(page)

        self.diagnostics.info(COMPONENT, f"Results: {total_items} items on {total_pages} page(s)")
        return ResultSummary(total_items=total_items, total_pages=total_pages)

    async def _read_total_pages(self, page: Page) -> int:
        try:
            elements = await self.readiness.wait_until(
                lambda: page.query_selector_all(self.selectors.page_index),
                self.settings.timeouts.page_index_s,
                "page index control",
                {"url": page.url},
            )
        except PageNotReadyError:
            self.diagnostics.warning(COMPONENT, "Page index control missing, treating results as a single page")
            return 1

        numbers: List[int] = []
        for element in elements:
            number: Optional[int] = parse_page_number(await element.text_content())
            if number is not None:
                numbers.append(number)
        if not numbers:
            self.diagnostics.warning(COMPONENT, "Page index control unreadable, treating results as a single page")
            return 1
        return max(numbers)
