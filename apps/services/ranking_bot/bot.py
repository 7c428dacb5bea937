"""
Ranking bot: the single ``handle(task) -> result`` entry point.

Run state machine:
    Init -> FiltersApplied -> Paginating(n) -> {MainVisit | RandomVisit}*
         -> Paginating(n+1) -> ... -> Done -> [FallbackDirectVisit] -> Reconciled

All state of a run lives on its RankingRun instance, so one bot (or several)
can handle many tasks concurrently inside one process.
"""

import random
import time
import uuid
from typing import Optional
from urllib.parse import urljoin

from playwright.async_api import BrowserContext, Page

from libs.core.config import Settings, get_settings
from libs.core.exceptions import (
    PageNotReadyError,
    ProductNotFoundError,
    RankBotError,
    RecoverableError,
    ResultsUnavailableError,
)
from libs.core.models import (
    NotFoundReason,
    ProductAction,
    ProductActionsResult,
    RankingTask,
    RankingTaskResult,
)

from .browsing import open_page
from .cart import CartInspector
from .classifier import Advertised, Candidate, Main, PageSampler, ResultItem, ResultItemClassifier
from .diagnostics import DiagnosticSink, LoggingDiagnosticSink
from .human_activity import HumanActivitySimulator
from .page_readiness import PageReadiness
from .pagination import SerpPaginator
from .product_info import ProductInfoScraper
from .product_visit import ProductVisitEngine
from .search_controller import ResultSummary, SearchController
from .selectors import DEFAULT_SELECTORS, ShopSelectors
from .session import SessionChecks

COMPONENT = "Bot"


class RankingRun:
    """One task execution. Created per ``handle`` call and discarded afterwards."""

    def __init__(
        self,
        context: BrowserContext,
        task: RankingTask,
        settings: Settings,
        diagnostics: DiagnosticSink,
        rng: random.Random,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.context = context
        self.task = task
        self.main_action = task.product_action
        self.settings = settings
        self.diagnostics = diagnostics
        self.rng = rng
        self.selectors = selectors

        self.base_url = settings.base_url(task.location)
        self.result = RankingTaskResult()
        self.main_page: Optional[Page] = None
        self.main_visited = False

        self.readiness = PageReadiness(settings, diagnostics, selectors)
        self.session = SessionChecks(settings, self.readiness, diagnostics, selectors)
        self.search = SearchController(settings, self.readiness, diagnostics, selectors)
        self.classifier = ResultItemClassifier(settings, self.readiness, diagnostics, selectors)
        self.cart = CartInspector(
            context, settings.cart_url(task.location), settings, self.readiness, diagnostics, selectors
        )
        self.visits = ProductVisitEngine(
            context,
            settings,
            self.readiness,
            self.cart,
            ProductInfoScraper(self.base_url, self.readiness, diagnostics, selectors),
            diagnostics,
            rng,
            selectors,
        )

    async def execute(self) -> RankingTaskResult:
        criteria = self.main_action.search_criteria
        self.diagnostics.info(
            COMPONENT,
            f"RUN START | site={self.task.location} | keyword={criteria.keyword!r} | product={self.main_action.product_id}",
        )
        started = time.monotonic()
        try:
            await self._open_entry_page()
            await self._check_session()
            await self._reconcile_before()
            summary = await self._search()
            await self._explore_results(summary)
            await self._fallback_direct_visit()
        except Exception as e:
            await self._abort(e)
        finally:
            await self._reconcile_after()
            await self._close_entry_page()

        status = "FAILED" if self.result.error else "SUCCESS"
        self.diagnostics.info(
            COMPONENT,
            f"RUN END | {status} | foundBySearch={self.result.found_by_search} "
            f"page={self.result.found_on_page} | elapsed={(time.monotonic() - started) * 1000:.0f}ms",
        )
        return self.result.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Init
    # ------------------------------------------------------------------

    async def _open_entry_page(self) -> None:
        self.main_page = await open_page(self.context, self.base_url, self.settings)
        try:
            await self.readiness.await_initial_load(self.main_page)
        except PageNotReadyError as e:
            raise ResultsUnavailableError(f"Entry page never loaded: {e}", e.context) from e

    async def _check_session(self) -> None:
        await self.session.accept_cookies(self.main_page)
        self.result.profile_verified = await self.session.verify_profile(self.main_page, self.task)

    async def _reconcile_before(self) -> None:
        try:
            before = await self.cart.get_cart_status(restore_to=self.main_page)
        except RankBotError as e:
            self.diagnostics.error(COMPONENT, f"Cart could not be read before the run: {e}")
            return
        self.result.cart.items_count_before = before.item_count
        self.diagnostics.info(COMPONENT, f"Cart count before: {before.item_count}")

    # ------------------------------------------------------------------
    # FiltersApplied
    # ------------------------------------------------------------------

    async def _search(self) -> ResultSummary:
        simulator = HumanActivitySimulator(self.main_page, self.settings.human, self.diagnostics, self.rng)
        try:
            self.result.filter_mismatches = await self.search.apply_filters(
                self.main_page, self.main_action.search_criteria, simulator
            )
            summary = await self.search.read_result_summary(self.main_page)
        except PageNotReadyError as e:
            raise ResultsUnavailableError(f"Search results never became ready: {e}", e.context) from e
        self.result.total_result_items = summary.total_items
        self.result.total_result_pages = summary.total_pages
        return summary

    # ------------------------------------------------------------------
    # Paginating(n)
    # ------------------------------------------------------------------

    async def _explore_results(self, summary: ResultSummary) -> None:
        last_page = min(summary.total_pages, self.main_action.search_criteria.number_pages_to_search)
        paginator = SerpPaginator(
            self.main_page, last_page, self.settings, self.readiness, self.diagnostics, self.selectors
        )
        completed = True
        while not paginator.done:
            page_number = paginator.expected
            try:
                await paginator.ensure_on_expected()
                await self.readiness.wait_for_selector(self.main_page, self.selectors.result_item)
                await self._process_page(page_number)
                self.result.pages_searched = page_number
                await paginator.advance()
            except RecoverableError as e:
                completed = False
                self.diagnostics.error(COMPONENT, f"Stopping pagination on page {page_number}: {e}")
                await self.diagnostics.capture_snapshot(self.main_page, f"pagination_{page_number}")
                break

        if not self.result.found_by_search and completed:
            self.result.not_found_reason = NotFoundReason.NOT_IN_SEARCH_RESULTS
            self.diagnostics.info(
                COMPONENT,
                f"Main product not found in {self.result.pages_searched} searched page(s)",
                advertised_sighting=self.result.is_found_advertised,
            )

    async def _process_page(self, page_number: int) -> None:
        items = await self.classifier.classify_page(self.main_page, self.main_action, page_number)
        candidates = sum(isinstance(item.kind, Candidate) for item in items)
        sampler = PageSampler(self.main_action.random_visits_for_page(page_number), candidates, self.rng)

        for item in items:
            await self._hover(item)
            kind = item.kind
            if isinstance(kind, Advertised):
                if kind.is_main:
                    self.result.is_found_advertised = True
                    self.diagnostics.info(
                        COMPONENT,
                        f"Main product {kind.product_id} seen in an advertised slot, not counted",
                        page=page_number,
                        position=item.position,
                    )
                continue
            if isinstance(kind, Main):
                if not self.main_visited:
                    await self._visit_main(item, kind, page_number)
                continue

            action = sampler.consider()
            if action is not None:
                outcome = await self.visits.visit_and_act(
                    self._absolute(item.href), kind.product_id, page_number, action, results_page=self.main_page
                )
                self.result.other_products.append(outcome.result)

    async def _hover(self, item: ResultItem) -> None:
        try:
            await item.element.hover()
        except Exception as e:
            self.diagnostics.debug(COMPONENT, f"Hover on item {item.position} failed: {e}")
            return
        pause = self.settings.human.scan_pause_s
        await HumanActivitySimulator(
            self.main_page, self.settings.human, self.diagnostics, self.rng
        ).random_pause(pause * 0.7, pause * 1.3)

    # ------------------------------------------------------------------
    # MainVisit / FallbackDirectVisit
    # ------------------------------------------------------------------

    async def _visit_main(self, item: ResultItem, kind: Main, page_number: int) -> None:
        self.main_visited = True
        self.result.found_on_page = page_number
        self.result.found_position = item.position
        self.result.found_id = kind.product_id
        self.result.is_found_variation_id = kind.is_variation
        self.result.found_by_search = True
        self.diagnostics.info(
            COMPONENT,
            f"Main product {kind.product_id} found on page {page_number} at position {item.position}",
            variation=kind.is_variation,
        )

        action = ProductAction(add_to_cart=self.main_action.add_to_cart, min_time_on_page=self.main_action.min_time_on_page)
        outcome = await self.visits.visit_and_act(
            self._absolute(item.href),
            kind.product_id,
            page_number,
            action,
            results_page=self.main_page,
            scrape_info=True,
        )
        self.result.main_product_page_actions = outcome.result
        self.result.product_info = outcome.info

    async def _fallback_direct_visit(self) -> None:
        if self.result.found_by_search or not self.main_action.product_info_on_not_found:
            return
        product_id = self.main_action.product_id
        url = self.settings.product_url(self.task.location, product_id)
        actions = ProductActionsResult(product_id=product_id)
        self.result.main_product_page_actions = actions
        self.diagnostics.info(COMPONENT, f"Fetching product info directly: {url}")
        try:
            self.result.product_info = await self.visits.fetch_product_info(url, product_id, self.main_page)
        except ProductNotFoundError as e:
            self.result.not_found_reason = NotFoundReason.PRODUCT_DOES_NOT_EXIST
            actions.error = str(e)
            self.diagnostics.error(COMPONENT, str(e))
        except Exception as e:
            actions.error = f"{type(e).__name__}: {e}"
            self.diagnostics.error(COMPONENT, f"Direct product visit failed: {actions.error}", url=url)

    # ------------------------------------------------------------------
    # Reconciled
    # ------------------------------------------------------------------

    async def _reconcile_after(self) -> None:
        if self.main_page is None:
            return
        try:
            after = await self.cart.get_cart_status(restore_to=self.main_page)
        except Exception as e:
            self.diagnostics.error(COMPONENT, f"Cart could not be read after the run: {e}")
            return
        self.result.cart.items_count_after = after.item_count
        self.diagnostics.info(
            COMPONENT,
            f"Cart count after: {after.item_count} (before {self.result.cart.items_count_before})",
        )

    async def _abort(self, error: Exception) -> None:
        self.result.error = str(error)
        self.result.error_kind = type(error).__name__
        self.diagnostics.error(COMPONENT, f"Run aborted: {self.result.error_kind}: {error}")
        if self.main_page is not None:
            await self.diagnostics.capture_snapshot(self.main_page, "run_aborted")

    async def _close_entry_page(self) -> None:
        if self.main_page is None:
            return
        try:
            await self.main_page.close()
        except Exception as e:
            self.diagnostics.warning(COMPONENT, f"Closing entry page failed: {e}")

    def _absolute(self, href: str) -> str:
        return urljoin(self.base_url + "/", href)


class RankingBot:
    """Handles ranking tasks against a caller-owned Playwright BrowserContext.

    The caller owns browser, profile and proxy setup; the bot only opens and
    closes tabs inside ``context``.
    """

    def __init__(
        self,
        context: BrowserContext,
        settings: Optional[Settings] = None,
        diagnostics: Optional[DiagnosticSink] = None,
        seed: Optional[int] = None,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.context = context
        self.settings = settings or get_settings()
        self.diagnostics = diagnostics
        self.seed = seed
        self.selectors = selectors

    async def handle(self, task: RankingTask, run_id: Optional[str] = None) -> RankingTaskResult:
        """Run one task. ``run_id`` prefixes every log line; a random one is used when omitted."""
        run_id = run_id or uuid.uuid4().hex[:8]
        diagnostics = self.diagnostics or LoggingDiagnosticSink(
            snapshot_dir=self.settings.diagnostics.snapshot_dir,
            capture_snapshots=self.settings.diagnostics.capture_snapshots,
            run_id=run_id,
        )
        rng = random.Random(self.seed) if self.seed is not None else random.Random()
        run = RankingRun(self.context, task, self.settings, diagnostics, rng, self.selectors)
        return await run.execute()

