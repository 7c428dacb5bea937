"""
Result-item classification and random-visit sampling.

Classification answers "what is this item" and returns a tagged value;
the sampler separately answers "should we visit it". The main product is
never part of the sampling pool.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from playwright.async_api import ElementHandle, Page

from libs.core.config import Settings
from libs.core.models import ProductAction, ProductActionSpec

from .diagnostics import DiagnosticSink
from .page_readiness import PageReadiness
from .parsing import parse_product_id
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "Classifier"


@dataclass(frozen=True)
class Advertised:
    """Sponsored slot. ``is_main`` marks a sponsored sighting of the main product."""
    product_id: str
    is_main: bool


@dataclass(frozen=True)
class Main:
    product_id: str
    is_variation: bool


@dataclass(frozen=True)
class Candidate:
    product_id: str


ItemKind = Union[Advertised, Main, Candidate]


def classify(product_id: str, advertised: bool, main_action: ProductActionSpec) -> ItemKind:
    """Pure classification of one result item.

    | advertised | main | kind                      |
    |------------|------|---------------------------|
    | yes        | yes  | Advertised(is_main=True)  |
    | yes        | no   | Advertised(is_main=False) |
    | no         | yes  | Main                      |
    | no         | no   | Candidate                 |
    """
    is_main = main_action.is_main_id(product_id)
    if advertised:
        return Advertised(product_id=product_id, is_main=is_main)
    if is_main:
        return Main(product_id=product_id, is_variation=product_id != main_action.product_id)
    return Candidate(product_id=product_id)


@dataclass
class ResultItem:
    """One rendered result item in DOM order."""
    position: int  # 1-based, counts every rendered item
    element: ElementHandle
    href: str
    kind: ItemKind

    @property
    def product_id(self) -> str:
        return self.kind.product_id


# (element, href, advertised) as rendered, before classification
RawItem = Tuple[ElementHandle, Optional[str], bool]


class ResultItemClassifier:
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

    async def _read_items(self, page: Page) -> Tuple[List[RawItem]]:
        raw: List[RawItem] = []
        for element in await page.query_selector_all(self.selectors.result_item):
            link = await element.query_selector(self.selectors.result_item_link)
            href = await link.get_attribute("href") if link is not None else None
            advertised = await element.query_selector(self.selectors.advertised_badge) is not None
            raw.append((element, href, advertised))
        # Wrapped so an empty page still counts as a successful read
        return (raw,)

    async def classify_page(self, page: Page, main_action: ProductActionSpec, page_number: int) -> List[ResultItem]:
        """Classify every item on the current results page; unparseable items are skipped.

        The page is read as a whole and read again if the document is replaced
        midway.
        """
        (raw,) = await self.readiness.wait_until(
            lambda: self._read_items(page),
            self.settings.timeouts.element_s,
            "result items readable",
            {"url": page.url, "page": page_number},
        )
        items: List[ResultItem] = []
        for position, (element, href, advertised) in enumerate(raw, start=1):
            product_id = parse_product_id(href)
            if product_id is None:
                self.diagnostics.warning(
                    COMPONENT,
                    f"Invalid product url skipped: {href!r}",
                    position=position,
                    page=page_number,
                )
                continue
            kind = classify(product_id, advertised, main_action)
            if isinstance(kind, Advertised):
                self.diagnostics.debug(COMPONENT, f"Advertised item {product_id}", position=position, page=page_number)
            items.append(ResultItem(position=position, element=element, href=href.strip(), kind=kind))

        self.diagnostics.debug(
            COMPONENT,
            f"Page {page_number}: {len(raw)} items, {len(items)} classified, "
            f"{sum(isinstance(i.kind, Candidate) for i in items)} candidates",
        )
        return items


class PageSampler:
    """Sequential selection of random visits among a page's candidates.

    With ``R`` slots left and ``L`` candidates not yet scanned (the current one
    included) the current candidate is chosen with probability ``R / L``. This
    selects exactly ``min(R, L)`` candidates, each with equal probability.
    """

    def __init__(self, slots: Sequence[ProductAction], candidate_count: int, rng: random.Random):
        self.slots = list(slots)
        self.remaining_candidates = candidate_count
        self.used = 0
        self.rng = rng

    @property
    def remaining_slots(self) -> int:
        return len(self.slots) - self.used

    def consider(self) -> Optional[ProductAction]:
        """Call once per candidate in scan order; returns the action when it is sampled."""
        if self.remaining_candidates <= 0:
            return None
        slots_left, candidates_left = self.remaining_slots, self.remaining_candidates
        self.remaining_candidates -= 1
        if slots_left <= 0:
            return None
        if self.rng.random() < slots_left / candidates_left:
            action = self.slots[self.used]
            self.used += 1
            return action
        return None
