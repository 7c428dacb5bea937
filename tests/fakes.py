"""
In-memory fake marketplace for tests.

Implements the slice of the Playwright async API the ranking bot consumes
(context.new_page, page queries/navigation/mouse/keyboard, element actions)
and renders exactly the structural selectors from ``ShopSelectors``. Shop
behaviour (challenges, skeletons, missing overlay, page drift, filter echo)
is switched on per test through ``FakeShop`` arguments, including transient
browser errors on chosen queries or page loads.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote_plus, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from apps.services.ranking_bot.selectors import DEFAULT_SELECTORS as SEL
from libs.core.config import (
    DiagnosticsSettings,
    HumanActivitySettings,
    RetrySettings,
    Settings,
    SiteSettings,
    TimeoutSettings,
)
from libs.core.models import ProductActionSpec, RankingTask, SearchCriteria

BASE_URL = "https://www.kaufland.de"
BOX = {"x": 10.0, "y": 120.0, "width": 400.0, "height": 240.0}


def make_settings(**site) -> Settings:
    """Settings with millisecond-scale bounds so timeouts resolve quickly in tests."""
    return Settings(
        site=SiteSettings(**{"items_per_page": 5, **site}),
        timeouts=TimeoutSettings(
            ready_s=0.3,
            element_s=0.2,
            settle_s=0.3,
            consent_s=0.02,
            page_index_s=0.05,
            poll_interval_s=0.005,
            navigation_ms=1000,
        ),
        retries=RetrySettings(
            filter_reapply=1,
            cart_confirm_polls=3,
            cart_confirm_interval_s=0.005,
            resync_attempts=2,
        ),
        human=HumanActivitySettings(
            moves_min=1,
            moves_max=2,
            move_steps=2,
            pause_min_s=0.0,
            pause_max_s=0.002,
            scan_pause_s=0.001,
            typing_delay_min_ms=0,
            typing_delay_max_ms=1,
        ),
        diagnostics=DiagnosticsSettings(capture_snapshots=False),
    )


def make_task(product_id: str = "100", keyword: str = "olive oil", pages: int = 1, **action) -> RankingTask:
    criteria = {
        "keyword": keyword,
        "number_pages_to_search": pages,
        "min_price": action.pop("min_price", None),
        "max_price": action.pop("max_price", None),
    }
    return RankingTask(
        is_anonymous=action.pop("is_anonymous", True),
        location=action.pop("location", "de"),
        product_action=ProductActionSpec(
            search_criteria=SearchCriteria(**criteria),
            product_id=product_id,
            **action,
        ),
    )


# =============================================================================
# Shop data
# =============================================================================

@dataclass
class FakeResult:
    href: str
    advertised: bool = False


def item(product_id: str, advertised: bool = False) -> FakeResult:
    return FakeResult(href=f"/product/{product_id}/", advertised=advertised)


def result_pages(count: int, per_page: int, overrides: Optional[Dict[tuple, FakeResult]] = None) -> List[List[FakeResult]]:
    """``count`` pages of ``per_page`` filler items; ``overrides[(page, position)]`` replaces one slot."""
    overrides = overrides or {}
    pages = []
    for page in range(1, count + 1):
        pages.append([
            overrides.get((page, pos), item(str(900000 + page * 100 + pos)))
            for pos in range(1, per_page + 1)
        ])
    return pages


@dataclass
class FakeProduct:
    title: str = "Sample product"
    price_text: str = "28,01 €"
    seller_name: str = "Sample Seller"
    seller_href: str = "/shops/sample-seller/12345/"
    variant_attrs: List[str] = field(default_factory=list)


# =============================================================================
# Playwright surface
# =============================================================================

class FakeElement:
    def __init__(
        self,
        text: str = "",
        attrs: Optional[dict] = None,
        children: Optional[dict] = None,
        visible: bool = True,
        box: Optional[dict] = BOX,
        value: str = "",
        on_click=None,
        on_press=None,
    ):
        self.text = text
        self.attrs = dict(attrs or {})
        self.children = dict(children or {})
        self.visible = visible
        self.box = box
        self.value = value
        self.on_click = on_click
        self.on_press = on_press
        self.clicks = 0
        self.hovers = 0
        self.pressed: List[str] = []

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    async def text_content(self) -> str:
        return self.text

    async def input_value(self) -> str:
        return self.value

    async def fill(self, value: str) -> None:
        self.value = value

    async def type(self, text: str) -> None:
        self.value += text

    async def press(self, key: str) -> None:
        self.pressed.append(key)
        if self.on_press is not None:
            self.on_press(self, key)

    async def click(self) -> None:
        self.clicks += 1
        if self.on_click is not None:
            self.on_click(self)

    async def hover(self) -> None:
        self.hovers += 1

    async def is_visible(self) -> bool:
        return self.visible

    async def bounding_box(self) -> Optional[dict]:
        return dict(self.box) if self.box else None

    async def scroll_into_view_if_needed(self) -> None:
        return None

    async def query_selector(self, selector: str):
        return self.children.get(selector)

    async def query_selector_all(self, selector: str) -> list:
        child = self.children.get(selector)
        return [child] if child is not None else []


class FakeMouse:
    def __init__(self):
        self.moves: List[tuple] = []

    async def move(self, x: float, y: float, steps: int = 1) -> None:
        self.moves.append((x, y, steps))


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page
        self.pressed: List[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)
        if key == "Escape":
            self.page.overlay_visible = False


@dataclass
class SerpState:
    keyword: str
    min_input: FakeElement
    max_input: FakeElement
    current: int = 1
    item_elements: Dict[int, List[FakeElement]] = field(default_factory=dict)


class FakePage:
    def __init__(self, context: "FakeContext"):
        self.context = context
        self.shop = context.shop
        self._url = "about:blank"
        self.closed = False
        self.viewport: Optional[dict] = None
        self.mouse = FakeMouse()
        self.keyboard = FakeKeyboard(self)
        self.search_input = FakeElement(on_press=self._on_search_press)
        self.serp: Optional[SerpState] = None
        self.challenged = False
        self.placeholder_polls = 0
        self.overlay_visible = False
        self.front_count = 0
        self.screenshots: List[str] = []

    @property
    def url(self) -> str:
        return self._url

    # Navigation

    async def set_viewport_size(self, size: dict) -> None:
        self.viewport = dict(size)

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None):
        self._ensure_open()
        if self.shop.take_failing_load(url):
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded navigating to \"{url}\"")
        self._url = url
        self.serp = None
        self.overlay_visible = False
        self.search_input.value = ""
        self._loaded()

    async def reload(self, wait_until: Optional[str] = None, timeout: Optional[float] = None):
        self._ensure_open()
        self._loaded()

    def _loaded(self) -> None:
        self.shop.loads.append(self._url)
        self.challenged = self.shop.take_challenge()
        self.placeholder_polls = self.shop.skeleton_polls

    async def close(self) -> None:
        self.closed = True

    async def bring_to_front(self) -> None:
        self.front_count += 1

    async def screenshot(self, path: Optional[str] = None, full_page: bool = False) -> bytes:
        self.screenshots.append(path)
        return b""

    # Queries

    async def query_selector(self, selector: str):
        elements = await self.query_selector_all(selector)
        return elements[0] if elements else None

    async def query_selector_all(self, selector: str) -> list:
        self._ensure_open()
        if self.shop.flaky_queries > 0:
            self.shop.flaky_queries -= 1
            raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")
        if self.shop.take_flaky_query(selector):
            raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")
        if selector == SEL.loading_placeholder:
            if self.placeholder_polls > 0:
                self.placeholder_polls -= 1
                return [FakeElement(visible=True)]
            return []
        return list(self._render().get(selector, []))

    def _ensure_open(self) -> None:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")

    # Rendering

    def _render(self) -> Dict[str, list]:
        if self.challenged:
            return {SEL.anti_bot_challenge: [FakeElement(text="Checking your browser")]}

        view: Dict[str, list] = {
            SEL.site_chrome: [self.search_input],
            SEL.search_input: [self.search_input],
        }
        if self.shop.cookie_banner and not self.shop.cookies_accepted:
            view[SEL.cookie_accept] = [FakeElement(on_click=lambda _: self.shop.accept_cookies())]
        login = SEL.login_entry_logged_in if self.shop.logged_in else SEL.login_entry_anonymous
        view[login] = [FakeElement(text="Mein Konto")]

        path = urlparse(self._url).path
        if self.serp is not None:
            self._render_serp(view)
        elif path.startswith("/checkout/cart"):
            self._render_cart(view)
        elif path.startswith("/product/"):
            self._render_product(view, path.split("/")[2])
        return view

    def _render_serp(self, view: Dict[str, list]) -> None:
        serp = self.serp
        shop = self.shop
        view[SEL.price_inputs] = [serp.min_input, serp.max_input]
        if shop.total_items == 0:
            view[SEL.empty_results] = [FakeElement(text="Leider keine Ergebnisse")]
            return

        count_text = shop.result_count_text if shop.result_count_text is not None else f"{shop.total_items} Produkte"
        view[SEL.result_count] = [FakeElement(text=count_text)]
        if serp.current not in serp.item_elements:
            serp.item_elements[serp.current] = [self._result_element(r) for r in shop.results[serp.current - 1]]
        view[SEL.result_item] = serp.item_elements[serp.current]

        if len(shop.results) > 1 and shop.show_page_index:
            view[SEL.page_index] = [FakeElement(text=str(n)) for n in range(1, len(shop.results) + 1)]
            view[SEL.current_page] = [FakeElement(text=str(serp.current))]
            view[SEL.page_nav_buttons] = [
                FakeElement(text="<", on_click=lambda _: self._navigate(-1)),
                FakeElement(text=">", on_click=lambda _: self._navigate(+1)),
            ]

    def _result_element(self, result: FakeResult) -> FakeElement:
        children = {SEL.result_item_link: FakeElement(attrs={"href": result.href})}
        if result.advertised:
            children[SEL.advertised_badge] = FakeElement(text="Gesponsert")
        return FakeElement(children=children)

    def _render_product(self, view: Dict[str, list], product_id: str) -> None:
        if product_id in self.shop.missing_products:
            view[SEL.product_missing] = [FakeElement(text="Seite nicht gefunden")]
            return
        product = self.shop.product(product_id)
        view[SEL.product_title] = [FakeElement(text=f"  {product.title}\n")]
        view[SEL.product_price] = [FakeElement(text=product.price_text)]
        view[SEL.seller_link] = [FakeElement(text=product.seller_name, attrs={"href": product.seller_href})]
        view[SEL.variant_option] = [
            FakeElement(attrs={SEL.variant_attribute: raw}) for raw in product.variant_attrs
        ]
        for selector in SEL.activity_targets:
            view[selector] = [FakeElement()]
        view[SEL.add_to_cart] = [FakeElement(text="In den Warenkorb", on_click=lambda _: self._add_to_cart(product_id))]
        if self.overlay_visible:
            view[SEL.cart_confirmation] = [FakeElement()]
            view[SEL.cart_confirmation_close] = [FakeElement(on_click=lambda _: self._hide_overlay())]

    def _render_cart(self, view: Dict[str, list]) -> None:
        cart = self.shop.cart
        if not cart:
            view[SEL.cart_empty] = [FakeElement(text="Dein Warenkorb ist leer")]
            return
        view[SEL.cart_filled] = [FakeElement()]
        counter = self.shop.cart_counter_text if self.shop.cart_counter_text is not None else f"({len(cart)} Artikel)"
        view[SEL.cart_counter] = [FakeElement(text=counter)]
        view[SEL.cart_item_link] = [FakeElement(attrs={"href": f"/product/{pid}/"}) for pid in cart]

    # Interactions

    def _on_search_press(self, element: FakeElement, key: str) -> None:
        if key != "Enter":
            return
        keyword = element.value
        self.shop.searches.append(keyword)
        if self.shop.keyword_echo is not None:
            element.value = self.shop.keyword_echo
        self.serp = SerpState(
            keyword=keyword,
            min_input=FakeElement(on_press=self._on_price_press),
            max_input=FakeElement(on_press=self._on_price_press),
        )
        self._url = f"{self.shop.base_url}/s/?search_value={quote_plus(keyword)}"
        self.placeholder_polls = self.shop.skeleton_polls

    def _on_price_press(self, element: FakeElement, key: str) -> None:
        if key != "Enter" or self.serp is None:
            return
        self.shop.price_filters.append((self.serp.min_input.value, self.serp.max_input.value))
        if self.shop.ignore_price_filter:
            self.serp.min_input.value = ""
            self.serp.max_input.value = ""
        self.serp.current = 1
        self.placeholder_polls = self.shop.skeleton_polls

    def _navigate(self, delta: int) -> None:
        if self.shop.pagination_stuck:
            return
        target = self.serp.current + delta
        actual = self.shop.drift.pop(target, target)
        self.serp.current = max(1, min(actual, len(self.shop.results)))
        self.shop.navigations.append(self.serp.current)
        self.placeholder_polls = self.shop.skeleton_polls

    def _add_to_cart(self, product_id: str) -> None:
        self.shop.add_clicks.append(product_id)
        if self.shop.add_to_cart_works and product_id not in self.shop.cart:
            self.shop.cart.append(product_id)
        if self.shop.confirmation_overlay:
            self.overlay_visible = True

    def _hide_overlay(self) -> None:
        self.overlay_visible = False


class FakeContext:
    def __init__(self, shop: "FakeShop"):
        self.shop = shop
        self.pages: List[FakePage] = []

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    @property
    def open_pages(self) -> List[FakePage]:
        return [p for p in self.pages if not p.closed]

    def pages_for(self, fragment: str) -> List[FakePage]:
        return [p for p in self.pages if fragment in p.url]


class FakeShop:
    """Server-side state shared by every tab of a context (cart, cookies, catalogue)."""

    def __init__(
        self,
        results: Optional[Sequence[Sequence[FakeResult]]] = None,
        base_url: str = BASE_URL,
        products: Optional[Dict[str, FakeProduct]] = None,
        missing_products: Sequence[str] = (),
        cart: Sequence[str] = (),
        cart_counter_text: Optional[str] = None,
        logged_in: bool = False,
        cookie_banner: bool = True,
        challenge_loads: int = 0,
        skeleton_polls: int = 0,
        flaky_queries: int = 0,
        flaky_on: Optional[Dict[str, Iterable[int]]] = None,
        failing_loads: Optional[Dict[str, int]] = None,
        confirmation_overlay: bool = True,
        add_to_cart_works: bool = True,
        ignore_price_filter: bool = False,
        keyword_echo: Optional[str] = None,
        result_count_text: Optional[str] = None,
        show_page_index: bool = True,
        drift: Optional[Dict[int, int]] = None,
        pagination_stuck: bool = False,
    ):
        self.results = [list(p) for p in (results if results is not None else result_pages(1, 5))]
        self.base_url = base_url
        self.products = dict(products or {})
        self.missing_products = set(missing_products)
        self.cart = list(cart)
        self.cart_counter_text = cart_counter_text
        self.logged_in = logged_in
        self.cookie_banner = cookie_banner
        self.cookies_accepted = False
        self.challenge_loads = challenge_loads
        self.skeleton_polls = skeleton_polls
        self.flaky_queries = flaky_queries
        # selector -> 1-based query ordinals that raise
        self.flaky_on = {s: set(n) for s, n in (flaky_on or {}).items()}
        # url fragment -> number of loads that time out
        self.failing_loads = dict(failing_loads or {})
        self.query_counts: Dict[str, int] = {}
        self.confirmation_overlay = confirmation_overlay
        self.add_to_cart_works = add_to_cart_works
        self.ignore_price_filter = ignore_price_filter
        self.keyword_echo = keyword_echo
        self.result_count_text = result_count_text
        self.show_page_index = show_page_index
        self.drift = dict(drift or {})
        self.pagination_stuck = pagination_stuck

        # Observations
        self.loads: List[str] = []
        self.searches: List[str] = []
        self.price_filters: List[tuple] = []
        self.navigations: List[int] = []
        self.add_clicks: List[str] = []

    @property
    def total_items(self) -> int:
        return sum(len(p) for p in self.results)

    def new_context(self) -> FakeContext:
        return FakeContext(self)

    def product(self, product_id: str) -> FakeProduct:
        return self.products.get(product_id) or FakeProduct(title=f"Product {product_id}")

    def take_challenge(self) -> bool:
        if self.challenge_loads > 0:
            self.challenge_loads -= 1
            return True
        return False

    def take_flaky_query(self, selector: str) -> bool:
        count = self.query_counts.get(selector, 0) + 1
        self.query_counts[selector] = count
        return count in self.flaky_on.get(selector, ())

    def take_failing_load(self, url: str) -> bool:
        for fragment, remaining in self.failing_loads.items():
            if remaining > 0 and fragment in url:
                self.failing_loads[fragment] = remaining - 1
                return True
        return False

    def accept_cookies(self) -> None:
        self.cookies_accepted = True

    def product_loads(self) -> List[str]:
        """Product IDs in the order their pages were loaded."""
        return [urlparse(u).path.split("/")[2] for u in self.loads if urlparse(u).path.startswith("/product/")]


async def open_fake_page(context: FakeContext, url: str) -> FakePage:
    page = await context.new_page()
    await page.goto(url)
    return page
