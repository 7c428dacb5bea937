"""
Product detail page scraping.

Values that cannot be read are recorded as empty/None and reported through
the diagnostic sink; nothing is guessed.
"""

from typing import List, Optional
from urllib.parse import urljoin

from playwright.async_api import Page

from libs.core.exceptions import PageNotReadyError
from libs.core.models import ProductInfo, ProductVariation

from .diagnostics import DiagnosticSink
from .page_readiness import PageReadiness
from .parsing import parse_localized_price, parse_shop_id, parse_variant_attribute
from .selectors import DEFAULT_SELECTORS, ShopSelectors

COMPONENT = "ProductInfo"


class ProductInfoScraper:
    def __init__(
        self,
        base_url: str,
        readiness: PageReadiness,
        diagnostics: DiagnosticSink,
        selectors: ShopSelectors = DEFAULT_SELECTORS,
    ):
        self.base_url = base_url
        self.readiness = readiness
        self.diagnostics = diagnostics
        self.selectors = selectors

    async def _text(self, page: Page, selector: str) -> str:
        element = await page.query_selector(selector)
        if element is None:
            return ""
        return (await element.text_content() or "").strip()

    async def scrape_product_info(self, page: Page, product_id: str, product_url: str) -> ProductInfo:
        sel = self.selectors
        info = ProductInfo(product_id=product_id, product_url=product_url)

        try:
            title_el = await self.readiness.wait_for_selector(page, sel.product_title)
            info.title = (await title_el.text_content() or "").strip()
        except PageNotReadyError:
            pass
        if not info.title:
            self.diagnostics.warning(COMPONENT, "Product title missing", product_id=product_id, url=page.url)

        price_text = await self._text(page, sel.product_price)
        info.price = parse_localized_price(price_text)
        if info.price is None:
            self.diagnostics.warning(COMPONENT, "Product price unreadable", product_id=product_id, text=price_text)

        seller = await page.query_selector(sel.seller_link)
        if seller is not None:
            info.shop_name = (await seller.text_content() or "").strip()
            href = await seller.get_attribute("href")
            if href:
                info.shop_url = urljoin(self.base_url + "/", href)
                info.shop_id = parse_shop_id(href) or ""
        else:
            self.diagnostics.warning(COMPONENT, "Seller information missing", product_id=product_id)

        info.variations = [ProductVariation(id=v) for v in await self._variation_ids(page, product_id)]
        self.diagnostics.info(
            COMPONENT,
            f"Scraped '{info.title[:60]}' price={info.price} seller={info.shop_name or '-'} "
            f"variations={len(info.variations)}",
            product_id=product_id,
        )
        return info

    async def _variation_ids(self, page: Page, product_id: str) -> List[str]:
        seen: List[str] = []
        for option in await page.query_selector_all(self.selectors.variant_option):
            raw: Optional[str] = await option.get_attribute(self.selectors.variant_attribute)
            variant_id = parse_variant_attribute(raw)
            if variant_id is None:
                self.diagnostics.warning(COMPONENT, "Malformed variant attribute excluded", product_id=product_id, raw=raw)
                continue
            if variant_id not in seen:
                seen.append(variant_id)
        return seen
