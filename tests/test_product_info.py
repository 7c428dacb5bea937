"""
Tests for product detail page scraping.
"""

import logging

import pytest

from apps.services.ranking_bot.product_info import ProductInfoScraper

from fakes import BASE_URL, FakeProduct, FakeShop, open_fake_page


async def scrape(shop, readiness, sink, product_id="100"):
    url = f"{BASE_URL}/product/{product_id}/"
    page = await open_fake_page(shop.new_context(), url)
    return await ProductInfoScraper(BASE_URL, readiness, sink).scrape_product_info(page, product_id, url)


class TestScrapeProductInfo:

    @pytest.mark.asyncio
    async def test_full_product_page(self, readiness, sink):
        shop = FakeShop(products={
            "100": FakeProduct(
                title="Natives Olivenöl Extra 1l",
                price_text="1.234,56 €",
                seller_name="Oliven Haus",
                seller_href="/shops/oliven-haus/98765/",
                variant_attrs=['{"id": "101"}', '{"id": 102}'],
            )
        })

        info = await scrape(shop, readiness, sink)

        assert info.title == "Natives Olivenöl Extra 1l"
        assert info.price == 1234.56
        assert info.shop_name == "Oliven Haus"
        assert info.shop_url == f"{BASE_URL}/shops/oliven-haus/98765/"
        assert info.shop_id == "98765"
        assert info.product_url == f"{BASE_URL}/product/100/"
        assert [v.id for v in info.variations] == ["101", "102"]

    @pytest.mark.asyncio
    async def test_malformed_and_duplicate_variants_excluded(self, readiness, sink):
        shop = FakeShop(products={
            "100": FakeProduct(variant_attrs=['{"id": "101"}', "{oops", '{"id": "101"}', '{"name": "x"}'])
        })

        info = await scrape(shop, readiness, sink)

        assert [v.id for v in info.variations] == ["101"]
        assert len([m for m in sink.messages(logging.WARNING) if "Malformed variant" in m]) == 2

    @pytest.mark.asyncio
    async def test_unreadable_price_is_none_not_guessed(self, readiness, sink):
        shop = FakeShop(products={"100": FakeProduct(price_text="Preis auf Anfrage")})

        info = await scrape(shop, readiness, sink)

        assert info.price is None
        assert any("price unreadable" in m for m in sink.messages(logging.WARNING))

    @pytest.mark.asyncio
    async def test_wire_format_is_camel_case(self, readiness, sink):
        info = await scrape(FakeShop(), readiness, sink)

        wire = info.model_dump(by_alias=True)

        assert set(wire) == {
            "shopName", "shopUrl", "shopId", "productId", "price", "productUrl", "title", "variations",
        }
