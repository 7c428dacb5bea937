"""
Tests for cart reading and snapshot diffing.
"""

import logging

import pytest

from apps.services.ranking_bot.cart import EMPTY_CART, CartInspector, CartStatus
from libs.core.exceptions import AntiBotChallengeError, PageNotReadyError

from fakes import BASE_URL, FakeShop, open_fake_page


def inspector(shop, settings, readiness, sink):
    context = shop.new_context()
    return context, CartInspector(context, settings.cart_url("de"), settings, readiness, sink)


class TestCartStatus:

    def test_diff_helpers(self):
        before = CartStatus(item_count=2, product_ids=frozenset({"1", "2"}))
        after = CartStatus(item_count=2, product_ids=frozenset({"2", "3"}))

        assert after.contains("3")
        assert after.added_since(before) == {"3"}
        assert after.removed_since(before) == {"1"}
        assert EMPTY_CART.item_count == 0


class TestGetCartStatus:

    @pytest.mark.asyncio
    async def test_empty_cart(self, settings, readiness, sink):
        context, cart = inspector(FakeShop(), settings, readiness, sink)

        status = await cart.get_cart_status()

        assert status == EMPTY_CART

    @pytest.mark.asyncio
    async def test_filled_cart_reads_counter_and_ids(self, settings, readiness, sink):
        context, cart = inspector(FakeShop(cart=["11", "12", "13"]), settings, readiness, sink)

        status = await cart.get_cart_status()

        assert status.item_count == 3
        assert status.product_ids == {"11", "12", "13"}

    @pytest.mark.asyncio
    async def test_reading_twice_is_idempotent(self, settings, readiness, sink):
        context, cart = inspector(FakeShop(cart=["11", "12"]), settings, readiness, sink)

        first = await cart.get_cart_status()
        second = await cart.get_cart_status()

        assert first == second

    @pytest.mark.asyncio
    async def test_unreadable_counter_falls_back_to_line_items(self, settings, readiness, sink):
        shop = FakeShop(cart=["11", "12"], cart_counter_text="Artikel")
        context, cart = inspector(shop, settings, readiness, sink)

        status = await cart.get_cart_status()

        assert status.item_count == 2
        assert any("Cart counter unreadable" in m for m in sink.messages(logging.WARNING))

    @pytest.mark.asyncio
    async def test_tab_is_closed_and_results_tab_restored(self, settings, readiness, sink):
        shop = FakeShop(cart=["11"])
        context, cart = inspector(shop, settings, readiness, sink)
        results_tab = await open_fake_page(context, BASE_URL)

        await cart.get_cart_status(restore_to=results_tab)

        assert context.open_pages == [results_tab]
        assert results_tab.front_count == 1
        assert context.pages[-1].url == settings.cart_url("de")

    @pytest.mark.asyncio
    async def test_tab_is_closed_when_reading_fails(self, settings, readiness, sink):
        shop = FakeShop(cart=["11"], challenge_loads=2)
        context, cart = inspector(shop, settings, readiness, sink)

        with pytest.raises(AntiBotChallengeError):
            await cart.get_cart_status()

        assert context.open_pages == []

    @pytest.mark.asyncio
    async def test_navigation_timeout_is_page_not_ready(self, settings, readiness, sink):
        context, cart = inspector(FakeShop(cart=["5"], failing_loads={"/checkout/cart": 1}), settings, readiness, sink)

        with pytest.raises(PageNotReadyError) as excinfo:
            await cart.get_cart_status()

        assert "TimeoutError" in excinfo.value.context["cause"]
        assert context.open_pages == []
        assert (await cart.get_cart_status()).item_count == 1
