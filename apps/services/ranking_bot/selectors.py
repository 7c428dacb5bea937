"""
Structural selectors for the marketplace pages the bot walks.

Kept in one place so a markup change on the site is a one-file fix and so the
test fake can render exactly the structure the engine looks for.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ShopSelectors:
    # Readiness markers
    site_chrome: str = "header .rh-search__input"
    anti_bot_challenge: str = "#challenge-form, iframe[src*='challenges.cloudflare.com'], .cf-browser-verification"
    loading_placeholder: str = ".skeleton, [class*='--skeleton'], .rd-loader"

    # Session
    cookie_accept: str = "#onetrust-accept-btn-handler"
    login_entry_logged_in: str = ".rd-aw-login-entry > button"
    login_entry_anonymous: str = ".rd-aw-login-entry > a, .rd-aw-login-entry > span"

    # Search and filters
    search_input: str = "input.rh-search__input"
    price_inputs: str = ".range-filter__input input.rd-input__input"
    result_count: str = ".product-count.result-header__product-count"
    empty_results: str = ".empty-search__notification"

    # Pagination
    page_nav_buttons: str = "button.rd-page--static"
    page_index: str = ".rd-page--page"
    current_page: str = "span.rd-page--current"

    # Result items
    result_item: str = "article.product"
    result_item_link: str = "a"
    advertised_badge: str = "aside.product-badge-container"

    # Product detail page
    product_missing: str = ".error-page, .rd-error-page--not-found"
    product_title: str = "h1.rd-title"
    product_price: str = ".rd-price-information__price"
    seller_link: str = ".rd-seller-info a"
    variant_option: str = ".rd-variant-selector [data-variant-info]"
    variant_attribute: str = "data-variant-info"
    short_description: str = ".pdp-product-info__short-description"
    main_image: str = ".pdp-gallery__main-image"
    long_description: str = ".pdp-description"
    add_to_cart: str = "button.rd-add-to-cart__button"
    cart_confirmation: str = ".rd-add-to-cart-overlay"
    cart_confirmation_close: str = ".rd-add-to-cart-overlay button.rd-overlay__close"

    # Cart
    cart_empty: str = ".empty-cart"
    cart_filled: str = ".filled-cart"
    cart_counter: str = ".filled-cart .article-counter"
    cart_item_link: str = ".filled-cart .cart-item a[href*='/product/']"

    @property
    def activity_targets(self) -> Tuple[str, ...]:
        """Elements the human-activity loop moves the pointer over."""
        return (self.short_description, self.main_image, self.long_description)


DEFAULT_SELECTORS = ShopSelectors()
