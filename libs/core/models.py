"""Pydantic models for ranking tasks and their results.

Field names are snake_case in Python and camelCase on the wire
(``Task.model_validate(payload)`` / ``result.model_dump(by_alias=True)``).
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenWireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# =============================================================================
# Enums
# =============================================================================

Location = Literal["de", "bg", "cz", "hr", "pl", "md", "ro", "sk"]


class NotFoundReason(str, Enum):
    """Why the main product has no search ranking.

    The two values must never be conflated: the first is ranking/visibility
    information, the second means the product ID itself is invalid.
    """

    NOT_IN_SEARCH_RESULTS = "not_in_search_results"
    PRODUCT_DOES_NOT_EXIST = "product_does_not_exist"


# =============================================================================
# Task (input)
# =============================================================================

class Profile(_FrozenWireModel):
    """Login profile. Used only to check which login state is expected."""

    name: str
    password: str
    email: str


class ProductAction(_FrozenWireModel):
    """What to do on a visited product page."""

    add_to_cart: bool = False
    min_time_on_page: float = Field(default=0, ge=0)  # seconds


class SearchCriteria(_FrozenWireModel):
    keyword: str
    number_pages_to_search: int = Field(default=1, ge=1)
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_price_bounds(self) -> "SearchCriteria":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError(f"minPrice {self.min_price} is greater than maxPrice {self.max_price}")
        return self


class ProductActionSpec(ProductAction):
    """Default action for the main product plus everything needed to find it."""

    search_criteria: SearchCriteria
    product_id: str
    # Any of these counts as the main product when found
    variation_ids: list[str] = Field(default_factory=list)
    # Visit the product URL directly for its info when search did not find it
    product_info_on_not_found: bool = False
    # One list per results page; list 0 applies to page 1
    random_product_visits_per_page: list[list[ProductAction]] = Field(default_factory=list)

    @field_validator("product_id")
    @classmethod
    def _product_id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("productId must not be empty")
        return v

    def is_main_id(self, product_id: str) -> bool:
        return product_id == self.product_id or product_id in self.variation_ids

    def random_visits_for_page(self, page_number: int) -> list[ProductAction]:
        """Random-visit actions configured for a 1-based results page.

        List 0 belongs to page 1. Task files written for a list indexed by the
        page number itself (list 0 unused) must drop their first entry.
        """
        index = page_number - 1
        if 0 <= index < len(self.random_product_visits_per_page):
            return list(self.random_product_visits_per_page[index])
        return []


class RankingTask(_FrozenWireModel):
    """Input record; immutable for the run."""

    is_anonymous: bool = True
    profile: Optional[Profile] = None
    location: Location = "de"
    product_action: ProductActionSpec


# =============================================================================
# Result (output)
# =============================================================================

class ProductVariation(_WireModel):
    id: str


class ProductInfo(_WireModel):
    """Information scraped from the main product's detail page."""

    shop_name: str = ""
    shop_url: str = ""
    shop_id: str = ""
    product_id: str
    price: Optional[float] = None
    product_url: str
    title: str = ""
    variations: list[ProductVariation] = Field(default_factory=list)


class AddToCartResult(_WireModel):
    """Whether the product was in the cart before and after, from two independent reads."""

    before: bool
    after: bool


class ProductActionsResult(_WireModel):
    product_id: str = ""
    found_on_page: Optional[int] = None
    add_to_cart: Optional[AddToCartResult] = None
    error: Optional[str] = None
    time_on_page: Optional[float] = None  # measured seconds, not the configured minimum


class CartCounts(_WireModel):
    items_count_before: int = 0
    items_count_after: int = 0


class RankingTaskResult(_WireModel):
    """Output record, built incrementally by the run."""

    total_result_pages: Optional[int] = None
    total_result_items: Optional[int] = None
    pages_searched: int = 0
    found_on_page: Optional[int] = None
    found_position: Optional[int] = None
    found_id: Optional[str] = None
    # Only meaningful when found_by_search is true
    is_found_variation_id: bool = False
    found_by_search: bool = False
    is_found_advertised: bool = False
    not_found_reason: Optional[NotFoundReason] = None

    cart: CartCounts = Field(default_factory=CartCounts)
    product_info: Optional[ProductInfo] = None
    main_product_page_actions: ProductActionsResult = Field(default_factory=ProductActionsResult)
    other_products: list[ProductActionsResult] = Field(default_factory=list)

    filter_mismatches: list[str] = Field(default_factory=list)
    profile_verified: Optional[bool] = None

    # Top-level indicator for an aborted run
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
