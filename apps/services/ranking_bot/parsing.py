"""
Text and URL parsers for localized marketplace pages.

All parsers are pure: they never touch the page and return ``None`` when the
input cannot be read unambiguously, leaving the policy to the caller.
"""

import json
import re
from typing import Optional
from urllib.parse import urlparse

_PRODUCT_ID_RE = re.compile(r"^[0-9A-Za-z_-]+$")
_CURRENCY_RE = re.compile(r"[^\d.,\-]")


def parse_localized_price(text: Optional[str]) -> Optional[float]:
    """Parse a price like '28,01 €' or '1.234,56 €'.

    '.' is the thousands separator and ',' the decimal separator.
    """
    if not text:
        return None
    cleaned = _CURRENCY_RE.sub("", text.replace("\xa0", " "))
    if not cleaned:
        return None
    cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        price = float(cleaned)
    except (ValueError, TypeError):
        return None
    if price < 0:
        return None
    return round(price, 2)


def parse_item_count(text: Optional[str]) -> Optional[int]:
    """Parse a total-items figure like '1.234' or '10.000+ Produkte'."""
    if not text:
        return None
    tokens = text.replace("\xa0", " ").strip().split()
    if not tokens:
        return None
    raw = tokens[0].replace(".", "").replace("+", "")
    if not raw.isdigit():
        return None
    return int(raw)


def parse_cart_count(text: Optional[str]) -> Optional[int]:
    """Parse the cart counter text, e.g. '(3 Artikel)'."""
    if not text:
        return None
    return parse_item_count(text.replace("(", "").replace(")", ""))


def parse_page_number(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    text = text.strip()
    return int(text) if text.isdigit() else None


def parse_product_id(href: Optional[str]) -> Optional[str]:
    """Extract the product ID from a '/product/<id>/...' link (relative or absolute)."""
    if not href:
        return None
    path = urlparse(href.strip()).path
    parts = path.split("/")
    if len(parts) < 3 or parts[0] != "" or parts[1] != "product":
        return None
    product_id = parts[2]
    if not _PRODUCT_ID_RE.match(product_id):
        return None
    return product_id


def parse_shop_id(href: Optional[str]) -> Optional[str]:
    """Last non-empty path segment of a seller link, e.g. '/shops/12345/' -> '12345'."""
    if not href:
        return None
    segments = [s for s in urlparse(href.strip()).path.split("/") if s]
    return segments[-1] if segments else None


def parse_variant_attribute(raw: Optional[str]) -> Optional[str]:
    """Read the variant ID out of a JSON data attribute like '{"id": "123"}'."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    variant_id = data.get("id")
    if isinstance(variant_id, int) and not isinstance(variant_id, bool):
        variant_id = str(variant_id)
    if not isinstance(variant_id, str) or not _PRODUCT_ID_RE.match(variant_id):
        return None
    return variant_id
