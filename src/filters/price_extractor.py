# src/filters/price_extractor.py

"""Locate a product price in heterogeneous page markup.

Strategies run in descending order of reliability and the first
one that yields an in-range value wins:

1. JSON-LD ``Product``/``Offer`` schema  -> ``high``
2. OpenGraph / product meta tags          -> ``high``
3. Common price CSS selectors             -> ``medium``
4. Currency-adjacent regex over page text -> ``low``

When nothing matches the result carries confidence ``none`` and a
``None`` value. Ambiguity is reported through the confidence tier,
never through an exception.
"""

import json
import logging
import re
from collections import Counter
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings

logger = logging.getLogger("pagewatch.price")

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"
CONFIDENCE_NONE = "none"

# Multi-character symbols first so "C$" is not read as "$"
CURRENCY_SYMBOLS: dict[str, str] = {
    "C$": "CAD",
    "A$": "AUD",
    "R$": "BRL",
    "zł": "PLN",
    "Kč": "CZK",
    "Ft": "HUF",
    "lei": "RON",
    "kr": "SEK",
    "$": "USD",
    "£": "GBP",
    "€": "EUR",
    "¥": "JPY",
    "₹": "INR",
    "₽": "RUB",
    "₩": "KRW",
    "฿": "THB",
    "₫": "VND",
    "₱": "PHP",
    "₴": "UAH",
    "₦": "NGN",
    "₪": "ILS",
}

CURRENCY_CODES: list[str] = [
    "USD", "GBP", "EUR", "JPY", "CAD", "AUD", "CHF", "CNY",
    "INR", "SEK", "NOK", "DKK", "NZD", "SGD", "HKD", "KRW",
    "MXN", "BRL", "RUB", "ZAR", "TRY", "PLN", "THB", "IDR",
    "MYR", "PHP", "CZK", "ILS", "AED", "CLP", "COP", "PEN",
    "VND",
]

_CODE_RES: list[tuple[str, re.Pattern[str]]] = [
    (code, re.compile(rf"(?<![A-Z]){code}(?![A-Z])"))
    for code in CURRENCY_CODES
]

# Digits with optional 3-digit groups and a trailing fraction. Only
# no-break spaces group digits; plain spaces and newlines separate numbers.
_NUMBER_RE = re.compile(r"\d+(?:[.,\u00a0\u202f]\d{3})*(?:[.,]\d+)?")

_META_PRICE_SELECTORS: list[str] = [
    'meta[property="og:price:amount"]',
    'meta[property="product:price:amount"]',
    'meta[name="product:price:amount"]',
    'meta[property="og:price"]',
    'meta[name="twitter:data1"]',
]

_META_CURRENCY_SELECTORS: list[str] = [
    'meta[property="og:price:currency"]',
    'meta[property="product:price:currency"]',
    'meta[name="product:price:currency"]',
]

# Ordered by specificity / reliability
_PRICE_SELECTORS: list[str] = [
    "[data-price]",
    "[data-product-price]",
    '[itemprop="price"]',
    ".product-price",
    ".price-value",
    ".current-price",
    ".sale-price",
    ".final-price",
    "#product-price",
    ".product__price",
    ".price--main",
    ".price-item--regular",
    ".price-item--sale",
    '[class*="ProductPrice"]',
    '[class*="product-price"]',
    '[class*="productPrice"]',
    ".price",
]

_PRICE_ATTRIBUTES: tuple[str, ...] = (
    "data-price",
    "data-product-price",
    "content",
)

# Elements inspected per selector
_SELECTOR_SAMPLE = 5

_AMOUNT = r"(\d+(?:[,.]\d{3})*(?:[.,]\d{2})?)"

_TEXT_PRICE_PATTERNS: list[re.Pattern[str]] = [
    # $12.99, £1,299.00, €5
    re.compile(rf"[$£€¥₹₽₩]\s*{_AMOUNT}"),
    # 12.99 USD, 1.234,56 EUR
    re.compile(
        rf"{_AMOUNT}\s*(?:USD|EUR|GBP|CAD|AUD|JPY)",
        re.IGNORECASE,
    ),
    # Price: $12.99
    re.compile(
        rf"price[:\s]+[$£€¥₹₽₩]\s*{_AMOUNT}",
        re.IGNORECASE,
    ),
]


@dataclass(frozen=True)
class ParsedPrice:
    """Numeric value and inferred currency of a price string."""

    value: float
    currency: str | None


@dataclass(frozen=True)
class ExtractedPrice:
    """Outcome of :func:`extract_price`."""

    value: float | None
    raw: str | None
    currency: str | None
    confidence: str
    source: str


NO_PRICE = ExtractedPrice(
    value=None,
    raw=None,
    currency=None,
    confidence=CONFIDENCE_NONE,
    source="none",
)


@dataclass(frozen=True)
class PriceRange:
    """Inclusive range of plausible prices."""

    min_price: float
    max_price: float

    def accepts(self, value: float) -> bool:
        """True when *value* lies inside the range."""
        return self.min_price <= value <= self.max_price


def detect_currency(text: str) -> str | None:
    """Resolve a currency from ISO codes first, then symbols."""
    upper = text.upper()
    for code, pattern in _CODE_RES:
        if pattern.search(upper):
            return code
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    return None


def _normalise_number(number: str) -> str:
    """Turn a US or EU formatted number into a float literal."""
    compact = re.sub(r"\s", "", number)
    has_comma = "," in compact
    has_dot = "." in compact

    if has_comma and has_dot:
        if compact.rfind(",") > compact.rfind("."):
            # EU: 1.234,56
            return compact.replace(".", "").replace(",", ".")
        # US: 1,234.56
        return compact.replace(",", "")
    if has_comma:
        head, _, tail = compact.rpartition(",")
        if compact.count(",") == 1 and len(tail) == 2:
            return f"{head}.{tail}"
        return compact.replace(",", "")
    if compact.count(".") > 1:
        # 1.234.567 only makes sense as thousands grouping
        return compact.replace(".", "")
    return compact


def parse_price(text: str | None) -> ParsedPrice | None:
    """Parse a price string such as ``'$1,234.56'`` or ``'1.234,56 EUR'``.

    Returns ``None`` when no number can be found.
    """
    if not text:
        return None
    cleaned = text.strip()
    match = _NUMBER_RE.search(cleaned)
    if match is None:
        return None
    try:
        value = float(_normalise_number(match.group(0)))
    except ValueError:
        return None
    return ParsedPrice(value=value, currency=detect_currency(cleaned))


def _coerce_schema_price(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        parsed = parse_price(raw)
        return parsed.value if parsed else None
    return None


def _has_type(item: dict[str, Any], type_name: str) -> bool:
    declared = item.get("@type")
    if isinstance(declared, list):
        return type_name in declared
    return declared == type_name


def _iter_schema_items(data: Any) -> Iterator[dict[str, Any]]:
    """Yield every JSON-LD object, descending into lists and ``@graph``."""
    if isinstance(data, list):
        for entry in data:
            yield from _iter_schema_items(entry)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if graph is not None:
            yield from _iter_schema_items(graph)


def _iter_offers(item: dict[str, Any]) -> Iterator[dict[str, Any]]:
    if _has_type(item, "Product"):
        offers = item.get("offers")
        entries = offers if isinstance(offers, list) else [offers]
        for offer in entries:
            if isinstance(offer, dict):
                yield offer
    elif _has_type(item, "Offer") or _has_type(item, "AggregateOffer"):
        yield item


def extract_from_json_ld(
    soup: BeautifulSoup, price_range: PriceRange,
) -> ExtractedPrice | None:
    """Read ``price`` (or ``lowPrice``) from Product/Offer JSON-LD."""
    for script in soup.select('script[type="application/ld+json"]'):
        content = script.string or script.get_text()
        if not content or not content.strip():
            continue
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSON-LD block")
            continue

        for item in _iter_schema_items(data):
            for offer in _iter_offers(item):
                for key in ("price", "lowPrice"):
                    raw = offer.get(key)
                    if raw is None:
                        continue
                    value = _coerce_schema_price(raw)
                    if value is None or not price_range.accepts(value):
                        continue
                    currency = offer.get("priceCurrency")
                    return ExtractedPrice(
                        value=value,
                        raw=str(raw),
                        currency=str(currency) if currency else None,
                        confidence=CONFIDENCE_HIGH,
                        source="json-ld",
                    )
    return None


def extract_from_meta_tags(
    soup: BeautifulSoup, price_range: PriceRange,
) -> ExtractedPrice | None:
    """Read OpenGraph / product price meta tags."""
    for selector in _META_PRICE_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        content = element.get("content")
        if not isinstance(content, str) or not content.strip():
            continue
        parsed = parse_price(content)
        if parsed is None or not price_range.accepts(parsed.value):
            continue

        currency = parsed.currency
        if currency is None:
            for currency_selector in _META_CURRENCY_SELECTORS:
                currency_el = soup.select_one(currency_selector)
                if currency_el is not None:
                    found = currency_el.get("content")
                    currency = found if isinstance(found, str) and found else None
                    break

        return ExtractedPrice(
            value=parsed.value,
            raw=content,
            currency=currency,
            confidence=CONFIDENCE_HIGH,
            source="meta-tag",
        )
    return None


def _attribute_price(element: Tag) -> str | None:
    for attribute in _PRICE_ATTRIBUTES:
        found = element.get(attribute)
        if isinstance(found, str) and found.strip():
            return found
    return None


def extract_from_selectors(
    soup: BeautifulSoup, price_range: PriceRange,
) -> ExtractedPrice | None:
    """Scan common price elements, attributes before visible text."""
    for selector in _PRICE_SELECTORS:
        for element in soup.select(selector, limit=_SELECTOR_SAMPLE):
            candidates = (
                _attribute_price(element),
                element.get_text(" ", strip=True),
            )
            for candidate in candidates:
                if not candidate:
                    continue
                parsed = parse_price(candidate)
                if parsed is None or not price_range.accepts(parsed.value):
                    continue
                return ExtractedPrice(
                    value=parsed.value,
                    raw=candidate,
                    currency=parsed.currency,
                    confidence=CONFIDENCE_MEDIUM,
                    source=f"selector:{selector}",
                )
    return None


def extract_from_text(
    text: str, price_range: PriceRange,
) -> ExtractedPrice | None:
    """Regex fallback: the most repeated currency-adjacent amount wins."""
    candidates: list[tuple[ParsedPrice, str]] = []
    for pattern in _TEXT_PRICE_PATTERNS:
        for match in pattern.finditer(text):
            parsed = parse_price(match.group(0))
            if parsed is not None and price_range.accepts(parsed.value):
                candidates.append((parsed, match.group(0)))

    if not candidates:
        return None

    counts = Counter(parsed.value for parsed, _ in candidates)
    top = max(counts.values())
    # Ties go to the earliest candidate
    best, raw = next(
        (parsed, raw)
        for parsed, raw in candidates
        if counts[parsed.value] == top
    )
    logger.debug(
        "Regex price candidates: %d (best %.2f seen %d times)",
        len(candidates),
        best.value,
        top,
    )
    return ExtractedPrice(
        value=best.value,
        raw=raw,
        currency=best.currency,
        confidence=CONFIDENCE_LOW,
        source="regex",
    )


def extract_price(
    raw_html: str,
    text: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
) -> ExtractedPrice:
    """Extract the page's price with a confidence tier.

    Args:
        raw_html: The unmodified page HTML.
        text: Normalised page text; enables the regex fallback.
        min_price: Lowest plausible price (default
            :attr:`Settings.MIN_VALID_PRICE`).
        max_price: Highest plausible price (default
            :attr:`Settings.MAX_VALID_PRICE`).
    """
    price_range = PriceRange(
        min_price=(
            min_price if min_price is not None
            else Settings.MIN_VALID_PRICE
        ),
        max_price=(
            max_price if max_price is not None
            else Settings.MAX_VALID_PRICE
        ),
    )
    soup = BeautifulSoup(raw_html, "lxml")

    structured: list[
        Callable[[BeautifulSoup, PriceRange], ExtractedPrice | None]
    ] = [
        extract_from_json_ld,
        extract_from_meta_tags,
        extract_from_selectors,
    ]
    for strategy in structured:
        result = strategy(soup, price_range)
        if result is not None:
            logger.debug(
                "Price %.2f found via %s (%s confidence)",
                result.value,
                result.source,
                result.confidence,
            )
            return result

    if text:
        result = extract_from_text(text, price_range)
        if result is not None:
            return result

    logger.debug("No price found on page")
    return NO_PRICE
