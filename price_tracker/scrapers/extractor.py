# price_tracker/scrapers/extractor.py

"""Turn raw product pages into :class:`ScrapedProduct` records.

Each field is resolved by an ordered chain of strategies and the first
plausible value wins:

1. ``STRUCTURED`` – the schema.org ``Product`` object embedded in
   ``application/ld+json`` script blocks.
2. ``PATTERN`` – per-platform CSS selectors and raw-markup regexes from
   ``selectors.json``.
3. ``URL`` – (name only) a title built from the product URL slug.

Strategies are guarded one by one: a parse error in one is logged and the
chain moves on. Price is mandatory; name and image always degrade to a
fallback instead of failing.
"""

import html as html_lib
import json
import logging
import re
from collections.abc import Callable, Iterator
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, TypeVar, cast
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup, Tag

from price_tracker.config.settings import Settings
from price_tracker.errors import ExtractionError
from price_tracker.models.product import Platform, ScrapedProduct, Strategy
from price_tracker.scrapers.fetcher import RawPage

logger = logging.getLogger("price_tracker.extractor")

T = TypeVar("T")

MAX_NAME_LENGTH = 100

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_WHITESPACE_RE = re.compile(r"\s+")
_WORD_START_RE = re.compile(r"\b\w")

# schema.org availability values that mean "cannot be bought now"
_UNAVAILABLE_MARKERS: tuple[str, ...] = (
    "outofstock",
    "soldout",
    "discontinued",
)

SelectorRules = dict[str, list[str]]


def load_selectors(path: Path) -> dict[str, SelectorRules]:
    """Load per-platform extraction rules from ``selectors.json``."""
    with open(path, encoding="utf-8") as f:
        data: dict[str, SelectorRules] = json.load(f)
    return data


def parse_price(value: object) -> Decimal | None:
    """Parse '₹1,299.00', 'Rs. 499' or 19999 into a positive Decimal.

    Returns None when no positive number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        price = value
    elif isinstance(value, (int, float)):
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            return None
    else:
        match = _NUMBER_RE.search(str(value).replace(",", ""))
        if not match:
            return None
        try:
            price = Decimal(match.group(0))
        except InvalidOperation:
            return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def clean_text(value: object) -> str:
    """Unescape entities and collapse whitespace."""
    if not isinstance(value, str):
        return ""
    return _WHITESPACE_RE.sub(" ", html_lib.unescape(value)).strip()


def is_plausible_image(url: object) -> bool:
    """URL-shaped and not an inline ``data:`` image."""
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    if not candidate or candidate.lower().startswith("data:"):
        return False
    return candidate.startswith(("http://", "https://", "//"))


def name_from_url(url: str) -> str:
    """Build a readable product name from the last URL path segment."""
    path = urlparse(url).path
    segments = [s for s in path.split("/") if s]
    if not segments:
        return ""
    slug = unquote(segments[-1])
    slug = re.sub(r"[-_]+", " ", slug)
    slug = _WHITESPACE_RE.sub(" ", slug).strip()
    slug = _WORD_START_RE.sub(lambda m: m.group(0).upper(), slug)
    return slug[:MAX_NAME_LENGTH]


# ── Structured data (JSON-LD) ────────────────────────────


def _iter_ld_nodes(payload: Any) -> Iterator[dict[str, Any]]:
    """Yield every JSON object in a JSON-LD payload, @graph included."""
    if isinstance(payload, list):
        for item in cast(list[Any], payload):
            yield from _iter_ld_nodes(item)
    elif isinstance(payload, dict):
        node = cast(dict[str, Any], payload)
        yield node
        graph = node.get("@graph")
        if graph is not None:
            yield from _iter_ld_nodes(graph)


def _is_product_node(node: dict[str, Any]) -> bool:
    """True for schema.org Product (or ProductGroup) nodes."""
    node_type = node.get("@type", "")
    types = node_type if isinstance(node_type, list) else [node_type]
    return any(
        str(t).split("/")[-1] in ("Product", "ProductGroup")
        for t in cast(list[Any], types)
    )


def find_structured_product(soup: BeautifulSoup) -> dict[str, Any] | None:
    """Return the embedded schema.org product descriptor, if any.

    Every ``application/ld+json`` block is tried; a block that fails to
    parse is skipped. Product-typed nodes win over untyped nodes that merely
    carry ``offers``.
    """
    fallback: dict[str, Any] | None = None
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            payload = json.loads(raw.strip(), parse_float=Decimal)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.debug("Skipping unparsable JSON-LD block: %s", exc)
            continue
        for node in _iter_ld_nodes(payload):
            if _is_product_node(node):
                return node
            if fallback is None and "offers" in node:
                fallback = node
    return fallback


def _offers(node: dict[str, Any]) -> list[dict[str, Any]]:
    """Normalise ``offers`` (object, list or AggregateOffer) to a list."""
    offers = node.get("offers")
    if isinstance(offers, dict):
        return [cast(dict[str, Any], offers)]
    if isinstance(offers, list):
        return [
            cast(dict[str, Any], o)
            for o in cast(list[Any], offers)
            if isinstance(o, dict)
        ]
    return []


def structured_name(node: dict[str, Any]) -> str | None:
    """``name`` of the descriptor."""
    return clean_text(node.get("name")) or None


def structured_price(node: dict[str, Any]) -> Decimal | None:
    """First positive ``offers.price`` (or ``lowPrice``)."""
    for offer in _offers(node):
        for key in ("price", "lowPrice"):
            price = parse_price(offer.get(key))
            if price is not None:
                return price
        price_spec = offer.get("priceSpecification")
        if isinstance(price_spec, dict):
            price = parse_price(cast(dict[str, Any], price_spec).get("price"))
            if price is not None:
                return price
    return None


def structured_currency(node: dict[str, Any]) -> str | None:
    """``offers.priceCurrency`` when stated."""
    for offer in _offers(node):
        currency = offer.get("priceCurrency")
        if isinstance(currency, str) and currency.strip():
            return currency.strip().upper()
    return None


def structured_image(node: dict[str, Any]) -> str | None:
    """``image`` as a string, first list entry, or ImageObject url."""
    image: Any = node.get("image")
    if isinstance(image, list):
        image = cast(list[Any], image)[0] if image else None
    if isinstance(image, dict):
        image = cast(dict[str, Any], image).get("url")
    if is_plausible_image(image):
        return str(image).strip()
    return None


def structured_available(node: dict[str, Any]) -> bool | None:
    """False when an offer states an out-of-stock availability."""
    states: list[str] = []
    for offer in _offers(node):
        availability = offer.get("availability")
        if isinstance(availability, str) and availability:
            states.append(availability.split("/")[-1].lower())
    if not states:
        return None
    return not all(s in _UNAVAILABLE_MARKERS for s in states)


# ── Pattern matching (selectors.json) ────────────────────


def _split_selector(rule: str) -> tuple[str, str | None]:
    """Split ``'img#x@src'`` into the CSS selector and attribute name."""
    if "@" in rule:
        selector, attr = rule.rsplit("@", 1)
        return selector, attr
    return rule, None


def _select_values(soup: BeautifulSoup, rule: str) -> Iterator[str]:
    """Yield the text (or attribute) of every element matching *rule*."""
    selector, attr = _split_selector(rule)
    for el in soup.select(selector):
        if not isinstance(el, Tag):
            continue
        if attr is None:
            yield el.get_text(" ", strip=True)
            continue
        value = el.get(attr)
        if isinstance(value, str):
            yield value


def pattern_name(soup: BeautifulSoup, rules: SelectorRules) -> str | None:
    """First non-empty text from the platform's name selectors."""
    for rule in rules.get("name", []):
        for value in _select_values(soup, rule):
            name = clean_text(value)
            if name:
                return name
    return None


def pattern_price(
    soup: BeautifulSoup, markup: str, rules: SelectorRules,
) -> Decimal | None:
    """Price from selectors first, then raw-markup regexes."""
    for rule in rules.get("price", []):
        for value in _select_values(soup, rule):
            price = parse_price(value)
            if price is not None:
                return price
    for pattern in rules.get("price_patterns", []):
        for match in re.finditer(pattern, markup, re.IGNORECASE):
            price = parse_price(match.group(1))
            if price is not None:
                return price
    return None


def pattern_image(soup: BeautifulSoup, rules: SelectorRules) -> str | None:
    """First plausible image URL from the platform's image selectors."""
    for rule in rules.get("image", []):
        for value in _select_values(soup, rule):
            if is_plausible_image(value):
                return (
                    value.strip()
                    .replace("{@@width@@}", "500")
                    .replace("{@@height@@}", "500")
                )
    return None


def pattern_available(markup: str, rules: SelectorRules) -> bool:
    """False when any of the platform's out-of-stock phrases appear."""
    return not any(
        phrase in markup for phrase in rules.get("out_of_stock", [])
    )


# ── Extractor ────────────────────────────────────────────


class Extractor:
    """Applies the per-field strategy chains for a platform."""

    def __init__(
        self,
        settings: Settings,
        selectors: dict[str, SelectorRules] | None = None,
    ) -> None:
        self.settings = settings
        self.selectors: dict[str, SelectorRules] = (
            selectors
            if selectors is not None
            else load_selectors(settings.SELECTORS_PATH)
        )

    def _rules(self, platform: Platform) -> SelectorRules:
        """Selector rules for *platform* (empty when none are configured)."""
        return self.selectors.get(platform.key, {})

    @staticmethod
    def _first(
        field: str,
        platform: Platform,
        chain: list[tuple[Strategy, Callable[[], T | None]]],
    ) -> tuple[T, Strategy] | None:
        """Run *chain* in order; return the first non-None value.

        A strategy that raises is logged and skipped.
        """
        for strategy, attempt in chain:
            try:
                value = attempt()
            except Exception as exc:
                logger.debug(
                    "[%s] %s strategy failed for %s: %s",
                    platform.key,
                    strategy.value,
                    field,
                    exc,
                    exc_info=True,
                )
                continue
            if value is not None:
                return value, strategy
        return None

    def extract(self, platform: Platform, page: RawPage) -> ScrapedProduct:
        """Extract name, price, image and availability from *page*.

        Raises:
            ExtractionError: no strategy produced a positive price.
        """
        markup = page.text
        rules = self._rules(platform)
        soup = BeautifulSoup(markup, "lxml")

        node: dict[str, Any] | None = None
        try:
            node = find_structured_product(soup)
        except Exception as exc:
            logger.debug(
                "[%s] structured data lookup failed: %s",
                platform.key,
                exc,
                exc_info=True,
            )

        def from_node(
            getter: Callable[[dict[str, Any]], T | None],
        ) -> Callable[[], T | None]:
            return lambda: getter(node) if node is not None else None

        sources: dict[str, Strategy] = {}

        price_hit = self._first("price", platform, [
            (Strategy.STRUCTURED, from_node(structured_price)),
            (Strategy.PATTERN, lambda: pattern_price(soup, markup, rules)),
        ])
        if price_hit is None:
            logger.info(
                "[%s] No price found on %s (%d chars)",
                platform.key,
                page.url,
                len(markup),
            )
            raise ExtractionError(platform.value, "price not found")
        price, sources["price"] = price_hit

        name_hit = self._first("name", platform, [
            (Strategy.STRUCTURED, from_node(structured_name)),
            (Strategy.PATTERN, lambda: pattern_name(soup, rules)),
            (Strategy.URL, lambda: name_from_url(page.url) or None),
        ])
        if name_hit is None:
            name, sources["name"] = (
                f"{platform.value} product", Strategy.DEFAULT,
            )
        else:
            name, sources["name"] = name_hit

        image_hit = self._first("image", platform, [
            (Strategy.STRUCTURED, from_node(structured_image)),
            (Strategy.PATTERN, lambda: pattern_image(soup, rules)),
        ])
        if image_hit is None:
            image_url, sources["image"] = (
                self.settings.PLACEHOLDER_IMAGE_URL, Strategy.DEFAULT,
            )
        else:
            image_url, sources["image"] = image_hit
        if image_url.startswith("//"):
            image_url = f"https:{image_url}"

        is_available = pattern_available(markup, rules)
        if node is not None and structured_available(node) is False:
            is_available = False

        currency = (
            structured_currency(node) if node is not None else None
        ) or self.settings.DEFAULT_CURRENCY

        logger.debug(
            "[%s] Extracted %r at %s %s (available=%s, sources=%s)",
            platform.key,
            name[:50],
            currency,
            price,
            is_available,
            {k: v.value for k, v in sources.items()},
        )
        return ScrapedProduct(
            name=name,
            price=price,
            image_url=image_url,
            is_available=is_available,
            currency=currency,
            sources=sources,
        )
