# price_tracker/models/product.py

"""Product records shared by the scrapers, the store and the services."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

PLACEHOLDER_NAME = "Product loading..."


class Platform(str, Enum):
    """Supported retail platforms."""

    AMAZON = "Amazon"
    FLIPKART = "Flipkart"
    MYNTRA = "Myntra"
    AJIO = "Ajio"
    SNAPDEAL = "Snapdeal"

    @property
    def key(self) -> str:
        """Lower-case identifier used in config files and loggers."""
        return self.value.lower()


class Strategy(str, Enum):
    """Extraction strategy that produced a field."""

    STRUCTURED = "structured"
    PATTERN = "pattern"
    URL = "url"
    DEFAULT = "default"


@dataclass
class ScrapedProduct:
    """Normalised product data extracted from one page."""

    name: str
    price: Decimal
    image_url: str
    is_available: bool = True
    currency: str = "INR"
    sources: dict[str, Strategy] = field(
        default_factory=lambda: dict[str, Strategy]()
    )


@dataclass
class Product:
    """A tracked product, unique by URL."""

    id: int
    name: str
    platform: Platform
    url: str
    latest_price: Decimal
    currency: str
    image_url: str | None
    is_available: bool
    created_at: datetime
    updated_at: datetime

    @property
    def is_placeholder(self) -> bool:
        """True until the first successful scrape fills in real data."""
        return self.name == PLACEHOLDER_NAME or self.latest_price <= 0

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON shape used by the API layer."""
        return {
            "id": self.id,
            "name": self.name,
            "platform": self.platform.value,
            "url": self.url,
            "latestPrice": float(self.latest_price),
            "currency": self.currency,
            "imageUrl": self.image_url,
            "isAvailable": self.is_available,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
