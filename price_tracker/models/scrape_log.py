# price_tracker/models/scrape_log.py

"""Diagnostic record of one scrape attempt."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ScrapeStatus(str, Enum):
    """Outcome of a scrape attempt."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ScrapeLog:
    """One scrape attempt; ``product_id`` is None if it was never resolved."""

    id: int
    product_id: int | None
    status: ScrapeStatus
    error_message: str | None
    scraped_at: datetime
    product_name: str | None = None
    platform: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON shape used by the API layer."""
        return {
            "id": self.id,
            "productId": self.product_id,
            "status": self.status.value,
            "errorMessage": self.error_message,
            "scrapedAt": self.scraped_at.isoformat(),
            "productName": self.product_name,
            "platform": self.platform,
        }
