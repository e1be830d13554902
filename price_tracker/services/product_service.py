# price_tracker/services/product_service.py

"""Read-side views: product detail with history, and dashboard counters."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from price_tracker.config.settings import Settings
from price_tracker.errors import NotFoundError
from price_tracker.models.price_snapshot import PriceSnapshot
from price_tracker.models.product import Product
from price_tracker.models.scrape_log import ScrapeLog
from price_tracker.models.tracker import Tracker
from price_tracker.services.tracker_service import require_user
from price_tracker.storage.price_store import PriceStore, utcnow

logger = logging.getLogger("price_tracker.products")

_CENTS = Decimal("0.01")
RECENT_SCRAPES_LIMIT = 10


@dataclass(frozen=True)
class PriceStatistics:
    """Lowest, highest and average price over a history window."""

    lowest_price: Decimal
    highest_price: Decimal
    avg_price: Decimal

    def to_dict(self) -> dict[str, float]:
        return {
            "lowestPrice": float(self.lowest_price),
            "highestPrice": float(self.highest_price),
            "avgPrice": float(self.avg_price),
        }


@dataclass
class ProductDetail:
    """A product with its recent history and the caller's tracker."""

    product: Product
    price_history: list[PriceSnapshot]
    tracker: Tracker | None
    statistics: PriceStatistics

    def to_dict(self) -> dict[str, object]:
        return {
            "product": self.product.to_dict(),
            "priceHistory": [s.to_dict() for s in self.price_history],
            "tracker": self.tracker.to_dict() if self.tracker else None,
            "statistics": self.statistics.to_dict(),
        }


@dataclass
class DashboardStats:
    """Admin overview counters."""

    total_users: int
    total_trackers: int
    total_products: int
    recent_scrapes: list[ScrapeLog]
    failed_scrapes_24h: int
    total_savings: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "totalUsers": self.total_users,
            "totalTrackers": self.total_trackers,
            "totalProducts": self.total_products,
            "recentScrapes": [s.to_dict() for s in self.recent_scrapes],
            "failedScrapes24h": self.failed_scrapes_24h,
            "totalSavings": float(self.total_savings),
        }


def compute_statistics(
    history: list[PriceSnapshot], latest_price: Decimal,
) -> PriceStatistics:
    """Statistics over *history*; an empty window reports *latest_price*."""
    prices = [s.price for s in history]
    if not prices:
        return PriceStatistics(latest_price, latest_price, latest_price)
    avg = (sum(prices, Decimal("0")) / len(prices)).quantize(
        _CENTS, rounding=ROUND_HALF_UP,
    )
    return PriceStatistics(min(prices), max(prices), avg)


class ProductService:
    """Product detail and dashboard queries."""

    def __init__(self, settings: Settings, store: PriceStore) -> None:
        self.settings = settings
        self.store = store

    def get_product_detail(
        self,
        user_id: str,
        product_id: int,
        days: int | None = None,
    ) -> ProductDetail:
        """Product, ascending history for the last *days*, tracker, stats.

        Raises:
            UnauthorizedError: no user id.
            NotFoundError: unknown product.
        """
        user = require_user(user_id)
        product = self.store.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        window = days if days is not None else self.settings.HISTORY_DAYS
        since = utcnow() - timedelta(days=window)
        history = self.store.query_history(product_id, since=since)
        tracker = self.store.get_tracker_for_user_product(user, product_id)

        return ProductDetail(
            product=product,
            price_history=history,
            tracker=tracker,
            statistics=compute_statistics(history, product.latest_price),
        )

    def get_dashboard_stats(self) -> DashboardStats:
        """Counters for the admin overview."""
        stats = DashboardStats(
            total_users=self.store.count_distinct_users(),
            total_trackers=self.store.count_active_trackers(),
            total_products=self.store.count_products(),
            recent_scrapes=self.store.list_scrape_logs(
                limit=RECENT_SCRAPES_LIMIT,
            ),
            failed_scrapes_24h=self.store.count_failed_scrapes(
                utcnow() - timedelta(hours=24),
            ),
            total_savings=self.store.total_savings().quantize(
                _CENTS, rounding=ROUND_HALF_UP,
            ),
        )
        logger.debug("Dashboard stats: %s", stats.to_dict())
        return stats
