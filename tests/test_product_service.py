# tests/test_product_service.py

"""Tests for product detail and dashboard statistics."""

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from price_tracker.config.settings import Settings
from price_tracker.errors import NotFoundError, UnauthorizedError
from price_tracker.models.alert import AlertStatus
from price_tracker.models.product import Platform, ScrapedProduct
from price_tracker.models.scrape_log import ScrapeStatus
from price_tracker.services.product_service import (
    ProductService,
    compute_statistics,
)
from price_tracker.storage.price_store import PriceStore


class TestComputeStatistics(unittest.TestCase):
    """Lowest / highest / average over a window."""

    def test_empty_window_uses_latest_price(self) -> None:
        """No snapshots → all three equal latest_price."""
        stats = compute_statistics([], Decimal("499"))
        self.assertEqual(stats.lowest_price, Decimal("499"))
        self.assertEqual(stats.highest_price, Decimal("499"))
        self.assertEqual(stats.avg_price, Decimal("499"))


class TestProductService(unittest.TestCase):
    """Detail view and admin dashboard against a real store."""

    def setUp(self) -> None:
        """One product with three snapshots inside and one outside 30 days."""
        self._tmp = tempfile.TemporaryDirectory()
        self.settings = Settings()
        self.store = PriceStore(Path(self._tmp.name) / "test.db")
        self.service = ProductService(self.settings, self.store)

        self.product_id, _ = self.store.get_or_create_product_by_url(
            "https://www.snapdeal.com/product/watch/64", Platform.SNAPDEAL,
        )
        self.store.upsert_product_data(
            self.product_id,
            ScrapedProduct(
                name="Fastrack Watch", price=Decimal("450"),
                image_url="https://n1.sdlcdn.com/imgs/watch.jpg",
            ),
        )
        now = datetime.now(timezone.utc)
        for days_ago, price in ((45, "999"), (20, "500"), (10, "451"), (1, "450")):
            self.store.append_snapshot(
                self.product_id, Decimal(price), "INR", True,
                snapshot_at=now - timedelta(days=days_ago),
            )

    def tearDown(self) -> None:
        """Close the store."""
        self.store.close()
        self._tmp.cleanup()

    def test_detail_window_and_statistics(self) -> None:
        """30-day history ascending; avg rounded half-up to 2 dp."""
        detail = self.service.get_product_detail("u1", self.product_id)

        prices = [s.price for s in detail.price_history]
        self.assertEqual(prices, [Decimal("500"), Decimal("451"), Decimal("450")])
        self.assertEqual(detail.statistics.lowest_price, Decimal("450"))
        self.assertEqual(detail.statistics.highest_price, Decimal("500"))
        # (500 + 451 + 450) / 3 = 467.0 (exact 467.00)
        self.assertEqual(detail.statistics.avg_price, Decimal("467.00"))
        self.assertIsNone(detail.tracker)

    def test_average_rounds_half_up(self) -> None:
        """A .xx5 average rounds up."""
        self.store.append_snapshot(self.product_id, Decimal("450.02"), "INR", True)
        detail = self.service.get_product_detail("u1", self.product_id)
        # (500 + 451 + 450 + 450.02) / 4 = 462.755
        self.assertEqual(detail.statistics.avg_price, Decimal("462.76"))

    def test_detail_includes_own_tracker_only(self) -> None:
        """The caller's tracker is attached; others are not."""
        self.store.create_tracker("u1", self.product_id, Decimal("400"))
        mine = self.service.get_product_detail("u1", self.product_id)
        theirs = self.service.get_product_detail("u2", self.product_id)
        assert mine.tracker is not None
        self.assertEqual(mine.tracker.target_price, Decimal("400"))
        self.assertIsNone(theirs.tracker)

    def test_detail_to_dict(self) -> None:
        """The JSON body nests product, history, tracker and statistics."""
        data = self.service.get_product_detail("u1", self.product_id, days=7).to_dict()
        self.assertEqual(data["product"]["name"], "Fastrack Watch")
        self.assertEqual(len(data["priceHistory"]), 1)
        self.assertIsNone(data["tracker"])
        self.assertEqual(data["statistics"]["avgPrice"], 450.0)

    def test_missing_product(self) -> None:
        """Unknown ids raise NotFoundError (404)."""
        with self.assertRaises(NotFoundError) as ctx:
            self.service.get_product_detail("u1", 9999)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_requires_user(self) -> None:
        """Anonymous callers are rejected."""
        with self.assertRaises(UnauthorizedError):
            self.service.get_product_detail("", self.product_id)

    def test_dashboard_stats(self) -> None:
        """Counters, recent scrapes and savings."""
        t1 = self.store.create_tracker("u1", self.product_id, Decimal("460"))
        self.store.create_tracker("u2", self.product_id, None)
        alert = self.store.create_alert(
            "u1", t1.id, Decimal("500.255"), Decimal("450"),
        )
        self.store.update_alert_status(alert.id, AlertStatus.SENT)
        self.store.record_scrape_result(
            self.product_id, ScrapeStatus.FAILED, "HTTP 503: Service Unavailable",
        )
        self.store.record_scrape_result(self.product_id, ScrapeStatus.SUCCESS)

        stats = self.service.get_dashboard_stats()

        self.assertEqual(stats.total_users, 2)
        self.assertEqual(stats.total_trackers, 2)
        self.assertEqual(stats.total_products, 1)
        self.assertEqual(stats.failed_scrapes_24h, 1)
        self.assertEqual(len(stats.recent_scrapes), 2)
        self.assertEqual(stats.recent_scrapes[0].status, ScrapeStatus.SUCCESS)
        self.assertEqual(stats.total_savings, Decimal("50.26"))
        self.assertEqual(stats.to_dict()["totalSavings"], 50.26)


if __name__ == "__main__":
    unittest.main()
