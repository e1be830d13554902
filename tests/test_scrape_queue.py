# tests/test_scrape_queue.py

"""Tests for the background scrape queue."""

import threading
import unittest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

from price_tracker.config.settings import Settings
from price_tracker.errors import FetchError
from price_tracker.models.product import Platform, Product, ScrapedProduct
from price_tracker.services.scrape_queue import ScrapeQueue


def _product(product_id: int = 1) -> Product:
    """Placeholder product for queueing."""
    now = datetime.now(timezone.utc)
    return Product(
        id=product_id,
        name="Product loading...",
        platform=Platform.MYNTRA,
        url=f"https://www.myntra.com/p/{product_id}",
        latest_price=Decimal("0"),
        currency="INR",
        image_url=None,
        is_available=True,
        created_at=now,
        updated_at=now,
    )


class TestScrapeQueue(unittest.TestCase):
    """Jobs expose their outcome without raising."""

    def setUp(self) -> None:
        """Queue over a mocked pipeline."""
        self.pipeline = MagicMock()
        self.queue = ScrapeQueue(Settings(), self.pipeline)

    def tearDown(self) -> None:
        """Stop worker threads."""
        self.queue.shutdown()

    def test_successful_job(self) -> None:
        """wait() returns the scraped product."""
        scraped = ScrapedProduct(
            name="Shirt", price=Decimal("799"), image_url="https://x/y.jpg",
        )
        self.pipeline.scrape.return_value = scraped

        job = self.queue.submit(_product())

        self.assertIs(job.wait(timeout=5), scraped)
        self.assertTrue(job.done())
        self.assertTrue(job.succeeded())
        self.assertIsNone(job.error)
        self.assertEqual(job.product_id, 1)

    def test_failed_job_does_not_raise(self) -> None:
        """wait() returns None and error holds the exception."""
        self.pipeline.scrape.side_effect = FetchError(
            "https://www.myntra.com/p/1", "HTTP 503: Service Unavailable",
        )

        job = self.queue.submit(_product())

        self.assertIsNone(job.wait(timeout=5))
        self.assertFalse(job.succeeded())
        self.assertIsInstance(job.error, FetchError)

    def test_submit_returns_before_scrape_finishes(self) -> None:
        """submit() does not block on the pipeline."""
        release = threading.Event()

        def slow_scrape(product: Product) -> ScrapedProduct:
            release.wait(timeout=5)
            return ScrapedProduct(
                name="Late", price=Decimal("1"), image_url="https://x/y.jpg",
            )

        self.pipeline.scrape.side_effect = slow_scrape
        job = self.queue.submit(_product())
        self.assertFalse(job.done())
        self.assertIsNone(job.error)

        release.set()
        scraped = job.wait(timeout=5)
        assert scraped is not None
        self.assertEqual(scraped.name, "Late")

    def test_wait_timeout_returns_none(self) -> None:
        """A job still running after the timeout yields None."""
        release = threading.Event()
        self.pipeline.scrape.side_effect = lambda p: release.wait(timeout=5)

        job = self.queue.submit(_product())
        self.assertIsNone(job.wait(timeout=0.01))
        release.set()

    def test_shutdown_closes_pipeline_after_drain(self) -> None:
        """Fetch sessions are released once the queue has drained."""
        self.queue.shutdown(wait=True)
        self.pipeline.close.assert_called_once()

    def test_shutdown_without_wait_keeps_sessions(self) -> None:
        """Running workers keep their sessions when not waiting."""
        self.queue.shutdown(wait=False)
        self.pipeline.close.assert_not_called()


if __name__ == "__main__":
    unittest.main()
