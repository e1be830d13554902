# tests/test_models.py

"""Tests for the domain dataclasses and their JSON shapes."""

import unittest
from datetime import datetime, timezone
from decimal import Decimal

from price_tracker.errors import (
    ExtractionError,
    FetchError,
    InvalidUrlError,
    NotFoundError,
    PriceTrackerError,
    StoreError,
    UnauthorizedError,
)
from price_tracker.models.product import PLACEHOLDER_NAME, Platform, Product
from price_tracker.models.tracker import Tracker, TrackerWithProduct

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def _product(name: str = "Kettle", price: str = "1299") -> Product:
    """Product with fixed timestamps."""
    return Product(
        id=1,
        name=name,
        platform=Platform.AMAZON,
        url="https://www.amazon.in/dp/B0K",
        latest_price=Decimal(price),
        currency="INR",
        image_url=None,
        is_available=True,
        created_at=NOW,
        updated_at=NOW,
    )


class TestProduct(unittest.TestCase):
    """Product record."""

    def test_placeholder_detection(self) -> None:
        """Placeholder name or zero price means not yet scraped."""
        self.assertTrue(_product(name=PLACEHOLDER_NAME, price="0").is_placeholder)
        self.assertTrue(_product(price="0").is_placeholder)
        self.assertFalse(_product().is_placeholder)

    def test_to_dict_is_camel_case(self) -> None:
        """Serialised keys follow the API shape."""
        data = _product().to_dict()
        self.assertEqual(data["latestPrice"], 1299.0)
        self.assertEqual(data["platform"], "Amazon")
        self.assertEqual(data["isAvailable"], True)
        self.assertEqual(data["createdAt"], "2026-10-18T09:30:00+00:00")

    def test_platform_key(self) -> None:
        """Enum key is the lower-case label."""
        self.assertEqual(Platform.SNAPDEAL.key, "snapdeal")


class TestTrackerWithProduct(unittest.TestCase):
    """Nested tracker serialisation."""

    def test_nested_product(self) -> None:
        """Product sits under 'product'; null target stays null."""
        tracker = Tracker(
            id=5, user_id="u1", product_id=1, target_price=None,
            is_active=True, created_at=NOW, updated_at=NOW,
        )
        data = TrackerWithProduct(tracker, _product()).to_dict()
        self.assertIsNone(data["targetPrice"])
        self.assertEqual(data["product"]["id"], 1)  # type: ignore[index]


class TestErrors(unittest.TestCase):
    """Error taxonomy status codes."""

    def test_status_codes(self) -> None:
        """Each error maps to its HTTP-style status."""
        cases: list[tuple[PriceTrackerError, int]] = [
            (InvalidUrlError("x"), 400),
            (UnauthorizedError(), 401),
            (NotFoundError("Tracker", 3), 404),
            (ExtractionError("Ajio", "price not found"), 422),
            (FetchError("https://x", "HTTP 503: Service Unavailable"), 502),
            (StoreError("disk full"), 500),
        ]
        for error, status in cases:
            with self.subTest(error=type(error).__name__):
                self.assertEqual(error.status_code, status)

    def test_messages(self) -> None:
        """Messages are human readable."""
        self.assertEqual(
            NotFoundError("Tracker", 3).message,
            "Tracker with identifier '3' not found",
        )
        self.assertEqual(
            ExtractionError("Ajio", "price not found").message,
            "Could not extract product from Ajio page: price not found",
        )


if __name__ == "__main__":
    unittest.main()
