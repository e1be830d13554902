# tests/test_alert_evaluator.py

"""Tests for target-price alert evaluation."""

import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

from price_tracker.config.settings import Settings
from price_tracker.models.alert import AlertStatus
from price_tracker.models.product import Platform, ScrapedProduct
from price_tracker.services.alert_evaluator import AlertEvaluator
from price_tracker.storage.price_store import PriceStore

URL = "https://www.flipkart.com/samsung-galaxy-m34/p/itm1"


def _scraped(price: str) -> ScrapedProduct:
    """ScrapedProduct for the test phone at *price*."""
    return ScrapedProduct(
        name="Samsung Galaxy M34",
        price=Decimal(price),
        image_url="https://rukminim2.flixcart.com/image/m34.jpg",
    )


class TestAlertEvaluator(unittest.TestCase):
    """Trigger rule, old-price semantics and delivery status."""

    def setUp(self) -> None:
        """One product tracked by one user with target 22000."""
        self._tmp = tempfile.TemporaryDirectory()
        self.settings = Settings()
        self.store = PriceStore(Path(self._tmp.name) / "test.db")
        self.product_id, _ = self.store.get_or_create_product_by_url(
            URL, Platform.FLIPKART,
        )
        self.tracker = self.store.create_tracker(
            "u1", self.product_id, Decimal("22000"),
        )
        self.notifier = MagicMock()

    def tearDown(self) -> None:
        """Close the store."""
        self.store.close()
        self._tmp.cleanup()

    def _evaluator(self) -> AlertEvaluator:
        """Evaluator wired to the mock notifier."""
        return AlertEvaluator(self.settings, self.store, self.notifier)

    def test_drop_below_target_alerts_once(self) -> None:
        """22990 → no alert; 21990 → exactly one alert, old price 22990."""
        self.store.record_scrape_success(self.product_id, _scraped("22990"))
        first = self._evaluator().check_alerts()
        self.assertEqual(first.alerts_sent, 0)
        self.notifier.notify.assert_not_called()

        self.store.record_scrape_success(self.product_id, _scraped("21990"))
        second = self._evaluator().check_alerts()

        self.assertEqual(second.checked, 1)
        self.assertEqual(second.alerts_sent, 1)
        self.assertEqual(second.errors, 0)
        alerts = self.store.list_alerts_for_user("u1")
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].old_price, Decimal("22990"))
        self.assertEqual(alerts[0].new_price, Decimal("21990"))
        self.assertEqual(alerts[0].status, AlertStatus.SENT)

        user_id, event = self.notifier.notify.call_args.args
        self.assertEqual(user_id, "u1")
        self.assertEqual(event.savings, Decimal("1000"))
        self.assertEqual(event.savings_percent, 4)
        self.assertEqual(event.product_name, "Samsung Galaxy M34")

    def test_price_equal_to_target_triggers(self) -> None:
        """latest_price == target counts as reached."""
        self.store.record_scrape_success(self.product_id, _scraped("22000"))
        result = self._evaluator().check_alerts()
        self.assertEqual(result.alerts_sent, 1)

    def test_single_snapshot_uses_target_as_old_price(self) -> None:
        """Without a previous snapshot old_price is the target."""
        self.store.record_scrape_success(self.product_id, _scraped("20000"))
        self._evaluator().check_alerts()
        alert = self.store.list_alerts_for_user("u1")[0]
        self.assertEqual(alert.old_price, Decimal("22000"))

    def test_placeholder_never_alerts(self) -> None:
        """Price 0 (not yet scraped) is not a deal."""
        result = self._evaluator().check_alerts()
        self.assertEqual(result.checked, 1)
        self.assertEqual(result.alerts_sent, 0)
        self.assertEqual(self.store.list_alerts_for_user("u1"), [])

    def test_notifier_failure_marks_alert_failed(self) -> None:
        """A raising notifier gives FAILED status and counts an error."""
        self.notifier.notify.side_effect = RuntimeError("smtp down")
        self.store.record_scrape_success(self.product_id, _scraped("21000"))

        result = self._evaluator().check_alerts()

        self.assertEqual(result.alerts_sent, 0)
        self.assertEqual(result.errors, 1)
        alert = self.store.list_alerts_for_user("u1")[0]
        self.assertEqual(alert.status, AlertStatus.FAILED)

    def test_failed_delivery_is_retried(self) -> None:
        """After a FAILED alert the next pass tries again."""
        self.notifier.notify.side_effect = [RuntimeError("down"), None]
        self.store.record_scrape_success(self.product_id, _scraped("21000"))

        self._evaluator().check_alerts()
        retry = self._evaluator().check_alerts()

        self.assertEqual(retry.alerts_sent, 1)
        statuses = [a.status for a in self.store.list_alerts_for_user("u1")]
        self.assertEqual(statuses, [AlertStatus.SENT, AlertStatus.FAILED])

    def test_per_price_policy_suppresses_repeats(self) -> None:
        """Same price on the next pass is not re-alerted; a new low is."""
        self.store.record_scrape_success(self.product_id, _scraped("21990"))
        self._evaluator().check_alerts()

        repeat = self._evaluator().check_alerts()
        self.assertEqual(repeat.alerts_sent, 0)
        self.assertEqual(repeat.suppressed, 1)

        self.store.record_scrape_success(self.product_id, _scraped("20990"))
        lower = self._evaluator().check_alerts()
        self.assertEqual(lower.alerts_sent, 1)
        self.assertEqual(self.notifier.notify.call_count, 2)

    def test_recrossing_target_alerts_again(self) -> None:
        """21990 → 22990 → 21990 is a second drop and alerts again."""
        self.store.record_scrape_success(self.product_id, _scraped("21990"))
        first = self._evaluator().check_alerts()
        self.assertEqual(first.alerts_sent, 1)

        self.store.record_scrape_success(self.product_id, _scraped("22990"))
        above = self._evaluator().check_alerts()
        self.assertEqual(above.alerts_sent, 0)
        self.assertEqual(above.suppressed, 0)

        self.store.record_scrape_success(self.product_id, _scraped("21990"))
        again = self._evaluator().check_alerts()
        self.assertEqual(again.alerts_sent, 1)
        self.assertEqual(again.suppressed, 0)

        alerts = self.store.list_alerts_for_user("u1")
        self.assertEqual(len(alerts), 2)
        self.assertEqual(alerts[0].old_price, Decimal("22990"))
        self.assertEqual(alerts[0].new_price, Decimal("21990"))

        repeat = self._evaluator().check_alerts()
        self.assertEqual(repeat.alerts_sent, 0)
        self.assertEqual(repeat.suppressed, 1)

    def test_always_policy_re_emits(self) -> None:
        """With 'always' every pass alerts while the price qualifies."""
        self.settings.ALERT_REPEAT_POLICY = "always"
        self.store.record_scrape_success(self.product_id, _scraped("21990"))
        self._evaluator().check_alerts()
        again = self._evaluator().check_alerts()
        self.assertEqual(again.alerts_sent, 1)
        self.assertEqual(len(self.store.list_alerts_for_user("u1")), 2)

    def test_unknown_policy_rejected(self) -> None:
        """Misconfigured repeat policy fails fast."""
        self.settings.ALERT_REPEAT_POLICY = "sometimes"
        with self.assertRaises(ValueError):
            self._evaluator()

    def test_paused_and_targetless_trackers_ignored(self) -> None:
        """Only active trackers with a target are checked."""
        self.store.record_scrape_success(self.product_id, _scraped("100"))
        self.store.set_tracker_active(self.tracker.id, "u1", False)
        self.store.create_tracker("u2", self.product_id, None)

        result = self._evaluator().check_alerts()

        self.assertEqual(result.checked, 0)
        self.notifier.notify.assert_not_called()

    def test_to_dict_shape(self) -> None:
        """The trigger response carries alertsSent and errors."""
        data = self._evaluator().check_alerts().to_dict()
        self.assertEqual(data["alertsSent"], 0)
        self.assertEqual(data["errors"], 0)


if __name__ == "__main__":
    unittest.main()
