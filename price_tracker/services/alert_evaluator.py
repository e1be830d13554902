# price_tracker/services/alert_evaluator.py

"""Compare latest prices against tracker targets and raise alerts."""

import logging
from dataclasses import dataclass

from price_tracker.config.settings import Settings
from price_tracker.models.alert import AlertEvent, AlertStatus
from price_tracker.models.tracker import TrackerWithProduct
from price_tracker.services.notifier import LogNotifier, Notifier
from price_tracker.storage.price_store import PriceStore

logger = logging.getLogger("price_tracker.alerts")

REPEAT_PER_PRICE = "per_price"
REPEAT_ALWAYS = "always"
_REPEAT_POLICIES = frozenset({REPEAT_PER_PRICE, REPEAT_ALWAYS})


@dataclass
class AlertCheckResult:
    """Counters for one alert evaluation pass."""

    checked: int = 0
    alerts_sent: int = 0
    errors: int = 0
    suppressed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "alertsSent": self.alerts_sent,
            "errors": self.errors,
            "suppressed": self.suppressed,
        }


class AlertEvaluator:
    """Raises an alert when a product's latest price reaches the target.

    ``old_price`` on the alert is the previous snapshot price when the
    product has at least two snapshots, otherwise the target price.

    With the ``per_price`` repeat policy a tracker is not alerted again
    while its newest alert already carries the current price and the price
    has not risen above the target since. A FAILED delivery does not count,
    so it is retried on the next pass.
    """

    def __init__(
        self,
        settings: Settings,
        store: PriceStore,
        notifier: Notifier | None = None,
    ) -> None:
        if settings.ALERT_REPEAT_POLICY not in _REPEAT_POLICIES:
            raise ValueError(
                "Unknown alert repeat policy: "
                f"{settings.ALERT_REPEAT_POLICY!r}"
            )
        self.settings = settings
        self.store = store
        self.notifier: Notifier = notifier or LogNotifier()

    def check_alerts(self) -> AlertCheckResult:
        """Evaluate every active tracker that has a target price."""
        result = AlertCheckResult()
        for item in self.store.list_alertable_trackers():
            result.checked += 1
            try:
                self._evaluate(item, result)
            except Exception as exc:
                result.errors += 1
                logger.error(
                    "Alert evaluation failed for tracker %d: %s",
                    item.tracker.id,
                    exc,
                    exc_info=True,
                )

        logger.info(
            "Alert check: %d checked, %d sent, %d errors, %d suppressed",
            result.checked,
            result.alerts_sent,
            result.errors,
            result.suppressed,
        )
        return result

    def _is_repeat(self, item: TrackerWithProduct) -> bool:
        if self.settings.ALERT_REPEAT_POLICY == REPEAT_ALWAYS:
            return False
        latest = self.store.get_latest_alert_for_tracker(item.tracker.id)
        if (
            latest is None
            or latest.status == AlertStatus.FAILED
            or latest.new_price != item.product.latest_price
        ):
            return False
        # Back above target since the alert means a new drop
        target = item.tracker.target_price
        since_alert = self.store.query_history(
            item.product.id, since=latest.triggered_at,
        )
        return not any(
            target is not None and snap.price > target
            for snap in since_alert
        )

    def _evaluate(
        self, item: TrackerWithProduct, result: AlertCheckResult,
    ) -> None:
        tracker, product = item.tracker, item.product
        target = tracker.target_price
        # Placeholders have price 0 and must not look like a deal
        if target is None or product.latest_price <= 0:
            return
        if product.latest_price > target:
            return
        if self._is_repeat(item):
            result.suppressed += 1
            logger.debug(
                "Tracker %d already alerted at %s",
                tracker.id,
                product.latest_price,
            )
            return

        recent = self.store.get_recent_prices(product.id, limit=2)
        old_price = recent[1] if len(recent) >= 2 else target

        alert = self.store.create_alert(
            tracker.user_id,
            tracker.id,
            old_price,
            product.latest_price,
        )
        event = AlertEvent(
            alert_id=alert.id,
            user_id=tracker.user_id,
            tracker_id=tracker.id,
            product_id=product.id,
            product_name=product.name,
            product_url=product.url,
            currency=product.currency,
            old_price=old_price,
            new_price=product.latest_price,
        )

        try:
            self.notifier.notify(tracker.user_id, event)
        except Exception as exc:
            self.store.update_alert_status(alert.id, AlertStatus.FAILED)
            result.errors += 1
            logger.error(
                "Notification failed for alert %d (tracker %d): %s",
                alert.id,
                tracker.id,
                exc,
                exc_info=True,
            )
            return

        self.store.update_alert_status(alert.id, AlertStatus.SENT)
        result.alerts_sent += 1
        logger.info(
            "Alert %d sent: tracker %d, %s → %s",
            alert.id,
            tracker.id,
            old_price,
            product.latest_price,
        )
