# price_tracker/services/notifier.py

"""Notification sinks for price-drop alerts."""

import logging
from typing import Protocol

from price_tracker.models.alert import AlertEvent


class Notifier(Protocol):
    """Delivers one alert to a user; raising means delivery failed."""

    def notify(self, user_id: str, event: AlertEvent) -> None:
        ...


def format_alert_message(event: AlertEvent) -> tuple[str, str]:
    """Return the ``(subject, body)`` of a price-drop message."""
    subject = f"Price drop: {event.product_name[:60]}"
    body = "\n".join([
        f"{event.product_name} dropped in price.",
        f"Was: {event.currency} {event.old_price:,.2f}",
        f"Now: {event.currency} {event.new_price:,.2f}",
        (
            f"You save {event.currency} {event.savings:,.2f} "
            f"({event.savings_percent}%)"
        ),
        f"Buy now: {event.product_url}",
    ])
    return subject, body


class LogNotifier:
    """Writes alerts to the ``price_tracker.notify`` logger."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("price_tracker.notify")

    def notify(self, user_id: str, event: AlertEvent) -> None:
        subject, body = format_alert_message(event)
        self.logger.info(
            "Alert %d for user %s | %s\n%s",
            event.alert_id,
            user_id,
            subject,
            body,
        )
