# price_tracker/models/alert.py

"""Price-drop alert records and the event handed to notifiers."""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class AlertStatus(str, Enum):
    """Delivery state of an alert."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


@dataclass
class Alert:
    """A triggered price-drop alert for one tracker."""

    id: int
    user_id: str
    tracker_id: int
    old_price: Decimal | None
    new_price: Decimal
    status: AlertStatus
    triggered_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON shape used by the API layer."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "trackerId": self.tracker_id,
            "oldPrice": (
                float(self.old_price)
                if self.old_price is not None
                else None
            ),
            "newPrice": float(self.new_price),
            "status": self.status.value,
            "triggeredAt": self.triggered_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertEvent:
    """Everything a notification sink needs to deliver one alert."""

    alert_id: int
    user_id: str
    tracker_id: int
    product_id: int
    product_name: str
    product_url: str
    currency: str
    old_price: Decimal
    new_price: Decimal

    @property
    def savings(self) -> Decimal:
        """Absolute drop from the old price."""
        return self.old_price - self.new_price

    @property
    def savings_percent(self) -> int:
        """Drop as a whole percentage of the old price."""
        if self.old_price <= 0:
            return 0
        percent = self.savings / self.old_price * 100
        return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
