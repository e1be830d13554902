# price_tracker/models/tracker.py

"""A user's subscription to a product."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from price_tracker.models.product import Product


@dataclass
class Tracker:
    """Links a user to a product with an optional target price."""

    id: int
    user_id: str
    product_id: int
    target_price: Decimal | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON shape used by the API layer."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "targetPrice": (
                float(self.target_price)
                if self.target_price is not None
                else None
            ),
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class TrackerWithProduct:
    """A tracker together with the current state of its product."""

    tracker: Tracker
    product: Product

    def to_dict(self) -> dict[str, object]:
        """Tracker fields with the product nested under ``product``."""
        data = self.tracker.to_dict()
        data["product"] = self.product.to_dict()
        return data
