# price_tracker/models/price_snapshot.py

"""Temporal price snapshot model for price history tracking."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PriceSnapshot:
    """A single price observation for a product at a point in time."""

    id: int
    product_id: int
    price: Decimal
    currency: str
    is_available: bool
    snapshot_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON shape used by the API layer."""
        return {
            "id": self.id,
            "productId": self.product_id,
            "price": float(self.price),
            "currency": self.currency,
            "isAvailable": self.is_available,
            "snapshotAt": self.snapshot_at.isoformat(),
        }
