"""
Domain: Land batches and parcels.

A LandBatch is a named location grouping parcels; it is the grouping key of
every location-indexed report. A LandParcel is the individually sellable unit.

Contract excerpts relevant here:
- A parcel is Available, Reserved, or Sold.
- At most one non-cancelled sale references a parcel at any time. The store
  does not enforce this; the sale services re-check parcel status right
  before they commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .money import require_non_negative


class ParcelStatus(str, Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"


@dataclass(frozen=True, slots=True)
class LandBatch:
    """Named location that groups parcels."""

    batch_id: UUID
    name: str
    location: Optional[str] = None

    @property
    def label(self) -> str:
        if self.location:
            return f"{self.name} - {self.location}"
        return self.name


@dataclass(frozen=True, slots=True)
class LandParcel:
    """
    Individually sellable unit of land.

    Carries two list prices: one for cash (Full) sales, one for sales paid
    over time (Installment and PromiseOfSale).
    """

    parcel_id: UUID
    batch_id: UUID
    piece_number: str
    surface_area: Decimal
    purchase_cost: Decimal
    selling_price_full: Decimal
    selling_price_installment: Decimal
    status: ParcelStatus = ParcelStatus.AVAILABLE
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_non_negative("surface_area", self.surface_area)
        require_non_negative("purchase_cost", self.purchase_cost)
        require_non_negative("selling_price_full", self.selling_price_full)
        require_non_negative("selling_price_installment", self.selling_price_installment)

    def is_available(self) -> bool:
        return self.status is ParcelStatus.AVAILABLE


__all__ = ["LandBatch", "LandParcel", "ParcelStatus"]
