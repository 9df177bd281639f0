"""
Land repository (persistence).

Reads land batches and parcels and updates parcel availability. Availability
is not guarded by the store: callers re-read parcels right before committing.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.land import LandBatch, LandParcel, ParcelStatus
from domain.money import to_decimal
from repositories.record_store import RecordStore

PARCELS_TABLE: str = "land_parcels"
BATCHES_TABLE: str = "land_batches"


def _row_to_parcel(row: Mapping[str, Any]) -> LandParcel:
    """Convert a Supabase row into a LandParcel."""

    return LandParcel(
        parcel_id=UUID(str(row["id"])),
        batch_id=UUID(str(row["land_batch_id"])),
        piece_number=str(row.get("piece_number") or ""),
        surface_area=to_decimal(row.get("surface_area")),
        purchase_cost=to_decimal(row.get("purchase_cost")),
        selling_price_full=to_decimal(row.get("selling_price_full")),
        selling_price_installment=to_decimal(row.get("selling_price_installment")),
        status=ParcelStatus(str(row.get("status") or ParcelStatus.AVAILABLE.value)),
        notes=row.get("notes"),
    )


def _row_to_batch(row: Mapping[str, Any]) -> LandBatch:
    return LandBatch(
        batch_id=UUID(str(row["id"])),
        name=str(row.get("name") or ""),
        location=row.get("location"),
    )


def list_parcels(store: RecordStore, parcel_ids: Optional[Sequence[UUID]] = None) -> List[LandParcel]:
    """
    Retrieve parcels.

    Args:
        store: Record store
        parcel_ids: Restrict to these parcels (None means every parcel)
    """

    filters = {"id": list(parcel_ids)} if parcel_ids is not None else None
    rows = store.query(PARCELS_TABLE, filters, order_by="piece_number")
    return [_row_to_parcel(row) for row in rows]


def get_parcel_by_id(store: RecordStore, parcel_id: UUID) -> Optional[LandParcel]:
    parcels = list_parcels(store, [parcel_id])
    return parcels[0] if parcels else None


def update_parcel_status(store: RecordStore, parcel_id: UUID, status: ParcelStatus) -> None:
    store.update(PARCELS_TABLE, parcel_id, {"status": status})


def update_parcels_status(store: RecordStore, parcel_ids: Sequence[UUID], status: ParcelStatus) -> None:
    """Set the same status on several parcels, one round-trip each."""

    for parcel_id in parcel_ids:
        update_parcel_status(store, parcel_id, status)


def list_batches(store: RecordStore) -> List[LandBatch]:
    rows = store.query(BATCHES_TABLE, order_by="name")
    return [_row_to_batch(row) for row in rows]


__all__ = [
    "BATCHES_TABLE",
    "PARCELS_TABLE",
    "get_parcel_by_id",
    "list_batches",
    "list_parcels",
    "update_parcel_status",
    "update_parcels_status",
]
