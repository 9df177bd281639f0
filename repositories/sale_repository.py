"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain entity.
It does not enforce business rules (splitting, confirmation, reversal); it only
converts rows and reads / writes sale records.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.money import to_decimal, to_optional_decimal
from domain.sale import STORED_SALE_STATUSES, PaymentType, Sale, SaleStatus
from domain.time import parse_date, parse_optional_date, parse_utc_datetime, to_iso_utc
from repositories.record_store import RecordStore

# Keep this aligned with your database schema.
SALES_TABLE: str = "sales"


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value not in (None, "") else None


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    return Sale(
        sale_id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        parcel_ids=tuple(UUID(str(p)) for p in row.get("land_parcel_ids") or []),
        payment_type=PaymentType(str(row["payment_type"])),
        total_selling_price=to_decimal(row.get("total_selling_price")),
        total_purchase_cost=to_decimal(row.get("total_purchase_cost")),
        profit_margin=to_decimal(row.get("profit_margin")),
        small_advance_amount=to_decimal(row.get("small_advance_amount")),
        big_advance_amount=to_decimal(row.get("big_advance_amount")),
        status=SaleStatus(str(row.get("status") or SaleStatus.PENDING.value)),
        sale_date=parse_date(row["sale_date"]),
        company_fee_percentage=to_optional_decimal(row.get("company_fee_percentage")),
        company_fee_amount=to_optional_decimal(row.get("company_fee_amount")),
        number_of_installments=_optional_int(row.get("number_of_installments")),
        monthly_installment_amount=to_optional_decimal(row.get("monthly_installment_amount")),
        installment_start_date=parse_optional_date(row.get("installment_start_date")),
        installment_end_date=parse_optional_date(row.get("installment_end_date")),
        deadline_date=parse_optional_date(row.get("deadline_date")),
        promise_initial_payment=to_optional_decimal(row.get("promise_initial_payment")),
        promise_completed=bool(row.get("promise_completed")),
        is_confirmed=bool(row.get("is_confirmed")),
        big_advance_confirmed=bool(row.get("big_advance_confirmed")),
        notes=row.get("notes"),
        created_by=_optional_uuid(row.get("created_by")),
        confirmed_by=_optional_uuid(row.get("confirmed_by")),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
        updated_at=parse_utc_datetime(row["updated_at"]) if row.get("updated_at") else None,
    )


def _sale_to_row(sale: Sale) -> Dict[str, Any]:
    """Convert a Sale into a row payload (every column except `id`)."""

    if sale.status not in STORED_SALE_STATUSES:
        raise ValueError(f"Sale status {sale.status.value} is derived and cannot be stored")

    return {
        "client_id": sale.client_id,
        "land_parcel_ids": list(sale.parcel_ids),
        "payment_type": sale.payment_type,
        "total_selling_price": sale.total_selling_price,
        "total_purchase_cost": sale.total_purchase_cost,
        "profit_margin": sale.profit_margin,
        "small_advance_amount": sale.small_advance_amount,
        "big_advance_amount": sale.big_advance_amount,
        "status": sale.status,
        "sale_date": sale.sale_date,
        "company_fee_percentage": sale.company_fee_percentage,
        "company_fee_amount": sale.company_fee_amount,
        "number_of_installments": sale.number_of_installments,
        "monthly_installment_amount": sale.monthly_installment_amount,
        "installment_start_date": sale.installment_start_date,
        "installment_end_date": sale.installment_end_date,
        "deadline_date": sale.deadline_date,
        "promise_initial_payment": sale.promise_initial_payment,
        "promise_completed": sale.promise_completed,
        "is_confirmed": sale.is_confirmed,
        "big_advance_confirmed": sale.big_advance_confirmed,
        "notes": sale.notes,
        "created_by": sale.created_by,
        "confirmed_by": sale.confirmed_by,
        "created_at": to_iso_utc(sale.created_at, name="created_at") if sale.created_at else None,
        "updated_at": to_iso_utc(sale.updated_at, name="updated_at") if sale.updated_at else None,
    }


def insert_sale(store: RecordStore, sale: Sale) -> Sale:
    """
    Insert a new sale record.

    Args:
        store: Record store
        sale: Sale to persist (its sale_id becomes the row id)

    Returns:
        The sale as given
    """

    payload = {"id": sale.sale_id, **_sale_to_row(sale)}
    store.insert(SALES_TABLE, payload)
    return sale


def update_sale(store: RecordStore, sale: Sale) -> Sale:
    """
    Overwrite a stored sale with the given state (last write wins).

    Returns:
        The sale as given
    """

    store.update(SALES_TABLE, sale.sale_id, _sale_to_row(sale))
    return sale


def get_sale_by_id(store: RecordStore, sale_id: UUID) -> Optional[Sale]:
    """
    Retrieve a single sale by its ID.

    Returns:
        Sale or None if not found
    """

    rows = store.query(SALES_TABLE, {"id": sale_id})
    if not rows:
        return None
    return _row_to_sale(rows[0])


def list_sales(store: RecordStore, sale_ids: Optional[Sequence[UUID]] = None) -> List[Sale]:
    """
    Retrieve sales, newest sale date first.

    Args:
        store: Record store
        sale_ids: Restrict to these ids (None means every sale)
    """

    filters = {"id": list(sale_ids)} if sale_ids is not None else None
    rows = store.query(SALES_TABLE, filters, order_by="sale_date", descending=True)
    return [_row_to_sale(row) for row in rows]


__all__ = ["SALES_TABLE", "get_sale_by_id", "insert_sale", "list_sales", "update_sale"]
