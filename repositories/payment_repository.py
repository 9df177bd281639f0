"""
Payment repository (persistence).

Reads and writes ledger entries. Refunds are stored with negative amounts.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.money import to_decimal
from domain.payment import Payment, PaymentMethod, PaymentRecordType
from domain.time import parse_date, parse_utc_datetime, to_iso_utc
from repositories.record_store import RecordStore

PAYMENTS_TABLE: str = "payments"


def _row_to_payment(row: Mapping[str, Any]) -> Payment:
    """Convert a Supabase row into a Payment."""

    return Payment(
        payment_id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        sale_id=UUID(str(row["sale_id"])) if row.get("sale_id") else None,
        amount=to_decimal(row.get("amount_paid")),
        payment_type=PaymentRecordType(str(row["payment_type"])),
        payment_date=parse_date(row["payment_date"]),
        payment_method=PaymentMethod(str(row.get("payment_method") or PaymentMethod.CASH.value)),
        installment_id=UUID(str(row["installment_id"])) if row.get("installment_id") else None,
        notes=row.get("notes"),
        recorded_by=UUID(str(row["recorded_by"])) if row.get("recorded_by") else None,
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
    )


def _payment_to_row(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.payment_id,
        "client_id": payment.client_id,
        "sale_id": payment.sale_id,
        "installment_id": payment.installment_id,
        "amount_paid": payment.amount,
        "payment_type": payment.payment_type,
        "payment_date": payment.payment_date,
        "payment_method": payment.payment_method,
        "notes": payment.notes,
        "recorded_by": payment.recorded_by,
        "created_at": to_iso_utc(payment.created_at, name="created_at") if payment.created_at else None,
    }


def insert_payment(store: RecordStore, payment: Payment) -> Payment:
    store.insert(PAYMENTS_TABLE, _payment_to_row(payment))
    return payment


def insert_payments(store: RecordStore, payments: Sequence[Payment]) -> List[Payment]:
    """Insert several ledger entries in one round-trip."""

    store.insert_many(PAYMENTS_TABLE, [_payment_to_row(p) for p in payments])
    return list(payments)


def list_payments(store: RecordStore, sale_ids: Optional[Sequence[UUID]] = None) -> List[Payment]:
    """
    Retrieve ledger entries, oldest payment date first.

    Args:
        store: Record store
        sale_ids: Restrict to entries of these sales (None means every entry)
    """

    filters = {"sale_id": list(sale_ids)} if sale_ids is not None else None
    rows = store.query(PAYMENTS_TABLE, filters, order_by="payment_date")
    return [_row_to_payment(row) for row in rows]


def list_payments_for_sale(store: RecordStore, sale_id: UUID) -> List[Payment]:
    return list_payments(store, [sale_id])


def update_payment_amount(store: RecordStore, payment_id: UUID, amount: Decimal) -> None:
    store.update(PAYMENTS_TABLE, payment_id, {"amount_paid": amount})


def delete_payments(store: RecordStore, payment_ids: Sequence[UUID]) -> None:
    """Delete ledger entries by id (no-op for an empty list)."""

    if not payment_ids:
        return
    store.delete(PAYMENTS_TABLE, {"id": list(payment_ids)})


def delete_payments_for_sale(store: RecordStore, sale_id: UUID) -> None:
    store.delete(PAYMENTS_TABLE, {"sale_id": sale_id})


__all__ = [
    "PAYMENTS_TABLE",
    "delete_payments",
    "delete_payments_for_sale",
    "insert_payment",
    "insert_payments",
    "list_payments",
    "list_payments_for_sale",
    "update_payment_amount",
]
