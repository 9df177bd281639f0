"""
Installment repository (persistence).

Installments are created in one batch per confirmation, updated as payments
land or the parent sale is split, and deleted on cancellation or reset.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.installment import Installment, InstallmentStatus
from domain.money import to_decimal
from domain.time import parse_date, parse_optional_date
from repositories.record_store import RecordStore

INSTALLMENTS_TABLE: str = "installments"


def _row_to_installment(row: Mapping[str, Any]) -> Installment:
    """Convert a Supabase row into an Installment."""

    return Installment(
        installment_id=UUID(str(row["id"])),
        sale_id=UUID(str(row["sale_id"])),
        installment_number=int(row["installment_number"]),
        amount_due=to_decimal(row.get("amount_due")),
        due_date=parse_date(row["due_date"]),
        amount_paid=to_decimal(row.get("amount_paid")),
        stacked_amount=to_decimal(row.get("stacked_amount")),
        status=InstallmentStatus(str(row.get("status") or InstallmentStatus.UNPAID.value)),
        paid_date=parse_optional_date(row.get("paid_date")),
        notes=row.get("notes"),
    )


def _installment_to_row(installment: Installment) -> Dict[str, Any]:
    return {
        "sale_id": installment.sale_id,
        "installment_number": installment.installment_number,
        "amount_due": installment.amount_due,
        "amount_paid": installment.amount_paid,
        "stacked_amount": installment.stacked_amount,
        "due_date": installment.due_date,
        "paid_date": installment.paid_date,
        "status": installment.status,
        "notes": installment.notes,
    }


def insert_installments(store: RecordStore, installments: Sequence[Installment]) -> List[Installment]:
    """Insert a whole schedule in one round-trip."""

    store.insert_many(
        INSTALLMENTS_TABLE,
        [{"id": i.installment_id, **_installment_to_row(i)} for i in installments],
    )
    return list(installments)


def update_installment(store: RecordStore, installment: Installment) -> Installment:
    store.update(INSTALLMENTS_TABLE, installment.installment_id, _installment_to_row(installment))
    return installment


def list_installments(store: RecordStore, sale_ids: Optional[Sequence[UUID]] = None) -> List[Installment]:
    """
    Retrieve installments ordered by sale then installment number.

    Args:
        store: Record store
        sale_ids: Restrict to installments of these sales (None means all)
    """

    filters = {"sale_id": list(sale_ids)} if sale_ids is not None else None
    rows = store.query(INSTALLMENTS_TABLE, filters, order_by="installment_number")
    installments = [_row_to_installment(row) for row in rows]
    return sorted(installments, key=lambda i: (str(i.sale_id), i.installment_number))


def list_installments_for_sale(store: RecordStore, sale_id: UUID) -> List[Installment]:
    return list_installments(store, [sale_id])


def delete_installments_for_sale(store: RecordStore, sale_id: UUID) -> None:
    store.delete(INSTALLMENTS_TABLE, {"sale_id": sale_id})


__all__ = [
    "INSTALLMENTS_TABLE",
    "delete_installments_for_sale",
    "insert_installments",
    "list_installments",
    "list_installments_for_sale",
    "update_installment",
]
