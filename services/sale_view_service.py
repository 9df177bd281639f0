"""
Per-parcel sale rows for the back-office sales table.

One row per (sale, parcel). A multi-parcel sale shows each parcel with its
equal share of the sale's money. Status comes from the lifecycle resolver,
never from the stored field alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from domain.classification import classify_sale_payments
from domain.installment import overdue_installments
from domain.lifecycle import is_reset, resolve_sale_status
from domain.money import ZERO
from domain.payment import PaymentRecordType
from domain.sale import PaymentType, SaleStatus
from domain.user import Permission, User
from repositories.record_store import RecordStore
from services.authorization import require_permission
from services.snapshot import LedgerSnapshot, load_snapshot


@dataclass(frozen=True, slots=True)
class SaleRow:
    """
    Read model for one parcel of one sale.

    Money fields are this parcel's share. `remaining` is what the buyer still
    owes on the parcel (price + company fee - cash received), zero once the
    sale is Completed or Cancelled.
    """
    row_id: str
    sale_id: UUID
    parcel_id: UUID
    piece_number: Optional[str]
    batch_name: Optional[str]
    client_id: UUID
    client_name: Optional[str]
    seller_name: Optional[str]
    payment_type: PaymentType
    status: SaleStatus
    sale_date: date
    deadline_date: Optional[date]
    price: Decimal
    company_fee: Decimal
    reservation: Decimal
    down_payment: Decimal
    paid: Decimal
    remaining: Decimal
    monthly_installment: Optional[Decimal]
    number_of_installments: Optional[int]
    is_overdue: bool


def build_sale_rows(snapshot: LedgerSnapshot, *, as_of: date) -> List[SaleRow]:
    """
    Derive every per-parcel sale row from a snapshot.

    Args:
        snapshot: Collections read for this refresh
        as_of: Day used for overdue classification (the only time input)

    Returns:
        Rows, newest sale first, then by piece number
    """

    payments_by_sale = snapshot.payments_by_sale()
    installments_by_sale = snapshot.installments_by_sale()
    parcels = snapshot.parcels_by_id()
    batches = snapshot.batches_by_id()
    clients = snapshot.client_names()
    users = snapshot.user_names()

    rows: List[SaleRow] = []
    for sale in snapshot.sales:
        payments = payments_by_sale.get(sale.sale_id, [])
        installments = installments_by_sale.get(sale.sale_id, [])
        status = resolve_sale_status(sale, payments, installments)

        # A reset sale has nothing valid left in its ledger.
        classification = classify_sale_payments(sale, [] if is_reset(sale) else payments)

        n = sale.piece_count
        price = sale.total_selling_price / n
        fee = sale.company_fee / n
        overdue = status is not SaleStatus.CANCELLED and bool(overdue_installments(installments, as_of))

        for parcel_id in sale.parcel_ids:
            by_type = classification.received_by_type(parcel_id)
            paid = classification.received(parcel_id)
            if status in (SaleStatus.COMPLETED, SaleStatus.CANCELLED):
                remaining = ZERO
            else:
                remaining = max(ZERO, price + fee - paid)

            parcel = parcels.get(parcel_id)
            batch = batches.get(parcel.batch_id) if parcel else None
            rows.append(
                SaleRow(
                    row_id=f"{sale.sale_id}-{parcel_id}",
                    sale_id=sale.sale_id,
                    parcel_id=parcel_id,
                    piece_number=parcel.piece_number if parcel else None,
                    batch_name=batch.name if batch else None,
                    client_id=sale.client_id,
                    client_name=clients.get(sale.client_id),
                    seller_name=users.get(sale.created_by) if sale.created_by else None,
                    payment_type=sale.payment_type,
                    status=status,
                    sale_date=sale.sale_date,
                    deadline_date=sale.deadline_date,
                    price=price,
                    company_fee=fee,
                    reservation=by_type.get(PaymentRecordType.SMALL_ADVANCE, ZERO),
                    down_payment=by_type.get(PaymentRecordType.BIG_ADVANCE, ZERO)
                    + by_type.get(PaymentRecordType.INITIAL_PAYMENT, ZERO),
                    paid=paid,
                    remaining=remaining,
                    monthly_installment=(
                        sale.monthly_installment_amount / n
                        if sale.monthly_installment_amount is not None
                        else None
                    ),
                    number_of_installments=sale.number_of_installments,
                    is_overdue=overdue,
                )
            )

    rows.sort(key=lambda r: (-r.sale_date.toordinal(), str(r.sale_id), r.piece_number or ""))
    return rows


def list_sale_rows(store: RecordStore, actor: Optional[User], *, as_of: Optional[date] = None) -> List[SaleRow]:
    """
    Read a fresh snapshot and derive the sale rows.

    Raises:
        PermissionDeniedError: The actor may not view sales
    """

    require_permission(actor, Permission.VIEW_SALES)
    return build_sale_rows(load_snapshot(store), as_of=as_of or date.today())


__all__ = ["SaleRow", "build_sale_rows", "list_sale_rows"]
