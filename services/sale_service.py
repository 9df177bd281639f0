"""
Sale creation service.

Handles:
- Reservation of one or more available parcels for a client
- Pricing from the parcels' list prices (cash price for Full sales, installment
  price otherwise)
- Recording the reservation deposit as a SmallAdvance ledger entry

A new sale is always Pending with its parcels Reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from domain.land import LandParcel, ParcelStatus
from domain.money import ZERO, money_sum
from domain.payment import Payment, PaymentMethod, PaymentRecordType
from domain.sale import PaymentType, Sale, SaleStatus
from domain.time import utc_now
from domain.user import Permission, User
from repositories.client_repository import get_client_by_id
from repositories.land_repository import update_parcels_status
from repositories.payment_repository import insert_payment
from repositories.record_store import RecordStore
from repositories.sale_repository import insert_sale
from services.authorization import require_permission
from services.errors import OperationResult, SaleOperationError, ValidationError
from services.sale_context import recheck_parcels

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CreateSaleRequest:
    """
    Request to reserve parcels for a client.
    """
    client_id: UUID
    parcel_ids: List[UUID]
    payment_type: PaymentType
    sale_date: date
    reservation_amount: Decimal = ZERO
    deadline_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


def list_price(parcel: LandParcel, payment_type: PaymentType) -> Decimal:
    """Price of a parcel for the given way of paying."""

    if payment_type is PaymentType.FULL:
        return parcel.selling_price_full
    return parcel.selling_price_installment


def _validate(request: CreateSaleRequest) -> None:
    if not request.parcel_ids:
        raise ValidationError("Select at least one parcel")
    if len(set(request.parcel_ids)) != len(request.parcel_ids):
        raise ValidationError("A parcel was selected more than once")
    if request.reservation_amount < ZERO:
        raise ValidationError("Reservation amount cannot be negative")
    if request.deadline_date is not None and request.deadline_date < request.sale_date:
        raise ValidationError("Deadline cannot be before the sale date")


def create_sale(store: RecordStore, actor: Optional[User], request: CreateSaleRequest) -> OperationResult:
    """
    Reserve parcels for a client and open a Pending sale.

    **Process:**
    1. Check permission and inputs
    2. Check the client exists
    3. Re-read the parcels; abort if any is no longer Available
    4. Insert the sale, reserve the parcels, record the reservation deposit

    Args:
        store: Record store
        actor: Acting user
        request: Sale details

    Returns:
        OperationResult with the new sale id, or the rejection
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.CREATE_SALES)
        _validate(request)

        if get_client_by_id(store, request.client_id) is None:
            raise ValidationError(f"Client {request.client_id} not found")

        parcels = recheck_parcels(store, request.parcel_ids, [ParcelStatus.AVAILABLE])

        total_price = money_sum(list_price(p, request.payment_type) for p in parcels)
        total_cost = money_sum(p.purchase_cost for p in parcels)
        if request.reservation_amount > total_price:
            raise ValidationError(
                f"Reservation {request.reservation_amount} exceeds the sale price {total_price}"
            )

        now = utc_now()
        sale = Sale(
            sale_id=uuid4(),
            client_id=request.client_id,
            parcel_ids=tuple(request.parcel_ids),
            payment_type=request.payment_type,
            total_selling_price=total_price,
            total_purchase_cost=total_cost,
            profit_margin=total_price - total_cost,
            small_advance_amount=request.reservation_amount,
            big_advance_amount=ZERO,
            status=SaleStatus.PENDING,
            sale_date=request.sale_date,
            deadline_date=request.deadline_date,
            notes=request.notes,
            created_by=user.user_id,
            created_at=now,
            updated_at=now,
        )

        insert_sale(store, sale)
        steps.append(f"inserted sale {sale.sale_id}")

        update_parcels_status(store, sale.parcel_ids, ParcelStatus.RESERVED)
        steps.append(f"reserved {sale.piece_count} parcel(s)")

        if request.reservation_amount > ZERO:
            insert_payment(
                store,
                Payment(
                    payment_id=uuid4(),
                    client_id=sale.client_id,
                    sale_id=sale.sale_id,
                    amount=request.reservation_amount,
                    payment_type=PaymentRecordType.SMALL_ADVANCE,
                    payment_date=request.sale_date,
                    payment_method=request.payment_method,
                    recorded_by=user.user_id,
                    created_at=now,
                ),
            )
            steps.append("recorded reservation deposit")

        logger.info(
            "Created sale %s for client %s over %d parcel(s) by %s",
            sale.sale_id,
            sale.client_id,
            sale.piece_count,
            user.user_id,
        )
        return OperationResult.ok(sale.sale_id)

    except SaleOperationError as e:
        logger.warning("Rejected sale creation for client %s: %s", request.client_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error("Sale creation failed part-way after: %s", "; ".join(steps))
        raise


__all__ = ["CreateSaleRequest", "create_sale", "list_price"]
