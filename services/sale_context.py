"""
Loading and guarding a sale before a mutation.

Each mutating operation reads the sale with its ledger and installments, checks
its inputs, and re-reads the parcels it is about to touch immediately before
the first write. If a parcel changed since the actor selected it, the whole
operation is aborted with a conflict and nothing is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List
from uuid import UUID

from domain.installment import Installment
from domain.land import LandParcel, ParcelStatus
from domain.payment import Payment
from domain.sale import Sale, SaleStatus
from repositories.installment_repository import list_installments_for_sale
from repositories.land_repository import list_parcels
from repositories.payment_repository import list_payments_for_sale
from repositories.record_store import RecordStore
from repositories.sale_repository import get_sale_by_id
from services.errors import ConcurrencyConflictError, SaleNotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SaleContext:
    """A sale with its ledger and installments, read together."""

    sale: Sale
    payments: List[Payment] = field(default_factory=list)
    installments: List[Installment] = field(default_factory=list)


def load_sale_context(store: RecordStore, sale_id: UUID) -> SaleContext:
    sale = get_sale_by_id(store, sale_id)
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return SaleContext(
        sale=sale,
        payments=list_payments_for_sale(store, sale_id),
        installments=list_installments_for_sale(store, sale_id),
    )


def require_open_sale(sale: Sale) -> None:
    if sale.status is SaleStatus.CANCELLED:
        raise ValidationError(f"Sale {sale.sale_id} is cancelled")
    if sale.status is SaleStatus.COMPLETED:
        raise ValidationError(f"Sale {sale.sale_id} is already completed")


def require_parcel_in_sale(sale: Sale, parcel_id: UUID) -> None:
    if not sale.covers(parcel_id):
        raise ValidationError(f"Parcel {parcel_id} is not part of sale {sale.sale_id}")


def recheck_parcels(
    store: RecordStore,
    parcel_ids: Iterable[UUID],
    expected: Iterable[ParcelStatus],
) -> List[LandParcel]:
    """
    Re-read parcels and verify they are still in one of the expected states.

    Raises:
        ConcurrencyConflictError: A parcel is missing or its status moved on
    """

    wanted = list(parcel_ids)
    allowed = set(expected)
    parcels = {p.parcel_id: p for p in list_parcels(store, wanted)}

    changed = [pid for pid in wanted if pid not in parcels or parcels[pid].status not in allowed]
    if changed:
        logger.warning("Parcel availability changed since selection: %s", ", ".join(map(str, changed)))
        raise ConcurrencyConflictError(
            "Parcel availability changed since selection; refresh and select again",
            parcel_ids=changed,
        )
    return [parcels[pid] for pid in wanted]


def recheck_sale(
    store: RecordStore,
    sale: Sale,
    parcel_id: UUID,
    *,
    allow_completed: bool = False,
) -> None:
    """
    Re-read the sale and verify the parcel is still part of it and the sale is
    still open.

    Raises:
        ConcurrencyConflictError: The sale changed under the actor
    """

    closed = {SaleStatus.CANCELLED} if allow_completed else {SaleStatus.CANCELLED, SaleStatus.COMPLETED}
    current = get_sale_by_id(store, sale.sale_id)
    if current is None or not current.covers(parcel_id) or current.status in closed:
        raise ConcurrencyConflictError(
            f"Sale {sale.sale_id} changed since selection; refresh and select again",
            parcel_ids=[parcel_id],
        )


__all__ = [
    "SaleContext",
    "load_sale_context",
    "recheck_parcels",
    "recheck_sale",
    "require_open_sale",
    "require_parcel_in_sale",
]
