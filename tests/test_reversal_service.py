"""
Tests for `services/reversal_service.py`.

Covers contract rules:
- Cancelling a single-parcel sale deletes its whole financial trail, frees the
  parcel and marks the sale Cancelled; a refund is recorded as a negative entry.
- Cancelling one parcel of a multi-parcel sale splits it out and shrinks the
  original's ledger.
- Reset keeps exactly the reservation entries and clears everything downstream.
- A failure part-way is logged with the steps already applied and re-raised.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest

from domain.land import ParcelStatus
from domain.lifecycle import resolve_sale_status
from domain.payment import PaymentRecordType
from domain.sale import PaymentType, SaleStatus
from fakes import add_parcel
from repositories.client import StoreSettings
from repositories.installment_repository import INSTALLMENTS_TABLE, list_installments_for_sale
from repositories.land_repository import get_parcel_by_id
from repositories.payment_repository import list_payments_for_sale
from repositories.sale_repository import get_sale_by_id
from services.confirmation_service import InstallmentConfirmationRequest, confirm_installment
from services.reversal_service import CancellationRequest, cancel_parcel, reset_to_reservation
from services.sale_service import CreateSaleRequest, create_sale

SETTINGS = StoreSettings()


def _reserve(store, actor, client_id, parcel_ids, reservation="5000"):
    result = create_sale(
        store,
        actor,
        CreateSaleRequest(
            client_id=client_id,
            parcel_ids=list(parcel_ids),
            payment_type=PaymentType.INSTALLMENT,
            sale_date=date(2024, 1, 1),
            reservation_amount=Decimal(reservation),
        ),
    )
    return result.sale_ids[0]


def _confirm(store, actor, sale_id, parcel_id):
    result = confirm_installment(
        store,
        actor,
        InstallmentConfirmationRequest(
            sale_id=sale_id,
            parcel_id=parcel_id,
            down_payment=Decimal("20000"),
            term_months=10,
            start_date=date(2024, 2, 1),
            company_fee_percentage=Decimal("2"),
        ),
        settings=SETTINGS,
    )
    assert result.success, result.errors
    return result.sale_ids[0]


def test_cancel_single_parcel_sale_deletes_trail(store, owner, client_id, batch_id) -> None:
    """Verify the parcel is freed, the sale Cancelled, and payments and installments deleted."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])
    _confirm(store, owner, sale_id, parcel)
    assert list_installments_for_sale(store, sale_id)

    result = cancel_parcel(store, owner, CancellationRequest(sale_id=sale_id, parcel_id=parcel))

    assert result.success is True
    assert result.sale_ids == [sale_id]
    assert get_parcel_by_id(store, parcel).status is ParcelStatus.AVAILABLE
    assert get_sale_by_id(store, sale_id).status is SaleStatus.CANCELLED
    assert list_payments_for_sale(store, sale_id) == []
    assert list_installments_for_sale(store, sale_id) == []


def test_cancel_records_refund_as_negative_entry(store, owner, client_id, batch_id) -> None:
    """Verify a refund is stored as a negative Refund entry on the cancelled sale."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])

    result = cancel_parcel(
        store,
        owner,
        CancellationRequest(
            sale_id=sale_id,
            parcel_id=parcel,
            refund_amount=Decimal("5000"),
            refund_date=date(2024, 1, 15),
        ),
    )

    assert result.success is True
    payments = list_payments_for_sale(store, sale_id)
    assert [(p.payment_type, p.amount, p.payment_date) for p in payments] == [
        (PaymentRecordType.REFUND, Decimal("-5000"), date(2024, 1, 15))
    ]


def test_cancel_rejects_refund_above_amount_received(store, owner, client_id, batch_id) -> None:
    """Verify a refund larger than what the parcel brought in is rejected with no writes."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])
    before = len(store.writes)

    result = cancel_parcel(
        store,
        owner,
        CancellationRequest(sale_id=sale_id, parcel_id=parcel, refund_amount=Decimal("6000")),
    )

    assert result.error_code == "VALIDATION"
    assert len(store.writes) == before


def test_cancel_one_parcel_of_multi_parcel_sale(store, owner, client_id, batch_id) -> None:
    """Verify the cancelled parcel gets its own Cancelled sale and the original keeps the rest."""

    a = add_parcel(store, batch_id, "1")
    b = add_parcel(store, batch_id, "2")
    sale_id = _reserve(store, owner, client_id, [a, b], reservation="10000")

    result = cancel_parcel(
        store,
        owner,
        CancellationRequest(sale_id=sale_id, parcel_id=a, refund_amount=Decimal("5000")),
    )

    assert result.success is True
    cancelled_id, original_id = result.sale_ids
    assert original_id == sale_id

    cancelled = get_sale_by_id(store, cancelled_id)
    assert cancelled.parcel_ids == (a,)
    assert cancelled.status is SaleStatus.CANCELLED
    assert [p.amount for p in list_payments_for_sale(store, cancelled_id)] == [Decimal("-5000")]

    original = get_sale_by_id(store, original_id)
    assert original.parcel_ids == (b,)
    assert original.total_selling_price == Decimal("100000")
    assert original.small_advance_amount == Decimal("5000")
    assert [p.amount for p in list_payments_for_sale(store, original_id)] == [Decimal("5000")]

    assert get_parcel_by_id(store, a).status is ParcelStatus.AVAILABLE
    assert get_parcel_by_id(store, b).status is ParcelStatus.RESERVED


def test_cancel_already_cancelled_sale_is_rejected(store, owner, client_id, batch_id) -> None:
    """Verify a cancelled sale cannot be cancelled again."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])
    assert cancel_parcel(store, owner, CancellationRequest(sale_id=sale_id, parcel_id=parcel)).success

    again = cancel_parcel(store, owner, CancellationRequest(sale_id=sale_id, parcel_id=parcel))

    assert again.error_code == "VALIDATION"


def test_reset_preserves_reservation(store, owner, client_id, batch_id) -> None:
    """Verify only the SmallAdvance entries survive and the sale is back to Pending."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])
    _confirm(store, owner, sale_id, parcel)

    result = reset_to_reservation(store, owner, sale_id)

    assert result.success is True
    payments = list_payments_for_sale(store, sale_id)
    assert {p.payment_type for p in payments} == {PaymentRecordType.SMALL_ADVANCE}
    assert sum(p.amount for p in payments) == Decimal("5000")
    assert list_installments_for_sale(store, sale_id) == []

    sale = get_sale_by_id(store, sale_id)
    assert sale.status is SaleStatus.PENDING
    assert sale.big_advance_amount == Decimal("0")
    assert sale.company_fee_amount is None
    assert sale.number_of_installments is None
    assert sale.is_confirmed is False
    assert sale.small_advance_amount == Decimal("5000")
    assert get_parcel_by_id(store, parcel).status is ParcelStatus.RESERVED
    assert resolve_sale_status(sale, payments) is SaleStatus.PENDING


def test_reset_of_pending_sale_is_rejected(store, owner, client_id, batch_id) -> None:
    """Verify a sale with no down payment or company fee cannot be reset."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])

    result = reset_to_reservation(store, owner, sale_id)

    assert result.success is False
    assert result.error_code == "VALIDATION"


def test_reset_failure_part_way_is_logged_and_raised(store, owner, client_id, batch_id, caplog) -> None:
    """Verify a store failure mid-reset re-raises and logs the steps already applied."""

    parcel = add_parcel(store, batch_id)
    sale_id = _reserve(store, owner, client_id, [parcel])
    _confirm(store, owner, sale_id, parcel)
    store.fail_on("delete", INSTALLMENTS_TABLE)

    with caplog.at_level(logging.ERROR, logger="services.reversal_service"):
        with pytest.raises(RuntimeError):
            reset_to_reservation(store, owner, sale_id)

    assert "failed part-way after: deleted 1 payment(s)" in caplog.text
    # The down payment is gone but the schedule is still there
    assert list_installments_for_sale(store, sale_id)
    assert {p.payment_type for p in list_payments_for_sale(store, sale_id)} == {PaymentRecordType.SMALL_ADVANCE}
