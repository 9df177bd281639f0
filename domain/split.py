"""
Domain: Piece allocation splitting (pure).

Extracts one parcel of a multi-parcel sale into a new single-parcel sale so
that a parcel-scoped action (confirmation, cancellation) can be applied to it
alone.

Contract excerpts relevant here:
- Per-parcel shares are the sale totals divided equally by the parcel count.
  The sale keeps no per-parcel price breakdown, so equal division is the
  accepted approximation.
- The shrunk original keeps `total - share` for every money field, so the new
  sale and the shrunk original always sum back to the pre-split totals.
- Installments of the original are rescaled by (n - 1) / n.
- Ledger entries of the original are rescaled by (n - 1) / n; the removed share
  of each entry is returned as a new entry against the new sale.
- A single-parcel sale is not split: the action applies in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional
from uuid import UUID, uuid4

from .installment import Installment
from .money import ZERO
from .payment import Payment
from .sale import Sale
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class SaleShare:
    """One parcel's equal share of a sale's money fields."""

    selling_price: Decimal
    purchase_cost: Decimal
    profit_margin: Decimal
    small_advance: Decimal
    big_advance: Decimal
    company_fee: Optional[Decimal]
    promise_initial_payment: Optional[Decimal]
    monthly_installment: Optional[Decimal]


@dataclass(frozen=True, slots=True)
class SplitResult:
    """
    Outcome of splitting a parcel out of a sale.

    target: sale the parcel-scoped action applies to (the new single-parcel
        sale, or the original itself when nothing was split)
    remainder: shrunk original, None when nothing was split
    remainder_installments: original's installments after rescaling
    remainder_payments: original's ledger entries after rescaling
    moved_payments: new ledger entries carrying the removed shares to target
    """

    target: Sale
    remainder: Optional[Sale] = None
    remainder_installments: List[Installment] = field(default_factory=list)
    remainder_payments: List[Payment] = field(default_factory=list)
    moved_payments: List[Payment] = field(default_factory=list)

    @property
    def split(self) -> bool:
        return self.remainder is not None


def _share_of(amount: Optional[Decimal], count: int) -> Optional[Decimal]:
    if amount is None:
        return None
    return amount / count


def _minus(amount: Optional[Decimal], share: Optional[Decimal]) -> Optional[Decimal]:
    if amount is None or share is None:
        return amount
    return amount - share


def sale_share(sale: Sale) -> SaleShare:
    """Equal per-parcel share of every money field of the sale."""

    n = sale.piece_count
    return SaleShare(
        selling_price=sale.total_selling_price / n,
        purchase_cost=sale.total_purchase_cost / n,
        profit_margin=sale.profit_margin / n,
        small_advance=sale.small_advance_amount / n,
        big_advance=sale.big_advance_amount / n,
        company_fee=_share_of(sale.company_fee_amount, n),
        promise_initial_payment=_share_of(sale.promise_initial_payment, n),
        monthly_installment=_share_of(sale.monthly_installment_amount, n),
    )


def scale_installment(installment: Installment, ratio: Decimal) -> Installment:
    return replace(
        installment,
        amount_due=installment.amount_due * ratio,
        amount_paid=installment.amount_paid * ratio,
        stacked_amount=installment.stacked_amount * ratio,
    )


def split_parcel(
    sale: Sale,
    parcel_id: UUID,
    *,
    new_sale_id: UUID,
    now: datetime,
    installments: Iterable[Installment] = (),
    payments: Iterable[Payment] = (),
    id_factory: Callable[[], UUID] = uuid4,
) -> SplitResult:
    """
    Split `parcel_id` out of `sale`.

    Args:
        sale: Sale covering the parcel
        parcel_id: Parcel the action targets
        new_sale_id: Id for the extracted single-parcel sale
        now: UTC timestamp stamped on both sales
        installments: Installments of the sale (others are ignored)
        payments: Ledger entries of the sale (others are ignored)
        id_factory: Id source for moved ledger entries

    Returns:
        SplitResult; `split` is False for a single-parcel sale

    Example:
        result = split_parcel(sale, parcel_id, new_sale_id=uuid4(), now=utc_now())
        if result.split:
            # persist result.target (insert) and result.remainder (update)
    """

    if not sale.covers(parcel_id):
        raise ValueError(f"parcel {parcel_id} is not part of sale {sale.sale_id}")
    require_utc_timestamp("now", now)

    if sale.piece_count == 1:
        return SplitResult(target=sale)

    n = sale.piece_count
    keep_ratio = Decimal(n - 1) / Decimal(n)
    share = sale_share(sale)

    target = replace(
        sale,
        sale_id=new_sale_id,
        parcel_ids=(parcel_id,),
        total_selling_price=share.selling_price,
        total_purchase_cost=share.purchase_cost,
        profit_margin=share.profit_margin,
        small_advance_amount=share.small_advance,
        big_advance_amount=share.big_advance,
        company_fee_amount=share.company_fee,
        promise_initial_payment=share.promise_initial_payment,
        # The schedule stays with the original sale.
        number_of_installments=None,
        monthly_installment_amount=None,
        installment_start_date=None,
        installment_end_date=None,
        notes=f"Split from sale {sale.sale_id}",
        created_at=now,
        updated_at=now,
    )

    remainder = replace(
        sale,
        parcel_ids=tuple(p for p in sale.parcel_ids if p != parcel_id),
        total_selling_price=sale.total_selling_price - share.selling_price,
        total_purchase_cost=sale.total_purchase_cost - share.purchase_cost,
        profit_margin=sale.profit_margin - share.profit_margin,
        small_advance_amount=sale.small_advance_amount - share.small_advance,
        big_advance_amount=sale.big_advance_amount - share.big_advance,
        company_fee_amount=_minus(sale.company_fee_amount, share.company_fee),
        promise_initial_payment=_minus(sale.promise_initial_payment, share.promise_initial_payment),
        monthly_installment_amount=_minus(sale.monthly_installment_amount, share.monthly_installment),
        updated_at=now,
    )

    remainder_installments = [
        scale_installment(i, keep_ratio) for i in installments if i.sale_id == sale.sale_id
    ]

    remainder_payments: List[Payment] = []
    moved_payments: List[Payment] = []
    for payment in payments:
        if payment.sale_id != sale.sale_id or payment.is_refund:
            continue
        kept = payment.amount * keep_ratio
        moved = payment.amount - kept
        remainder_payments.append(replace(payment, amount=kept))
        if moved > ZERO:
            moved_payments.append(
                Payment(
                    payment_id=id_factory(),
                    client_id=payment.client_id,
                    sale_id=new_sale_id,
                    amount=moved,
                    payment_type=payment.payment_type,
                    payment_date=payment.payment_date,
                    payment_method=payment.payment_method,
                    notes=f"Share of payment {payment.payment_id}",
                    recorded_by=payment.recorded_by,
                    created_at=now,
                )
            )

    return SplitResult(
        target=target,
        remainder=remainder,
        remainder_installments=remainder_installments,
        remainder_payments=remainder_payments,
        moved_payments=moved_payments,
    )


__all__ = ["SaleShare", "SplitResult", "sale_share", "scale_installment", "split_parcel"]
