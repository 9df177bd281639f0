"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.payment import PaymentMethod
from domain.sale import PaymentType, SaleStatus
from services.financial_report_service import ReportBucket, ReportPeriod


# ============================================================================
# Sale Models
# ============================================================================

class CreateSaleBody(BaseModel):
    """Request to reserve parcels for a client."""
    client_id: UUID = Field(..., description="Buyer")
    parcel_ids: List[UUID] = Field(
        ...,
        min_length=1,
        description="Parcels to reserve"
    )
    payment_type: PaymentType
    sale_date: date
    reservation_amount: Decimal = Field(Decimal("0"), description="Reservation deposit (SmallAdvance)")
    deadline_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "123e4567-e89b-12d3-a456-426614174002",
                "parcel_ids": [
                    "123e4567-e89b-12d3-a456-426614174000",
                    "123e4567-e89b-12d3-a456-426614174001"
                ],
                "payment_type": "Installment",
                "sale_date": "2024-01-01",
                "reservation_amount": "5000.00",
                "deadline_date": "2024-02-01",
                "payment_method": "Cash"
            }
        }


class ConfirmFullBody(BaseModel):
    """Confirm one parcel of a sale as paid in full."""
    parcel_id: UUID
    received_amount: Decimal
    company_fee_percentage: Optional[Decimal] = Field(
        None,
        description="Fee % on the parcel price (defaults to DEFAULT_COMPANY_FEE_PERCENTAGE)"
    )
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "parcel_id": "123e4567-e89b-12d3-a456-426614174000",
                "received_amount": "100000.00",
                "company_fee_percentage": "0",
                "payment_date": "2024-01-15"
            }
        }


class ConfirmInstallmentBody(BaseModel):
    """Confirm one parcel with a down payment (and a schedule for Installment sales)."""
    parcel_id: UUID
    down_payment: Decimal
    term_months: int = Field(..., description="Number of monthly installments (1..120)")
    start_date: date = Field(..., description="Due date of the first installment")
    company_fee_percentage: Optional[Decimal] = None
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "parcel_id": "123e4567-e89b-12d3-a456-426614174000",
                "down_payment": "20000.00",
                "term_months": 10,
                "start_date": "2024-01-01",
                "company_fee_percentage": "0"
            }
        }


class CompletePromiseBody(BaseModel):
    """Completion payment of a promise of sale."""
    amount: Decimal
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class CancelParcelBody(BaseModel):
    """Cancel one parcel of a sale."""
    parcel_id: UUID
    refund_amount: Optional[Decimal] = Field(None, description="Money returned to the buyer")
    refund_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "parcel_id": "123e4567-e89b-12d3-a456-426614174000",
                "refund_amount": "5000.00",
                "refund_date": "2024-03-01"
            }
        }


class InstallmentPaymentBody(BaseModel):
    """Money received toward a sale's installment schedule."""
    amount: Decimal
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class OperationResponse(BaseModel):
    """Response after a sale mutation."""
    success: bool
    sale_ids: List[UUID]
    errors: List[str] = []
    message: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "sale_ids": [
                    "123e4567-e89b-12d3-a456-426614174003",
                    "123e4567-e89b-12d3-a456-426614174004"
                ],
                "errors": [],
                "message": "Parcel confirmed; sale was split."
            }
        }


class SaleRowResponse(BaseModel):
    """One parcel of one sale, as shown in the sales table."""
    row_id: str
    sale_id: UUID
    parcel_id: UUID
    piece_number: Optional[str] = None
    batch_name: Optional[str] = None
    client_id: UUID
    client_name: Optional[str] = None
    seller_name: Optional[str] = None
    payment_type: PaymentType
    status: SaleStatus
    sale_date: date
    deadline_date: Optional[date] = None
    price: Decimal
    company_fee: Decimal
    reservation: Decimal
    down_payment: Decimal
    paid: Decimal
    remaining: Decimal
    monthly_installment: Optional[Decimal] = None
    number_of_installments: Optional[int] = None
    is_overdue: bool


class SaleRowListResponse(BaseModel):
    rows: List[SaleRowResponse]
    total_count: int
    as_of: date


# ============================================================================
# Installment Models
# ============================================================================

class OverdueSweepResponse(BaseModel):
    """Installments newly flagged Late."""
    marked: int
    sale_ids: List[UUID]
    as_of: date

    class Config:
        json_schema_extra = {
            "example": {
                "marked": 3,
                "sale_ids": ["123e4567-e89b-12d3-a456-426614174003"],
                "as_of": "2024-05-02"
            }
        }


# ============================================================================
# Report Models
# ============================================================================

class ParcelLineResponse(BaseModel):
    parcel_id: UUID
    piece_number: Optional[str] = None
    amount: Decimal
    entry_count: int
    recorded_by: List[str]
    sold_by: List[str]


class LocationGroupResponse(BaseModel):
    batch_id: Optional[UUID] = None
    batch_name: str
    location: Optional[str] = None
    amount: Decimal
    percentage: Decimal
    entry_count: int
    parcels: List[ParcelLineResponse]


class LocationSummaryResponse(BaseModel):
    batch_id: Optional[UUID] = None
    batch_name: str
    location: Optional[str] = None
    amounts: Dict[ReportBucket, Decimal]
    total: Decimal


class FinancialReportResponse(BaseModel):
    """Grouped financial totals for a period."""
    period: ReportPeriod
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    totals: Dict[ReportBucket, Decimal]
    groups: Dict[ReportBucket, List[LocationGroupResponse]]
    summary: List[LocationSummaryResponse]
    cash_received: Decimal
    grand_total: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "period": "month",
                "start_date": "2024-05-01",
                "end_date": "2024-05-20",
                "totals": {
                    "Installment": "16000.00",
                    "SmallAdvance": "5000.00",
                    "BigAdvance": "20000.00",
                    "Full": "0",
                    "PromiseOfSale": "0",
                    "CompanyFee": "2000.00"
                },
                "groups": {},
                "summary": [],
                "cash_received": "41000.00",
                "grand_total": "43000.00"
            }
        }
