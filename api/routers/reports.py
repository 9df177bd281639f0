"""
Reports API Endpoints.

Endpoint for the grouped financial report.
"""

from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_current_user, get_store, store_unavailable
from api.models import FinancialReportResponse, LocationGroupResponse, LocationSummaryResponse
from domain.user import User
from repositories.record_store import RecordStore
from services.errors import PermissionDeniedError
from services.financial_report_service import ReportPeriod, financial_report

router = APIRouter()


@router.get(
    "/reports/financial",
    response_model=FinancialReportResponse,
    summary="Financial Report",
    description="Money received per bucket, grouped by location and parcel, for a period."
)
def get_financial_report(
    period: ReportPeriod = Query(ReportPeriod.MONTH, description="today | week | month | all | custom-date"),
    custom_date: Optional[date] = Query(None, alias="date", description="Day for the custom-date period"),
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Reconcile the ledger for a period.

    Every figure is recomputed from a fresh read.

    **Example usage:**
    - This month: `GET /api/v1/reports/financial?period=month`
    - One day: `GET /api/v1/reports/financial?period=custom-date&date=2024-05-02`
    """
    try:
        report = financial_report(store, actor, period, today=date.today(), custom_date=custom_date)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise store_unavailable("build financial report", e)

    return FinancialReportResponse(
        period=report.period,
        start_date=report.date_range.start,
        end_date=report.date_range.end,
        totals=report.totals,
        groups={
            bucket: [LocationGroupResponse(**asdict(group)) for group in groups]
            for bucket, groups in report.groups.items()
        },
        summary=[LocationSummaryResponse(**asdict(row)) for row in report.summary],
        cash_received=report.cash_received,
        grand_total=report.grand_total,
    )
