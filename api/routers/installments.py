"""
Installments API Endpoints.

Endpoint for flagging overdue installments.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_current_user, get_store, store_unavailable
from api.models import OverdueSweepResponse
from domain.user import User
from repositories.record_store import RecordStore
from services.errors import PermissionDeniedError
from services.installment_service import mark_overdue_installments

router = APIRouter()


@router.post(
    "/installments/mark-overdue",
    response_model=OverdueSweepResponse,
    summary="Mark Overdue Installments",
    description="Set every unpaid installment due before the given day to Late."
)
def post_mark_overdue(
    as_of: Optional[date] = Query(None, description="Reference day (default today)"),
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Flag overdue installments of every live sale.

    An installment is overdue when it is not Paid, more than one cent remains,
    and it was due before `as_of`.
    """
    day = as_of or date.today()
    try:
        result = mark_overdue_installments(store, actor, day)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except RuntimeError as e:
        raise store_unavailable("mark overdue installments", e)

    return OverdueSweepResponse(marked=result.marked, sale_ids=result.sale_ids, as_of=day)
