"""
Fund Ledger - Recurring Payments Router

Manual or scheduler-triggered recurring payment runs. Accepts a user JWT
or the configured cron secret as bearer token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.database import get_async_session
from fundledger.dependencies import get_user_or_cron
from fundledger.models.user import User
from fundledger.schemas.recurring import RecurringRunRequest, RecurringRunResponse
from fundledger.services.recurring_payment_service import RecurringPaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/recurring-payments/run",
    response_model=RecurringRunResponse,
    summary="Process due recurring payments",
)
async def run_recurring_payments(
    request: Optional[RecurringRunRequest] = None,
    current_user: Optional[User] = Depends(get_user_or_cron),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Materialise every due recurring expense.

    Individual failures are listed in `results`; the call itself only
    fails when the due list cannot be read.
    """
    request = request or RecurringRunRequest()
    triggered_by = current_user.email if current_user else "scheduler"
    logger.info(f"Recurring payment run triggered by {triggered_by}")

    result = await RecurringPaymentService(db).run(
        due_before_or_on=request.due_before_or_on,
        expense_ids=request.expense_ids,
        processed_by_id=current_user.id if current_user else None,
    )
    return RecurringRunResponse(
        message=result.message,
        processing_date=result.processing_date,
        due_before_or_on=result.cutoff,
        processed=result.processed,
        failed=result.failed,
        skipped=result.skipped,
        results=[item.to_dict() for item in result.results],
    )
