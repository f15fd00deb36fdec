"""
Fund Ledger - Celery Tasks

Background tasks for scheduled operations.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from celery import shared_task

from fundledger.database import async_session_factory, engine

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _with_disposed_engine(coro):
    # Pooled connections are bound to the loop that created them
    try:
        return await coro
    finally:
        await engine.dispose()


# ===========================================
# RECURRING PAYMENTS
# ===========================================

@shared_task(name='fundledger.tasks.celery_tasks.process_recurring_payments_task')
def process_recurring_payments_task(
    due_before_or_on: Optional[str] = None,
    expense_ids: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Process recurring expense templates due on or before the given ISO date (default today)."""
    return run_async(_with_disposed_engine(_process_recurring_payments(due_before_or_on, expense_ids)))


async def _process_recurring_payments(
    due_before_or_on: Optional[str],
    expense_ids: Optional[List[str]],
) -> Dict[str, Any]:
    """Async implementation of the recurring payment run."""
    import uuid
    from fundledger.services.recurring_payment_service import RecurringPaymentService

    cutoff = date.fromisoformat(due_before_or_on) if due_before_or_on else None
    ids = [uuid.UUID(i) for i in expense_ids] if expense_ids else None

    async with async_session_factory() as db:
        result = await RecurringPaymentService(db).run(due_before_or_on=cutoff, expense_ids=ids)

    logger.info(result.message)
    return {
        "message": result.message,
        "processing_date": result.processing_date.isoformat(),
        "due_before_or_on": result.cutoff.isoformat(),
        "processed": result.processed,
        "failed": result.failed,
        "skipped": result.skipped,
        "results": [item.to_dict() for item in result.results],
    }


# ===========================================
# LEDGER CONSISTENCY
# ===========================================

@shared_task(name='fundledger.tasks.celery_tasks.check_fund_consistency_task')
def check_fund_consistency_task() -> Dict[str, Any]:
    """Report funds whose stored balance drifted from the ledger or that hold one-legged transfers."""
    return run_async(_with_disposed_engine(_check_fund_consistency()))


async def _check_fund_consistency() -> Dict[str, Any]:
    from fundledger.services.fund_account_service import FundAccountService
    from fundledger.services.fund_ledger_service import FundLedgerService

    inconsistent = []
    async with async_session_factory() as db:
        ledger = FundLedgerService(db)
        for account in await FundAccountService(db).list_accounts():
            report = await ledger.get_balance_report(account.fund_type)
            if report.drift != 0 or report.unpaired_transfer_ids:
                logger.warning(
                    f"Fund {report.fund_type} needs reconciliation: drift {report.drift}, "
                    f"{len(report.unpaired_transfer_ids)} unpaired transfer legs",
                    extra={"fund_type": report.fund_type, "amount": str(report.drift)},
                )
                inconsistent.append({
                    "fund_type": report.fund_type,
                    "drift": str(report.drift),
                    "unpaired_transfer_ids": [str(i) for i in report.unpaired_transfer_ids],
                })

    return {"checked_at": date.today().isoformat(), "inconsistent_funds": inconsistent}
