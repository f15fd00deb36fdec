"""
Fund Ledger - Recurring Payment Service

Materialises due recurring expense templates.

For every active template whose next billing date falls on or before the
cutoff, a concrete non-recurring expense dated today is created, the
template (and a linked subscription) is advanced by one billing
period and the expense is charged to its fund. Templates are processed
independently: one failing template is reported and the batch continues.

Running twice with the same cutoff is a no-op the second time, because
advanced templates no longer match the selection.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.models.expense import Expense
from fundledger.models.fund import FundSourceType, FundTransactionType
from fundledger.models.inventory import InventoryItem, InventoryPaymentStatus
from fundledger.services.billing_cycle import next_billing_date
from fundledger.services.expense_service import recalculate_capital_cost
from fundledger.services.fund_ledger_service import FundLedgerService, FundUpdateResult, error_message

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_SKIPPED = "skipped"


@dataclass
class RecurringItemResult:
    """Outcome for one template."""

    expense_id: uuid.UUID
    status: str
    new_expense_id: Optional[uuid.UUID] = None
    next_billing_date: Optional[date] = None
    error_message: Optional[str] = None
    fund_update: Optional[FundUpdateResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expense_id": str(self.expense_id),
            "status": self.status,
            "new_expense_id": str(self.new_expense_id) if self.new_expense_id else None,
            "next_billing_date": self.next_billing_date.isoformat() if self.next_billing_date else None,
            "error_message": self.error_message,
            "fund_update": self.fund_update.to_dict() if self.fund_update else None,
        }


@dataclass
class RecurringRunResult:
    """Outcome of a whole run."""

    processing_date: date
    cutoff: date
    results: List[RecurringItemResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_ERROR)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_SKIPPED)

    @property
    def message(self) -> str:
        if not self.results:
            return "No recurring payments to process"
        return f"Processed {self.processed} recurring payments, {self.failed} failed, {self.skipped} skipped"


class RecurringPaymentService:
    """Batch processor for recurring expense templates."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = FundLedgerService(db)

    async def get_due_template_ids(
        self,
        cutoff: date,
        expense_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> List[uuid.UUID]:
        """Ids of active templates billed on or before `cutoff`."""
        query = (
            select(Expense.id)
            .where(
                Expense.is_recurring_expense.is_(True),
                Expense.is_active.is_(True),
                Expense.is_deleted.is_(False),
                Expense.next_billing_date < cutoff + timedelta(days=1),
            )
            .order_by(Expense.next_billing_date)
        )
        if expense_ids:
            query = query.where(Expense.id.in_(list(expense_ids)))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def run(
        self,
        due_before_or_on: Optional[date] = None,
        expense_ids: Optional[Sequence[uuid.UUID]] = None,
        processed_by_id: Optional[uuid.UUID] = None,
    ) -> RecurringRunResult:
        """
        Process every due template.

        `due_before_or_on` only selects the templates and defaults to today.
        Everything written by the run is stamped with the actual day of the
        run, whatever the cutoff.
        """
        processing_date = date.today()
        cutoff = due_before_or_on or processing_date
        template_ids = await self.get_due_template_ids(cutoff, expense_ids)
        run_result = RecurringRunResult(processing_date=processing_date, cutoff=cutoff)

        logger.info(f"Recurring payment run on {processing_date}: {len(template_ids)} templates due by {cutoff}")

        for template_id in template_ids:
            try:
                item = await self._process_template(template_id, processing_date, processed_by_id)
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    f"Error processing recurring payment {template_id}: {e}",
                    extra={"source_id": str(template_id)},
                    exc_info=True,
                )
                item = RecurringItemResult(
                    expense_id=template_id,
                    status=STATUS_ERROR,
                    error_message=error_message(e),
                )
            run_result.results.append(item)

        logger.info(run_result.message)
        return run_result

    async def _process_template(
        self,
        template_id: uuid.UUID,
        processing_date: date,
        processed_by_id: Optional[uuid.UUID],
    ) -> RecurringItemResult:
        result = await self.db.execute(
            select(Expense)
            .where(Expense.id == template_id)
            .execution_options(populate_existing=True)
        )
        template = result.scalar_one()

        inventory = None
        if template.inventory_id:
            inventory = await self.db.get(InventoryItem, template.inventory_id, populate_existing=True)

        if inventory is not None and inventory.is_subscription and not inventory.auto_renew:
            return RecurringItemResult(
                expense_id=template_id,
                status=STATUS_SKIPPED,
                error_message="Subscription auto-renew is disabled",
            )

        next_date = next_billing_date(
            template.next_billing_date or processing_date,
            template.recurring_frequency,
        )
        amount = Decimal(str(template.amount))
        fund_type = template.fund_type

        new_expense = Expense(
            category=template.category,
            amount=amount,
            description=f"{template.description or template.category} (recurring payment {processing_date.isoformat()})",
            date=processing_date,
            fund_type=fund_type,
            transaction_id=template.transaction_id,
            inventory_id=template.inventory_id,
            is_recurring_expense=False,
            created_by_id=processed_by_id or template.created_by_id,
        )
        self.db.add(new_expense)

        template.last_processed_date = processing_date
        template.next_billing_date = next_date
        template.updated_by_id = processed_by_id

        if inventory is not None and inventory.is_subscription:
            inventory.last_billing_date = processing_date
            inventory.next_billing_date = next_date
            inventory.payment_status = InventoryPaymentStatus.LUNAS

        await self.db.flush()
        if template.transaction_id:
            await recalculate_capital_cost(self.db, template.transaction_id)
        await self.db.commit()

        new_expense_id = new_expense.id
        fund_update = FundUpdateResult()
        try:
            entry = await self.ledger.post(
                fund_type,
                FundTransactionType.EXPENSE,
                -abs(amount),
                f"Recurring payment: {new_expense.description}",
                FundSourceType.RECURRING_EXPENSE,
                source_id=new_expense_id,
                created_by_id=new_expense.created_by_id,
            )
            fund_update.postings.append(entry)
        except Exception as e:
            await self.ledger.record_failure(fund_update, e, fund_type, -abs(amount), new_expense_id)

        logger.info(f"Recurring expense {template_id} billed as {new_expense_id}, next billing {next_date}")
        return RecurringItemResult(
            expense_id=template_id,
            status=STATUS_SUCCESS,
            new_expense_id=new_expense_id,
            next_billing_date=next_date,
            fund_update=fund_update,
        )
