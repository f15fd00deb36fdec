"""
Fund Ledger - Expense Service

Business logic for expenses and recurring expense templates.

The expense row is always committed first; the matching ledger posting is
made afterwards and its outcome is returned as a FundUpdateResult. Recurring
templates never post on their own: only the expenses they spawn do.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.config import settings
from fundledger.models.expense import Expense
from fundledger.models.fund import FundSourceType, FundTransactionType
from fundledger.models.inventory import InventoryItem, InventoryPaymentStatus
from fundledger.models.transaction import Transaction
from fundledger.services.billing_cycle import next_billing_date, parse_frequency
from fundledger.services.fund_account_service import FundAccountService
from fundledger.services.fund_ledger_service import FundLedgerService, FundUpdateResult
from fundledger.utils.error_handling import (
    AlreadyArchivedException,
    ExpenseNotFoundException,
    InventoryItemNotFoundException,
    NotArchivedException,
    NotRecurringExpenseException,
    TransactionNotFoundException,
    validate_amount,
)

logger = logging.getLogger(__name__)

# Amounts closer than this are treated as equal when settling a subscription
SETTLEMENT_TOLERANCE = Decimal("0.01")

EXPENSE_FIELDS = ("category", "amount", "description", "date", "payment_proof_link", "fund_type")
TEMPLATE_FIELDS = (
    "category", "amount", "description", "fund_type",
    "recurring_frequency", "next_billing_date", "is_active",
)


async def recalculate_capital_cost(db: AsyncSession, transaction_id: uuid.UUID) -> Optional[Decimal]:
    """Set a transaction's capital cost to the sum of its active, non-template expenses."""
    transaction = await db.get(Transaction, transaction_id)
    if transaction is None:
        return None
    result = await db.execute(
        select(func.coalesce(func.sum(Expense.amount), 0)).where(
            Expense.transaction_id == transaction_id,
            Expense.is_deleted.is_(False),
            Expense.is_recurring_expense.is_(False),
        )
    )
    transaction.capital_cost = Decimal(str(result.scalar() or 0))
    return transaction.capital_cost


class ExpenseService:
    """Service for expense operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = FundLedgerService(db)

    async def get_expense(self, expense_id: uuid.UUID) -> Expense:
        expense = await self.db.get(Expense, expense_id)
        if expense is None:
            raise ExpenseNotFoundException(expense_id)
        return expense

    async def list_expenses(
        self,
        deleted: bool = False,
        inventory_id: Optional[uuid.UUID] = None,
        transaction_id: Optional[uuid.UUID] = None,
        include_templates: bool = True,
    ) -> List[Expense]:
        """Active (or archived) expenses, newest first."""
        query = select(Expense).where(Expense.is_deleted.is_(deleted))
        if inventory_id:
            query = query.where(Expense.inventory_id == inventory_id)
        if transaction_id:
            query = query.where(Expense.transaction_id == transaction_id)
        if not include_templates:
            query = query.where(Expense.is_recurring_expense.is_(False))
        result = await self.db.execute(query.order_by(Expense.date.desc(), Expense.created_at.desc()))
        return list(result.scalars().all())

    async def list_recurring_templates(self, include_inactive: bool = False) -> List[Expense]:
        """Recurring templates ordered by next billing date."""
        query = select(Expense).where(
            Expense.is_recurring_expense.is_(True),
            Expense.is_deleted.is_(False),
        )
        if not include_inactive:
            query = query.where(Expense.is_active.is_(True))
        result = await self.db.execute(query.order_by(Expense.next_billing_date.asc()))
        return list(result.scalars().all())

    # ===========================================
    # CREATE / UPDATE
    # ===========================================

    async def create_expense(
        self,
        category: str,
        amount: Any,
        expense_date: date,
        description: Optional[str] = None,
        payment_proof_link: Optional[str] = None,
        fund_type: Optional[str] = None,
        transaction_id: Optional[uuid.UUID] = None,
        inventory_id: Optional[uuid.UUID] = None,
        is_recurring_expense: bool = False,
        recurring_frequency: Optional[str] = None,
        next_billing: Optional[date] = None,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Expense, FundUpdateResult]:
        """
        Record an expense and charge it to its fund.

        A linked subscription advances its payment status and billing date.
        Recurring templates are stored without a ledger posting; their first
        charge happens on `next_billing` (defaults to the expense date).
        """
        value = validate_amount(amount)
        fund_type = FundAccountService.resolve_fund_type(fund_type or settings.default_fund_type)

        if transaction_id and await self.db.get(Transaction, transaction_id) is None:
            raise TransactionNotFoundException(transaction_id)
        inventory = None
        if inventory_id:
            inventory = await self.db.get(InventoryItem, inventory_id)
            if inventory is None:
                raise InventoryItemNotFoundException(inventory_id)

        frequency = None
        if is_recurring_expense:
            frequency = parse_frequency(recurring_frequency).value
            next_billing = next_billing or expense_date

        expense = Expense(
            category=category,
            amount=value,
            description=description,
            date=expense_date,
            payment_proof_link=payment_proof_link,
            fund_type=fund_type,
            transaction_id=transaction_id,
            inventory_id=inventory_id,
            is_recurring_expense=is_recurring_expense,
            recurring_frequency=frequency,
            next_billing_date=next_billing if is_recurring_expense else None,
            created_by_id=created_by_id,
        )
        self.db.add(expense)
        await self.db.flush()

        if inventory is not None and inventory.is_subscription:
            self._sync_subscription(inventory, expense, created_by_id)
        if transaction_id:
            await recalculate_capital_cost(self.db, transaction_id)

        await self.db.commit()
        logger.info(f"Created expense {expense.id} of {value} from {fund_type}")

        fund_update = FundUpdateResult()
        if not is_recurring_expense:
            await self._post(
                fund_update,
                expense,
                FundTransactionType.EXPENSE,
                -value,
                f"Expense: {category}" + (f" - {description}" if description else ""),
                FundSourceType.EXPENSE,
                created_by_id,
            )
        return expense, fund_update

    def _sync_subscription(
        self,
        inventory: InventoryItem,
        expense: Expense,
        updated_by_id: Optional[uuid.UUID],
    ) -> None:
        """Advance a subscription's payment progress and billing date for a new expense."""
        inventory.updated_by_id = updated_by_id

        if not expense.is_recurring_expense:
            cost = Decimal(str(inventory.cost))
            amount = Decimal(str(expense.amount))
            if inventory.payment_status == InventoryPaymentStatus.BELUM_BAYAR:
                if abs(amount - cost) < SETTLEMENT_TOLERANCE:
                    inventory.payment_status = InventoryPaymentStatus.LUNAS
                    inventory.remaining_amount = Decimal("0")
                else:
                    inventory.payment_status = InventoryPaymentStatus.DP
                    inventory.down_payment_amount = amount
                    inventory.remaining_amount = cost - amount
            elif inventory.payment_status == InventoryPaymentStatus.DP:
                total_paid = Decimal(str(inventory.down_payment_amount or 0)) + amount
                inventory.down_payment_amount = total_paid
                if abs(total_paid - cost) < SETTLEMENT_TOLERANCE:
                    inventory.payment_status = InventoryPaymentStatus.LUNAS
                    inventory.remaining_amount = Decimal("0")
                else:
                    inventory.remaining_amount = cost - total_paid

        if expense.is_recurring_expense and expense.next_billing_date:
            inventory.next_billing_date = expense.next_billing_date
        elif not expense.is_recurring_expense and inventory.is_recurring:
            inventory.last_billing_date = expense.date
            inventory.next_billing_date = next_billing_date(expense.date, inventory.recurring_type)

    async def update_expense(
        self,
        expense_id: uuid.UUID,
        updates: Dict[str, Any],
        updated_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Expense, FundUpdateResult]:
        """
        Edit an expense.

        An amount change posts the difference to the fund. Moving the
        expense to another fund refunds the old amount to the old fund and
        charges the new amount to the new one.
        """
        expense = await self.get_expense(expense_id)
        if expense.is_deleted:
            raise AlreadyArchivedException("Expense", expense_id)

        old_amount = Decimal(str(expense.amount))
        old_fund_type = expense.fund_type

        for field_name, value in updates.items():
            if field_name not in EXPENSE_FIELDS:
                continue
            if field_name == "amount":
                value = validate_amount(value)
            elif field_name == "fund_type":
                value = FundAccountService.resolve_fund_type(value)
            setattr(expense, field_name, value)
        expense.updated_by_id = updated_by_id

        new_amount = Decimal(str(expense.amount))
        new_fund_type = expense.fund_type
        if expense.transaction_id and new_amount != old_amount:
            await self.db.flush()
            await recalculate_capital_cost(self.db, expense.transaction_id)
        await self.db.commit()

        fund_update = FundUpdateResult()
        if expense.is_recurring_expense:
            return expense, fund_update

        description = f"Expense updated: {expense.category}"
        if new_fund_type != old_fund_type:
            await self._post(
                fund_update, expense, FundTransactionType.ADJUSTMENT, old_amount,
                f"{description} (moved to {new_fund_type})", FundSourceType.EXPENSE_UPDATE,
                updated_by_id, fund_type=old_fund_type,
            )
            await self._post(
                fund_update, expense, FundTransactionType.ADJUSTMENT, -new_amount,
                f"{description} (moved from {old_fund_type})", FundSourceType.EXPENSE_UPDATE,
                updated_by_id, fund_type=new_fund_type,
            )
        elif new_amount != old_amount:
            await self._post(
                fund_update, expense, FundTransactionType.ADJUSTMENT, old_amount - new_amount,
                f"{description} (amount {old_amount} -> {new_amount})", FundSourceType.EXPENSE_UPDATE,
                updated_by_id,
            )
        return expense, fund_update

    # ===========================================
    # ARCHIVE / RESTORE
    # ===========================================

    async def archive_expense(
        self,
        expense_id: uuid.UUID,
        deleted_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Expense, FundUpdateResult]:
        """Soft delete an expense and give its amount back to the fund."""
        expense = await self.get_expense(expense_id)
        if expense.is_deleted:
            raise AlreadyArchivedException("Expense", expense_id)

        expense.is_deleted = True
        expense.deleted_at = datetime.now(timezone.utc)
        expense.deleted_by_id = deleted_by_id
        if expense.transaction_id:
            await self.db.flush()
            await recalculate_capital_cost(self.db, expense.transaction_id)
        await self.db.commit()

        fund_update = FundUpdateResult()
        if not expense.is_recurring_expense:
            await self._post(
                fund_update, expense, FundTransactionType.ADJUSTMENT, Decimal(str(expense.amount)),
                f"Expense reversed due to archival: {expense.category}", FundSourceType.EXPENSE_ARCHIVE,
                deleted_by_id,
            )
        return expense, fund_update

    async def restore_expense(
        self,
        expense_id: uuid.UUID,
        restored_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Expense, FundUpdateResult]:
        """Undo an archive and charge the fund again."""
        expense = await self.get_expense(expense_id)
        if not expense.is_deleted:
            raise NotArchivedException("Expense", expense_id)

        expense.is_deleted = False
        expense.deleted_at = None
        expense.deleted_by_id = None
        expense.updated_by_id = restored_by_id
        if expense.transaction_id:
            await self.db.flush()
            await recalculate_capital_cost(self.db, expense.transaction_id)
        await self.db.commit()

        fund_update = FundUpdateResult()
        if not expense.is_recurring_expense:
            await self._post(
                fund_update, expense, FundTransactionType.ADJUSTMENT, -Decimal(str(expense.amount)),
                f"Expense restored: {expense.category}", FundSourceType.EXPENSE_RESTORE,
                restored_by_id,
            )
        return expense, fund_update

    # ===========================================
    # RECURRING TEMPLATES
    # ===========================================

    async def get_template(self, expense_id: uuid.UUID) -> Expense:
        expense = await self.get_expense(expense_id)
        if not expense.is_recurring_expense or expense.is_deleted:
            raise NotRecurringExpenseException(expense_id)
        return expense

    async def cancel_recurring(
        self,
        expense_id: uuid.UUID,
        updated_by_id: Optional[uuid.UUID] = None,
    ) -> Expense:
        """Stop a template from billing again."""
        expense = await self.get_template(expense_id)
        expense.is_active = False
        expense.next_billing_date = None
        expense.updated_by_id = updated_by_id
        await self.db.commit()
        logger.info(f"Cancelled recurring expense {expense_id}")
        return expense

    async def update_recurring_template(
        self,
        expense_id: uuid.UUID,
        updates: Dict[str, Any],
        updated_by_id: Optional[uuid.UUID] = None,
    ) -> Expense:
        """Edit a template, keeping a linked subscription's billing fields in step."""
        expense = await self.get_template(expense_id)

        for field_name, value in updates.items():
            if field_name not in TEMPLATE_FIELDS:
                continue
            if field_name == "amount":
                value = validate_amount(value)
            elif field_name == "fund_type":
                value = FundAccountService.resolve_fund_type(value)
            elif field_name == "recurring_frequency":
                value = parse_frequency(value).value
            setattr(expense, field_name, value)
        expense.updated_by_id = updated_by_id

        if expense.inventory_id and ("next_billing_date" in updates or "recurring_frequency" in updates):
            inventory = await self.db.get(InventoryItem, expense.inventory_id)
            if inventory is not None and inventory.is_subscription:
                if "next_billing_date" in updates:
                    inventory.next_billing_date = expense.next_billing_date
                if "recurring_frequency" in updates:
                    inventory.recurring_type = expense.recurring_frequency
                inventory.updated_by_id = updated_by_id

        await self.db.commit()
        return expense

    # ===========================================
    # LEDGER
    # ===========================================

    async def _post(
        self,
        fund_update: FundUpdateResult,
        expense: Expense,
        transaction_type: FundTransactionType,
        amount: Decimal,
        description: str,
        source_type: FundSourceType,
        created_by_id: Optional[uuid.UUID],
        fund_type: Optional[str] = None,
    ) -> None:
        fund_type = fund_type or expense.fund_type
        expense_id = expense.id
        try:
            entry = await self.ledger.post(
                fund_type,
                transaction_type,
                amount,
                description,
                source_type,
                source_id=expense_id,
                created_by_id=created_by_id,
            )
            fund_update.postings.append(entry)
        except Exception as e:
            await self.ledger.record_failure(fund_update, e, fund_type, amount, expense_id, refresh=[expense])
