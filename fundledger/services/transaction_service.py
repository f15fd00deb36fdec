"""
Fund Ledger - Transaction Service

Business logic for project / sale transactions.

Receipts are posted to the transaction's fund as the payment status
moves. The transaction row is committed first and stays authoritative;
the ledger side is reported through FundUpdateResult.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.config import settings
from fundledger.models.expense import Expense
from fundledger.models.fund import FundSourceType, FundTransactionType
from fundledger.models.transaction import PaymentStatus, Transaction
from fundledger.services.fund_account_service import FundAccountService
from fundledger.services.fund_ledger_service import FundLedgerService, FundUpdateResult
from fundledger.services.payment_status_service import (
    PaymentStatusService,
    coerce_status,
    plan_transition,
    recognized_amount,
)
from fundledger.utils.error_handling import (
    AlreadyArchivedException,
    NotArchivedException,
    TransactionNotFoundException,
    ValidationException,
    validate_amount,
)

logger = logging.getLogger(__name__)

TRANSACTION_FIELDS = (
    "name", "description", "date", "project_value", "total_profit",
    "down_payment_amount", "payment_status", "fund_type",
)
AMOUNT_FIELDS = ("project_value", "total_profit", "down_payment_amount")


def same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    """Compare timestamps that may come back from storage without a timezone."""
    if a is None or b is None:
        return False
    if (a.tzinfo is None) != (b.tzinfo is None):
        return a.replace(tzinfo=None) == b.replace(tzinfo=None)
    return a == b


class TransactionService:
    """Service for transaction operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = FundLedgerService(db)

    async def get_transaction(self, transaction_id: uuid.UUID) -> Transaction:
        transaction = await self.db.get(Transaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundException(transaction_id)
        return transaction

    @staticmethod
    def _check_down_payment(transaction: Transaction) -> None:
        if (
            transaction.payment_status == PaymentStatus.DP
            and Decimal(str(transaction.down_payment_amount)) > Decimal(str(transaction.total_profit))
        ):
            raise ValidationException(
                "Down payment cannot exceed the total profit",
                field="down_payment_amount",
            )

    @staticmethod
    def _update_remaining(transaction: Transaction) -> None:
        recognized = recognized_amount(
            transaction.payment_status,
            transaction.total_profit,
            transaction.down_payment_amount,
        )
        transaction.remaining_amount = Decimal(str(transaction.total_profit)) - recognized

    async def create_transaction(
        self,
        name: str,
        transaction_date: date,
        total_profit: Any,
        payment_status: Any = PaymentStatus.BELUM_BAYAR,
        down_payment_amount: Any = 0,
        project_value: Any = None,
        description: Optional[str] = None,
        fund_type: Optional[str] = None,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Transaction, FundUpdateResult]:
        """Record a transaction and post the cash already received as income."""
        transaction = Transaction(
            name=name,
            description=description,
            date=transaction_date,
            project_value=validate_amount(project_value if project_value is not None else total_profit,
                                          "project_value", allow_zero=True),
            total_profit=validate_amount(total_profit, "total_profit", allow_zero=True),
            down_payment_amount=validate_amount(down_payment_amount or 0, "down_payment_amount", allow_zero=True),
            payment_status=coerce_status(payment_status),
            fund_type=FundAccountService.resolve_fund_type(fund_type or settings.default_fund_type),
            created_by_id=created_by_id,
        )
        self._check_down_payment(transaction)
        self._update_remaining(transaction)

        self.db.add(transaction)
        await self.db.commit()
        logger.info(f"Created transaction {transaction.id} ({transaction.payment_status.value})")

        fund_update = FundUpdateResult()
        amount = recognized_amount(
            transaction.payment_status, transaction.total_profit, transaction.down_payment_amount
        )
        if amount > 0:
            await self._post(
                fund_update, transaction, transaction.fund_type, FundTransactionType.INCOME, amount,
                f"Income from transaction: {name}", FundSourceType.TRANSACTION,
                transaction.id, created_by_id,
            )
        return transaction, fund_update

    async def update_transaction(
        self,
        transaction_id: uuid.UUID,
        updates: Dict[str, Any],
        updated_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Transaction, FundUpdateResult]:
        """
        Edit a transaction and reconcile the ledger with its new payment state.

        The edit is committed before any posting. Ledger failures do not
        revert it; they are returned in the FundUpdateResult.
        """
        transaction = await self.get_transaction(transaction_id)
        if transaction.is_deleted:
            raise AlreadyArchivedException("Transaction", transaction_id)

        old_status = transaction.payment_status
        old_total = Decimal(str(transaction.total_profit))
        old_down_payment = Decimal(str(transaction.down_payment_amount))
        old_fund_type = transaction.fund_type

        for field_name, value in updates.items():
            if field_name not in TRANSACTION_FIELDS:
                continue
            if field_name in AMOUNT_FIELDS:
                value = validate_amount(value if value is not None else 0, field_name, allow_zero=True)
            elif field_name == "payment_status":
                value = coerce_status(value)
            elif field_name == "fund_type":
                value = FundAccountService.resolve_fund_type(value)
            setattr(transaction, field_name, value)

        self._check_down_payment(transaction)
        self._update_remaining(transaction)
        transaction.updated_by_id = updated_by_id
        await self.db.commit()

        plan = plan_transition(
            old_status,
            transaction.payment_status,
            transaction.total_profit,
            old_down_payment,
            transaction.down_payment_amount,
            old_fund_type,
            transaction.fund_type,
            old_total_profit=old_total,
        )
        if plan.is_noop:
            return transaction, FundUpdateResult()

        fund_update = await PaymentStatusService(self.db).apply(transaction.id, plan, updated_by_id)
        return transaction, fund_update

    @staticmethod
    def _expense_postings(expenses: List[Expense]) -> List[Tuple[uuid.UUID, str, Decimal, str]]:
        """Snapshot of what to post per expense, taken before any posting can expire the rows."""
        return [
            (e.id, e.fund_type, Decimal(str(e.amount)), e.category)
            for e in expenses
            if not e.is_recurring_expense
        ]

    async def _linked_expenses(self, transaction_id: uuid.UUID, deleted: bool) -> List[Expense]:
        result = await self.db.execute(
            select(Expense).where(
                Expense.transaction_id == transaction_id,
                Expense.is_deleted.is_(deleted),
            )
        )
        return list(result.scalars().all())

    async def archive_transaction(
        self,
        transaction_id: uuid.UUID,
        deleted_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Transaction, FundUpdateResult, int]:
        """
        Soft delete a transaction together with its active expenses.

        The cash received is taken back out of the fund and every archived
        expense is refunded to its fund.
        """
        transaction = await self.get_transaction(transaction_id)
        if transaction.is_deleted:
            raise AlreadyArchivedException("Transaction", transaction_id)

        deleted_at = datetime.now(timezone.utc)
        transaction.is_deleted = True
        transaction.deleted_at = deleted_at
        transaction.deleted_by_id = deleted_by_id

        expenses = await self._linked_expenses(transaction_id, deleted=False)
        for expense in expenses:
            expense.is_deleted = True
            expense.deleted_at = deleted_at
            expense.deleted_by_id = deleted_by_id
        await self.db.commit()
        logger.info(f"Archived transaction {transaction_id} with {len(expenses)} expenses")

        fund_update = FundUpdateResult()
        expense_postings = self._expense_postings(expenses)
        received = recognized_amount(
            transaction.payment_status, transaction.total_profit, transaction.down_payment_amount
        )
        if received > 0:
            await self._post(
                fund_update, transaction, transaction.fund_type, FundTransactionType.ADJUSTMENT, -received,
                f"Transaction reversed due to archival: {transaction.name}",
                FundSourceType.TRANSACTION_ARCHIVE, transaction_id, deleted_by_id, refresh=expenses,
            )
        for expense_id, fund_type, amount, category in expense_postings:
            await self._post(
                fund_update, transaction, fund_type, FundTransactionType.ADJUSTMENT, amount,
                f"Expense reversed due to archival: {category}",
                FundSourceType.EXPENSE_ARCHIVE, expense_id, deleted_by_id, refresh=expenses,
            )
        return transaction, fund_update, len(expenses)

    async def restore_transaction(
        self,
        transaction_id: uuid.UUID,
        restored_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Transaction, FundUpdateResult, int]:
        """Undo an archive, bringing back the expenses archived with it."""
        transaction = await self.get_transaction(transaction_id)
        if not transaction.is_deleted:
            raise NotArchivedException("Transaction", transaction_id)

        archived_at = transaction.deleted_at
        expenses = [
            e for e in await self._linked_expenses(transaction_id, deleted=True)
            if same_instant(e.deleted_at, archived_at)
        ]

        transaction.is_deleted = False
        transaction.deleted_at = None
        transaction.deleted_by_id = None
        transaction.updated_by_id = restored_by_id
        for expense in expenses:
            expense.is_deleted = False
            expense.deleted_at = None
            expense.deleted_by_id = None
        await self.db.commit()
        logger.info(f"Restored transaction {transaction_id} with {len(expenses)} expenses")

        fund_update = FundUpdateResult()
        expense_postings = self._expense_postings(expenses)
        received = recognized_amount(
            transaction.payment_status, transaction.total_profit, transaction.down_payment_amount
        )
        if received > 0:
            await self._post(
                fund_update, transaction, transaction.fund_type, FundTransactionType.ADJUSTMENT, received,
                f"Transaction restored: {transaction.name}",
                FundSourceType.TRANSACTION_RESTORE, transaction_id, restored_by_id, refresh=expenses,
            )
        for expense_id, fund_type, amount, category in expense_postings:
            await self._post(
                fund_update, transaction, fund_type, FundTransactionType.ADJUSTMENT, -amount,
                f"Expense restored: {category}",
                FundSourceType.EXPENSE_RESTORE, expense_id, restored_by_id, refresh=expenses,
            )
        return transaction, fund_update, len(expenses)

    async def _post(
        self,
        fund_update: FundUpdateResult,
        transaction: Transaction,
        fund_type: str,
        transaction_type: FundTransactionType,
        amount: Decimal,
        description: str,
        source_type: FundSourceType,
        source_id: uuid.UUID,
        created_by_id: Optional[uuid.UUID],
        refresh: Optional[List[Any]] = None,
    ) -> None:
        try:
            entry = await self.ledger.post(
                fund_type,
                transaction_type,
                amount,
                description,
                source_type,
                source_id=source_id,
                created_by_id=created_by_id,
            )
            fund_update.postings.append(entry)
        except Exception as e:
            await self.ledger.record_failure(
                fund_update, e, fund_type, amount, source_id,
                refresh=[transaction] + (refresh or []),
            )
