"""
Fund Ledger - Fund Ledger Service

Append-only journal of fund balance mutations.

Every posting updates exactly one fund account and writes exactly one
FundTransaction carrying the resulting balance. A transfer is two postings
whose entries reference each other.

Ledger writes are committed separately from the business records that
trigger them. Callers commit their own record first and report ledger
failures through `FundUpdateResult` instead of rolling the record back.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.config import settings
from fundledger.models.fund import FundAccount, FundSourceType, FundTransaction, FundTransactionType
from fundledger.services.fund_account_service import FundAccountService
from fundledger.utils.error_handling import (
    AppException,
    InsufficientFundsException,
    InvalidAmountException,
    InvalidTransactionTypeException,
    PartialPostingException,
    SameFundTransferException,
    ValidationException,
)

logger = logging.getLogger(__name__)


@dataclass
class FundUpdateResult:
    """Outcome of the best-effort ledger side of a business operation."""

    success: bool = True
    error: Optional[str] = None
    postings: List[FundTransaction] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.success = False
        self.error = message if not self.error else f"{self.error}; {message}"

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class BalanceReport:
    """Reconciliation view of one fund."""

    fund_type: str
    stored_balance: Decimal
    ledger_balance: Decimal
    drift: Decimal
    last_balance_after: Optional[Decimal]
    entry_count: int
    unpaired_transfer_ids: List[uuid.UUID]
    last_reconciled_balance: Optional[Decimal] = None
    last_reconciled_at: Optional[datetime] = None


def coerce_transaction_type(value: Any) -> FundTransactionType:
    """Map input to a FundTransactionType or raise a validation error."""
    if isinstance(value, FundTransactionType):
        return value
    try:
        return FundTransactionType(str(value).strip().lower())
    except ValueError:
        raise InvalidTransactionTypeException(value, [t.value for t in FundTransactionType])


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountException(value, field_name)
    if not amount.is_finite():
        raise InvalidAmountException(value, field_name)
    return amount


def normalize_amount(transaction_type: Union[str, FundTransactionType], amount: Any) -> Decimal:
    """
    Apply the sign convention of a transaction type.

    expense and transfer_out are negative, income and transfer_in are
    positive, adjustment keeps the sign it was given.
    """
    tx_type = coerce_transaction_type(transaction_type)
    value = to_decimal(amount)
    if tx_type in (FundTransactionType.EXPENSE, FundTransactionType.TRANSFER_OUT):
        return -abs(value)
    if tx_type in (FundTransactionType.INCOME, FundTransactionType.TRANSFER_IN):
        return abs(value)
    return value


def error_message(error: Exception) -> str:
    if isinstance(error, AppException):
        return error.message
    return str(error) or type(error).__name__


class FundLedgerService:
    """Service for ledger postings, transfers and ledger reads."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = FundAccountService(db)

    # ===========================================
    # POSTINGS
    # ===========================================

    async def post(
        self,
        fund_type: str,
        transaction_type: Union[str, FundTransactionType],
        amount: Any,
        description: Optional[str],
        source_type: Union[str, FundSourceType],
        source_id: Optional[Any] = None,
        created_by_id: Optional[uuid.UUID] = None,
        reference_id: Optional[uuid.UUID] = None,
    ) -> FundTransaction:
        """
        Apply a signed amount to a fund and journal it.

        The amount is recorded exactly as given; callers are responsible
        for the sign convention. Commits on success, rolls back and
        re-raises on failure.
        """
        fund_type = self.accounts.resolve_fund_type(fund_type)
        tx_type = coerce_transaction_type(transaction_type)
        value = to_decimal(amount)
        source = source_type.value if isinstance(source_type, FundSourceType) else source_type

        try:
            await self.accounts.get_or_create(fund_type)
            balance_after = await self.accounts.apply_delta(fund_type, value)

            entry = FundTransaction(
                fund_type=fund_type,
                transaction_type=tx_type,
                amount=value,
                balance_after=balance_after,
                description=description,
                source_type=source,
                source_id=str(source_id) if source_id is not None else None,
                reference_id=reference_id,
                created_by_id=created_by_id,
            )
            self.db.add(entry)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(
            f"Posted {tx_type.value} {value} to {fund_type}, balance {balance_after}",
            extra={"fund_type": fund_type, "amount": str(value), "source_type": source, "source_id": entry.source_id},
        )
        return entry

    async def transfer(
        self,
        from_fund_type: str,
        to_fund_type: str,
        amount: Any,
        description: Optional[str] = None,
        created_by_id: Optional[uuid.UUID] = None,
        source_id: Optional[Any] = None,
        source_type: Union[str, FundSourceType] = FundSourceType.FUND_TRANSFER,
    ) -> Tuple[FundTransaction, FundTransaction]:
        """
        Move money between two funds as a linked transfer_out / transfer_in pair.

        If the second leg fails the first one stays committed and a
        PartialPostingException is raised.
        """
        from_fund_type = self.accounts.resolve_fund_type(from_fund_type)
        to_fund_type = self.accounts.resolve_fund_type(to_fund_type)
        if from_fund_type == to_fund_type:
            raise SameFundTransferException(from_fund_type)
        value = abs(to_decimal(amount))
        if value == 0:
            raise InvalidAmountException(amount, message="Transfer amount must be greater than zero")

        out_tx = await self.post(
            from_fund_type,
            FundTransactionType.TRANSFER_OUT,
            -value,
            description or f"Transfer to {to_fund_type}",
            source_type,
            source_id=source_id,
            created_by_id=created_by_id,
        )
        out_id = out_tx.id

        try:
            in_tx = await self.post(
                to_fund_type,
                FundTransactionType.TRANSFER_IN,
                value,
                description or f"Transfer from {from_fund_type}",
                source_type,
                source_id=source_id,
                created_by_id=created_by_id,
                reference_id=out_id,
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(
                f"Transfer {from_fund_type} -> {to_fund_type} left one-legged: {e}",
                extra={
                    "fund_type": to_fund_type,
                    "amount": str(value),
                    "source_id": str(source_id) if source_id is not None else None,
                    "committed_transaction_id": str(out_id),
                },
                exc_info=True,
            )
            raise PartialPostingException(
                message=f"Transfer out of {from_fund_type} was recorded but the transfer into {to_fund_type} failed",
                fund_type=to_fund_type,
                amount=value,
                source_id=source_id,
                committed_transaction_id=out_id,
                original_error=e,
            ) from e

        try:
            out_tx.reference_id = in_tx.id
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Transfer legs {out_id} and {in_tx.id} could not be linked: {e}",
                extra={"fund_type": from_fund_type, "amount": str(value), "source_id": str(source_id)},
                exc_info=True,
            )
            raise PartialPostingException(
                message="Both transfer legs were recorded but could not be linked",
                fund_type=from_fund_type,
                amount=value,
                source_id=source_id,
                committed_transaction_id=out_id,
                original_error=e,
            ) from e

        return out_tx, in_tx

    async def post_manual_entry(
        self,
        fund_type: str,
        transaction_type: Union[str, FundTransactionType],
        amount: Any,
        description: Optional[str] = None,
        created_by_id: Optional[uuid.UUID] = None,
        counterpart_fund_type: Optional[str] = None,
        source_type: Union[str, FundSourceType] = FundSourceType.MANUAL_ENTRY,
    ) -> FundTransaction:
        """
        Manual posting with the sign normalised from the transaction type.

        transfer_in / transfer_out entries are booked as a full transfer
        against `counterpart_fund_type` (defaults to the only other
        configured fund) and the leg on `fund_type` is returned.
        """
        fund_type = self.accounts.resolve_fund_type(fund_type)
        tx_type = coerce_transaction_type(transaction_type)
        value = normalize_amount(tx_type, amount)
        if value == 0:
            raise InvalidAmountException(amount, message="Amount must not be zero")

        if tx_type in (FundTransactionType.TRANSFER_IN, FundTransactionType.TRANSFER_OUT):
            counterpart = counterpart_fund_type or self._default_counterpart(fund_type)
            if tx_type == FundTransactionType.TRANSFER_OUT:
                out_tx, _ = await self.transfer(fund_type, counterpart, value, description, created_by_id)
                return out_tx
            _, in_tx = await self.transfer(counterpart, fund_type, value, description, created_by_id)
            return in_tx

        return await self.post(
            fund_type,
            tx_type,
            value,
            description or f"Manual {tx_type.value} transaction",
            source_type,
            created_by_id=created_by_id,
        )

    def _default_counterpart(self, fund_type: str) -> str:
        others = [f for f in settings.known_fund_types if f != fund_type]
        if len(others) != 1:
            raise ValidationException(
                "counterpart_fund_type is required for manual transfers",
                field="counterpart_fund_type",
            )
        return others[0]

    async def transfer_funds(
        self,
        from_fund_type: str,
        to_fund_type: str,
        amount: Any,
        description: Optional[str] = None,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[FundTransaction, FundTransaction]:
        """User initiated transfer. Rejected when the source fund cannot cover it."""
        value = to_decimal(amount)
        if value <= 0:
            raise InvalidAmountException(amount, message="Transfer amount must be greater than zero")
        from_fund_type = self.accounts.resolve_fund_type(from_fund_type)
        to_fund_type = self.accounts.resolve_fund_type(to_fund_type)
        if from_fund_type == to_fund_type:
            raise SameFundTransferException(from_fund_type)

        available = await self.accounts.get_balance(from_fund_type)
        if available < value:
            raise InsufficientFundsException(from_fund_type, value, available)

        return await self.transfer(
            from_fund_type,
            to_fund_type,
            value,
            description or f"Transfer from {from_fund_type} to {to_fund_type}",
            created_by_id,
        )

    async def reconcile(
        self,
        fund_type: str,
        actual_balance: Any,
        description: Optional[str] = None,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> Tuple[FundAccount, Optional[FundTransaction]]:
        """
        Bring a fund in line with a counted balance.

        Posts an adjustment for the difference (if any) and records the
        reconciled balance on the account.
        """
        actual = to_decimal(actual_balance, "actual_balance")
        account = await self.accounts.get_or_create(fund_type)
        difference = actual - Decimal(str(account.current_balance))

        entry = None
        if difference != 0:
            entry = await self.post(
                account.fund_type,
                FundTransactionType.ADJUSTMENT,
                difference,
                description or f"Balance reconciliation to {actual}",
                FundSourceType.MANUAL_ADJUSTMENT,
                created_by_id=created_by_id,
            )

        account.last_reconciled_balance = actual
        account.last_reconciled_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(account)
        logger.info(f"Reconciled {account.fund_type} to {actual} (difference {difference})")
        return account, entry

    async def record_failure(
        self,
        result: FundUpdateResult,
        error: Exception,
        fund_type: Optional[str],
        amount: Any,
        source_id: Optional[Any],
        refresh: Iterable[Any] = (),
    ) -> None:
        """
        Log a failed best-effort posting and fold it into `result`.

        The session is rolled back and the already committed business
        records in `refresh` are reloaded so callers can keep using them.
        """
        await self.db.rollback()
        for obj in refresh:
            await self.db.refresh(obj)
        logger.error(
            f"Ledger update failed for {fund_type}: {error}",
            extra={
                "fund_type": fund_type,
                "amount": str(amount),
                "source_id": str(source_id) if source_id is not None else None,
            },
            exc_info=error,
        )
        result.add_error(error_message(error))

    # ===========================================
    # READS
    # ===========================================

    async def list_transactions(
        self,
        fund_type: Optional[str] = None,
        transaction_type: Optional[str] = None,
        source_type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 100,
    ) -> Tuple[List[FundTransaction], int]:
        """Ledger history, newest first. `end_date` covers the whole day."""
        conditions = []
        if fund_type:
            conditions.append(FundTransaction.fund_type == self.accounts.resolve_fund_type(fund_type))
        if transaction_type:
            conditions.append(FundTransaction.transaction_type == coerce_transaction_type(transaction_type))
        if source_type:
            conditions.append(FundTransaction.source_type == source_type)
        if start_date:
            conditions.append(
                FundTransaction.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc)
            )
        if end_date:
            conditions.append(
                FundTransaction.created_at <= datetime.combine(end_date, time.max, tzinfo=timezone.utc)
            )

        limit = max(1, min(limit, settings.ledger_page_size_max))
        page = max(1, page)

        count_result = await self.db.execute(
            select(func.count(FundTransaction.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(FundTransaction)
            .where(*conditions)
            .order_by(FundTransaction.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total

    async def get_balance_report(self, fund_type: str) -> BalanceReport:
        """
        Compare the stored balance with the balance replayed from the ledger.

        Replay starts from the latest manual reconciliation snapshot when
        one exists, otherwise from zero.
        """
        account = await self.accounts.get_or_create(fund_type)
        fund_type = account.fund_type

        snapshot_result = await self.db.execute(
            select(FundTransaction)
            .where(
                FundTransaction.fund_type == fund_type,
                FundTransaction.source_type == FundSourceType.MANUAL_ADJUSTMENT.value,
            )
            .order_by(FundTransaction.created_at.desc())
            .limit(1)
        )
        snapshot = snapshot_result.scalar_one_or_none()

        sum_query = select(func.coalesce(func.sum(FundTransaction.amount), 0)).where(
            FundTransaction.fund_type == fund_type
        )
        if snapshot is not None:
            sum_query = sum_query.where(FundTransaction.created_at > snapshot.created_at)
            base = Decimal(str(snapshot.balance_after))
        else:
            base = Decimal("0")
        ledger_balance = base + Decimal(str((await self.db.execute(sum_query)).scalar() or 0))

        last_result = await self.db.execute(
            select(FundTransaction.balance_after)
            .where(FundTransaction.fund_type == fund_type)
            .order_by(FundTransaction.created_at.desc())
            .limit(1)
        )
        last_balance_after = last_result.scalar_one_or_none()

        count_result = await self.db.execute(
            select(func.count(FundTransaction.id)).where(FundTransaction.fund_type == fund_type)
        )

        unpaired_result = await self.db.execute(
            select(FundTransaction.id).where(
                FundTransaction.fund_type == fund_type,
                FundTransaction.transaction_type.in_(
                    [FundTransactionType.TRANSFER_IN, FundTransactionType.TRANSFER_OUT]
                ),
                FundTransaction.reference_id.is_(None),
            )
        )

        stored = Decimal(str(account.current_balance))
        await self.db.commit()
        return BalanceReport(
            fund_type=fund_type,
            stored_balance=stored,
            ledger_balance=ledger_balance,
            drift=stored - ledger_balance,
            last_balance_after=Decimal(str(last_balance_after)) if last_balance_after is not None else None,
            entry_count=count_result.scalar() or 0,
            unpaired_transfer_ids=list(unpaired_result.scalars().all()),
            last_reconciled_balance=account.last_reconciled_balance,
            last_reconciled_at=account.last_reconciled_at,
        )
