"""
Fund Ledger - Transaction Service Tests

Transaction lifecycle, payment recognition and cascading archive.
"""

from datetime import date
from decimal import Decimal

import pytest

from fundledger.models.transaction import PaymentStatus
from fundledger.services.expense_service import ExpenseService
from fundledger.services.fund_account_service import FundAccountService
from fundledger.services.transaction_service import TransactionService, same_instant
from fundledger.utils.error_handling import (
    AlreadyArchivedException,
    NotArchivedException,
    ValidationException,
)


async def _balance(db, fund_type="petty_cash") -> Decimal:
    return await FundAccountService(db).get_balance(fund_type)


class TestCreateTransaction:
    """Creating transactions."""

    @pytest.mark.asyncio
    async def test_unpaid_posts_nothing(self, db_session):
        transaction, fund_update = await TransactionService(db_session).create_transaction(
            name="Mural", transaction_date=date(2024, 1, 1), total_profit=4_000_000
        )

        assert fund_update.success
        assert fund_update.postings == []
        assert transaction.remaining_amount == Decimal("4000000")
        assert transaction.project_value == Decimal("4000000")
        assert await _balance(db_session) == Decimal("0")

    @pytest.mark.asyncio
    async def test_down_payment_posted_as_income(self, db_session):
        transaction, fund_update = await TransactionService(db_session).create_transaction(
            name="Mural",
            transaction_date=date(2024, 1, 1),
            total_profit=4_000_000,
            payment_status=PaymentStatus.DP,
            down_payment_amount=1_000_000,
            fund_type="profit_bank",
        )

        assert fund_update.postings[0].source_type == "transaction"
        assert transaction.remaining_amount == Decimal("3000000")
        assert await _balance(db_session, "profit_bank") == Decimal("1000000")

    @pytest.mark.asyncio
    async def test_paid_in_full_posted(self, db_session):
        await TransactionService(db_session).create_transaction(
            name="Mural", transaction_date=date(2024, 1, 1), total_profit=4_000_000, payment_status="Lunas"
        )

        assert await _balance(db_session) == Decimal("4000000")

    @pytest.mark.asyncio
    async def test_down_payment_above_total_rejected(self, db_session):
        with pytest.raises(ValidationException):
            await TransactionService(db_session).create_transaction(
                name="Mural",
                transaction_date=date(2024, 1, 1),
                total_profit=1_000_000,
                payment_status=PaymentStatus.DP,
                down_payment_amount=2_000_000,
            )


class TestUpdateTransaction:
    """Editing transactions."""

    @pytest.mark.asyncio
    async def test_status_walk(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=10_000_000
        )

        await service.update_transaction(
            transaction.id, {"payment_status": PaymentStatus.DP, "down_payment_amount": 3_000_000}
        )
        assert await _balance(db_session) == Decimal("3000000")

        await service.update_transaction(transaction.id, {"down_payment_amount": 4_000_000})
        assert await _balance(db_session) == Decimal("4000000")

        await service.update_transaction(transaction.id, {"payment_status": PaymentStatus.LUNAS})
        assert await _balance(db_session) == Decimal("10000000")

        await service.update_transaction(transaction.id, {"payment_status": PaymentStatus.BELUM_BAYAR})
        assert await _balance(db_session) == Decimal("0")

    @pytest.mark.asyncio
    async def test_total_edit_with_lunas_to_dp(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=10_000_000, payment_status="Lunas"
        )
        assert await _balance(db_session) == Decimal("10000000")

        _, fund_update = await service.update_transaction(
            transaction.id,
            {
                "total_profit": 12_000_000,
                "payment_status": PaymentStatus.DP,
                "down_payment_amount": 3_000_000,
            },
        )

        assert fund_update.success
        assert fund_update.postings[0].amount == Decimal("-7000000")
        assert await _balance(db_session) == Decimal("3000000")

    @pytest.mark.asyncio
    async def test_total_edit_while_lunas_posts_difference(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=10_000_000, payment_status="Lunas"
        )

        _, fund_update = await service.update_transaction(transaction.id, {"total_profit": 12_000_000})

        assert [p.amount for p in fund_update.postings] == [Decimal("2000000")]
        assert await _balance(db_session) == Decimal("12000000")

        await service.update_transaction(
            transaction.id, {"total_profit": 9_000_000, "payment_status": PaymentStatus.BELUM_BAYAR}
        )
        assert await _balance(db_session) == Decimal("0")

    @pytest.mark.asyncio
    async def test_archive_after_total_edit_returns_to_zero(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=10_000_000, payment_status="Lunas"
        )
        await service.update_transaction(transaction.id, {"total_profit": 12_000_000})

        await service.archive_transaction(transaction.id)

        assert await _balance(db_session) == Decimal("0")

    @pytest.mark.asyncio
    async def test_lunas_to_full_down_payment_posts_nothing(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=5_000_000, payment_status="Lunas"
        )

        _, fund_update = await service.update_transaction(
            transaction.id, {"payment_status": PaymentStatus.DP, "down_payment_amount": 5_000_000}
        )

        assert fund_update.postings == []
        assert await _balance(db_session) == Decimal("5000000")

    @pytest.mark.asyncio
    async def test_down_payment_above_total_rejected_on_update(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=5_000_000, payment_status="Lunas"
        )

        with pytest.raises(ValidationException):
            await service.update_transaction(
                transaction.id, {"payment_status": PaymentStatus.DP, "down_payment_amount": 6_000_000}
            )

    @pytest.mark.asyncio
    async def test_name_change_is_noop(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App", transaction_date=date(2024, 1, 1), total_profit=10_000_000, payment_status="Lunas"
        )

        transaction, fund_update = await service.update_transaction(transaction.id, {"name": "Mobile app"})

        assert transaction.name == "Mobile app"
        assert fund_update.postings == []

    @pytest.mark.asyncio
    async def test_fund_and_status_change(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="App",
            transaction_date=date(2024, 1, 1),
            total_profit=10_000_000,
            payment_status=PaymentStatus.DP,
            down_payment_amount=2_000_000,
        )

        _, fund_update = await service.update_transaction(
            transaction.id, {"payment_status": PaymentStatus.LUNAS, "fund_type": "profit_bank"}
        )

        assert fund_update.success
        assert await _balance(db_session, "petty_cash") == Decimal("0")
        assert await _balance(db_session, "profit_bank") == Decimal("10000000")


class TestArchiveTransaction:
    """Cascading archive and restore."""

    @pytest.mark.asyncio
    async def test_archive_reverses_income_and_expenses(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="Wedding", transaction_date=date(2024, 1, 1), total_profit=8_000_000, payment_status="Lunas"
        )
        expenses = ExpenseService(db_session)
        await expenses.create_expense(
            category="Flowers", amount=1_000_000, expense_date=date(2024, 1, 2), transaction_id=transaction.id
        )
        await expenses.create_expense(
            category="Transport", amount=500_000, expense_date=date(2024, 1, 2),
            transaction_id=transaction.id, fund_type="profit_bank",
        )
        assert await _balance(db_session, "petty_cash") == Decimal("7000000")

        transaction, fund_update, count = await service.archive_transaction(transaction.id)

        assert count == 2
        assert fund_update.success
        assert transaction.is_deleted
        assert await _balance(db_session, "petty_cash") == Decimal("0")
        assert await _balance(db_session, "profit_bank") == Decimal("0")
        assert await expenses.list_expenses(transaction_id=transaction.id) == []

        with pytest.raises(AlreadyArchivedException):
            await service.archive_transaction(transaction.id)

        transaction, fund_update, count = await service.restore_transaction(transaction.id)

        assert count == 2
        assert not transaction.is_deleted
        assert await _balance(db_session, "petty_cash") == Decimal("7000000")
        assert await _balance(db_session, "profit_bank") == Decimal("-500000")

        with pytest.raises(NotArchivedException):
            await service.restore_transaction(transaction.id)

    @pytest.mark.asyncio
    async def test_restore_leaves_separately_archived_expenses(self, db_session):
        service = TransactionService(db_session)
        transaction, _ = await service.create_transaction(
            name="Shoot", transaction_date=date(2024, 1, 1), total_profit=1_000_000
        )
        expenses = ExpenseService(db_session)
        earlier, _ = await expenses.create_expense(
            category="Props", amount=100_000, expense_date=date(2024, 1, 2), transaction_id=transaction.id
        )
        await expenses.archive_expense(earlier.id)
        await expenses.create_expense(
            category="Crew", amount=200_000, expense_date=date(2024, 1, 2), transaction_id=transaction.id
        )

        _, _, archived = await service.archive_transaction(transaction.id)
        _, _, restored = await service.restore_transaction(transaction.id)

        assert archived == 1
        assert restored == 1
        remaining = await expenses.list_expenses(deleted=True, transaction_id=transaction.id)
        assert [e.category for e in remaining] == ["Props"]


def test_same_instant_ignores_missing_timezone():
    from datetime import datetime, timezone

    aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert same_instant(aware, aware.replace(tzinfo=None))
    assert not same_instant(aware, None)
