"""
Fund Ledger - Recurring Payment Tests

Materialising due recurring expense templates.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from fundledger.models.expense import Expense
from fundledger.models.fund import FundTransaction
from fundledger.models.inventory import InventoryItem, InventoryPaymentStatus, InventoryType
from fundledger.services import recurring_payment_service
from fundledger.services.expense_service import ExpenseService
from fundledger.services.fund_account_service import FundAccountService
from fundledger.services.fund_ledger_service import FundLedgerService
from fundledger.services.recurring_payment_service import RecurringPaymentService
from fundledger.services.transaction_service import TransactionService


async def _template(db, amount=150000, start=date(2024, 1, 15), frequency="MONTHLY", **kwargs):
    expense, _ = await ExpenseService(db).create_expense(
        category="Hosting",
        amount=amount,
        expense_date=start,
        description=kwargs.pop("description", "VPS"),
        is_recurring_expense=True,
        recurring_frequency=frequency,
        **kwargs,
    )
    return expense


async def _subscription(db, auto_renew=True) -> InventoryItem:
    item = InventoryItem(
        name="Design tool",
        type=InventoryType.SUBSCRIPTION,
        cost=Decimal("150000"),
        is_recurring=True,
        recurring_type="MONTHLY",
        auto_renew=auto_renew,
    )
    db.add(item)
    await db.commit()
    return item


class TestRecurringPaymentRun:
    """Recurring payment batch processing."""

    @pytest.mark.asyncio
    async def test_template_creates_no_posting(self, db_session):
        template = await _template(db_session)

        assert template.next_billing_date == date(2024, 1, 15)
        entries = (await db_session.execute(select(FundTransaction))).scalars().all()
        assert entries == []

    @pytest.mark.asyncio
    async def test_due_template_is_materialised(self, db_session):
        template = await _template(db_session)
        template_id = template.id

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        assert result.processed == 1
        assert result.failed == 0
        assert result.cutoff == date(2024, 1, 16)
        assert result.processing_date == date.today()
        assert result.message == "Processed 1 recurring payments, 0 failed, 0 skipped"

        item = result.results[0]
        assert item.expense_id == template_id
        assert item.next_billing_date == date(2024, 2, 15)
        assert item.fund_update.success

        today = date.today()
        new_expense = await db_session.get(Expense, item.new_expense_id)
        assert new_expense.date == today
        assert new_expense.amount == Decimal("150000")
        assert not new_expense.is_recurring_expense
        assert new_expense.description == f"VPS (recurring payment {today.isoformat()})"

        template = await db_session.get(Expense, template_id)
        assert template.next_billing_date == date(2024, 2, 15)
        assert template.last_processed_date == today

        assert await FundAccountService(db_session).get_balance("petty_cash") == Decimal("-150000")
        entry = (await db_session.execute(select(FundTransaction))).scalar_one()
        assert entry.source_type == "recurring_expense"
        assert entry.source_id == str(item.new_expense_id)

    @pytest.mark.asyncio
    async def test_past_cutoff_stamps_the_run_day(self, db_session):
        item = await _subscription(db_session)
        item_id = item.id
        template = await _template(db_session, start=date(2020, 1, 15), inventory_id=item_id)
        template_id = template.id

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2020, 1, 20))

        today = date.today()
        run_item = result.results[0]
        assert run_item.status == "success"
        assert run_item.next_billing_date == date(2020, 2, 15)

        new_expense = await db_session.get(Expense, run_item.new_expense_id)
        assert new_expense.date == today
        assert new_expense.description.endswith(f"(recurring payment {today.isoformat()})")

        template = await db_session.get(Expense, template_id)
        assert template.last_processed_date == today
        assert template.next_billing_date == date(2020, 2, 15)

        item = await db_session.get(InventoryItem, item_id)
        assert item.last_billing_date == today
        assert item.next_billing_date == date(2020, 2, 15)

    @pytest.mark.asyncio
    async def test_second_run_same_day_is_noop(self, db_session):
        await _template(db_session)
        service = RecurringPaymentService(db_session)

        await service.run(due_before_or_on=date(2024, 1, 16))
        second = await service.run(due_before_or_on=date(2024, 1, 16))

        assert second.results == []
        assert second.message == "No recurring payments to process"
        expenses = (await db_session.execute(
            select(Expense).where(Expense.is_recurring_expense.is_(False))
        )).scalars().all()
        assert len(expenses) == 1

    @pytest.mark.asyncio
    async def test_not_yet_due_is_ignored(self, db_session):
        await _template(db_session, start=date(2024, 1, 20))

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 19))

        assert result.results == []

    @pytest.mark.asyncio
    async def test_cancelled_template_is_ignored(self, db_session):
        template = await _template(db_session)
        await ExpenseService(db_session).cancel_recurring(template.id)

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        assert result.results == []

    @pytest.mark.asyncio
    async def test_expense_ids_filter(self, db_session):
        first = await _template(db_session)
        await _template(db_session, description="Backup")

        result = await RecurringPaymentService(db_session).run(
            due_before_or_on=date(2024, 1, 16), expense_ids=[first.id]
        )

        assert [r.expense_id for r in result.results] == [first.id]

    @pytest.mark.asyncio
    async def test_quarterly_template(self, db_session):
        await _template(db_session, frequency="QUARTERLY")

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 15))

        assert result.results[0].next_billing_date == date(2024, 4, 15)

    @pytest.mark.asyncio
    async def test_subscription_without_auto_renew_is_skipped(self, db_session):
        item = await _subscription(db_session, auto_renew=False)
        template = await _template(db_session, inventory_id=item.id)

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        assert result.skipped == 1
        assert result.processed == 0
        assert result.results[0].status == "skipped"
        template = await db_session.get(Expense, template.id)
        assert template.next_billing_date == date(2024, 1, 15)

    @pytest.mark.asyncio
    async def test_subscription_is_synchronised(self, db_session):
        item = await _subscription(db_session)
        item_id = item.id
        await _template(db_session, inventory_id=item_id)

        await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        item = await db_session.get(InventoryItem, item_id)
        assert item.payment_status == InventoryPaymentStatus.LUNAS
        assert item.last_billing_date == date.today()
        assert item.next_billing_date == date(2024, 2, 15)

    @pytest.mark.asyncio
    async def test_linked_transaction_capital_cost(self, db_session):
        transaction, _ = await TransactionService(db_session).create_transaction(
            name="Client retainer",
            transaction_date=date(2024, 1, 1),
            total_profit=1_000_000,
        )
        await _template(db_session, transaction_id=transaction.id)
        assert transaction.capital_cost == Decimal("0")

        await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        transaction = await TransactionService(db_session).get_transaction(transaction.id)
        assert Decimal(str(transaction.capital_cost)) == Decimal("150000")

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self, db_session, monkeypatch):
        broken = await _template(db_session, start=date(2024, 1, 10), description="Broken")
        healthy = await _template(db_session, start=date(2024, 1, 12), description="Healthy")
        broken_id, healthy_id = broken.id, healthy.id
        original = recurring_payment_service.next_billing_date

        def next_date_failing_for_broken(current, frequency=None):
            if current == date(2024, 1, 10):
                raise ValueError("corrupt billing date")
            return original(current, frequency)

        monkeypatch.setattr(recurring_payment_service, "next_billing_date", next_date_failing_for_broken)

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        by_id = {r.expense_id: r for r in result.results}
        assert by_id[broken_id].status == "error"
        assert by_id[broken_id].error_message == "corrupt billing date"
        assert by_id[healthy_id].status == "success"
        assert result.processed == 1
        assert result.failed == 1
        assert result.results[0].to_dict()["status"] == "error"

    @pytest.mark.asyncio
    async def test_ledger_failure_keeps_new_expense(self, db_session, monkeypatch):
        await _template(db_session)

        async def failing_post(self, *args, **kwargs):
            raise OperationalError("UPDATE fund_accounts", {}, Exception("connection reset"))

        monkeypatch.setattr(FundLedgerService, "post", failing_post)

        result = await RecurringPaymentService(db_session).run(due_before_or_on=date(2024, 1, 16))

        item = result.results[0]
        assert item.status == "success"
        assert not item.fund_update.success
        assert "connection reset" in item.fund_update.error
        assert await db_session.get(Expense, item.new_expense_id) is not None
