"""
Fund Ledger - API Tests

Integration tests for the HTTP endpoints.
"""

from datetime import date

import pytest
from httpx import AsyncClient


class TestHealthEndpoints:
    """Test health and info endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_api_info(self, client: AsyncClient):
        response = await client.get("/api")
        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestAuthentication:
    """Protected endpoints."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/funds/balances")
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/funds/balances",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cron_secret_not_accepted_elsewhere(self, client: AsyncClient, cron_headers):
        response = await client.get("/api/v1/funds/balances", headers=cron_headers)
        assert response.status_code == 401


class TestFundEndpoints:
    """Fund balances, postings and transfers."""

    @pytest.mark.asyncio
    async def test_initialize_funds(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/funds/initialize", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["created"] is True
        assert [b["fund_type"] for b in data["balances"]] == ["petty_cash", "profit_bank"]

        response = await client.post("/api/v1/funds/initialize", headers=auth_headers)
        assert response.json()["created"] is False

    @pytest.mark.asyncio
    async def test_manual_expense_entry(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/funds/transactions",
            json={"fund_type": "petty_cash", "transaction_type": "expense", "amount": 150000},
            headers=auth_headers,
        )
        assert response.status_code == 201
        entry = response.json()
        assert entry["amount"] == -150000
        assert entry["balance_after"] == -150000
        assert entry["transaction_type"] == "expense"

        response = await client.get("/api/v1/funds/balances", headers=auth_headers)
        data = response.json()
        assert data["total_balance"] == -150000
        assert data["balances"][0]["current_balance"] == -150000

    @pytest.mark.asyncio
    async def test_manual_entry_rejects_unknown_type(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/funds/transactions",
            json={"fund_type": "petty_cash", "transaction_type": "gift", "amount": 10},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_TRANSACTION_TYPE"

    @pytest.mark.asyncio
    async def test_manual_entry_rejects_malformed_fund(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/funds/transactions",
            json={"fund_type": "Cash Box", "transaction_type": "income", "amount": 10},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "FUND_ACCOUNT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_transfer(self, client: AsyncClient, auth_headers):
        for fund_type, amount in (("petty_cash", 1_000_000), ("profit_bank", 2_000_000)):
            await client.post(
                "/api/v1/funds/transactions",
                json={"fund_type": fund_type, "transaction_type": "income", "amount": amount},
                headers=auth_headers,
            )

        response = await client.post(
            "/api/v1/funds/transfer",
            json={"from_fund_type": "petty_cash", "to_fund_type": "profit_bank", "amount": 300000},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["transfer_out"]["reference_id"] == data["transfer_in"]["id"]
        assert data["transfer_in"]["reference_id"] == data["transfer_out"]["id"]

        balances = (await client.get("/api/v1/funds/balances", headers=auth_headers)).json()["balances"]
        by_fund = {b["fund_type"]: b["current_balance"] for b in balances}
        assert by_fund == {"petty_cash": 700000, "profit_bank": 2300000}

    @pytest.mark.asyncio
    async def test_transfer_insufficient_funds(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/funds/transfer",
            json={"from_fund_type": "petty_cash", "to_fund_type": "profit_bank", "amount": 1},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INSUFFICIENT_FUNDS"

    @pytest.mark.asyncio
    async def test_transfer_same_fund(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/funds/transfer",
            json={"from_fund_type": "petty_cash", "to_fund_type": "petty_cash", "amount": 1},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "SAME_FUND_TRANSFER"

    @pytest.mark.asyncio
    async def test_ledger_history_pagination(self, client: AsyncClient, auth_headers):
        for i in range(3):
            await client.post(
                "/api/v1/funds/transactions",
                json={"fund_type": "petty_cash", "transaction_type": "income", "amount": 100 + i},
                headers=auth_headers,
            )

        response = await client.get(
            "/api/v1/funds/transactions",
            params={"fund_type": "petty_cash", "limit": 2, "page": 1},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["transactions"]) == 2
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["total_pages"] == 2
        assert data["pagination"]["has_next_page"] is True
        assert data["pagination"]["has_prev_page"] is False

    @pytest.mark.asyncio
    async def test_reconcile_and_report(self, client: AsyncClient, auth_headers):
        await client.post(
            "/api/v1/funds/transactions",
            json={"fund_type": "petty_cash", "transaction_type": "income", "amount": 1000},
            headers=auth_headers,
        )

        response = await client.post(
            "/api/v1/funds/reconcile",
            json={"fund_type": "petty_cash", "actual_balance": 900},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["adjustment"]["amount"] == -100
        assert data["account"]["current_balance"] == 900
        assert data["account"]["last_reconciled_balance"] == 900

        response = await client.get("/api/v1/funds/petty_cash/report", headers=auth_headers)
        assert response.status_code == 200
        report = response.json()
        assert report["is_consistent"] is True
        assert report["stored_balance"] == 900
        assert report["entry_count"] == 2


class TestExpenseEndpoints:
    """Expense endpoints."""

    @pytest.mark.asyncio
    async def test_expense_lifecycle(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/expenses",
            json={"category": "Office", "amount": 50000, "date": "2024-01-05"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["fund_updates"] == {"success": True, "error": None}
        expense_id = data["expense"]["id"]

        response = await client.patch(
            f"/api/v1/expenses/{expense_id}", json={"amount": 60000}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["expense"]["amount"] == 60000

        response = await client.post(f"/api/v1/expenses/{expense_id}/archive", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["expense"]["is_deleted"] is True

        response = await client.post(f"/api/v1/expenses/{expense_id}/archive", headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "ALREADY_ARCHIVED"

        balances = (await client.get("/api/v1/funds/balances", headers=auth_headers)).json()
        assert balances["total_balance"] == 0

    @pytest.mark.asyncio
    async def test_missing_expense(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/expenses/00000000-0000-0000-0000-000000000000/archive", headers=auth_headers
        )
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "EXPENSE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_recurring_template_endpoints(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/expenses",
            json={
                "category": "Hosting",
                "amount": 150000,
                "date": "2024-01-15",
                "is_recurring_expense": True,
                "recurring_frequency": "MONTHLY",
            },
            headers=auth_headers,
        )
        template_id = response.json()["expense"]["id"]

        response = await client.get("/api/v1/expenses/recurring", headers=auth_headers)
        assert response.json()["total"] == 1

        response = await client.patch(
            f"/api/v1/expenses/recurring/{template_id}",
            json={"amount": 175000},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["amount"] == 175000

        response = await client.delete(f"/api/v1/expenses/recurring/{template_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False


class TestTransactionEndpoints:
    """Transaction endpoints."""

    @pytest.mark.asyncio
    async def test_transaction_lifecycle(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/transactions",
            json={
                "name": "Website",
                "date": "2024-01-10",
                "total_profit": 10000000,
                "payment_status": "DP",
                "down_payment_amount": 3000000,
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        transaction_id = response.json()["transaction"]["id"]

        response = await client.patch(
            f"/api/v1/transactions/{transaction_id}",
            json={"payment_status": "Lunas"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["transaction"]["payment_status"] == "Lunas"
        assert data["transaction"]["remaining_amount"] == 0
        assert data["fund_updates"]["success"] is True

        balances = (await client.get("/api/v1/funds/balances", headers=auth_headers)).json()
        assert balances["total_balance"] == 10000000

        response = await client.post(f"/api/v1/transactions/{transaction_id}/archive", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["affected_expenses"] == 0
        assert data["message"] == "Transaction archived successfully along with 0 related expenses"

        response = await client.post(f"/api/v1/transactions/{transaction_id}/restore", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["transaction"]["is_deleted"] is False

    @pytest.mark.asyncio
    async def test_invalid_payment_status(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/transactions",
            json={"name": "Website", "date": "2024-01-10", "total_profit": 100, "payment_status": "Paid"},
            headers=auth_headers,
        )
        assert response.status_code == 422


class TestRecurringRunEndpoint:
    """Recurring payment trigger."""

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.post("/api/v1/recurring-payments/run")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret_rejected(self, client: AsyncClient, cron_headers):
        response = await client.post(
            "/api/v1/recurring-payments/run",
            headers={"Authorization": "Bearer wrong-secret"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cron_run(self, client: AsyncClient, auth_headers, cron_headers):
        await client.post(
            "/api/v1/expenses",
            json={
                "category": "Hosting",
                "amount": 150000,
                "date": "2024-01-15",
                "is_recurring_expense": True,
            },
            headers=auth_headers,
        )

        response = await client.post(
            "/api/v1/recurring-payments/run",
            json={"due_before_or_on": "2024-01-16"},
            headers=cron_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 1
        assert data["due_before_or_on"] == "2024-01-16"
        assert data["processing_date"] == date.today().isoformat()
        assert data["results"][0]["next_billing_date"] == "2024-02-15"
        assert data["results"][0]["fund_update"]["success"] is True

        response = await client.post(
            "/api/v1/recurring-payments/run",
            json={"due_before_or_on": "2024-01-16"},
            headers=cron_headers,
        )
        assert response.json()["message"] == "No recurring payments to process"

    @pytest.mark.asyncio
    async def test_user_run_without_body(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/recurring-payments/run", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["processed"] == 0
