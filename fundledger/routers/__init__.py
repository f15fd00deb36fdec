"""
Fund Ledger - Routers Package

FastAPI route handlers.

Routers:
- funds: Fund balances, ledger history, manual postings, transfers
- expenses: Expenses and recurring templates
- transactions: Project / sale transactions
- recurring: Recurring payment runs
"""
