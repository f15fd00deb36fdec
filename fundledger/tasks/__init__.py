"""
Fund Ledger - Background Tasks Package

Celery background tasks.
"""
