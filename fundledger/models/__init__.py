"""
Fund Ledger - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from fundledger.models.base import BaseModel, TimestampMixin, AuditMixin, SoftDeleteMixin
from fundledger.models.user import User, UserRole
from fundledger.models.fund import (
    FundAccount,
    FundTransaction,
    FundType,
    FundTransactionType,
    FundSourceType,
)
from fundledger.models.transaction import Transaction, PaymentStatus
from fundledger.models.inventory import InventoryItem, InventoryType, InventoryPaymentStatus
from fundledger.models.expense import Expense

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    "SoftDeleteMixin",
    # Users
    "User",
    "UserRole",
    # Funds
    "FundAccount",
    "FundTransaction",
    "FundType",
    "FundTransactionType",
    "FundSourceType",
    # Business records
    "Transaction",
    "PaymentStatus",
    "InventoryItem",
    "InventoryType",
    "InventoryPaymentStatus",
    "Expense",
]
