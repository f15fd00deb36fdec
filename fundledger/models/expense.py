"""
Fund Ledger - Expense Model

Expenses drawn from a fund. A row flagged is_recurring_expense is a
template; every billing cycle spawns a separate non-recurring expense.
"""

import uuid
import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fundledger.models.base import BaseModel, AuditMixin, SoftDeleteMixin


class Expense(BaseModel, AuditMixin, SoftDeleteMixin):
    """Expense paid out of a fund."""

    __tablename__ = "expenses"

    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    payment_proof_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    fund_type: Mapped[str] = mapped_column(
        String(50),
        default="petty_cash",
        nullable=False,
    )

    # Links
    transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    inventory_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Recurring template fields
    is_recurring_expense: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_frequency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    next_billing_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True, index=True)
    last_processed_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
