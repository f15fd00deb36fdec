"""
Fund Ledger - Transaction Model

Project / sale records. The cash already recognised for a transaction is
implied by its payment status: down payment while DP, total profit when
Lunas, nothing while Belum Bayar.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, Numeric, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from fundledger.models.base import BaseModel, AuditMixin, SoftDeleteMixin


class PaymentStatus(str, Enum):
    """Payment lifecycle of a transaction."""
    BELUM_BAYAR = "Belum Bayar"
    DP = "DP"
    LUNAS = "Lunas"


class Transaction(BaseModel, AuditMixin, SoftDeleteMixin):
    """Project or sale whose receipts are posted to a fund."""

    __tablename__ = "transactions"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)

    # Amounts
    project_value: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    total_profit: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
        comment="Full price the client pays",
    )
    down_payment_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    capital_cost: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
        comment="Sum of active linked expenses",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        default=PaymentStatus.BELUM_BAYAR,
        nullable=False,
        index=True,
    )
    fund_type: Mapped[str] = mapped_column(
        String(50),
        default="petty_cash",
        nullable=False,
        comment="Fund receiving the payments",
    )
