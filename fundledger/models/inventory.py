"""
Fund Ledger - Inventory Model

Inventory items. SUBSCRIPTION items mirror the billing fields of the
recurring expenses that pay for them.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, Numeric, String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from fundledger.models.base import BaseModel, AuditMixin, SoftDeleteMixin


class InventoryType(str, Enum):
    """Inventory item type."""
    SUBSCRIPTION = "SUBSCRIPTION"
    EQUIPMENT = "EQUIPMENT"
    OTHER = "OTHER"


class InventoryPaymentStatus(str, Enum):
    """Payment progress of an inventory item."""
    BELUM_BAYAR = "BELUM_BAYAR"
    DP = "DP"
    LUNAS = "LUNAS"


class InventoryItem(BaseModel, AuditMixin, SoftDeleteMixin):
    """Inventory item or subscription."""

    __tablename__ = "inventory_items"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[InventoryType] = mapped_column(
        SQLEnum(InventoryType),
        default=InventoryType.OTHER,
        nullable=False,
    )
    cost: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )

    # Payment progress
    payment_status: Mapped[InventoryPaymentStatus] = mapped_column(
        SQLEnum(InventoryPaymentStatus),
        default=InventoryPaymentStatus.BELUM_BAYAR,
        nullable=False,
    )
    down_payment_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=True,
    )
    remaining_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=True,
    )

    # Billing
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="MONTHLY, QUARTERLY or ANNUALLY",
    )
    next_billing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_billing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def is_subscription(self) -> bool:
        return self.type == InventoryType.SUBSCRIPTION
