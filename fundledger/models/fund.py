"""
Fund Ledger - Fund Models

FundAccount holds one running balance per fund type.
FundTransaction is the append-only journal of every balance mutation.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Numeric, String, Text, Uuid, Enum as SQLEnum, func
from sqlalchemy.orm import Mapped, mapped_column

from fundledger.models.base import BaseModel, utc_now


class FundType(str, Enum):
    """Fund accounts known out of the box. Storage keeps a free string key."""
    PETTY_CASH = "petty_cash"
    PROFIT_BANK = "profit_bank"


class FundTransactionType(str, Enum):
    """Kind of ledger entry."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"


class FundSourceType(str, Enum):
    """Provenance of a ledger entry."""
    TRANSACTION = "transaction"
    TRANSACTION_UPDATE = "transaction_update"
    TRANSACTION_ARCHIVE = "transaction_archive"
    TRANSACTION_RESTORE = "transaction_restore"
    EXPENSE = "expense"
    EXPENSE_UPDATE = "expense_update"
    EXPENSE_ARCHIVE = "expense_archive"
    EXPENSE_RESTORE = "expense_restore"
    RECURRING_EXPENSE = "recurring_expense"
    FUND_TRANSFER = "fund_transfer"
    MANUAL_ENTRY = "manual_entry"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class FundAccount(BaseModel):
    """
    Running balance of a single fund.

    Created lazily with a zero balance on first reference and never deleted.
    The balance may go negative.
    """

    __tablename__ = "fund_accounts"

    fund_type: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    last_reconciled_balance: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=True,
        comment="Balance confirmed by the last manual reconciliation",
    )
    last_reconciled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )


class FundTransaction(BaseModel):
    """
    Immutable ledger entry.

    Amounts are signed: expense and transfer_out negative, income and
    transfer_in positive, adjustment either way. Only reference_id is ever
    written after insert, to pair the two legs of a transfer.
    """

    __tablename__ = "fund_transactions"

    fund_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    transaction_type: Mapped[FundTransactionType] = mapped_column(
        SQLEnum(FundTransactionType),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Fund balance right after this entry was applied",
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    source_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Id of the originating business record",
    )
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Paired ledger entry of a transfer",
    )
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)

    # Indexed for newest-first history queries
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
