"""
Fund Ledger - Transaction Schemas

Pydantic schemas for project / sale transactions.
"""

import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fundledger.models.transaction import PaymentStatus
from fundledger.schemas.fund import FundUpdateResponse


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class TransactionCreateRequest(BaseModel):
    """Schema for creating a transaction."""
    name: str = Field(..., min_length=1, max_length=255)
    date: dt.date
    total_profit: float = Field(..., ge=0, description="Full price paid by the client")
    project_value: Optional[float] = Field(None, ge=0)
    down_payment_amount: float = Field(0, ge=0)
    payment_status: PaymentStatus = PaymentStatus.BELUM_BAYAR
    fund_type: Optional[str] = Field(None, max_length=50, description="Defaults to petty_cash")
    description: Optional[str] = Field(None, max_length=1000)


class TransactionUpdateRequest(BaseModel):
    """Schema for updating a transaction."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    date: Optional[dt.date] = None
    total_profit: Optional[float] = Field(None, ge=0)
    project_value: Optional[float] = Field(None, ge=0)
    down_payment_amount: Optional[float] = Field(None, ge=0)
    payment_status: Optional[PaymentStatus] = None
    fund_type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class TransactionResponse(BaseModel):
    """Schema for transaction response."""
    id: UUID
    name: str
    description: Optional[str] = None
    date: dt.date
    project_value: float
    total_profit: float
    down_payment_amount: float
    remaining_amount: float
    capital_cost: float
    payment_status: PaymentStatus
    fund_type: str

    is_deleted: bool
    deleted_at: Optional[dt.datetime] = None

    created_by_id: Optional[UUID] = None
    updated_by_id: Optional[UUID] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class TransactionMutationResponse(BaseModel):
    """Transaction after a write, with the ledger outcome."""
    message: str
    transaction: TransactionResponse
    fund_updates: FundUpdateResponse


class TransactionArchiveResponse(TransactionMutationResponse):
    """Archive / restore result."""
    affected_expenses: int
