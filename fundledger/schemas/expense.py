"""
Fund Ledger - Expense Schemas

Pydantic schemas for expenses and recurring expense templates.
"""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fundledger.schemas.fund import FundUpdateResponse


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class ExpenseCreateRequest(BaseModel):
    """Schema for creating an expense or a recurring template."""
    category: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    date: dt.date
    description: Optional[str] = Field(None, max_length=1000)
    payment_proof_link: Optional[str] = Field(None, max_length=500)
    fund_type: Optional[str] = Field(None, max_length=50, description="Defaults to petty_cash")
    transaction_id: Optional[UUID] = None
    inventory_id: Optional[UUID] = None

    # Recurring
    is_recurring_expense: bool = False
    recurring_frequency: Optional[str] = Field(None, description="MONTHLY, QUARTERLY or ANNUALLY")
    next_billing_date: Optional[dt.date] = None


class ExpenseUpdateRequest(BaseModel):
    """Schema for updating an expense."""
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[float] = Field(None, gt=0)
    date: Optional[dt.date] = None
    description: Optional[str] = Field(None, max_length=1000)
    payment_proof_link: Optional[str] = Field(None, max_length=500)
    fund_type: Optional[str] = Field(None, max_length=50)


class RecurringTemplateUpdateRequest(BaseModel):
    """Schema for updating a recurring template."""
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[float] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=1000)
    fund_type: Optional[str] = Field(None, max_length=50)
    recurring_frequency: Optional[str] = None
    next_billing_date: Optional[dt.date] = None
    is_active: Optional[bool] = None


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class ExpenseResponse(BaseModel):
    """Schema for expense response."""
    id: UUID
    category: str
    amount: float
    date: dt.date
    description: Optional[str] = None
    payment_proof_link: Optional[str] = None
    fund_type: str
    transaction_id: Optional[UUID] = None
    inventory_id: Optional[UUID] = None

    is_recurring_expense: bool
    recurring_frequency: Optional[str] = None
    next_billing_date: Optional[dt.date] = None
    last_processed_date: Optional[dt.date] = None
    is_active: bool

    is_deleted: bool
    deleted_at: Optional[dt.datetime] = None
    deleted_by_id: Optional[UUID] = None

    created_by_id: Optional[UUID] = None
    updated_by_id: Optional[UUID] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class ExpenseListResponse(BaseModel):
    """List of expenses."""
    expenses: List[ExpenseResponse]
    total: int


class ExpenseMutationResponse(BaseModel):
    """Expense after a write, with the ledger outcome."""
    message: str
    expense: ExpenseResponse
    fund_updates: FundUpdateResponse
