"""
Fund Ledger - Recurring Payment Schemas
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from fundledger.schemas.fund import FundUpdateResponse


class RecurringRunRequest(BaseModel):
    """Schema for triggering a recurring payment run."""
    due_before_or_on: Optional[date] = None
    expense_ids: Optional[List[UUID]] = None


class RecurringItemResponse(BaseModel):
    """Outcome for one template."""
    expense_id: UUID
    status: str
    new_expense_id: Optional[UUID] = None
    next_billing_date: Optional[date] = None
    error_message: Optional[str] = None
    fund_update: Optional[FundUpdateResponse] = None


class RecurringRunResponse(BaseModel):
    """Outcome of a recurring payment run."""
    message: str
    processing_date: date
    due_before_or_on: date
    processed: int
    failed: int
    skipped: int
    results: List[RecurringItemResponse]
