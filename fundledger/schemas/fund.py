"""
Fund Ledger - Fund Schemas

Pydantic schemas for fund balances, ledger history, manual postings,
transfers and reconciliation.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fundledger.models.fund import FundTransactionType


# ===========================================
# SHARED
# ===========================================

class FundUpdateResponse(BaseModel):
    """Ledger side outcome of a business operation."""
    success: bool = True
    error: Optional[str] = None


class PaginationInfo(BaseModel):
    """Pagination metadata."""
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class ManualFundEntryRequest(BaseModel):
    """Schema for a manual fund posting."""
    fund_type: str = Field(..., min_length=1, max_length=50)
    transaction_type: str = Field(..., description="income, expense, transfer_in, transfer_out or adjustment")
    amount: float = Field(..., description="Sign is normalised from the transaction type, except for adjustments")
    description: Optional[str] = Field(None, max_length=500)
    counterpart_fund_type: Optional[str] = Field(
        None,
        max_length=50,
        description="Other side of a transfer_in / transfer_out entry",
    )


class FundTransferRequest(BaseModel):
    """Schema for moving money between funds."""
    from_fund_type: str = Field(..., min_length=1, max_length=50)
    to_fund_type: str = Field(..., min_length=1, max_length=50)
    amount: float = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)


class FundReconcileRequest(BaseModel):
    """Schema for reconciling a fund against a counted balance."""
    fund_type: str = Field(..., min_length=1, max_length=50)
    actual_balance: float
    description: Optional[str] = Field(None, max_length=500)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class FundAccountResponse(BaseModel):
    """Schema for a fund balance."""
    fund_type: str
    current_balance: float
    last_reconciled_balance: Optional[float] = None
    last_reconciled_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FundBalancesResponse(BaseModel):
    """All fund balances."""
    balances: List[FundAccountResponse]
    total_balance: float


class FundInitializeResponse(BaseModel):
    """Result of creating the configured funds."""
    message: str
    created: bool
    balances: List[FundAccountResponse]


class FundTransactionResponse(BaseModel):
    """Schema for a ledger entry."""
    id: UUID
    fund_type: str
    transaction_type: FundTransactionType
    amount: float
    balance_after: float
    description: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    reference_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FundTransactionListResponse(BaseModel):
    """Paginated ledger history."""
    transactions: List[FundTransactionResponse]
    pagination: PaginationInfo


class FundTransferResponse(BaseModel):
    """Both legs of a transfer."""
    message: str
    transfer_out: FundTransactionResponse
    transfer_in: FundTransactionResponse


class FundReconcileResponse(BaseModel):
    """Reconciled account and the adjustment that was posted, if any."""
    message: str
    account: FundAccountResponse
    adjustment: Optional[FundTransactionResponse] = None


class FundBalanceReportResponse(BaseModel):
    """Stored balance compared with the ledger."""
    fund_type: str
    stored_balance: float
    ledger_balance: float
    drift: float
    last_balance_after: Optional[float] = None
    entry_count: int
    unpaired_transfer_ids: List[UUID]
    last_reconciled_balance: Optional[float] = None
    last_reconciled_at: Optional[datetime] = None
    is_consistent: bool

    class Config:
        from_attributes = True

