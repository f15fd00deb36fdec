"""
Fund Ledger - Funds Router

API endpoints for fund balances, ledger history, manual postings,
transfers and reconciliation.
"""

import math
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.config import settings
from fundledger.database import get_async_session
from fundledger.dependencies import get_current_active_user
from fundledger.models.user import User
from fundledger.schemas.fund import (
    FundAccountResponse,
    FundBalanceReportResponse,
    FundBalancesResponse,
    FundInitializeResponse,
    FundReconcileRequest,
    FundReconcileResponse,
    FundTransactionListResponse,
    FundTransactionResponse,
    FundTransferRequest,
    FundTransferResponse,
    ManualFundEntryRequest,
    PaginationInfo,
)
from fundledger.services.fund_account_service import FundAccountService
from fundledger.services.fund_ledger_service import FundLedgerService


router = APIRouter()


@router.get(
    "/funds/balances",
    response_model=FundBalancesResponse,
    summary="Current fund balances",
)
async def get_fund_balances(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Balances of every fund account."""
    accounts = await FundAccountService(db).list_accounts()
    balances = [FundAccountResponse.model_validate(a) for a in accounts]
    return FundBalancesResponse(
        balances=balances,
        total_balance=sum(b.current_balance for b in balances),
    )


@router.post(
    "/funds/initialize",
    response_model=FundInitializeResponse,
    summary="Create the configured fund accounts",
)
async def initialize_funds(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    accounts, created = await FundAccountService(db).initialize_defaults()
    return FundInitializeResponse(
        message="Fund balances initialized" if created else "Fund balances already initialized",
        created=created,
        balances=[FundAccountResponse.model_validate(a) for a in accounts],
    )


@router.post(
    "/funds/reconcile",
    response_model=FundReconcileResponse,
    summary="Reconcile a fund against a counted balance",
)
async def reconcile_fund(
    request: FundReconcileRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    account, adjustment = await FundLedgerService(db).reconcile(
        fund_type=request.fund_type,
        actual_balance=request.actual_balance,
        description=request.description,
        created_by_id=current_user.id,
    )
    return FundReconcileResponse(
        message="Fund reconciled" if adjustment else "Fund already matches the counted balance",
        account=FundAccountResponse.model_validate(account),
        adjustment=FundTransactionResponse.model_validate(adjustment) if adjustment else None,
    )


@router.get(
    "/funds/transactions",
    response_model=FundTransactionListResponse,
    summary="Ledger history",
)
async def list_fund_transactions(
    fund_type: Optional[str] = Query(None),
    transaction_type: Optional[str] = Query(None),
    source_type: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None, description="Inclusive of the whole day"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Filterable, paginated ledger entries, newest first."""
    limit = min(limit, settings.ledger_page_size_max)
    entries, total = await FundLedgerService(db).list_transactions(
        fund_type=fund_type,
        transaction_type=transaction_type,
        source_type=source_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return FundTransactionListResponse(
        transactions=[FundTransactionResponse.model_validate(e) for e in entries],
        pagination=PaginationInfo(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
            has_next_page=(page - 1) * limit + len(entries) < total,
            has_prev_page=page > 1,
        ),
    )


@router.post(
    "/funds/transactions",
    response_model=FundTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Manual fund posting",
)
async def create_fund_transaction(
    request: ManualFundEntryRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    entry = await FundLedgerService(db).post_manual_entry(
        fund_type=request.fund_type,
        transaction_type=request.transaction_type,
        amount=request.amount,
        description=request.description,
        created_by_id=current_user.id,
        counterpart_fund_type=request.counterpart_fund_type,
    )
    return FundTransactionResponse.model_validate(entry)


@router.post(
    "/funds/transfer",
    response_model=FundTransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer between funds",
)
async def transfer_funds(
    request: FundTransferRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    out_tx, in_tx = await FundLedgerService(db).transfer_funds(
        from_fund_type=request.from_fund_type,
        to_fund_type=request.to_fund_type,
        amount=request.amount,
        description=request.description,
        created_by_id=current_user.id,
    )
    return FundTransferResponse(
        message="Transfer completed successfully",
        transfer_out=FundTransactionResponse.model_validate(out_tx),
        transfer_in=FundTransactionResponse.model_validate(in_tx),
    )


@router.get(
    "/funds/{fund_type}/report",
    response_model=FundBalanceReportResponse,
    summary="Balance reconciliation report",
)
async def get_balance_report(
    fund_type: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Stored balance against the balance replayed from the ledger."""
    report = await FundLedgerService(db).get_balance_report(fund_type)
    return FundBalanceReportResponse(
        **asdict(report),
        is_consistent=report.drift == 0 and not report.unpaired_transfer_ids,
    )
