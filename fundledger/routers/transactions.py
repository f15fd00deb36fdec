"""
Fund Ledger - Transactions Router

API endpoints for project / sale transactions.

Payment status edits always succeed once the transaction is saved; the
ledger outcome is reported separately in `fund_updates`.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.database import get_async_session
from fundledger.dependencies import get_current_active_user
from fundledger.models.user import User
from fundledger.schemas.fund import FundUpdateResponse
from fundledger.schemas.transaction import (
    TransactionArchiveResponse,
    TransactionCreateRequest,
    TransactionMutationResponse,
    TransactionResponse,
    TransactionUpdateRequest,
)
from fundledger.services.transaction_service import TransactionService


router = APIRouter()


@router.post(
    "/transactions",
    response_model=TransactionMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create transaction",
)
async def create_transaction(
    request: TransactionCreateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    transaction, fund_update = await TransactionService(db).create_transaction(
        name=request.name,
        transaction_date=request.date,
        total_profit=request.total_profit,
        payment_status=request.payment_status,
        down_payment_amount=request.down_payment_amount,
        project_value=request.project_value,
        description=request.description,
        fund_type=request.fund_type,
        created_by_id=current_user.id,
    )
    return TransactionMutationResponse(
        message="Transaction created successfully",
        transaction=TransactionResponse.model_validate(transaction),
        fund_updates=FundUpdateResponse(**fund_update.to_dict()),
    )


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction",
)
async def get_transaction(
    transaction_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    transaction = await TransactionService(db).get_transaction(transaction_id)
    return TransactionResponse.model_validate(transaction)


@router.patch(
    "/transactions/{transaction_id}",
    response_model=TransactionMutationResponse,
    summary="Update transaction",
)
async def update_transaction(
    transaction_id: UUID,
    request: TransactionUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Update a transaction.

    Payment status and fund changes are posted to the ledger after the
    transaction is saved.
    """
    transaction, fund_update = await TransactionService(db).update_transaction(
        transaction_id,
        request.model_dump(exclude_unset=True),
        updated_by_id=current_user.id,
    )
    return TransactionMutationResponse(
        message="Transaction updated successfully",
        transaction=TransactionResponse.model_validate(transaction),
        fund_updates=FundUpdateResponse(**fund_update.to_dict()),
    )


@router.post(
    "/transactions/{transaction_id}/archive",
    response_model=TransactionArchiveResponse,
    summary="Archive transaction",
)
async def archive_transaction(
    transaction_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    transaction, fund_update, count = await TransactionService(db).archive_transaction(
        transaction_id, deleted_by_id=current_user.id
    )
    return TransactionArchiveResponse(
        message=f"Transaction archived successfully along with {count} related expenses",
        transaction=TransactionResponse.model_validate(transaction),
        fund_updates=FundUpdateResponse(**fund_update.to_dict()),
        affected_expenses=count,
    )


@router.post(
    "/transactions/{transaction_id}/restore",
    response_model=TransactionArchiveResponse,
    summary="Restore archived transaction",
)
async def restore_transaction(
    transaction_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    transaction, fund_update, count = await TransactionService(db).restore_transaction(
        transaction_id, restored_by_id=current_user.id
    )
    return TransactionArchiveResponse(
        message=f"Transaction restored successfully along with {count} related expenses",
        transaction=TransactionResponse.model_validate(transaction),
        fund_updates=FundUpdateResponse(**fund_update.to_dict()),
        affected_expenses=count,
    )
