"""
Fund Ledger - Expenses Router

API endpoints for expenses and recurring expense templates.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.database import get_async_session
from fundledger.dependencies import get_current_active_user
from fundledger.models.user import User
from fundledger.schemas.expense import (
    ExpenseCreateRequest,
    ExpenseListResponse,
    ExpenseMutationResponse,
    ExpenseResponse,
    ExpenseUpdateRequest,
    RecurringTemplateUpdateRequest,
)
from fundledger.schemas.fund import FundUpdateResponse
from fundledger.services.expense_service import ExpenseService


router = APIRouter()


def _mutation_response(message: str, expense, fund_update) -> ExpenseMutationResponse:
    return ExpenseMutationResponse(
        message=message,
        expense=ExpenseResponse.model_validate(expense),
        fund_updates=FundUpdateResponse(**fund_update.to_dict()),
    )


@router.get(
    "/expenses",
    response_model=ExpenseListResponse,
    summary="List expenses",
)
async def list_expenses(
    deleted: bool = Query(False, description="Return archived expenses instead of active ones"),
    inventory_id: Optional[UUID] = Query(None),
    transaction_id: Optional[UUID] = Query(None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    expenses = await ExpenseService(db).list_expenses(
        deleted=deleted,
        inventory_id=inventory_id,
        transaction_id=transaction_id,
    )
    return ExpenseListResponse(
        expenses=[ExpenseResponse.model_validate(e) for e in expenses],
        total=len(expenses),
    )


@router.post(
    "/expenses",
    response_model=ExpenseMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create expense",
)
async def create_expense(
    request: ExpenseCreateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Record an expense and charge it to its fund.

    The expense is saved even when the fund update fails; check
    `fund_updates` in the response.
    """
    expense, fund_update = await ExpenseService(db).create_expense(
        category=request.category,
        amount=request.amount,
        expense_date=request.date,
        description=request.description,
        payment_proof_link=request.payment_proof_link,
        fund_type=request.fund_type,
        transaction_id=request.transaction_id,
        inventory_id=request.inventory_id,
        is_recurring_expense=request.is_recurring_expense,
        recurring_frequency=request.recurring_frequency,
        next_billing=request.next_billing_date,
        created_by_id=current_user.id,
    )
    return _mutation_response("Expense created successfully", expense, fund_update)


@router.get(
    "/expenses/recurring",
    response_model=ExpenseListResponse,
    summary="List recurring expense templates",
)
async def list_recurring_expenses(
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    templates = await ExpenseService(db).list_recurring_templates(include_inactive=include_inactive)
    return ExpenseListResponse(
        expenses=[ExpenseResponse.model_validate(e) for e in templates],
        total=len(templates),
    )


@router.patch(
    "/expenses/recurring/{expense_id}",
    response_model=ExpenseResponse,
    summary="Update recurring expense template",
)
async def update_recurring_expense(
    expense_id: UUID,
    request: RecurringTemplateUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    expense = await ExpenseService(db).update_recurring_template(
        expense_id,
        request.model_dump(exclude_unset=True),
        updated_by_id=current_user.id,
    )
    return ExpenseResponse.model_validate(expense)


@router.delete(
    "/expenses/recurring/{expense_id}",
    response_model=ExpenseResponse,
    summary="Cancel recurring expense",
)
async def cancel_recurring_expense(
    expense_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    expense = await ExpenseService(db).cancel_recurring(expense_id, updated_by_id=current_user.id)
    return ExpenseResponse.model_validate(expense)


@router.patch(
    "/expenses/{expense_id}",
    response_model=ExpenseMutationResponse,
    summary="Update expense",
)
async def update_expense(
    expense_id: UUID,
    request: ExpenseUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    expense, fund_update = await ExpenseService(db).update_expense(
        expense_id,
        request.model_dump(exclude_unset=True),
        updated_by_id=current_user.id,
    )
    return _mutation_response("Expense updated successfully", expense, fund_update)


@router.post(
    "/expenses/{expense_id}/archive",
    response_model=ExpenseMutationResponse,
    summary="Archive expense",
)
async def archive_expense(
    expense_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    expense, fund_update = await ExpenseService(db).archive_expense(expense_id, deleted_by_id=current_user.id)
    return _mutation_response("Expense archived successfully", expense, fund_update)


@router.post(
    "/expenses/{expense_id}/restore",
    response_model=ExpenseMutationResponse,
    summary="Restore archived expense",
)
async def restore_expense(
    expense_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    expense, fund_update = await ExpenseService(db).restore_expense(expense_id, restored_by_id=current_user.id)
    return _mutation_response("Expense restored successfully", expense, fund_update)
