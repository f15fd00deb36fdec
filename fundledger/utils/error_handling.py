"""
Error Handling Module for Fund Ledger

This module provides centralized error handling with:
- Custom exception hierarchy
- Standardized error responses
- Error logging for manual reconciliation of partial postings
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("fundledger.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_FUND_TYPE = "INVALID_FUND_TYPE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_TRANSACTION_TYPE = "INVALID_TRANSACTION_TYPE"
    SAME_FUND_TRANSFER = "SAME_FUND_TRANSFER"

    # Authentication/Authorization Errors (401/403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    FUND_ACCOUNT_NOT_FOUND = "FUND_ACCOUNT_NOT_FOUND"
    EXPENSE_NOT_FOUND = "EXPENSE_NOT_FOUND"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    INVENTORY_ITEM_NOT_FOUND = "INVENTORY_ITEM_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ALREADY_ARCHIVED = "ALREADY_ARCHIVED"
    NOT_ARCHIVED = "NOT_ARCHIVED"
    NOT_RECURRING = "NOT_RECURRING"

    # Ledger consistency (500)
    PARTIAL_POSTING = "PARTIAL_POSTING"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.utcnow()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat() + "Z",
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidFundTypeException(ValidationException):
    """Missing or invalid fund type"""

    def __init__(self, fund_type: Any, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid fund type: {fund_type!r}",
            field="fund_type",
            code=ErrorCode.INVALID_FUND_TYPE,
            details={"provided_fund_type": None if fund_type is None else str(fund_type)},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a positive number.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)},
        )


class InvalidTransactionTypeException(ValidationException):
    """Unknown fund transaction type"""

    def __init__(self, transaction_type: Any, allowed: list):
        super().__init__(
            message=f"Invalid transaction type. Must be one of: {', '.join(allowed)}",
            field="transaction_type",
            code=ErrorCode.INVALID_TRANSACTION_TYPE,
            details={"provided": str(transaction_type), "allowed": allowed},
        )


class SameFundTransferException(ValidationException):
    """Transfer source and destination are the same fund"""

    def __init__(self, fund_type: str):
        super().__init__(
            message="Cannot transfer to the same fund type",
            field="to_fund_type",
            code=ErrorCode.SAME_FUND_TRANSFER,
            details={"fund_type": fund_type},
        )


# ============================================================================
# Authentication/Authorization Exceptions
# ============================================================================

class AuthenticationException(AppException):
    """Base authentication exception"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            code=ErrorCode.UNAUTHORIZED,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class FundAccountNotFoundException(NotFoundException):
    """Fund key cannot be resolved to an account"""

    def __init__(self, fund_type: Any):
        super().__init__(
            resource_type="Fund account",
            message=f"Fund type '{fund_type}' not found",
            code=ErrorCode.FUND_ACCOUNT_NOT_FOUND,
        )
        self.details["fund_type"] = str(fund_type)


class ExpenseNotFoundException(NotFoundException):
    """Expense not found"""

    def __init__(self, expense_id: Union[str, UUID]):
        super().__init__(
            resource_type="Expense",
            resource_id=expense_id,
            code=ErrorCode.EXPENSE_NOT_FOUND,
        )


class TransactionNotFoundException(NotFoundException):
    """Transaction not found"""

    def __init__(self, transaction_id: Union[str, UUID]):
        super().__init__(
            resource_type="Transaction",
            resource_id=transaction_id,
            code=ErrorCode.TRANSACTION_NOT_FOUND,
        )


class InventoryItemNotFoundException(NotFoundException):
    """Inventory item not found"""

    def __init__(self, item_id: Union[str, UUID]):
        super().__init__(
            resource_type="Inventory item",
            resource_id=item_id,
            code=ErrorCode.INVENTORY_ITEM_NOT_FOUND,
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class InsufficientFundsException(BusinessRuleException):
    """Not enough balance in the source fund"""

    def __init__(self, fund_type: str, required: Decimal, available: Decimal):
        super().__init__(
            message=f"Insufficient balance in {fund_type}",
            code=ErrorCode.INSUFFICIENT_FUNDS,
            details={
                "fund_type": fund_type,
                "required": str(required),
                "available": str(available),
            },
        )


class AlreadyArchivedException(BusinessRuleException):
    """Record already soft deleted"""

    def __init__(self, resource_type: str, resource_id: Union[str, UUID]):
        super().__init__(
            message=f"{resource_type} is already archived",
            code=ErrorCode.ALREADY_ARCHIVED,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class NotArchivedException(BusinessRuleException):
    """Record is not soft deleted, nothing to restore"""

    def __init__(self, resource_type: str, resource_id: Union[str, UUID]):
        super().__init__(
            message=f"{resource_type} is not archived",
            code=ErrorCode.NOT_ARCHIVED,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class NotRecurringExpenseException(BusinessRuleException):
    """Operation needs a recurring expense template"""

    def __init__(self, expense_id: Union[str, UUID]):
        super().__init__(
            message="Not a recurring expense",
            code=ErrorCode.NOT_RECURRING,
            details={"expense_id": str(expense_id)},
        )


# ============================================================================
# Ledger Consistency Exceptions
# ============================================================================

class PartialPostingException(AppException):
    """
    One leg of a multi-step posting committed and a later one failed.

    The committed leg is left in place for manual reconciliation.
    """

    def __init__(
        self,
        message: str,
        fund_type: str,
        amount: Decimal,
        source_id: Optional[Union[str, UUID]] = None,
        committed_transaction_id: Optional[Union[str, UUID]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=ErrorCode.PARTIAL_POSTING,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={
                "fund_type": fund_type,
                "amount": str(amount),
                "source_id": str(source_id) if source_id else None,
                "committed_transaction_id": (
                    str(committed_transaction_id) if committed_transaction_id else None
                ),
            },
            original_error=original_error,
        )


# ============================================================================
# Database Exceptions
# ============================================================================

class DatabaseException(AppException):
    """Database error exception"""

    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_amount(amount: Any, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """Validate monetary amount and return it as Decimal"""
    try:
        value = Decimal(str(amount))
    except (TypeError, ValueError, ArithmeticError):
        raise InvalidAmountException(amount, field)
    if not value.is_finite() or value < 0 or (not allow_zero and value == 0):
        raise InvalidAmountException(amount, field)
    return value


__all__ = [
    # Base
    "AppException",
    "ErrorCode",

    # Validation
    "ValidationException",
    "InvalidFundTypeException",
    "InvalidAmountException",
    "InvalidTransactionTypeException",
    "SameFundTransferException",

    # Auth
    "AuthenticationException",

    # Resource
    "NotFoundException",
    "FundAccountNotFoundException",
    "ExpenseNotFoundException",
    "TransactionNotFoundException",
    "InventoryItemNotFoundException",

    # Business Logic
    "BusinessRuleException",
    "InsufficientFundsException",
    "AlreadyArchivedException",
    "NotArchivedException",
    "NotRecurringExpenseException",

    # Ledger
    "PartialPostingException",

    # Database
    "DatabaseException",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",

    # Utilities
    "validate_amount",
]
