"""
Fund Ledger - Services Package

Business logic services.
"""

from fundledger.services.fund_account_service import FundAccountService
from fundledger.services.fund_ledger_service import FundLedgerService, FundUpdateResult
from fundledger.services.payment_status_service import PaymentStatusService
from fundledger.services.expense_service import ExpenseService
from fundledger.services.transaction_service import TransactionService
from fundledger.services.recurring_payment_service import RecurringPaymentService
