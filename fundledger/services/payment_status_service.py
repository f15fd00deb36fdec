"""
Fund Ledger - Payment Status Service

Cash implications of moving a transaction between payment states.

The cash already recognised for a transaction is implied by its status:
the down payment while DP, the total profit when Lunas and nothing while
Belum Bayar. An edit posts exactly the difference to the (possibly new)
fund, after first moving the previously recognised cash when the fund
itself was reassigned.

Ledger failures never undo the status change; they are reported through
FundUpdateResult.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.models.fund import FundSourceType, FundTransactionType
from fundledger.models.transaction import PaymentStatus, Transaction
from fundledger.services.fund_ledger_service import FundLedgerService, FundUpdateResult
from fundledger.utils.error_handling import TransactionNotFoundException, ValidationException

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def coerce_status(value: Union[str, PaymentStatus]) -> PaymentStatus:
    """Accept a PaymentStatus, its value ("Belum Bayar") or its name ("BELUM_BAYAR")."""
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value)
    except ValueError:
        pass
    try:
        return PaymentStatus[str(value).strip().upper().replace(" ", "_")]
    except KeyError:
        raise ValidationException(
            f"Invalid payment status: {value}",
            field="payment_status",
            details={"allowed": [s.value for s in PaymentStatus]},
        )


def _dec(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


def recognized_amount(status: Union[str, PaymentStatus], total_profit: Any, down_payment: Any) -> Decimal:
    """Cash already received for a transaction in `status`."""
    status = coerce_status(status)
    if status == PaymentStatus.LUNAS:
        return _dec(total_profit)
    if status == PaymentStatus.DP:
        return _dec(down_payment)
    return ZERO


def calculate_status_delta(
    old_status: Union[str, PaymentStatus],
    new_status: Union[str, PaymentStatus],
    total_profit: Any,
    old_down_payment: Any,
    new_down_payment: Any,
    old_total_profit: Any = None,
) -> Decimal:
    """
    Cash to post for a status edit.

    The difference between the cash recognised after the edit and the cash
    recognised before it. `old_total_profit` is the total before the edit;
    when it is omitted the total is taken as unchanged and the result
    follows this table:

    Belum Bayar -> DP      +new down payment
    Belum Bayar -> Lunas   +total
    DP -> Lunas            +(total - old down payment)
    DP -> DP               +(new - old down payment)
    Lunas -> DP            +(new down payment - total)
    DP -> Belum Bayar      -old down payment
    Lunas -> Belum Bayar   -total
    unchanged status       0 unless an amount changed
    """
    old_total = total_profit if old_total_profit is None else old_total_profit
    before = recognized_amount(old_status, old_total, old_down_payment)
    after = recognized_amount(new_status, total_profit, new_down_payment)
    return after - before


@dataclass
class TransitionPlan:
    """Ledger work implied by a transaction edit."""

    status_delta: Decimal
    fund_move_amount: Decimal
    old_fund_type: str
    new_fund_type: str

    @property
    def fund_type_changed(self) -> bool:
        return self.old_fund_type != self.new_fund_type

    @property
    def is_noop(self) -> bool:
        return self.status_delta == 0 and (not self.fund_type_changed or self.fund_move_amount == 0)


def plan_transition(
    old_status: Union[str, PaymentStatus],
    new_status: Union[str, PaymentStatus],
    total_profit: Any,
    old_down_payment: Any,
    new_down_payment: Any,
    old_fund_type: str,
    new_fund_type: Optional[str] = None,
    old_total_profit: Any = None,
) -> TransitionPlan:
    """
    Combine the status delta with the fund move.

    When the fund changes, the cash recognised under the old status moves
    from the old fund to the new one, independently of the status delta.
    `old_total_profit` is the total before the edit when it changed too.
    """
    new_fund_type = new_fund_type or old_fund_type
    fund_move_amount = ZERO
    if new_fund_type != old_fund_type:
        fund_move_amount = recognized_amount(
            old_status,
            total_profit if old_total_profit is None else old_total_profit,
            old_down_payment,
        )
    return TransitionPlan(
        status_delta=calculate_status_delta(
            old_status, new_status, total_profit, old_down_payment, new_down_payment,
            old_total_profit=old_total_profit,
        ),
        fund_move_amount=fund_move_amount,
        old_fund_type=old_fund_type,
        new_fund_type=new_fund_type,
    )


class PaymentStatusService:
    """Applies a TransitionPlan to the ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = FundLedgerService(db)

    async def apply(
        self,
        transaction_id: uuid.UUID,
        plan: TransitionPlan,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> FundUpdateResult:
        """
        Post the fund move, then the status delta.

        The transaction record must already be committed. Nothing here
        raises for ledger failures; they end up in the returned result.
        """
        transaction = await self.db.get(Transaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundException(transaction_id)

        result = FundUpdateResult()
        name = transaction.name

        if plan.fund_type_changed and plan.fund_move_amount != 0:
            try:
                out_tx, in_tx = await self.ledger.transfer(
                    plan.old_fund_type,
                    plan.new_fund_type,
                    plan.fund_move_amount,
                    f"Fund transfer to {plan.new_fund_type} for transaction: {name}",
                    created_by_id=created_by_id,
                    source_id=transaction_id,
                )
                result.postings.extend([out_tx, in_tx])
            except Exception as e:
                await self.ledger.record_failure(
                    result, e, plan.old_fund_type, plan.fund_move_amount, transaction_id, refresh=[transaction]
                )

        if plan.status_delta != 0:
            tx_type = FundTransactionType.INCOME if plan.status_delta > 0 else FundTransactionType.EXPENSE
            try:
                entry = await self.ledger.post(
                    plan.new_fund_type,
                    tx_type,
                    plan.status_delta,
                    f"Payment status update for transaction: {name}",
                    FundSourceType.TRANSACTION_UPDATE,
                    source_id=transaction_id,
                    created_by_id=created_by_id,
                )
                result.postings.append(entry)
            except Exception as e:
                await self.ledger.record_failure(
                    result, e, plan.new_fund_type, plan.status_delta, transaction_id, refresh=[transaction]
                )

        if result.postings:
            logger.info(
                f"Applied payment status change for transaction {transaction_id}: "
                f"delta {plan.status_delta}, moved {plan.fund_move_amount}"
            )
        return result
