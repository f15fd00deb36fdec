"""
Fund Ledger - Fund Account Service

One balance row per fund type. Accounts are created lazily with a zero
balance the first time a fund type is referenced and are never deleted.

All balance writes go through `apply_delta`, which increments the stored
balance in a single UPDATE ... RETURNING statement so that concurrent
postings to the same fund cannot lose each other's deltas.
"""

import logging
import re
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fundledger.config import settings
from fundledger.models.fund import FundAccount
from fundledger.utils.error_handling import (
    FundAccountNotFoundException,
    InvalidFundTypeException,
)

logger = logging.getLogger(__name__)

FUND_TYPE_PATTERN = re.compile(r"^[a-z][a-z0-9_]{1,49}$")


class FundAccountService:
    """Service for fund account balances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def resolve_fund_type(value: Any) -> str:
        """
        Validate a fund key.

        Missing or blank keys are a validation error. Keys that can never
        name an account (wrong shape) are reported as not found. Any other
        key is accepted so that new funds can be introduced lazily.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidFundTypeException(value, "Fund type is required")
        if hasattr(value, "value"):
            value = value.value
        fund_type = str(value).strip()
        if not FUND_TYPE_PATTERN.match(fund_type):
            raise FundAccountNotFoundException(fund_type)
        return fund_type

    async def get_account(self, fund_type: str) -> Optional[FundAccount]:
        result = await self.db.execute(
            select(FundAccount).where(FundAccount.fund_type == fund_type)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, fund_type: str) -> FundAccount:
        """Return the account for a fund type, creating it with balance 0."""
        fund_type = self.resolve_fund_type(fund_type)
        account = await self.get_account(fund_type)
        if account is None:
            account = FundAccount(fund_type=fund_type, current_balance=Decimal("0"))
            self.db.add(account)
            await self.db.flush()
            logger.info(f"Created fund account {fund_type}")
        return account

    async def apply_delta(self, fund_type: str, delta: Decimal) -> Decimal:
        """
        Add `delta` to the stored balance and return the new balance.

        The account must already exist (see `get_or_create`). Does not commit.
        """
        result = await self.db.execute(
            update(FundAccount)
            .where(FundAccount.fund_type == fund_type)
            .values(current_balance=FundAccount.current_balance + delta)
            .returning(FundAccount.current_balance)
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            raise FundAccountNotFoundException(fund_type)
        return Decimal(str(new_balance))

    async def get_balance(self, fund_type: str) -> Decimal:
        """Current balance of a fund, creating the account if needed."""
        account = await self.get_or_create(fund_type)
        await self.db.commit()
        return Decimal(str(account.current_balance))

    async def list_accounts(self) -> List[FundAccount]:
        result = await self.db.execute(select(FundAccount).order_by(FundAccount.fund_type))
        return list(result.scalars().all())

    async def initialize_defaults(self) -> Tuple[List[FundAccount], bool]:
        """
        Make sure every configured fund type has an account.

        Returns all accounts and whether anything had to be created.
        """
        created = False
        for fund_type in settings.known_fund_types:
            if await self.get_account(fund_type) is None:
                await self.get_or_create(fund_type)
                created = True
        if created:
            await self.db.commit()
        return await self.list_accounts(), created
