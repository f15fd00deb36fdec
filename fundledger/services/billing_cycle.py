"""
Fund Ledger - Billing Cycle Calculator

Pure date arithmetic for recurring expenses and subscriptions.

Months are added the way naive calendar libraries do it: the day of month
is kept and any overflow rolls into the following month, so
Jan 31 + 1 month is Mar 3 (Mar 2 in a leap year) and Feb 29 + 1 year is
Mar 1. No end-of-month clamping is applied.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union


class BillingFrequency(str, Enum):
    """Recognised billing frequencies."""
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"


MONTHS_PER_PERIOD = {
    BillingFrequency.MONTHLY: 1,
    BillingFrequency.QUARTERLY: 3,
    BillingFrequency.ANNUALLY: 12,
}


def parse_frequency(frequency: Optional[Union[str, BillingFrequency]]) -> BillingFrequency:
    """Map any input to a frequency, defaulting to MONTHLY for unknown values."""
    if isinstance(frequency, BillingFrequency):
        return frequency
    if isinstance(frequency, str):
        try:
            return BillingFrequency(frequency.strip().upper())
        except ValueError:
            pass
    return BillingFrequency.MONTHLY


def add_months(current: date, months: int) -> date:
    """Add calendar months, rolling overflowing days into the next month."""
    month_index = current.month - 1 + months
    year = current.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1) + timedelta(days=current.day - 1)


def next_billing_date(
    current: date,
    frequency: Optional[Union[str, BillingFrequency]] = None,
) -> date:
    """
    Next billing date after `current` for the given frequency.

    MONTHLY adds one month, QUARTERLY three and ANNUALLY one year.
    Anything else, including None, is treated as MONTHLY.
    """
    return add_months(current, MONTHS_PER_PERIOD[parse_frequency(frequency)])
