"""
Payment Cadence Module

Date arithmetic for weekly, biweekly and monthly installment cadences and
grace-period overdue detection. The current date is always passed in.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Union
import calendar

from .exceptions import InvalidInputError


class PaymentFrequency(Enum):
    """Payment frequency options"""
    WEEKLY = "weekly"          # 52 payments per year
    BI_WEEKLY = "biweekly"     # 26 payments per year
    MONTHLY = "monthly"        # 12 payments per year


PERIODS_PER_YEAR = {
    PaymentFrequency.WEEKLY: 52,
    PaymentFrequency.BI_WEEKLY: 26,
    PaymentFrequency.MONTHLY: 12,
}

DEFAULT_GRACE_PERIOD_DAYS = 3


def parse_frequency(value: Union[PaymentFrequency, str]) -> PaymentFrequency:
    """Accept a PaymentFrequency or its string value ('bi_weekly' also allowed)"""
    if isinstance(value, PaymentFrequency):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower().replace("-", "_")
        if normalized == "bi_weekly":
            normalized = PaymentFrequency.BI_WEEKLY.value
        try:
            return PaymentFrequency(normalized)
        except ValueError:
            pass
    raise InvalidInputError(f"Unsupported payment frequency: {value!r}")


def periods_per_year(frequency: Union[PaymentFrequency, str]) -> int:
    """Number of payment periods in one year for the cadence"""
    return PERIODS_PER_YEAR[parse_frequency(frequency)]


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping to the last day of a shorter month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance(current_date: date, frequency: Union[PaymentFrequency, str]) -> date:
    """Calculate the next due date one period after current_date"""
    frequency = parse_frequency(frequency)
    if frequency == PaymentFrequency.WEEKLY:
        return current_date + timedelta(days=7)
    elif frequency == PaymentFrequency.BI_WEEKLY:
        return current_date + timedelta(days=14)
    elif frequency == PaymentFrequency.MONTHLY:
        return add_months(current_date, 1)
    else:
        raise InvalidInputError(f"Unsupported payment frequency: {frequency}")


def advance_n(current_date: date, frequency: Union[PaymentFrequency, str], count: int) -> date:
    """Apply advance() count times"""
    if count < 0:
        raise InvalidInputError("count must be non-negative")
    result = current_date
    for _ in range(count):
        result = advance(result, frequency)
    return result


def first_payment_date(sale_start_date: date, frequency: Union[PaymentFrequency, str]) -> date:
    """First installment falls one period after the sale date"""
    return advance(sale_start_date, frequency)


def as_date(value: Union[date, datetime]) -> date:
    """Reduce a datetime to its date; dates pass through unchanged"""
    if isinstance(value, datetime):
        return value.date()
    return value


def is_overdue(
    due_date: date,
    now: Union[date, datetime],
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> bool:
    """
    Check whether a due date has passed its grace period

    Args:
        due_date: Scheduled due date
        now: Current date (or datetime, reduced to its date)
        grace_period_days: Days after the due date before it counts as overdue

    Returns:
        True iff now > due_date + grace_period_days
    """
    if grace_period_days < 0:
        raise InvalidInputError("grace_period_days must be non-negative")
    return as_date(now) > due_date + timedelta(days=grace_period_days)
