"""
Early Payoff Module

Quotes the amount that settles a loan today. Interest is allocated linearly
by the share of the term still outstanding; the unearned share is waived.

This is a proportional approximation, not the true remaining interest on the
amortization curve (which front-loads interest). It matches how payoffs have
been quoted to buyers so far; changing it is a business decision.
"""

from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass
from typing import Union

from .currency import Currency, Money, to_decimal
from .exceptions import InvalidInputError


@dataclass(frozen=True)
class PayoffQuote:
    """Early payoff quote, rounded to whole currency units"""
    payoff_amount: Money
    total_savings: Money
    interest_saved: Money
    remaining_payments: int = 0


def calculate_early_payoff(
    remaining_principal: Union[Money, Decimal],
    original_loan_amount: Union[Money, Decimal],
    total_interest: Union[Money, Decimal],
    remaining_payments: int,
    total_payments: int,
    currency: Currency = Currency.USD
) -> PayoffQuote:
    """
    Calculate an early payoff quote

    Args:
        remaining_principal: Principal still owed
        original_loan_amount: Financed amount at origination
        total_interest: Interest over the full original schedule
        remaining_payments: Installments still outstanding
        total_payments: Installments in the original schedule

    Returns:
        PayoffQuote where payoff = principal + interest earned to date and
        savings are measured against paying out the remaining schedule
    """
    if total_payments <= 0:
        raise InvalidInputError(f"total_payments must be positive, got {total_payments}")
    if remaining_payments < 0:
        raise InvalidInputError(f"remaining_payments cannot be negative, got {remaining_payments}")

    principal = _amount(remaining_principal)
    original = _amount(original_loan_amount)
    interest = _amount(total_interest)

    remaining_term_ratio = Decimal(remaining_payments) / Decimal(total_payments)
    remaining_interest = interest * remaining_term_ratio
    earned_interest = interest - remaining_interest

    payoff_amount = _whole(principal + earned_interest, currency)

    total_if_paid_normally = original + interest
    total_with_early_payoff = (original - principal) + payoff_amount.amount
    total_savings = _whole(total_if_paid_normally - total_with_early_payoff, currency)

    interest_saved = _whole(remaining_interest, currency)

    return PayoffQuote(
        payoff_amount=payoff_amount,
        total_savings=total_savings,
        interest_saved=interest_saved,
        remaining_payments=remaining_payments
    )


def _amount(value: Union[Money, Decimal]) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    return to_decimal(value)


def _whole(value: Decimal, currency: Currency) -> Money:
    return Money(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP), currency)
